"""
In-process document store.

Used for local development (RAG_STORE=memory) and tests. Ranking goes
through `similarity.rank_chunks`, so the scoring function is pluggable.
"""
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence

from ..schemas import ChunkWithSimilarity, Document, DocumentChunk, DocumentRef, DocumentUpload, NewChunk
from ..similarity import SimilarityFn, cosine_similarity, rank_chunks, with_similarity
from .repository import RAGRepository


class InMemoryRAGRepository(RAGRepository):

    def __init__(self, similarity: SimilarityFn = cosine_similarity):
        self.similarity = similarity
        self._documents: Dict[str, Document] = {}
        self._chunks: Dict[str, List[DocumentChunk]] = {}
        self._epoch = datetime.now(timezone.utc)
        self._seq = 0

    def _now(self) -> datetime:
        # strictly increasing so creation order is well defined
        self._seq += 1
        return self._epoch + timedelta(microseconds=self._seq)

    # ==================== Documents ====================

    def create_document(self, project_id: str, user_id: str, upload: DocumentUpload, content: str) -> Document:
        now = self._now()
        fields = upload.model_dump(exclude={"content", "size"})
        document = Document(
            id=str(uuid.uuid4()),
            project_id=project_id,
            user_id=user_id,
            content=content,
            size=upload.byte_size(),
            created_at=now,
            updated_at=now,
            **fields,
        )
        self._documents[document.id] = document
        self._chunks[document.id] = []
        return document

    def get_document_by_id(self, document_id: str) -> Optional[Document]:
        return self._documents.get(document_id)

    def get_documents_by_project_id(self, project_id: str) -> List[Document]:
        docs = [d for d in self._documents.values() if d.project_id == project_id]
        return sorted(docs, key=lambda d: d.created_at, reverse=True)

    def update_document(self, document_id: str, updates: Dict[str, Any]) -> Optional[Document]:
        document = self._documents.get(document_id)
        if document is None:
            return None
        changes = {k: v for k, v in updates.items() if k in ("name", "content", "metadata", "size") and v is not None}
        updated = document.model_copy(update={**changes, "updated_at": self._now()})
        self._documents[document_id] = updated
        return updated

    def delete_document(self, document_id: str) -> bool:
        self._chunks.pop(document_id, None)
        return self._documents.pop(document_id, None) is not None

    # ==================== Chunks ====================

    def _build(self, chunks: Sequence[NewChunk]) -> List[DocumentChunk]:
        built = []
        for chunk in chunks:
            if chunk.document_id not in self._documents:
                raise KeyError(f"Unknown document: {chunk.document_id}")
            built.append(DocumentChunk(id=str(uuid.uuid4()), created_at=self._now(), **chunk.model_dump()))
        return built

    def create_chunks(self, chunks: Sequence[NewChunk]) -> List[DocumentChunk]:
        # validate the whole batch before touching state
        built = self._build(chunks)
        for chunk in built:
            self._chunks[chunk.document_id].append(chunk)
        for document_id in {c.document_id for c in built}:
            self._chunks[document_id].sort(key=lambda c: c.chunk_index)
        return built

    def delete_chunks_by_document_id(self, document_id: str) -> int:
        removed = self._chunks.get(document_id, [])
        if document_id in self._chunks:
            self._chunks[document_id] = []
        return len(removed)

    def replace_chunks(self, document_id: str, chunks: Sequence[NewChunk]) -> List[DocumentChunk]:
        built = self._build(chunks)
        self._chunks[document_id] = sorted(built, key=lambda c: c.chunk_index)
        return built

    def get_chunks_by_document_id(self, document_id: str) -> List[DocumentChunk]:
        return list(self._chunks.get(document_id, []))

    def search_by_similarity(
        self,
        project_id: str,
        query_embedding: Sequence[float],
        limit: int,
        threshold: float,
        document_ids: Optional[Sequence[str]] = None,
    ) -> List[ChunkWithSimilarity]:
        allowed = set(document_ids) if document_ids else None
        candidates = []
        for document in self._documents.values():
            if document.project_id != project_id:
                continue
            if allowed is not None and document.id not in allowed:
                continue
            ref = DocumentRef.from_document(document)
            for chunk in self._chunks.get(document.id, []):
                if chunk.project_id == project_id:
                    candidates.append((chunk, ref))
        return rank_chunks(candidates, query_embedding, limit, threshold, self.similarity)

    def get_all_chunks_from_documents(self, project_id: str, document_ids: Sequence[str]) -> List[ChunkWithSimilarity]:
        results = []
        for document_id in dict.fromkeys(document_ids):
            document = self._documents.get(document_id)
            if document is None or document.project_id != project_id:
                continue
            ref = DocumentRef.from_document(document)
            for chunk in self._chunks.get(document_id, []):
                results.append(with_similarity(chunk, ref, 1.0))
        return results
