"""
PostgreSQL + pgvector document store.
"""
import uuid
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import delete, func, select, update

from ..models import DocumentChunkRow, DocumentRow
from ..schemas import ChunkWithSimilarity, Document, DocumentChunk, DocumentRef, DocumentUpload, NewChunk
from .repository import RAGRepository


def _to_document(row: DocumentRow) -> Document:
    return Document(
        id=row.id,
        project_id=row.project_id,
        user_id=row.user_id,
        name=row.name,
        content=row.content,
        mime_type=row.mime_type,
        size=row.size_bytes or 0,
        document_type=row.document_type,
        metadata=row.meta or {},
        web_url=row.web_url,
        web_title=row.web_title,
        web_favicon=row.web_favicon,
        web_extracted_at=row.web_extracted_at,
        youtube_video_id=row.youtube_video_id,
        youtube_title=row.youtube_title,
        youtube_channel_name=row.youtube_channel_name,
        youtube_duration=row.youtube_duration,
        youtube_thumbnail=row.youtube_thumbnail,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _to_ref(row: DocumentRow) -> DocumentRef:
    return DocumentRef(
        id=row.id,
        name=row.name,
        mime_type=row.mime_type,
        document_type=row.document_type,
        web_url=row.web_url,
        web_title=row.web_title,
        youtube_title=row.youtube_title,
        youtube_channel_name=row.youtube_channel_name,
        created_at=row.created_at,
    )


def _embedding_list(value) -> Optional[List[float]]:
    if value is None:
        return None
    return [float(x) for x in value]


def _to_chunk(row: DocumentChunkRow) -> DocumentChunk:
    return DocumentChunk(
        id=row.id,
        document_id=row.document_id,
        project_id=row.project_id,
        content=row.content,
        embedding=_embedding_list(row.embedding),
        chunk_index=row.chunk_index,
        metadata=row.meta or {},
        created_at=row.created_at,
    )


def _to_scored(row: DocumentChunkRow, doc: DocumentRow, similarity: float) -> ChunkWithSimilarity:
    return ChunkWithSimilarity(
        **_to_chunk(row).model_dump(),
        similarity=min(1.0, max(0.0, float(similarity))),
        document=_to_ref(doc),
    )


def similarity_query(
    project_id: str,
    query_embedding: Sequence[float],
    limit: int,
    threshold: float,
    document_ids: Optional[Sequence[str]] = None,
):
    """
    Ranked chunk search. The score is `1 - cosine distance` clamped to
    [0, 1] before the threshold applies, matching `similarity.cosine_similarity`.
    """
    raw = 1 - DocumentChunkRow.embedding.cosine_distance(list(query_embedding))
    similarity = func.least(1.0, func.greatest(0.0, raw)).label("similarity")
    stmt = (
        select(DocumentChunkRow, DocumentRow, similarity)
        .join(DocumentRow, DocumentRow.id == DocumentChunkRow.document_id)
        .where(DocumentChunkRow.project_id == project_id)
        .where(DocumentChunkRow.embedding.is_not(None))
        .where(similarity >= threshold)
        .order_by(
            similarity.desc(),
            DocumentChunkRow.chunk_index.asc(),
            DocumentRow.created_at.asc(),
            DocumentRow.id.asc(),
        )
        .limit(limit)
    )
    if document_ids:
        stmt = stmt.where(DocumentChunkRow.document_id.in_(list(document_ids)))
    return stmt


def _chunk_rows(chunks: Sequence[NewChunk]) -> List[DocumentChunkRow]:
    return [
        DocumentChunkRow(
            id=str(uuid.uuid4()),
            document_id=c.document_id,
            project_id=c.project_id,
            chunk_index=c.chunk_index,
            content=c.content,
            embedding=c.embedding,
            meta=c.metadata,
        )
        for c in chunks
    ]


class PgRAGRepository(RAGRepository):
    """
    Each public method runs in its own transaction, so a chunk batch is
    committed all-or-nothing.
    """

    def __init__(self, session_factory=None):
        if session_factory is None:
            from . import SessionLocal
            session_factory = SessionLocal
        self.session_factory = session_factory

    # ==================== Documents ====================

    def create_document(self, project_id: str, user_id: str, upload: DocumentUpload, content: str) -> Document:
        row = DocumentRow(
            id=str(uuid.uuid4()),
            project_id=project_id,
            user_id=user_id,
            name=upload.name,
            content=content,
            mime_type=upload.mime_type,
            size_bytes=upload.byte_size(),
            document_type=upload.document_type.value,
            meta=upload.metadata,
            web_url=upload.web_url,
            web_title=upload.web_title,
            web_favicon=upload.web_favicon,
            web_extracted_at=upload.web_extracted_at,
            youtube_video_id=upload.youtube_video_id,
            youtube_title=upload.youtube_title,
            youtube_channel_name=upload.youtube_channel_name,
            youtube_duration=upload.youtube_duration,
            youtube_thumbnail=upload.youtube_thumbnail,
        )
        with self.session_factory() as db, db.begin():
            db.add(row)
            db.flush()
            db.refresh(row)
            return _to_document(row)

    def get_document_by_id(self, document_id: str) -> Optional[Document]:
        with self.session_factory() as db:
            row = db.get(DocumentRow, document_id)
            return _to_document(row) if row is not None else None

    def get_documents_by_project_id(self, project_id: str) -> List[Document]:
        with self.session_factory() as db:
            rows = db.scalars(
                select(DocumentRow)
                .where(DocumentRow.project_id == project_id)
                .order_by(DocumentRow.created_at.desc())
            ).all()
            return [_to_document(r) for r in rows]

    def update_document(self, document_id: str, updates: Dict[str, Any]) -> Optional[Document]:
        values = {}
        if updates.get("name") is not None:
            values["name"] = updates["name"]
        if updates.get("content") is not None:
            values["content"] = updates["content"]
        if updates.get("metadata") is not None:
            values["meta"] = updates["metadata"]
        if updates.get("size") is not None:
            values["size_bytes"] = updates["size"]
        values["updated_at"] = func.now()

        with self.session_factory() as db, db.begin():
            db.execute(update(DocumentRow).where(DocumentRow.id == document_id).values(**values))
            row = db.get(DocumentRow, document_id, populate_existing=True)
            return _to_document(row) if row is not None else None

    def delete_document(self, document_id: str) -> bool:
        # chunks cascade via ON DELETE CASCADE
        with self.session_factory() as db, db.begin():
            result = db.execute(delete(DocumentRow).where(DocumentRow.id == document_id))
            return result.rowcount > 0

    # ==================== Chunks ====================

    def create_chunks(self, chunks: Sequence[NewChunk]) -> List[DocumentChunk]:
        if not chunks:
            return []
        rows = _chunk_rows(chunks)
        with self.session_factory() as db, db.begin():
            db.add_all(rows)
            db.flush()
            return [_to_chunk(r) for r in rows]

    def delete_chunks_by_document_id(self, document_id: str) -> int:
        with self.session_factory() as db, db.begin():
            result = db.execute(delete(DocumentChunkRow).where(DocumentChunkRow.document_id == document_id))
            return result.rowcount

    def replace_chunks(self, document_id: str, chunks: Sequence[NewChunk]) -> List[DocumentChunk]:
        rows = _chunk_rows(chunks)
        with self.session_factory() as db, db.begin():
            db.execute(delete(DocumentChunkRow).where(DocumentChunkRow.document_id == document_id))
            db.add_all(rows)
            db.flush()
            return [_to_chunk(r) for r in rows]

    def get_chunks_by_document_id(self, document_id: str) -> List[DocumentChunk]:
        with self.session_factory() as db:
            rows = db.scalars(
                select(DocumentChunkRow)
                .where(DocumentChunkRow.document_id == document_id)
                .order_by(DocumentChunkRow.chunk_index)
            ).all()
            return [_to_chunk(r) for r in rows]

    def search_by_similarity(
        self,
        project_id: str,
        query_embedding: Sequence[float],
        limit: int,
        threshold: float,
        document_ids: Optional[Sequence[str]] = None,
    ) -> List[ChunkWithSimilarity]:
        if limit <= 0:
            return []

        stmt = similarity_query(project_id, query_embedding, limit, threshold, document_ids)
        with self.session_factory() as db:
            rows = db.execute(stmt).all()
            return [_to_scored(chunk, doc, score) for chunk, doc, score in rows]

    def get_all_chunks_from_documents(self, project_id: str, document_ids: Sequence[str]) -> List[ChunkWithSimilarity]:
        ids = list(dict.fromkeys(document_ids))
        if not ids:
            return []

        with self.session_factory() as db:
            rows = db.execute(
                select(DocumentChunkRow, DocumentRow)
                .join(DocumentRow, DocumentRow.id == DocumentChunkRow.document_id)
                .where(DocumentChunkRow.project_id == project_id)
                .where(DocumentChunkRow.document_id.in_(ids))
                .order_by(DocumentChunkRow.chunk_index.asc())
            ).all()

            # keep the caller's document order
            position = {doc_id: i for i, doc_id in enumerate(ids)}
            rows = sorted(rows, key=lambda r: (position[r[0].document_id], r[0].chunk_index))
            return [_to_scored(chunk, doc, 1.0) for chunk, doc in rows]
