"""
Document store contract used by the RAG service.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from ..schemas import ChunkWithSimilarity, Document, DocumentChunk, DocumentUpload, NewChunk


class RAGRepository(ABC):
    """
    Persists documents and their chunks.

    Chunk batches are written all-or-nothing. Deleting a document deletes its
    chunks.
    """

    # ==================== Documents ====================

    @abstractmethod
    def create_document(self, project_id: str, user_id: str, upload: DocumentUpload, content: str) -> Document:
        """Insert a document row; `content` is the extracted plain text."""

    @abstractmethod
    def get_document_by_id(self, document_id: str) -> Optional[Document]:
        pass

    @abstractmethod
    def get_documents_by_project_id(self, project_id: str) -> List[Document]:
        """Newest first."""

    @abstractmethod
    def update_document(self, document_id: str, updates: Dict[str, Any]) -> Optional[Document]:
        """Apply `name`/`content`/`size`/`metadata` updates; returns None if the row is gone."""

    @abstractmethod
    def delete_document(self, document_id: str) -> bool:
        """Delete a document and its chunks. Returns False if nothing was deleted."""

    # ==================== Chunks ====================

    @abstractmethod
    def create_chunks(self, chunks: Sequence[NewChunk]) -> List[DocumentChunk]:
        pass

    @abstractmethod
    def delete_chunks_by_document_id(self, document_id: str) -> int:
        pass

    @abstractmethod
    def replace_chunks(self, document_id: str, chunks: Sequence[NewChunk]) -> List[DocumentChunk]:
        """Swap a document's chunk set in one step."""

    @abstractmethod
    def get_chunks_by_document_id(self, document_id: str) -> List[DocumentChunk]:
        """Ordered by chunk_index."""

    @abstractmethod
    def search_by_similarity(
        self,
        project_id: str,
        query_embedding: Sequence[float],
        limit: int,
        threshold: float,
        document_ids: Optional[Sequence[str]] = None,
    ) -> List[ChunkWithSimilarity]:
        """
        Top `limit` chunks of the project scoring at least `threshold`,
        ordered by similarity desc, chunk_index asc, document creation asc.
        """

    @abstractmethod
    def get_all_chunks_from_documents(self, project_id: str, document_ids: Sequence[str]) -> List[ChunkWithSimilarity]:
        """
        Every chunk of the given documents, in (document, chunk_index) order,
        with similarity pinned to 1.0.
        """
