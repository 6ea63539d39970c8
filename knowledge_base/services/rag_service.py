"""
RAG (Retrieval-Augmented Generation) service.
Handles document ingestion, retrieval and context building for a project.
"""
import time
from typing import List, Optional, Sequence

from .. import config
from ..chunking import chunk_text
from ..context_formatter import format_context, source_type_label
from ..db.repository import RAGRepository
from ..embedding import DocumentContext, EmbeddedChunk, EmbeddingGenerator
from ..errors import NotFoundError, ValidationError
from ..logging_config import logger
from ..retrieval import RetrievalEngine
from ..schemas import (
    ChunkWithSimilarity,
    Document,
    DocumentRef,
    DocumentSourceType,
    DocumentUpdate,
    DocumentUpload,
    NewChunk,
)
from ..text_extraction import extract_text, validate_content


def document_context(document) -> DocumentContext:
    """Contextual-embedding header facts for a Document or DocumentUpload."""
    if document.document_type == DocumentSourceType.YOUTUBE:
        title = document.youtube_title or document.name
        source = f"YouTube channel {document.youtube_channel_name}" if document.youtube_channel_name else "youtube"
    elif document.document_type == DocumentSourceType.WEB:
        title = document.web_title or document.name
        source = document.web_url or "web"
    else:
        title = document.name
        source = "file"

    ref = DocumentRef(
        id="",
        name=document.name,
        mime_type=document.mime_type,
        document_type=document.document_type,
    )
    return DocumentContext(title=title, type=source_type_label(ref), source=source)


class RAGService:
    """
    Caller-facing API of the knowledge base.

    Ingestion: extract -> validate -> store document -> chunk -> embed ->
    store chunks. Query time: retrieve (similarity or fixed selection) ->
    format.
    """

    def __init__(
        self,
        repository: RAGRepository,
        generator: EmbeddingGenerator,
        chunk_size: int = config.CHUNK_SIZE,
        overlap: int = config.CHUNK_OVERLAP,
        min_content_chars: int = config.MIN_CONTENT_CHARS,
    ):
        self.repository = repository
        self.generator = generator
        self.retrieval = RetrievalEngine(repository, generator)
        self.chunk_size = chunk_size
        self.overlap = overlap
        self.min_content_chars = min_content_chars

    # ==================== Ingestion ====================

    def _prepare_text(self, content, mime_type: str, name: str) -> str:
        text = extract_text(content, mime_type, name)
        validate_content(text, mime_type, min_chars=self.min_content_chars).raise_for_invalid()
        return text

    def _embed(self, text: str, context: DocumentContext) -> List[EmbeddedChunk]:
        chunks = chunk_text(text, chunk_size=self.chunk_size, overlap=self.overlap)
        if not chunks:
            raise ValidationError("No valid chunks could be generated from the content")
        return self.generator.embed_chunks(chunks, context).unwrap()

    @staticmethod
    def _new_chunks(document_id: str, project_id: str, embedded: List[EmbeddedChunk]) -> List[NewChunk]:
        return [
            NewChunk(
                document_id=document_id,
                project_id=project_id,
                content=item.content,
                embedding=item.embedding,
                chunk_index=item.chunk_index,
            )
            for item in embedded
        ]

    def add_document(self, project_id: str, user_id: str, upload: DocumentUpload) -> Document:
        """
        Add a document to a project's knowledge base.

        Raises:
            ValidationError: Content unsuitable for indexing (nothing is written)
            ExtractionError: Uploaded bytes could not be read (nothing is written)
            EmbeddingError: Embedding failed; the new document is removed again
        """
        start_time = time.time()
        text = self._prepare_text(upload.content, upload.mime_type, upload.name)

        document = self.repository.create_document(project_id, user_id, upload, text)
        try:
            embedded = self._embed(text, document_context(upload))
            self.repository.create_chunks(self._new_chunks(document.id, project_id, embedded))
        except Exception as e:
            logger.error(
                "Failed to index document, removing it",
                doc_id=document.id,
                project_id=project_id,
                error=str(e),
            )
            try:
                self.repository.delete_document(document.id)
            except Exception as cleanup_error:
                logger.error(
                    "Failed to remove partially indexed document",
                    doc_id=document.id,
                    error=str(cleanup_error),
                )
            raise

        logger.info(
            "Document added",
            doc_id=document.id,
            project_id=project_id,
            name=document.name,
            document_type=document.document_type.value,
            chunks=len(embedded),
            time_ms=round((time.time() - start_time) * 1000, 2),
        )
        return document

    def update_document(self, document_id: str, updates: DocumentUpdate) -> Document:
        """
        Update a document. New content is re-extracted, re-validated and
        re-embedded before the old chunks are swapped out, so a failed update
        leaves the previous chunks in place.
        """
        document = self.get_document(document_id)
        changes = updates.model_dump(exclude_none=True)

        if updates.content is not None:
            text = self._prepare_text(updates.content, document.mime_type, document.name)
            target = document.model_copy(update={"name": updates.name or document.name})
            embedded = self._embed(text, document_context(target))
            self.repository.replace_chunks(
                document_id,
                self._new_chunks(document_id, document.project_id, embedded),
            )
            changes["content"] = text
            changes["size"] = len(text.encode("utf-8"))
            logger.info("Document re-chunked", doc_id=document_id, chunks=len(embedded))

        updated = self.repository.update_document(document_id, changes)
        if updated is None:
            raise NotFoundError(document_id)
        logger.info("Document updated", doc_id=document_id, fields=sorted(changes))
        return updated

    def delete_document(self, document_id: str) -> None:
        if not self.repository.delete_document(document_id):
            logger.warning("Document not found for deletion", doc_id=document_id)
            raise NotFoundError(document_id)
        logger.info("Document deleted", doc_id=document_id)

    # ==================== Reads ====================

    def get_document(self, document_id: str) -> Document:
        document = self.repository.get_document_by_id(document_id)
        if document is None:
            raise NotFoundError(document_id)
        return document

    def get_documents_by_project(self, project_id: str) -> List[Document]:
        documents = self.repository.get_documents_by_project_id(project_id)
        logger.info("Listed documents", project_id=project_id, count=len(documents))
        return documents

    # ==================== Retrieval ====================

    def search_relevant_content(
        self,
        project_id: str,
        query: str,
        limit: int = config.DEFAULT_SEARCH_LIMIT,
        threshold: float = config.DEFAULT_SIMILARITY_THRESHOLD,
        selected_document_ids: Optional[Sequence[str]] = None,
    ) -> List[ChunkWithSimilarity]:
        """Similarity search, optionally restricted to the selected documents."""
        return self.retrieval.search(
            project_id,
            query,
            limit,
            threshold,
            document_ids=selected_document_ids or None,
        )

    def get_selected_documents_content(
        self,
        project_id: str,
        selected_document_ids: Sequence[str],
    ) -> List[ChunkWithSimilarity]:
        """
        Every chunk of the selected documents. Store failures are logged and
        yield [] since this only feeds best-effort context assembly.
        """
        try:
            return self.retrieval.get_selected(project_id, selected_document_ids)
        except Exception as e:
            logger.error(
                "Failed to load selected documents",
                project_id=project_id,
                document_ids=list(selected_document_ids),
                error=str(e),
            )
            return []

    def format_context_for_rag(self, chunks: Sequence[ChunkWithSimilarity]) -> str:
        return format_context(chunks)

    def build_context(
        self,
        project_id: str,
        query: str = "",
        selected_document_ids: Optional[Sequence[str]] = None,
        limit: int = config.DEFAULT_SEARCH_LIMIT,
        threshold: float = config.DEFAULT_SIMILARITY_THRESHOLD,
    ) -> str:
        """
        Context block for the chat handler. Selected documents are included in
        full; otherwise the query drives a similarity search. Failures degrade
        to "" so the chat response is never blocked.
        """
        try:
            if selected_document_ids:
                chunks = self.get_selected_documents_content(project_id, selected_document_ids)
            else:
                chunks = self.search_relevant_content(project_id, query, limit, threshold)
            return self.format_context_for_rag(chunks)
        except Exception as e:
            logger.warning("Context assembly failed, continuing without context", project_id=project_id, error=str(e))
            return ""
