"""
Error types raised by the knowledge base pipeline.
"""
from typing import Optional


class RAGError(Exception):
    """Base class for all knowledge base errors."""


class ValidationError(RAGError):
    """Content is not suitable for indexing."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class ExtractionError(RAGError):
    """A source adapter could not retrieve or read the content."""


class EmbeddingError(RAGError):
    """The embedding provider failed for every attempted strategy."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class NotFoundError(RAGError):
    """A referenced document does not exist."""

    def __init__(self, document_id: str):
        super().__init__(f"Document not found: {document_id}")
        self.document_id = document_id
