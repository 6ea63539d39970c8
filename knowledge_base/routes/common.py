"""
Shared dependencies and error mapping for the API routes.
"""
from functools import lru_cache
from typing import Optional

from fastapi import Header, HTTPException

from .. import config
from ..embedding import EmbeddingGenerator
from ..errors import EmbeddingError, ExtractionError, NotFoundError, RAGError, ValidationError
from ..logging_config import logger
from ..services.rag_service import RAGService


@lru_cache(maxsize=1)
def get_rag_service() -> RAGService:
    """Process-wide service wired to the configured store and embedding provider."""
    if config.RAG_STORE == "memory":
        from ..db.memory_repository import InMemoryRAGRepository
        repository = InMemoryRAGRepository()
    else:
        from ..db.pg_repository import PgRAGRepository
        repository = PgRAGRepository()
    return RAGService(repository, EmbeddingGenerator())


def get_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    """Caller identity; authentication happens in front of this service."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return x_user_id


def to_http_exception(error: RAGError) -> HTTPException:
    if isinstance(error, ValidationError):
        return HTTPException(status_code=400, detail=f"Document rejected: {error.reason}")
    if isinstance(error, ExtractionError):
        return HTTPException(status_code=400, detail=str(error))
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=404, detail="Document not found")
    if isinstance(error, EmbeddingError):
        return HTTPException(status_code=502, detail="Failed to process document")
    logger.error("Unhandled knowledge base error", exc_info=error)
    return HTTPException(status_code=500, detail="Internal server error")
