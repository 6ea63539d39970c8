"""
Pydantic schemas for documents, chunks and request/response validation.
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, Field


class DocumentSourceType(str, Enum):
    """Where a document's text came from."""
    FILE = "file"
    WEB = "web"
    YOUTUBE = "youtube"


class DocumentUpload(BaseModel):
    """A document as handed to the ingestion pipeline."""
    name: str = Field(..., min_length=1)
    content: Union[str, bytes]
    mime_type: str = "text/plain"
    size: Optional[int] = Field(None, ge=0, description="Size in bytes; computed from content when omitted")
    document_type: DocumentSourceType = DocumentSourceType.FILE
    metadata: Dict[str, Any] = Field(default_factory=dict)

    web_url: Optional[str] = None
    web_title: Optional[str] = None
    web_favicon: Optional[str] = None
    web_extracted_at: Optional[datetime] = None

    youtube_video_id: Optional[str] = None
    youtube_title: Optional[str] = None
    youtube_channel_name: Optional[str] = None
    youtube_duration: Optional[int] = None
    youtube_thumbnail: Optional[str] = None

    def byte_size(self) -> int:
        if self.size is not None:
            return self.size
        if isinstance(self.content, bytes):
            return len(self.content)
        return len(self.content.encode("utf-8"))


class Document(BaseModel):
    """A stored document. `content` is always plain text."""
    id: str
    project_id: str
    user_id: str
    name: str
    content: str
    mime_type: str
    size: int = 0
    document_type: DocumentSourceType = DocumentSourceType.FILE
    metadata: Dict[str, Any] = Field(default_factory=dict)

    web_url: Optional[str] = None
    web_title: Optional[str] = None
    web_favicon: Optional[str] = None
    web_extracted_at: Optional[datetime] = None

    youtube_video_id: Optional[str] = None
    youtube_title: Optional[str] = None
    youtube_channel_name: Optional[str] = None
    youtube_duration: Optional[int] = None
    youtube_thumbnail: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class DocumentUpdate(BaseModel):
    """Partial update of a document. New content forces re-chunking."""
    name: Optional[str] = Field(None, min_length=1)
    content: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class DocumentRef(BaseModel):
    """The parent-document fields a retrieved chunk needs for formatting."""
    id: str
    name: str
    mime_type: str = ""
    document_type: DocumentSourceType = DocumentSourceType.FILE
    web_url: Optional[str] = None
    web_title: Optional[str] = None
    youtube_title: Optional[str] = None
    youtube_channel_name: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, document: Document) -> "DocumentRef":
        return cls(
            id=document.id,
            name=document.name,
            mime_type=document.mime_type,
            document_type=document.document_type,
            web_url=document.web_url,
            web_title=document.web_title,
            youtube_title=document.youtube_title,
            youtube_channel_name=document.youtube_channel_name,
            created_at=document.created_at,
        )


class NewChunk(BaseModel):
    """A chunk row waiting to be written."""
    document_id: str
    project_id: str
    content: str
    embedding: Optional[List[float]] = None
    chunk_index: int = Field(..., ge=0)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class DocumentChunk(NewChunk):
    id: str
    created_at: Optional[datetime] = None


class ChunkWithSimilarity(DocumentChunk):
    """A retrieved chunk with its score and parent document."""
    similarity: float = Field(..., ge=0.0, le=1.0)
    document: Optional[DocumentRef] = None


# ==================== API bodies ====================

class UrlBody(BaseModel):
    """Request body for web page and YouTube ingestion."""
    url: str = Field(..., min_length=1)


class SearchBody(BaseModel):
    """Request body for similarity search."""
    query: str = Field(..., description="Natural language query")
    limit: int = Field(5, description="Maximum number of chunks to return")
    threshold: float = Field(0.3, description="Minimum similarity score")
    selected_document_ids: Optional[List[str]] = Field(None, description="Restrict the search to these documents")


class ContextBody(BaseModel):
    """Request body for building a language-model context block."""
    query: str = ""
    selected_document_ids: Optional[List[str]] = None
    limit: int = Field(5, ge=1, le=20)
    threshold: float = Field(0.3, ge=0.0, le=1.0)


class DocumentSummary(BaseModel):
    """Document listing entry (content omitted)."""
    id: str
    project_id: str
    user_id: str
    name: str
    mime_type: str
    size: int
    document_type: DocumentSourceType
    web_url: Optional[str] = None
    web_title: Optional[str] = None
    youtube_video_id: Optional[str] = None
    youtube_title: Optional[str] = None
    youtube_channel_name: Optional[str] = None
    youtube_thumbnail: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
