from sqlalchemy import Column, String, Text, Integer, ForeignKey, BigInteger, TIMESTAMP, Index, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base
from pgvector.sqlalchemy import Vector

from .config import EMBED_DIM

Base = declarative_base()


class DocumentRow(Base):
    __tablename__ = "documents"
    id = Column(String, primary_key=True)
    project_id = Column(String, nullable=False, index=True)
    user_id = Column(String, nullable=False)
    name = Column(Text, nullable=False)
    content = Column(Text, nullable=False)
    mime_type = Column(Text, nullable=False)
    size_bytes = Column(BigInteger, nullable=False, server_default=text("0"))
    document_type = Column(String(16), nullable=False, server_default=text("'file'"))
    # "metadata" is reserved on declarative classes
    meta = Column("metadata", JSONB, nullable=False, server_default=text("'{}'::jsonb"))

    web_url = Column(Text)
    web_title = Column(Text)
    web_favicon = Column(Text)
    web_extracted_at = Column(TIMESTAMP(timezone=True))

    youtube_video_id = Column(String(32))
    youtube_title = Column(Text)
    youtube_channel_name = Column(Text)
    youtube_duration = Column(Integer)
    youtube_thumbnail = Column(Text)

    created_at = Column(TIMESTAMP(timezone=True), server_default=text("NOW()"))
    updated_at = Column(TIMESTAMP(timezone=True), server_default=text("NOW()"))


class DocumentChunkRow(Base):
    __tablename__ = "document_chunks"
    id = Column(String, primary_key=True)
    document_id = Column(String, ForeignKey("documents.id", ondelete="CASCADE"), nullable=False)
    project_id = Column(String, nullable=False)
    chunk_index = Column(Integer, nullable=False)
    content = Column(Text, nullable=False)
    embedding = Column(Vector(EMBED_DIM), nullable=True)
    meta = Column("metadata", JSONB, nullable=False, server_default=text("'{}'::jsonb"))
    created_at = Column(TIMESTAMP(timezone=True), server_default=text("NOW()"))

    __table_args__ = (
        Index("ix_document_chunks_project_id", "project_id"),
        Index("ix_document_chunks_document_id_chunk_index", "document_id", "chunk_index"),
    )
