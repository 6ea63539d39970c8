"""
Pytest configuration and shared fixtures.

Everything runs against the in-memory store and a deterministic fake
embedding provider: no database, network or model download.
"""
import os

os.environ.setdefault("RAG_STORE", "memory")
os.environ.setdefault("EMBED_PROVIDER", "local")

import pytest

from knowledge_base.db.memory_repository import InMemoryRAGRepository
from knowledge_base.embedding import EmbeddingGenerator, EmbeddingProvider
from knowledge_base.schemas import DocumentUpload
from knowledge_base.services.rag_service import RAGService


class FakeEmbeddingProvider(EmbeddingProvider):
    """
    Letter-frequency vectors plus a bias term, so no text maps to a zero vector.

    `fail_contextual` raises whenever a batch carries a contextual header,
    `fail_plain` raises for header-less batches.
    """

    name = "fake"
    LETTERS = "etaoinshrdlu"

    def __init__(self, fail_contextual=False, fail_plain=False):
        self.fail_contextual = fail_contextual
        self.fail_plain = fail_plain
        self.calls = []

    @staticmethod
    def is_contextual(text):
        return text.startswith(("Document: ", "Type: ", "Source: ", "This content is from"))

    def vector(self, text):
        lowered = text.lower()
        return [float(lowered.count(ch)) for ch in self.LETTERS] + [1.0]

    def embed_many(self, texts):
        texts = list(texts)
        self.calls.append(texts)
        contextual = any(self.is_contextual(t) for t in texts)
        if contextual and self.fail_contextual:
            raise RuntimeError("contextual embedding unavailable")
        if not contextual and self.fail_plain:
            raise RuntimeError("embedding provider down")
        return [self.vector(t) for t in texts]


@pytest.fixture
def provider():
    return FakeEmbeddingProvider()


@pytest.fixture
def generator(provider):
    return EmbeddingGenerator(provider)


@pytest.fixture
def repository():
    return InMemoryRAGRepository()


@pytest.fixture
def service(repository, generator):
    return RAGService(repository, generator, chunk_size=1000, overlap=100, min_content_chars=10)


@pytest.fixture
def make_upload():
    def _make(name="notes.txt", content="Knowledge base content about vector search.", **kwargs):
        kwargs.setdefault("mime_type", "text/plain")
        return DocumentUpload(name=name, content=content, **kwargs)
    return _make
