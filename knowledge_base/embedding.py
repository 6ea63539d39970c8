"""
Embedding providers and the chunk embedding pipeline.

Chunks are embedded "contextually" first: a short header describing the
parent document (title, type, source, position) is prepended to every chunk
before it is embedded. If that fails the chunks are embedded again without a
header. Only when both attempts fail does the caller see an EmbeddingError.
"""
from typing import List, NamedTuple, Optional, Sequence

import numpy as np

from . import config
from .errors import EmbeddingError
from .logging_config import logger

_model = None


def preload_model():
    """Preload the sentence-transformers model on startup to avoid first-request delay."""
    global _model
    if _model is None:
        from sentence_transformers import SentenceTransformer
        logger.info("Loading embedding model", model=config.EMBED_MODEL)

        _model = SentenceTransformer(
            config.EMBED_MODEL,
            tokenizer_kwargs={'clean_up_tokenization_spaces': False}
        )

        # Warm up with a test embedding
        _model.encode(["test"], normalize_embeddings=True, show_progress_bar=False)
        logger.info("Embedding model loaded", model=config.EMBED_MODEL)
    return _model


def get_model():
    global _model
    if _model is None:
        preload_model()
    return _model


class EmbeddingProvider:
    """Turns text into vectors. Documents and queries must share one provider."""

    name = "base"

    def embed(self, text: str) -> List[float]:
        return self.embed_many([text])[0]

    def embed_many(self, texts: Sequence[str]) -> List[List[float]]:
        raise NotImplementedError


class SentenceTransformerProvider(EmbeddingProvider):
    """Local sentence-transformers model; avoids extra API usage."""

    name = "local"

    def embed_many(self, texts: Sequence[str]) -> List[List[float]]:
        model = get_model()
        vecs = model.encode(list(texts), normalize_embeddings=True, show_progress_bar=False)
        if isinstance(vecs, np.ndarray):
            return vecs.tolist()
        return [list(v) for v in vecs]


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """OpenAI embeddings API, truncated to EMBED_DIM so vectors fit the store."""

    name = "openai"

    def __init__(self, client=None, model: str = None, dimensions: int = None):
        if client is None:
            if not config.OPENAI_API_KEY:
                raise RuntimeError("OPENAI_API_KEY is not set. Put it in env or .env (server-side only).")
            from openai import OpenAI
            client = OpenAI(api_key=config.OPENAI_API_KEY)
        self.client = client
        self.model = model or config.OPENAI_EMBED_MODEL
        self.dimensions = dimensions or config.EMBED_DIM

    def embed_many(self, texts: Sequence[str]) -> List[List[float]]:
        response = self.client.embeddings.create(
            model=self.model,
            input=list(texts),
            dimensions=self.dimensions,
        )
        ordered = sorted(response.data, key=lambda item: item.index)
        return [list(item.embedding) for item in ordered]


_PROVIDERS = {
    "local": SentenceTransformerProvider,
    "openai": OpenAIEmbeddingProvider,
}


def get_provider(name: str = None) -> EmbeddingProvider:
    name = (name or config.EMBED_PROVIDER).lower()
    try:
        return _PROVIDERS[name]()
    except KeyError:
        raise ValueError(f"Unknown embedding provider: {name}") from None


# ==================== Chunk embedding pipeline ====================

class DocumentContext(NamedTuple):
    """Document-level facts prepended to chunks for contextual embedding."""
    title: Optional[str] = None
    type: Optional[str] = None
    source: Optional[str] = None
    summary: Optional[str] = None


class EmbeddedChunk(NamedTuple):
    content: str
    embedding: List[float]
    chunk_index: int


CONTEXTUAL = "contextual"
PLAIN = "plain"


class EmbeddingResult(NamedTuple):
    """Outcome of `EmbeddingGenerator.embed_chunks`."""
    chunks: List[EmbeddedChunk]
    mode: Optional[str] = None
    error: Optional[EmbeddingError] = None
    fell_back: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> List[EmbeddedChunk]:
        if self.error is not None:
            raise self.error
        return self.chunks


def _position(index: int, total: int) -> str:
    if index == 0:
        return "beginning"
    if index == total - 1:
        return "end"
    return "middle"


def render_context_header(context: DocumentContext, index: int, total: int) -> str:
    """
    e.g. 'Document: "Guide.pdf" (PDF Document) from file. This content is
    from the beginning of the document.'
    """
    header = ""
    if context.title:
        header = f'Document: "{context.title}"'
    if context.type:
        header = f"{header} ({context.type})" if header else f"Type: {context.type}"
    if context.source:
        header = f"{header} from {context.source}" if header else f"Source: {context.source}"
    if context.summary and index == 0:
        header = f"{header}. Context: {context.summary}" if header else f"Context: {context.summary}"
    if total > 1:
        sentence = f"This content is from the {_position(index, total)} of the document."
        header = f"{header}. {sentence}" if header else sentence
    return header


def contextualize(chunks: Sequence[str], context: DocumentContext) -> List[str]:
    total = len(chunks)
    out = []
    for i, chunk in enumerate(chunks):
        header = render_context_header(context, i, total)
        out.append(f"{header}\n\n{chunk}" if header else chunk)
    return out


class EmbeddingGenerator:
    """Embeds document chunks and queries with a single provider."""

    def __init__(self, provider: EmbeddingProvider = None):
        self.provider = provider if provider is not None else get_provider()

    def _embed_all(self, texts: List[str]) -> List[List[float]]:
        vectors = self.provider.embed_many(texts)
        if len(vectors) != len(texts):
            raise ValueError(f"Provider returned {len(vectors)} embeddings for {len(texts)} inputs")
        return vectors

    def embed_contextual(self, chunks: Sequence[str], context: DocumentContext) -> List[EmbeddedChunk]:
        vectors = self._embed_all(contextualize(chunks, context))
        # Store the original chunk text, not the contextualized one
        return [EmbeddedChunk(c, v, i) for i, (c, v) in enumerate(zip(chunks, vectors))]

    def embed_plain(self, chunks: Sequence[str]) -> List[EmbeddedChunk]:
        vectors = self._embed_all(list(chunks))
        return [EmbeddedChunk(c, v, i) for i, (c, v) in enumerate(zip(chunks, vectors))]

    def embed_chunks(self, chunks: Sequence[str], context: Optional[DocumentContext] = None) -> EmbeddingResult:
        """
        Embed chunks, contextual first, plain as fallback.

        Never raises for provider failures; inspect `.ok` or call `.unwrap()`.
        """
        chunks = list(chunks)
        if not chunks:
            return EmbeddingResult([], error=EmbeddingError("No chunks to embed"))

        if context is not None:
            try:
                return EmbeddingResult(self.embed_contextual(chunks, context), CONTEXTUAL)
            except Exception as e:
                logger.warning(
                    "Contextual embedding failed, falling back to plain embeddings",
                    error=str(e),
                    chunks=len(chunks),
                )

        fell_back = context is not None
        try:
            return EmbeddingResult(self.embed_plain(chunks), PLAIN, fell_back=fell_back)
        except Exception as e:
            logger.error("Plain embedding failed", error=str(e), chunks=len(chunks))
            return EmbeddingResult(
                [],
                error=EmbeddingError(f"Failed to generate embeddings: {e}", cause=e),
                fell_back=fell_back,
            )

    def embed_query(self, query: str) -> List[float]:
        text = " ".join(query.replace("\n", " ").split())
        if not text:
            raise EmbeddingError("Query cannot be empty")
        try:
            return self.provider.embed(text)
        except Exception as e:
            raise EmbeddingError(f"Failed to embed query: {e}", cause=e) from e
