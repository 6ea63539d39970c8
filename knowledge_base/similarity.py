"""
Similarity scoring and in-memory ranking of candidate chunks.
"""
from typing import Callable, Iterable, List, Sequence

import numpy as np

from .schemas import ChunkWithSimilarity, DocumentChunk, DocumentRef

SimilarityFn = Callable[[Sequence[float], Sequence[float]], float]


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity clamped to [0, 1]. Zero vectors score 0.
    """
    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    if va.shape != vb.shape:
        raise ValueError("Vectors must have the same length")

    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    score = float(np.dot(va, vb) / (norm_a * norm_b))
    return min(1.0, max(0.0, score))


def ranking_key(chunk: ChunkWithSimilarity):
    """Similarity desc, then chunk_index, then document age, then document id."""
    doc = chunk.document
    created = doc.created_at.timestamp() if doc is not None and doc.created_at is not None else float("inf")
    return (-chunk.similarity, chunk.chunk_index, created, chunk.document_id)


def rank_chunks(
    candidates: Iterable[tuple],
    query_embedding: Sequence[float],
    limit: int,
    threshold: float,
    similarity: SimilarityFn = cosine_similarity,
) -> List[ChunkWithSimilarity]:
    """
    Score `(DocumentChunk, DocumentRef)` pairs against a query vector.

    Chunks without an embedding are skipped. Results below `threshold` are
    dropped, the rest sorted by `ranking_key` and cut to `limit`.
    """
    if limit <= 0:
        return []

    scored = []
    for chunk, document in candidates:
        if not chunk.embedding:
            continue
        score = similarity(query_embedding, chunk.embedding)
        if score < threshold:
            continue
        scored.append(with_similarity(chunk, document, score))

    scored.sort(key=ranking_key)
    return scored[:limit]


def with_similarity(chunk: DocumentChunk, document: DocumentRef, score: float) -> ChunkWithSimilarity:
    return ChunkWithSimilarity(
        **chunk.model_dump(),
        similarity=min(1.0, max(0.0, score)),
        document=document,
    )
