"""
Fixed-size character chunking with overlap.
"""
from typing import Iterator, List

from .config import CHUNK_OVERLAP, CHUNK_SIZE


def iter_chunks(text: str, chunk_size: int = CHUNK_SIZE, overlap: int = CHUNK_OVERLAP) -> Iterator[str]:
    """
    Split text into overlapping windows of `chunk_size` characters.

    Each window starts `overlap` characters before the previous one ended,
    so dropping the first `overlap` characters of every chunk after the first
    and concatenating gives back the original text. The last chunk may be
    shorter than `chunk_size`.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if overlap < 0 or overlap >= chunk_size:
        raise ValueError("overlap must be in [0, chunk_size)")

    n = len(text)
    if n == 0:
        return

    # If text fits in one window, return it whole
    if n <= chunk_size:
        yield text
        return

    start = 0
    while True:
        end = min(start + chunk_size, n)
        yield text[start:end]
        if end >= n:
            break
        start = end - overlap


def chunk_text(text: str, chunk_size: int = CHUNK_SIZE, overlap: int = CHUNK_OVERLAP) -> List[str]:
    return list(iter_chunks(text, chunk_size=chunk_size, overlap=overlap))
