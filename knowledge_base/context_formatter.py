"""
Renders retrieved chunks into the context block handed to the language model.
"""
from typing import Dict, List, Optional, Sequence
from urllib.parse import urlparse

from .schemas import ChunkWithSimilarity, DocumentRef, DocumentSourceType

MIME_TYPE_LABELS = {
    "application/pdf": "PDF Document",
    "application/msword": "Word Document",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "Word Document",
    "application/vnd.ms-excel": "Excel Spreadsheet",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": "Excel Spreadsheet",
    "application/vnd.ms-powerpoint": "PowerPoint Presentation",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation": "PowerPoint Presentation",
    "text/plain": "Text File",
    "text/markdown": "Markdown File",
    "text/html": "HTML File",
    "text/csv": "CSV File",
    "application/json": "JSON File",
    "application/xml": "XML File",
    "text/xml": "XML File",
}

EXTENSION_LABELS = {
    "pdf": "PDF Document",
    "doc": "Word Document",
    "docx": "Word Document",
    "xls": "Excel Spreadsheet",
    "xlsx": "Excel Spreadsheet",
    "ppt": "PowerPoint Presentation",
    "pptx": "PowerPoint Presentation",
    "txt": "Text File",
    "md": "Markdown File",
    "html": "HTML File",
    "htm": "HTML File",
    "csv": "CSV File",
    "json": "JSON File",
    "xml": "XML File",
}

SOURCE_TYPE_LABELS = {
    DocumentSourceType.YOUTUBE: "Video Transcript",
    DocumentSourceType.WEB: "Web Content",
}

CONTEXT_TEMPLATE = """Use the following context from the project knowledge base to answer the user's question.

{sources}

Instructions:
- Cite the sources you use by number and type, e.g. [Source 1] (PDF Document).
- If sources contain conflicting information, point out the conflict and cite each side.
- If the context does not contain the answer, say so instead of guessing."""


def file_type_label(mime_type: str, file_name: str) -> str:
    """Human label for a file from its MIME type, then its extension."""
    label = MIME_TYPE_LABELS.get((mime_type or "").lower())
    if label:
        return label
    if "." in (file_name or ""):
        extension = file_name.rsplit(".", 1)[-1].lower()
        return EXTENSION_LABELS.get(extension, "File")
    return "File"


def source_type_label(document: DocumentRef) -> str:
    if document.document_type == DocumentSourceType.FILE:
        return file_type_label(document.mime_type, document.name)
    return SOURCE_TYPE_LABELS[document.document_type]


def hostname(url: Optional[str]) -> str:
    if not url:
        return ""
    try:
        return urlparse(url).hostname or ""
    except ValueError:
        return ""


def _youtube_header(n: int, document: DocumentRef) -> str:
    title = document.youtube_title or document.name
    header = f'[Source {n}: {source_type_label(document)} - "{title}"]'
    if document.youtube_channel_name:
        header += f"\nChannel: {document.youtube_channel_name}"
    return header


def _web_header(n: int, document: DocumentRef) -> str:
    title = document.web_title or document.name
    host = hostname(document.web_url)
    suffix = f" ({host})" if host else ""
    return f'[Source {n}: {source_type_label(document)} - "{title}"{suffix}]'


def _file_header(n: int, document: DocumentRef) -> str:
    return f'[Source {n}: {source_type_label(document)} - "{document.name}"]'


_HEADER_RENDERERS = {
    DocumentSourceType.YOUTUBE: _youtube_header,
    DocumentSourceType.WEB: _web_header,
    DocumentSourceType.FILE: _file_header,
}


def group_by_document(chunks: Sequence[ChunkWithSimilarity]) -> Dict[str, List[ChunkWithSimilarity]]:
    """Group chunks by document name in first-seen order; orphan chunks are dropped."""
    groups: Dict[str, List[ChunkWithSimilarity]] = {}
    for chunk in chunks:
        if chunk.document is None:
            continue
        groups.setdefault(chunk.document.name, []).append(chunk)
    return groups


def render_source(n: int, group: List[ChunkWithSimilarity]) -> str:
    document = group[0].document
    header = _HEADER_RENDERERS[document.document_type](n, document)
    ordered = sorted(group, key=lambda c: c.chunk_index)

    if len(ordered) == 1:
        return f"{header}\nContent:\n{ordered[0].content.strip()}"

    sections = [f"Section {i}:\n{chunk.content.strip()}" for i, chunk in enumerate(ordered, start=1)]
    return header + "\n" + "\n\n".join(sections)


def format_context(chunks: Sequence[ChunkWithSimilarity]) -> str:
    """
    Build the context block for a language model.

    Chunks are grouped per document and numbered in the order their document
    first appears. Nothing is re-ranked or truncated here.

    Returns:
        The rendered block, or "" when there is nothing to render.
    """
    groups = group_by_document(chunks)
    if not groups:
        return ""

    sources = [render_source(n, group) for n, group in enumerate(groups.values(), start=1)]
    return CONTEXT_TEMPLATE.format(sources="\n\n".join(sources))
