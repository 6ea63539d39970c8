"""
Plain-text extraction and content validation for uploaded documents.
"""
import io
from typing import NamedTuple, Optional, Union

from bs4 import BeautifulSoup
from docx import Document as DocxDocument
from pypdf import PdfReader

from .config import MIN_CONTENT_CHARS
from .errors import ExtractionError, ValidationError

PDF_MIME = "application/pdf"
DOC_MIME = "application/msword"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

PLACEHOLDER_PREFIX = "[Unextracted content:"

# Formats that are binary on the wire; a str body for these was never really extracted.
BINARY_MIME_TYPES = {
    PDF_MIME,
    DOC_MIME,
    DOCX_MIME,
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
}


def read_text_from_pdf(data: bytes) -> str:
    pdf = PdfReader(io.BytesIO(data))
    parts = []
    for page in pdf.pages:
        parts.append(page.extract_text() or "")
    return "\n".join(parts)


def read_text_from_docx(data: bytes) -> str:
    """
    Extract text from DOCX bytes including both paragraphs and tables.
    Tables are converted to readable text format.
    """
    doc = DocxDocument(io.BytesIO(data))
    parts = []

    for para in doc.paragraphs:
        text = para.text.strip()
        if text:
            parts.append(text)

    for table in doc.tables:
        table_text = extract_table_text(table)
        if table_text:
            parts.append("\n" + table_text)

    return "\n\n".join(parts)


def extract_table_text(table) -> str:
    """
    Convert a DOCX table to readable text format.
    Each row is preserved with clear separators.
    """
    lines = []

    for row in table.rows:
        cells = [cell.text.strip() for cell in row.cells]

        # Skip completely empty rows
        if not any(cells):
            continue

        lines.append(" | ".join(cells))

    return "\n".join(lines)


def html_to_text(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    return " ".join(soup.get_text(separator=" ").split())


def unextracted_placeholder(name: str, mime_type: str) -> str:
    label = name or "document"
    return (
        f"{PLACEHOLDER_PREFIX} {label} ({mime_type or 'unknown type'}). "
        "Text extraction is not available for this file type.]"
    )


def is_placeholder(text: str) -> bool:
    return text.lstrip().startswith(PLACEHOLDER_PREFIX)


_BYTE_READERS = {
    PDF_MIME: read_text_from_pdf,
    DOCX_MIME: read_text_from_docx,
}


def extract_text(content: Union[str, bytes], mime_type: str, name: str = "") -> str:
    """
    Normalize uploaded content into plain text.

    Args:
        content: Decoded text, or the raw bytes of an uploaded file
        mime_type: MIME type reported by the client
        name: File name, used for extension sniffing and placeholders

    Returns:
        Plain text. Binary formats that cannot be read come back as a
        labeled placeholder (see `is_placeholder`).

    Raises:
        ExtractionError: If PDF/DOCX bytes cannot be parsed
    """
    mime = _normalize_mime(mime_type, name)

    if isinstance(content, bytes):
        reader = _BYTE_READERS.get(mime)
        if reader is not None:
            try:
                return reader(content)
            except Exception as e:
                raise ExtractionError(f"Failed to extract text from {name or mime}: {e}") from e
        if mime in BINARY_MIME_TYPES:
            return unextracted_placeholder(name, mime)
        content = content.decode("utf-8", errors="ignore")

    if mime == "text/html":
        return html_to_text(content)
    if mime in BINARY_MIME_TYPES:
        return unextracted_placeholder(name, mime)
    # text/*, JSON, XML and unknown types are assumed to already be text
    return content


def _normalize_mime(mime_type: str, name: str) -> str:
    mime = (mime_type or "").split(";")[0].strip().lower()
    if mime and mime != "application/octet-stream":
        return mime
    lowered = (name or "").lower()
    if lowered.endswith(".pdf"):
        return PDF_MIME
    if lowered.endswith(".docx"):
        return DOCX_MIME
    if lowered.endswith(".doc"):
        return DOC_MIME
    if lowered.endswith((".html", ".htm")):
        return "text/html"
    return mime or "text/plain"


class ValidationResult(NamedTuple):
    is_valid: bool
    reason: Optional[str] = None

    def raise_for_invalid(self) -> None:
        if not self.is_valid:
            raise ValidationError(self.reason or "Content is not suitable for indexing")


def validate_content(text: str, mime_type: str = "", min_chars: int = MIN_CONTENT_CHARS) -> ValidationResult:
    """
    Decide whether extracted text is worth chunking and embedding.
    """
    if not text or not text.strip():
        return ValidationResult(False, "No text content could be extracted")

    if is_placeholder(text):
        return ValidationResult(
            False,
            f"Text extraction is not available for {mime_type or 'this file type'}",
        )

    if len(text.strip()) < min_chars:
        return ValidationResult(False, "Content is too short for meaningful RAG processing")

    return ValidationResult(True)
