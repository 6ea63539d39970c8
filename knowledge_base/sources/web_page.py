"""
Web page extraction through the Tavily extract API.
"""
import asyncio
import re
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple
from urllib.parse import urlparse

import aiohttp

from .. import config
from ..errors import ExtractionError
from ..logging_config import logger
from ..schemas import DocumentSourceType, DocumentUpload

MIN_WEB_CONTENT_CHARS = 100
MAX_WEB_CONTENT_BYTES = 10 * 1024 * 1024  # 10 MB

BLOCKED_PATTERNS = [
    re.compile(r"\.(pdf|doc|docx|xls|xlsx|ppt|pptx|zip|rar|exe|dmg)$", re.IGNORECASE),
    re.compile(r"^https://(www\.)?(facebook|twitter|instagram|linkedin)\.com", re.IGNORECASE),
]


def validate_url(url: str) -> Tuple[bool, Optional[str]]:
    """
    Check that a URL is suitable for content extraction.

    Returns:
        (is_valid, error message or None)
    """
    try:
        parsed = urlparse(url)
    except ValueError:
        return False, "Please enter a valid URL"

    if not parsed.scheme or not parsed.netloc:
        return False, "Please enter a valid URL"

    if parsed.scheme != "https":
        return False, "Only HTTPS URLs are supported for security reasons"

    for pattern in BLOCKED_PATTERNS:
        if pattern.search(url):
            return False, "This URL type is not supported for content extraction"

    return True, None


async def fetch_tavily_extract(url: str, api_key: str, session: aiohttp.ClientSession = None) -> Dict:
    """
    POST the URL to Tavily and return the first extraction result.

    Raises:
        ExtractionError: On auth/quota errors, HTTP failures or empty results
    """
    payload = {
        "urls": [url],
        "extract_depth": "basic",
        "include_images": False,
        "include_favicon": True,
    }
    headers = {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}

    owns_session = session is None
    if owns_session:
        session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=60))
    try:
        async with session.post(config.TAVILY_EXTRACT_URL, json=payload, headers=headers) as resp:
            if resp.status == 401:
                raise ExtractionError("Invalid Tavily API key")
            if resp.status == 429:
                raise ExtractionError("Tavily API usage limit exceeded")
            if resp.status >= 400:
                body = await resp.text()
                raise ExtractionError(f"Tavily API error: {resp.status} - {body[:200]}")
            data = await resp.json()
    except aiohttp.ClientError as e:
        raise ExtractionError(f"Failed to reach the extraction service: {e}") from e
    except asyncio.TimeoutError as e:
        raise ExtractionError("Timed out waiting for the extraction service") from e
    except ValueError as e:
        # non-JSON body on a 2xx response
        raise ExtractionError("The extraction service returned an invalid response") from e
    finally:
        if owns_session:
            await session.close()

    results = (data.get("results") if isinstance(data, dict) else None) or []
    if not results:
        raise ExtractionError("No content could be extracted from the URL")
    return results[0]


async def extract_web_page(url: str, api_key: str = None, session: aiohttp.ClientSession = None) -> DocumentUpload:
    """
    Extract a web page into a DocumentUpload (document_type=web).

    Raises:
        ExtractionError: If the URL is rejected or nothing usable comes back
    """
    url = url.strip()
    is_valid, error = validate_url(url)
    if not is_valid:
        raise ExtractionError(error)

    api_key = api_key or config.TAVILY_API_KEY
    if not api_key:
        raise ExtractionError("TAVILY_API_KEY is not configured")

    logger.info("Extracting web page", url=url)
    result = await fetch_tavily_extract(url, api_key, session=session)

    content = result.get("content") or result.get("raw_content") or ""
    if len(content.strip()) < MIN_WEB_CONTENT_CHARS:
        raise ExtractionError(
            "The extracted content is too short. The page might not contain substantial text content."
        )

    size = len(content.encode("utf-8"))
    if size > MAX_WEB_CONTENT_BYTES:
        raise ExtractionError("The extracted content is too large. Please try a different page.")

    title = result.get("title")
    logger.info("Web page extracted", url=url, title=title, size=size)

    return DocumentUpload(
        name=title or urlparse(url).hostname or url,
        content=content,
        mime_type="text/markdown",
        size=size,
        document_type=DocumentSourceType.WEB,
        web_url=url,
        web_title=title,
        web_favicon=result.get("favicon"),
        web_extracted_at=datetime.now(timezone.utc),
    )
