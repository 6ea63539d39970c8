"""
YouTube transcript extraction using LangChain's community YoutubeLoader.
"""
import re
from typing import Optional

from langchain_community.document_loaders import YoutubeLoader

from ..errors import ExtractionError
from ..logging_config import logger
from ..schemas import DocumentSourceType, DocumentUpload

VIDEO_ID_PATTERNS = [
    re.compile(r"(?:youtube\.com/watch\?(?:.*&)?v=|youtu\.be/|youtube\.com/embed/|youtube\.com/v/|youtube\.com/shorts/)([A-Za-z0-9_-]{11})"),
    re.compile(r"^([A-Za-z0-9_-]{11})$"),  # bare video id
]

THUMBNAIL_QUALITIES = {"default", "medium", "high", "maxres"}

NO_TRANSCRIPT_MESSAGE = "No transcript available for this video. The video may not have captions or subtitles."


def extract_video_id(url: str) -> Optional[str]:
    """Return the 11-character video id from a YouTube URL or bare id."""
    url = (url or "").strip()
    for pattern in VIDEO_ID_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


def thumbnail_url(video_id: str, quality: str = "maxres") -> str:
    if quality not in THUMBNAIL_QUALITIES:
        raise ValueError(f"Unknown thumbnail quality: {quality}")
    prefix = "" if quality == "default" else {"medium": "mq", "high": "hq", "maxres": "maxres"}[quality]
    return f"https://img.youtube.com/vi/{video_id}/{prefix}default.jpg"


def _loader(video_id: str, language: str):
    return YoutubeLoader(video_id, add_video_info=True, language=[language])


def _translate_error(error: Exception) -> ExtractionError:
    message = str(error).lower()
    if "transcript" in message and ("disabled" in message or "no transcript" in message or "could not retrieve" in message):
        return ExtractionError(
            "Transcripts are disabled for this video. Please try a different video or enable captions on YouTube."
        )
    if "unavailable" in message or "private" in message:
        return ExtractionError("This video is unavailable or private. Please check the URL and try again.")
    if "not found" in message or "404" in message:
        return ExtractionError("Video not found. Please check the URL and try again.")
    return ExtractionError(f"Failed to process YouTube video: {error}")


def fetch_transcript(url: str, language: str = "en", loader_factory=_loader) -> DocumentUpload:
    """
    Load a video's transcript and metadata as a DocumentUpload (document_type=youtube).

    Blocking; run it off the event loop from async code.

    Raises:
        ExtractionError: Invalid URL, missing transcript or unavailable video
    """
    video_id = extract_video_id(url)
    if not video_id:
        raise ExtractionError("Invalid YouTube URL. Please provide a valid YouTube video URL.")

    logger.info("Fetching YouTube transcript", video_id=video_id)
    try:
        docs = loader_factory(video_id, language).load()
    except Exception as e:
        logger.warning("YouTube transcript fetch failed", video_id=video_id, error=str(e))
        raise _translate_error(e) from e

    if not docs:
        raise ExtractionError(NO_TRANSCRIPT_MESSAGE)

    transcript = " ".join(doc.page_content for doc in docs).strip()
    if not transcript:
        raise ExtractionError(NO_TRANSCRIPT_MESSAGE)

    metadata = docs[0].metadata or {}
    title = metadata.get("title") or f"YouTube Video {video_id}"
    channel = metadata.get("author") or "Unknown Channel"
    duration = metadata.get("length") or 0

    logger.info("YouTube transcript fetched", video_id=video_id, title=title, chars=len(transcript))

    return DocumentUpload(
        name=title,
        content=transcript,
        mime_type="text/plain",
        document_type=DocumentSourceType.YOUTUBE,
        metadata={"source_url": url.strip()},
        youtube_video_id=video_id,
        youtube_title=title,
        youtube_channel_name=channel,
        youtube_duration=int(duration),
        youtube_thumbnail=metadata.get("thumbnail_url") or thumbnail_url(video_id),
    )
