"""
Application configuration.
Values come from the environment (a local .env is loaded in dev).
"""
import os
from dotenv import load_dotenv

load_dotenv()  # loads .env in local dev; no effect in Docker if env vars provided


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# Storage
DATABASE_URL = os.getenv("DATABASE_URL", "postgresql+psycopg2://postgres:postgres@db:5432/docs")
RAG_STORE = os.getenv("RAG_STORE", "postgres")

# Embeddings
EMBED_PROVIDER = os.getenv("EMBED_PROVIDER", "local")
EMBED_MODEL = os.getenv("EMBED_MODEL", "sentence-transformers/all-MiniLM-L6-v2")
EMBED_DIM = int(os.getenv("EMBED_DIM", "384"))
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_EMBED_MODEL = os.getenv("OPENAI_EMBED_MODEL", "text-embedding-3-small")

# Chunking / validation
CHUNK_SIZE = int(os.getenv("RAG_CHUNK_SIZE", "1000"))
CHUNK_OVERLAP = int(os.getenv("RAG_CHUNK_OVERLAP", "100"))
MIN_CONTENT_CHARS = int(os.getenv("RAG_MIN_CONTENT_CHARS", "10"))

# Retrieval
DEFAULT_SEARCH_LIMIT = int(os.getenv("RAG_SEARCH_LIMIT", "5"))
DEFAULT_SIMILARITY_THRESHOLD = float(os.getenv("RAG_SIMILARITY_THRESHOLD", "0.3"))
MAX_SEARCH_LIMIT = 20

# Web extraction
TAVILY_API_KEY = os.getenv("TAVILY_API_KEY")
TAVILY_EXTRACT_URL = os.getenv("TAVILY_EXTRACT_URL", "https://api.tavily.com/extract")

# Upload limits
MAX_FILES_PER_UPLOAD = int(os.getenv("MAX_FILES_PER_UPLOAD", "5"))
MAX_FILE_SIZE_BYTES = int(os.getenv("MAX_FILE_SIZE_BYTES", str(10 * 1024 * 1024)))  # 10 MB per file

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
JSON_LOGS = _env_bool("JSON_LOGS", False)
