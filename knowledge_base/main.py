"""
FastAPI application for the project knowledge base.
Wires the document and search routers and prepares the store and
embedding model at startup.
"""
from fastapi import FastAPI

from . import __version__, config
from .routes import documents, search
from .logging_config import logger

app = FastAPI(title="Project Knowledge Base", version=__version__)

app.include_router(documents.router)
app.include_router(search.router)


def _prepare_store():
    if config.RAG_STORE == "memory":
        logger.info("Using in-memory document store")
        return
    from .db.migrations import run_sql_migrations
    applied = run_sql_migrations()
    logger.info("Database ready", migrations_applied=applied)


def _prepare_embeddings():
    if config.EMBED_PROVIDER != "local":
        logger.info("Using remote embedding provider", provider=config.EMBED_PROVIDER)
        return
    from .embedding import preload_model
    preload_model()


@app.on_event("startup")
async def startup_event():
    for step in (_prepare_store, _prepare_embeddings):
        try:
            step()
        except Exception as e:
            # keep serving; requests touching the failed part will error on their own
            logger.error("Startup step failed", step=step.__name__, exc_info=e)


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Application shutting down")


@app.get("/api/health")
async def health():
    return {
        "ok": True,
        "version": __version__,
        "store": config.RAG_STORE,
        "embed_provider": config.EMBED_PROVIDER,
    }
