"""
Retrieval API routes: similarity search and context assembly for the chat handler.
"""
from fastapi import APIRouter, Depends, HTTPException
from starlette.concurrency import run_in_threadpool

from .. import config
from ..errors import RAGError
from ..logging_config import logger
from ..schemas import ContextBody, SearchBody
from ..services.rag_service import RAGService
from .common import get_rag_service, get_user_id

router = APIRouter(prefix="/api", tags=["search"])


@router.post("/projects/{project_id}/search")
async def search_documents(
    project_id: str,
    body: SearchBody,
    user_id: str = Depends(get_user_id),
    service: RAGService = Depends(get_rag_service),
):
    """
    Search the project's documents and return matching chunks plus the
    rendered context block.
    """
    query = body.query.strip()
    if not query:
        raise HTTPException(status_code=400, detail="Query is required and must be a non-empty string")

    limit = min(max(body.limit, 1), config.MAX_SEARCH_LIMIT)
    threshold = min(max(body.threshold, 0.0), 1.0)

    try:
        results = await run_in_threadpool(
            service.search_relevant_content,
            project_id,
            query,
            limit,
            threshold,
            selected_document_ids=body.selected_document_ids,
        )
    except RAGError as e:
        logger.error("Error searching documents", project_id=project_id, error=str(e))
        raise HTTPException(status_code=500, detail="Failed to search documents")

    return {
        "query": query,
        "results": [r.model_dump(mode="json", exclude={"embedding"}) for r in results],
        "context": service.format_context_for_rag(results),
    }


@router.post("/projects/{project_id}/context")
async def build_context(
    project_id: str,
    body: ContextBody,
    user_id: str = Depends(get_user_id),
    service: RAGService = Depends(get_rag_service),
):
    """
    Context block for a chat turn. An empty string means "no context".
    Selected documents are included in full; otherwise the query is searched.
    """
    context = await run_in_threadpool(
        service.build_context,
        project_id,
        body.query,
        selected_document_ids=body.selected_document_ids,
        limit=body.limit,
        threshold=body.threshold,
    )
    return {"context": context}
