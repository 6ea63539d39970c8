"""
Document management API routes.
Handles document ingestion (JSON, file upload, web page, YouTube), listing,
updates and deletion.
"""
from typing import List

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from starlette.concurrency import run_in_threadpool

from .. import config
from ..errors import EmbeddingError, ExtractionError, RAGError, ValidationError
from ..logging_config import logger
from ..schemas import Document, DocumentSummary, DocumentUpdate, DocumentUpload, UrlBody
from ..services.rag_service import RAGService
from ..sources.web_page import extract_web_page
from ..sources.youtube import fetch_transcript
from .common import get_rag_service, get_user_id, to_http_exception

router = APIRouter(prefix="/api", tags=["documents"])


def _add(service: RAGService, project_id: str, user_id: str, upload: DocumentUpload) -> Document:
    try:
        return service.add_document(project_id, user_id, upload)
    except RAGError as e:
        logger.warning("Document rejected", project_id=project_id, name=upload.name, error=str(e))
        raise to_http_exception(e)


# ==================== Document Ingestion ====================

@router.post("/projects/{project_id}/documents", status_code=201, response_model=Document)
async def add_document(
    project_id: str,
    upload: DocumentUpload,
    user_id: str = Depends(get_user_id),
    service: RAGService = Depends(get_rag_service),
):
    """Add a document whose text is sent in the request body."""
    return await run_in_threadpool(_add, service, project_id, user_id, upload)


@router.post("/projects/{project_id}/documents/upload", status_code=201)
async def upload_documents(
    project_id: str,
    files: List[UploadFile] = File(...),
    user_id: str = Depends(get_user_id),
    service: RAGService = Depends(get_rag_service),
):
    """
    Upload one or more files.

    Supported formats: PDF, DOCX, and any text format.

    Files that fail validation or extraction are reported under `rejected`;
    an embedding failure aborts the request.
    """
    if not files:
        raise HTTPException(status_code=400, detail="No files uploaded")

    if len(files) > config.MAX_FILES_PER_UPLOAD:
        raise HTTPException(
            status_code=400,
            detail=f"Too many files. Maximum {config.MAX_FILES_PER_UPLOAD} files per upload."
        )

    inserted = []
    rejected = []
    for f in files:
        logger.info("Processing file", filename=f.filename, content_type=f.content_type)
        data = await f.read()

        if len(data) > config.MAX_FILE_SIZE_BYTES:
            raise HTTPException(
                status_code=400,
                detail=(
                    f"File '{f.filename}' is too large. "
                    f"Max size is {config.MAX_FILE_SIZE_BYTES // (1024*1024)} MB."
                ),
            )

        upload = DocumentUpload(
            name=f.filename or "upload",
            content=data,
            mime_type=f.content_type or "application/octet-stream",
            size=len(data),
        )
        try:
            document = await run_in_threadpool(service.add_document, project_id, user_id, upload)
        except (ValidationError, ExtractionError) as e:
            logger.warning("File rejected", filename=f.filename, error=str(e))
            rejected.append({"filename": f.filename, "reason": str(e)})
            continue
        except EmbeddingError as e:
            raise to_http_exception(e)

        inserted.append({"document_id": document.id, "filename": document.name})

    return {"ok": True, "inserted": inserted, "rejected": rejected}


@router.post("/projects/{project_id}/documents/web", status_code=201, response_model=Document)
async def add_web_page(
    project_id: str,
    body: UrlBody,
    user_id: str = Depends(get_user_id),
    service: RAGService = Depends(get_rag_service),
):
    """Extract a web page and add it to the project."""
    try:
        upload = await extract_web_page(body.url)
    except ExtractionError as e:
        raise to_http_exception(e)
    return await run_in_threadpool(_add, service, project_id, user_id, upload)


@router.post("/projects/{project_id}/documents/youtube", status_code=201, response_model=Document)
async def add_youtube_video(
    project_id: str,
    body: UrlBody,
    user_id: str = Depends(get_user_id),
    service: RAGService = Depends(get_rag_service),
):
    """Fetch a YouTube transcript and add it to the project."""
    try:
        upload = await run_in_threadpool(fetch_transcript, body.url)
    except ExtractionError as e:
        raise to_http_exception(e)
    return await run_in_threadpool(_add, service, project_id, user_id, upload)


# ==================== Document Listing ====================

@router.get("/projects/{project_id}/documents", response_model=List[DocumentSummary])
async def list_documents(
    project_id: str,
    user_id: str = Depends(get_user_id),
    service: RAGService = Depends(get_rag_service),
):
    """Returns the project's documents, newest first, without their content."""
    documents = await run_in_threadpool(service.get_documents_by_project, project_id)
    return [DocumentSummary.model_validate(d.model_dump()) for d in documents]


@router.get("/documents/{document_id}", response_model=Document)
async def get_document(
    document_id: str,
    user_id: str = Depends(get_user_id),
    service: RAGService = Depends(get_rag_service),
):
    try:
        return await run_in_threadpool(service.get_document, document_id)
    except RAGError as e:
        raise to_http_exception(e)


# ==================== Document Update / Deletion ====================

@router.patch("/documents/{document_id}", response_model=Document)
async def update_document(
    document_id: str,
    updates: DocumentUpdate,
    user_id: str = Depends(get_user_id),
    service: RAGService = Depends(get_rag_service),
):
    """Rename a document, replace its metadata, or replace its content (re-chunks)."""
    try:
        document = await run_in_threadpool(service.get_document, document_id)
        if document.user_id != user_id:
            raise HTTPException(status_code=403, detail="Forbidden")
        return await run_in_threadpool(service.update_document, document_id, updates)
    except RAGError as e:
        raise to_http_exception(e)


@router.delete("/documents/{document_id}")
async def delete_document(
    document_id: str,
    user_id: str = Depends(get_user_id),
    service: RAGService = Depends(get_rag_service),
):
    """Deletes a document and all its chunks."""
    try:
        document = await run_in_threadpool(service.get_document, document_id)
        if document.user_id != user_id:
            raise HTTPException(status_code=403, detail="Forbidden")
        await run_in_threadpool(service.delete_document, document_id)
    except RAGError as e:
        raise to_http_exception(e)

    return {"ok": True, "deleted": document_id}
