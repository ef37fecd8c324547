import logging
import os
from typing import AsyncIterator, Optional

import httpx
from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from quizfeed.config import Settings, get_settings
from quizfeed.core.config import ERROR_CACHE
from quizfeed.core.logging import configure_logging
from quizfeed.errors import StoreError
from quizfeed.models.job import JobStatus
from quizfeed.schemas import GenerateRequest, JobStatusResponse, QuestionPage
from quizfeed.store import SupabaseStore
from quizfeed.workflow.runner import GenerationPipeline

configure_logging(os.getenv("LOG_LEVEL", "INFO"), os.getenv("LOG_FILE_PATH", "logs/app.log"))
logger = logging.getLogger(__name__)

GENERATE_PATHS = ["/api/generate", "/functions/v1/generate-mcqs"]

app = FastAPI(title="quizfeed")

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def failure(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"ok": False, "error": error})


# Add error handling middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    try:
        response = await call_next(request)
        logger.info(f"{request.method} {request.url.path} -> {response.status_code}")
        return response
    except Exception as e:
        logger.error(f"Request failed: {str(e)}", exc_info=True)
        return failure(500, str(e))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    messages = [f"{'.'.join(str(p) for p in err['loc'][1:]) or 'body'}: {err['msg']}" for err in exc.errors()]
    return failure(400, "; ".join(messages) or "Invalid request")


@app.exception_handler(StarletteHTTPException)
async def method_not_allowed_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 405:
        return failure(405, "Method not allowed")
    return await http_exception_handler(request, exc)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Global exception handler caught: {str(exc)}", exc_info=True)
    return failure(500, str(exc))


async def get_http_client(settings: Settings = Depends(get_settings)) -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT) as client:
        yield client


def get_store(
    settings: Settings = Depends(get_settings),
    http: httpx.AsyncClient = Depends(get_http_client),
) -> SupabaseStore:
    return SupabaseStore(settings, http)


def get_pipeline(
    settings: Settings = Depends(get_settings),
    http: httpx.AsyncClient = Depends(get_http_client),
) -> GenerationPipeline:
    return GenerationPipeline.from_settings(settings, http)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.post(GENERATE_PATHS[0])
@app.post(GENERATE_PATHS[1], include_in_schema=False)
async def generate_mcqs(body: GenerateRequest, pipeline: GenerationPipeline = Depends(get_pipeline)):
    """Generate multiple-choice questions for an uploaded file."""
    result = await pipeline.generate(body.file_id, body.job_id)
    if not result.ok:
        return JSONResponse(status_code=500, content=result.to_response())
    return result.to_response()


@app.get("/api/status/{job_id}", response_model=JobStatusResponse)
async def get_job_status(job_id: str, store: SupabaseStore = Depends(get_store)):
    try:
        job = await store.get_job(job_id)
    except StoreError as e:
        logger.error(f"Error getting job status: {str(e)}")
        raise HTTPException(status_code=502, detail=str(e))
    if not job:
        raise HTTPException(status_code=404, detail=f"Job {job_id} not found")

    return JobStatusResponse(
        job_id=job.id,
        file_id=job.file_id,
        status=job.status.value,
        error=ERROR_CACHE.get(job.id) if job.status == JobStatus.FAILED else None,
    )


@app.get("/api/mcqs", response_model=QuestionPage)
async def list_mcqs(
    offset: int = Query(0, ge=0),
    limit: Optional[int] = Query(None, ge=1, le=100),
    file_id: Optional[str] = None,
    settings: Settings = Depends(get_settings),
    store: SupabaseStore = Depends(get_store),
):
    """Feed of generated questions, newest first."""
    page_size = limit or settings.FEED_PAGE_SIZE
    try:
        items = await store.list_questions(offset, page_size, file_id=file_id)
    except StoreError as e:
        logger.error(f"Error listing questions: {str(e)}")
        raise HTTPException(status_code=502, detail=str(e))

    # A short page means the feed reached its end
    next_offset = offset + page_size if len(items) == page_size else None
    return QuestionPage(items=items, next_offset=next_offset)
