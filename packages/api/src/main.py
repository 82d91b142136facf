# This project was developed with assistance from AI tools.
"""FastAPI application entry point."""

import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .core.config import settings
from .routes import checklists, documents, health, questions, submissions
from .schemas.error import ErrorResponse
from .services.errors import WorkflowError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Application startup/shutdown lifecycle."""
    from .services.answer_service import init_answer_service
    from .services.extraction import init_question_extractor
    from .services.portal import init_portal_client
    from .services.storage import init_storage_service

    init_storage_service(settings)
    init_question_extractor()
    init_answer_service(settings)
    portal = init_portal_client(settings)
    yield
    await portal.aclose()


app = FastAPI(
    title="Garnet Questionnaire API",
    description="Compliance questionnaire completion and submission workflow",
    version=__version__,
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_HOSTS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)

_HTTP_STATUS_TITLES: dict[int, str] = {
    400: "Bad Request",
    404: "Not Found",
    409: "Conflict",
    413: "Payload Too Large",
    422: "Unprocessable Entity",
    500: "Internal Server Error",
    502: "Bad Gateway",
}


def _build_error(
    status_code: int,
    detail: str,
    request: Request,
    *,
    error_type: str = "about:blank",
    context: dict | None = None,
) -> ErrorResponse:
    return ErrorResponse(
        type=error_type,
        title=_HTTP_STATUS_TITLES.get(status_code, "Error"),
        status=status_code,
        detail=detail,
        instance=request.headers.get("x-request-id", str(uuid.uuid4())),
        context=context or {},
    )


@app.exception_handler(WorkflowError)
async def workflow_exception_handler(request: Request, exc: WorkflowError):
    """Convert typed workflow failures to RFC 7807 Problem Details."""
    if exc.status_code >= 500:
        logger.warning("%s: %s %s", type(exc).__name__, exc.message, exc.context())
    body = _build_error(
        exc.status_code,
        exc.message,
        request,
        error_type=type(exc).__name__,
        context=exc.context(),
    )
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Convert HTTPException to RFC 7807 Problem Details."""
    body = _build_error(exc.status_code, str(exc.detail), request)
    return JSONResponse(
        status_code=exc.status_code,
        content=body.model_dump(),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Convert Pydantic validation errors to RFC 7807 Problem Details."""
    body = _build_error(422, str(exc.errors()), request)
    return JSONResponse(status_code=422, content=body.model_dump())


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Catch-all for unhandled exceptions -- log and return 500."""
    body = _build_error(500, "An unexpected error occurred.", request)
    logger.exception("Unhandled exception (instance=%s)", body.instance)
    return JSONResponse(status_code=500, content=body.model_dump())


# Include routers
app.include_router(health.router, prefix="/health", tags=["health"])
app.include_router(checklists.router, prefix="/api", tags=["checklists"])
app.include_router(questions.router, prefix="/api", tags=["questions"])
app.include_router(documents.router, prefix="/api", tags=["documents"])
app.include_router(submissions.router, prefix="/api", tags=["submissions"])


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint"""
    return {"message": "Welcome to the Garnet Questionnaire API"}
