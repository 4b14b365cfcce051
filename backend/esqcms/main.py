"""
FastAPI Application Entry Point
"""
import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from esqcms.core.config import settings
from esqcms.core.logging_config import LogContext, configure_logging
from esqcms.db.database import dispose_engine
from esqcms.api import router as api_router
from esqcms.workflow.errors import WorkflowError

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Taxonomy codes for errors raised outside the workflow engine
HTTP_ERROR_CODES = {
    400: "VALIDATION_ERROR",
    401: "AUTHENTICATION_ERROR",
    403: "AUTHORIZATION_ERROR",
    404: "NOT_FOUND",
    409: "CONFLICT",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler"""
    configure_logging(settings.LOG_LEVEL)
    logger.info(f"Starting {settings.APP_NAME} (env={settings.ENV})")

    # NOTE: Database schema is managed by Alembic migrations.
    # Run `alembic upgrade head` before starting the app.

    yield

    await dispose_engine()
    logger.info("Shutting down")


app = FastAPI(
    title=settings.APP_NAME,
    description="DIR/FI checksheet approval workflow",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def bind_request_context(request: Request, call_next):
    """Tag every log line of a request with its request id (echoed back in the response)."""
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    LogContext.clear()
    LogContext.set(request_id=request_id)
    try:
        response = await call_next(request)
    finally:
        LogContext.clear()
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
    )


@app.exception_handler(HTTPException)
async def http_error_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "code": HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR")},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={
            "detail": jsonable_encoder(exc.errors()),
            "code": "VALIDATION_ERROR",
        },
    )


# API routes
app.include_router(api_router, prefix="/api")


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "app": settings.APP_NAME}
