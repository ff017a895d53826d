from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from datetime import datetime
import logging
import os
import time

from prepdesk.config.settings import (
    API_TITLE, API_VERSION, API_DESCRIPTION, ALLOWED_ORIGINS, IS_PRODUCTION
)
from prepdesk.config.database import init_db
from prepdesk.core.errors import InfrastructureFailure, PipelineError
from prepdesk.routers import content, questions, health

logger = logging.getLogger(__name__)

app = FastAPI(
    title=API_TITLE,
    version=API_VERSION,
    description=API_DESCRIPTION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    swagger_ui_parameters={"defaultModelsExpandDepth": -1},
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Add request timing middleware
@app.middleware("http")
async def add_timing_middleware(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)
    if process_time > 1.0:
        logger.warning(f"Slow request: {request.method} {request.url.path} took {process_time:.2f}s")
    return response


@app.exception_handler(PipelineError)
async def pipeline_error_handler(request: Request, exc: PipelineError):
    """Resolution, validation and conflict errors become structured responses"""
    logger.info(f"{exc.error} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(content=exc.to_dict(), status_code=exc.status_code)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception(f"Database failure on {request.method} {request.url.path}")
    failure = InfrastructureFailure(
        "The database is unavailable or rejected the operation",
        {"detail": str(exc) if not IS_PRODUCTION else None},
    )
    return JSONResponse(content=failure.to_dict(), status_code=failure.status_code)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    logger.warning(f"HTTPException: {exc.status_code} - {exc.detail}")
    return JSONResponse(content={"detail": exc.detail}, status_code=exc.status_code)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    error_id = f"ERR-{int(datetime.now().timestamp())}-{os.urandom(4).hex()}"
    logger.exception(f"{error_id}: unhandled {type(exc).__name__} on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "error_id": error_id,
            "detail": str(exc) if not IS_PRODUCTION else "Internal server error",
            "timestamp": datetime.now().isoformat(),
            "path": str(request.url.path),
            "method": request.method,
        },
    )


app.include_router(content.router, prefix="")
app.include_router(questions.router, prefix="")
app.include_router(health.router, prefix="")


@app.on_event("startup")
async def startup_event():
    init_db()
    logger.info(f"{API_TITLE} {API_VERSION} started")


@app.get("/")
async def root():
    """Root endpoint"""
    return {"msg": "Welcome", "docs": "/docs"}
