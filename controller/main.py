"""Entry point for the chunkvault server."""

import time
import uuid

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from common.logging_config import setup_logging
from chunking.exceptions import (
    ChunkingError,
    InputError,
    LimitExceededError,
    NoBackendsError
)
from controller.config import SERVER_HOST, SERVER_PORT
from controller.database import init_database
from controller.exceptions import (
    DFSException,
    BackendNotFoundError,
    BackendUnavailableError,
    ChecksumMismatchError,
    FileNotFoundError,
    FileNotReadyError,
    InvalidBackendError
)
from controller.routes.backend_routes import router as backend_router
from controller.routes.file_routes import router as file_router
from controller.service_locator import get_file_service

logger = setup_logging('chunkvault')

app = FastAPI(
    title="Chunkvault",
    description="Chunked file storage across independent storage backends",
    version="1.0.0"
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Middleware to log all HTTP requests and responses.
    """
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id

    start_time = time.time()

    logger.info(
        f"Request started: {request.method} {request.url.path} [request_id={request_id}]"
    )

    response = await call_next(request)

    duration = time.time() - start_time

    logger.info(
        f"Request completed: {request.method} {request.url.path} "
        f"status={response.status_code} duration={duration:.3f}s [request_id={request_id}]"
    )

    response.headers["X-Request-ID"] = request_id

    return response


@app.on_event("startup")
async def startup_event():
    """
    Initialize database and register persisted backends on application startup.
    """
    logger.info("Chunkvault service starting up...")

    init_database()
    logger.info("Database initialized")

    get_file_service().load_backends()


@app.on_event("shutdown")
async def shutdown_event():
    """
    Release backend connections on application shutdown.
    """
    logger.info("Chunkvault service shutting down...")
    await get_file_service().registry.close()


def _error_response(request: Request, exc: Exception, status_code: int, code: str, level: str = "warning"):
    request_id = getattr(request.state, 'request_id', 'unknown')
    log = getattr(logger, level)
    log(f"{type(exc).__name__}: {exc} [request_id={request_id}] path={request.url.path}")
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "code": code}
    )


@app.exception_handler(FileNotFoundError)
async def file_not_found_handler(request: Request, exc: FileNotFoundError):
    return _error_response(request, exc, status.HTTP_404_NOT_FOUND, "FILE_NOT_FOUND")


@app.exception_handler(FileNotReadyError)
async def file_not_ready_handler(request: Request, exc: FileNotReadyError):
    return _error_response(request, exc, status.HTTP_409_CONFLICT, "FILE_NOT_READY")


@app.exception_handler(BackendNotFoundError)
async def backend_not_found_handler(request: Request, exc: BackendNotFoundError):
    return _error_response(request, exc, status.HTTP_404_NOT_FOUND, "BACKEND_NOT_FOUND")


@app.exception_handler(InvalidBackendError)
async def invalid_backend_handler(request: Request, exc: InvalidBackendError):
    return _error_response(request, exc, status.HTTP_400_BAD_REQUEST, "INVALID_BACKEND")


@app.exception_handler(BackendUnavailableError)
async def backend_unavailable_handler(request: Request, exc: BackendUnavailableError):
    return _error_response(
        request, exc, status.HTTP_503_SERVICE_UNAVAILABLE, "BACKEND_UNAVAILABLE", level="error"
    )


@app.exception_handler(ChecksumMismatchError)
async def checksum_mismatch_handler(request: Request, exc: ChecksumMismatchError):
    return _error_response(
        request, exc, status.HTTP_500_INTERNAL_SERVER_ERROR, "CHECKSUM_MISMATCH", level="error"
    )


@app.exception_handler(NoBackendsError)
async def no_backends_handler(request: Request, exc: NoBackendsError):
    return _error_response(request, exc, status.HTTP_400_BAD_REQUEST, "NO_ACTIVE_BACKENDS")


@app.exception_handler(InputError)
async def input_error_handler(request: Request, exc: InputError):
    return _error_response(request, exc, status.HTTP_400_BAD_REQUEST, "INVALID_INPUT")


@app.exception_handler(LimitExceededError)
async def limit_exceeded_handler(request: Request, exc: LimitExceededError):
    return _error_response(
        request, exc, status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, "CHUNK_LIMIT_EXCEEDED"
    )


@app.exception_handler(ChunkingError)
async def chunking_error_handler(request: Request, exc: ChunkingError):
    return _error_response(
        request, exc, status.HTTP_500_INTERNAL_SERVER_ERROR, "CHUNKING_ERROR", level="error"
    )


@app.exception_handler(DFSException)
async def dfs_exception_handler(request: Request, exc: DFSException):
    return _error_response(
        request, exc, status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR", level="error"
    )


app.include_router(backend_router)
app.include_router(file_router)


@app.get("/")
async def root():
    """
    Root endpoint for health check.
    """
    return {"message": "Chunkvault API", "status": "running"}


@app.get("/health")
async def health_check():
    """
    Liveness endpoint. Returns 200 if the service is alive.
    """
    return {"status": "healthy", "service": "chunkvault"}


def main() -> None:
    """
    Start the FastAPI server with uvicorn.
    """
    uvicorn.run(
        "controller.main:app",
        host=SERVER_HOST,
        port=SERVER_PORT,
    )


if __name__ == "__main__":
    main()
