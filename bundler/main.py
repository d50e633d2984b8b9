"""Entry point for the SealBox bundling service."""

import os
import time
import uuid

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from common.logging_config import setup_logging
from bundler import config
from bundler.database import init_database
from bundler.routes.auth_routes import router as auth_router
from bundler.routes.group_routes import router as group_router
from bundler.routes.key_routes import router as key_router
from bundler.service_locator import get_migration_worker
from bundler.exceptions import (
    BundlerException,
    UserAlreadyExistsError,
    InvalidCredentialsError,
    InvalidAPIKeyError,
    ValidationError,
    InvalidGroupError,
    EmptyGroupError,
    PersistenceConflictError,
    LinkAlreadyExistsError,
    PublicKeyNotFoundError,
    ArchiveIOError,
    EncryptionError
)

logger = setup_logging('bundler')

app = FastAPI(
    title="SealBox",
    description="Passcode-protected file group bundling with expiring short links",
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
    user_id = getattr(request.state, 'user_id', None)

    logger.info(
        f"Request completed: {request.method} {request.url.path} "
        f"status={response.status_code} duration={duration:.3f}s "
        f"[request_id={request_id}] [user_id={user_id or 'anonymous'}]"
    )

    response.headers["X-Request-ID"] = request_id

    return response


@app.on_event("startup")
async def startup_event():
    """
    Initialize database and storage directories on application startup.
    """
    logger.info("SealBox service starting up...")

    init_database()
    logger.info("Database initialized")

    os.makedirs(config.UPLOAD_DIR, exist_ok=True)
    os.makedirs(config.BUNDLE_DIR, exist_ok=True)
    logger.info(f"Storage ready: uploads={config.UPLOAD_DIR} bundles={config.BUNDLE_DIR}")


@app.on_event("shutdown")
async def shutdown_event():
    pending = get_migration_worker().pending
    if pending:
        logger.warning(f"Shutting down with {pending} migration(s) still in flight")
    logger.info("SealBox service shutting down...")


def _client_error(request: Request, exc: Exception, status_code: int, code: str, label: str) -> JSONResponse:
    request_id = getattr(request.state, 'request_id', 'unknown')
    user_id = getattr(request.state, 'user_id', 'anonymous')
    logger.warning(
        f"{label}: {exc} [request_id={request_id}] [user_id={user_id}] path={request.url.path}"
    )
    return JSONResponse(status_code=status_code, content={"detail": str(exc), "code": code})


def _server_error(request: Request, exc: Exception, code: str, label: str) -> JSONResponse:
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(
        f"{label}: {exc} [request_id={request_id}] path={request.url.path}",
        exc_info=exc
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": str(exc), "code": code}
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    errors = exc.errors()
    detail = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg')}" for err in errors
    ) or "Invalid request"
    logger.warning(f"Request validation error: {detail} [request_id={request_id}] path={request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": detail, "code": "BAD_REQUEST"}
    )


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return _client_error(request, exc, status.HTTP_400_BAD_REQUEST, "BAD_REQUEST", "Validation error")


@app.exception_handler(UserAlreadyExistsError)
async def user_already_exists_handler(request: Request, exc: UserAlreadyExistsError):
    return _client_error(request, exc, status.HTTP_400_BAD_REQUEST, "USER_ALREADY_EXISTS", "User already exists error")


@app.exception_handler(InvalidCredentialsError)
async def invalid_credentials_handler(request: Request, exc: InvalidCredentialsError):
    return _client_error(request, exc, status.HTTP_401_UNAUTHORIZED, "INVALID_CREDENTIALS", "Invalid credentials error")


@app.exception_handler(InvalidAPIKeyError)
async def invalid_api_key_handler(request: Request, exc: InvalidAPIKeyError):
    return _client_error(request, exc, status.HTTP_401_UNAUTHORIZED, "INVALID_API_KEY", "Invalid API key error")


@app.exception_handler(PublicKeyNotFoundError)
async def public_key_not_found_handler(request: Request, exc: PublicKeyNotFoundError):
    return _client_error(request, exc, status.HTTP_404_NOT_FOUND, "KEY_NOT_FOUND", "Public key not found error")


@app.exception_handler(InvalidGroupError)
async def invalid_group_handler(request: Request, exc: InvalidGroupError):
    return _client_error(request, exc, status.HTTP_409_CONFLICT, "INVALID_GROUP", "Invalid group error")


@app.exception_handler(EmptyGroupError)
async def empty_group_handler(request: Request, exc: EmptyGroupError):
    return _client_error(request, exc, status.HTTP_400_BAD_REQUEST, "EMPTY_GROUP", "Empty group error")


@app.exception_handler(PersistenceConflictError)
async def persistence_conflict_handler(request: Request, exc: PersistenceConflictError):
    return _client_error(request, exc, status.HTTP_409_CONFLICT, "PERSISTENCE_CONFLICT", "Persistence conflict error")


@app.exception_handler(LinkAlreadyExistsError)
async def link_exists_handler(request: Request, exc: LinkAlreadyExistsError):
    return _client_error(request, exc, status.HTTP_409_CONFLICT, "LINK_EXISTS", "Link already exists error")


@app.exception_handler(ArchiveIOError)
async def archive_io_handler(request: Request, exc: ArchiveIOError):
    return _server_error(request, exc, "ARCHIVE_IO_ERROR", "Archive I/O error")


@app.exception_handler(EncryptionError)
async def encryption_error_handler(request: Request, exc: EncryptionError):
    return _server_error(request, exc, "ENCRYPTION_ERROR", "Encryption error")


@app.exception_handler(BundlerException)
async def bundler_exception_handler(request: Request, exc: BundlerException):
    return _server_error(request, exc, "INTERNAL_ERROR", "SealBox exception")


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    return _server_error(request, exc, "INTERNAL_ERROR", "Unhandled exception")


app.include_router(auth_router)
app.include_router(key_router)
app.include_router(group_router)


@app.get("/health")
async def health_check():
    """
    Health check endpoint for Docker healthcheck.
    Returns 200 if service is alive.
    """
    return {"status": "healthy", "service": "bundler"}


def main() -> None:
    """
    Start the FastAPI server with uvicorn.
    """
    uvicorn.run(
        "bundler.main:app",
        host=config.SERVICE_HOST,
        port=config.SERVICE_PORT,
    )


if __name__ == "__main__":
    main()
