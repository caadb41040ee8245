import logging
import sys
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from app.core.config import settings
from app.core.database import engine, Base
from app.core.errors import AppError, InvalidAuthenticationHeader, NotFound
from app.core.scheduler import start_scheduler, stop_scheduler
from app.api.routes import auth, healthcheck, todos, users
# Imported for their table definitions
from app.models import todo, token, user  # noqa: F401

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    stream=sys.stdout,
)
# APScheduler logs every purge run at INFO
logging.getLogger("apscheduler").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)

# Create tables for every model registered on Base if they don't exist
# In production, use migrations (Alembic) instead of create_all
Base.metadata.create_all(bind=engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage app lifecycle events.

    Startup: Start background scheduler for expired token cleanup
    Shutdown: Stop background scheduler
    """
    start_scheduler()
    yield
    stop_scheduler()


app = FastAPI(
    title="Todo API",
    description="Personal todo lists behind opaque bearer tokens",
    version=settings.APP_VERSION,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(healthcheck.router, prefix="/v1")
app.include_router(todos.router, prefix="/v1")
app.include_router(users.router, prefix="/v1")
app.include_router(auth.router, prefix="/v1")

SERVER_ERROR_MESSAGE = "the server encountered a problem and could not process your request"


def request_uri(request: Request) -> str:
    """Path plus query string, as the client sent it"""
    if request.url.query:
        return f"{request.url.path}?{request.url.query}"
    return request.url.path


def error_response(status_code: int, error, headers: dict | None = None) -> JSONResponse:
    # The dependency's Response is discarded once a handler raises, so error
    # bodies set Vary themselves
    headers = {"Vary": "Authorization", **(headers or {})}
    return JSONResponse(status_code=status_code, content={"error": error}, headers=headers)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request_uri(request)}: {exc}")
        return error_response(exc.status_code, SERVER_ERROR_MESSAGE)

    headers = None
    if isinstance(exc, InvalidAuthenticationHeader):
        headers = {"WWW-Authenticate": "Bearer"}
    return error_response(exc.status_code, exc.body, headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = {}
    for error in exc.errors():
        location = error.get("loc", ())
        # A malformed id in the path is an unknown resource, not bad input
        if location and location[0] == "path":
            return error_response(NotFound.status_code, NotFound.message)
        key = ".".join(str(part) for part in location[1:]) or "body"
        errors.setdefault(key, error.get("msg", "is invalid"))
    return error_response(422, errors)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        return error_response(404, NotFound.message)
    if exc.status_code == 405:
        return error_response(405, f"the {request.method} method is not supported for this resource")
    return error_response(exc.status_code, exc.detail, getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    # Includes UnsafeSortError: a broken invariant, logged with traceback
    logger.exception(f"{request.method} {request_uri(request)}: unhandled {type(exc).__name__}")
    return error_response(500, SERVER_ERROR_MESSAGE)
