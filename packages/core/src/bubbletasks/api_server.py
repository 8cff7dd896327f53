"""FastAPI server for BubbleTasks.

This module provides a FastAPI server that:
- Serves the task CRUD endpoints under /api/tasks
- Accepts image uploads and serves them back statically
- Provides a health check
- Wraps every response in the {success, ...} envelope
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from bubbletasks_models import (
    ErrorEnvelope,
    HealthEnvelope,
    TaskCreate,
    TaskEnvelope,
    TaskListEnvelope,
    TaskScope,
    TaskUpdate,
    UploadEnvelope,
)
from fastapi import Depends, FastAPI, File, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from bubbletasks import get_version
from bubbletasks.config import Settings, get_settings
from bubbletasks.lifecycle import TaskConflictError, TaskService, utc_now
from bubbletasks.store import TaskNotFoundError, TaskRepository, create_repository
from bubbletasks.uploads import UPLOADS_URL_PATH, ImageStore, UploadError, UploadTooLargeError

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class HealthCheckFilter(logging.Filter):
    """Filter out health check requests from uvicorn access logs."""

    def filter(self, record: logging.LogRecord) -> bool:
        return "GET /api/health" not in record.getMessage()


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        content=ErrorEnvelope(error=message).model_dump(by_alias=True),
        status_code=status_code,
    )


def _format_validation_error(exc: RequestValidationError) -> str:
    """Flatten pydantic errors into one readable line."""
    messages = []
    for error in exc.errors():
        field = ".".join(
            str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")
        )
        message = error.get("msg", "Invalid value")
        # Our own validators raise ValueError; show their text without pydantic's prefix
        if error.get("type") == "value_error" and "error" in error.get("ctx", {}):
            message = str(error["ctx"]["error"])
        messages.append(f"{field}: {message}" if field else message)
    return "; ".join(messages) or "Invalid request"


def get_task_service(request: Request) -> TaskService:
    return request.app.state.task_service


def get_image_store(request: Request) -> ImageStore:
    return request.app.state.image_store


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        message = _format_validation_error(exc)
        logger.info(f"Rejected {request.method} {request.url.path}: {message}")
        return _error_response(400, message)

    @app.exception_handler(TaskNotFoundError)
    async def not_found_handler(request: Request, exc: TaskNotFoundError):
        return _error_response(404, "Task not found")

    @app.exception_handler(TaskConflictError)
    async def conflict_handler(request: Request, exc: TaskConflictError):
        return _error_response(409, str(exc))

    @app.exception_handler(UploadTooLargeError)
    async def upload_too_large_handler(request: Request, exc: UploadTooLargeError):
        return _error_response(413, str(exc))

    @app.exception_handler(UploadError)
    async def upload_error_handler(request: Request, exc: UploadError):
        return _error_response(400, str(exc))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        message = "Endpoint not found" if exc.status_code == 404 else str(exc.detail)
        return _error_response(exc.status_code, message)

    @app.middleware("http")
    async def internal_error_middleware(request: Request, call_next):
        """Answer unexpected errors with a generic 500 and log them once."""
        try:
            return await call_next(request)
        except Exception as exc:
            logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
            return _error_response(500, "Internal server error")


def create_app(
    settings: Settings | None = None,
    repository: TaskRepository | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to use (default: cached environment settings)
        repository: Task store to use (default: built from settings)
    """
    settings = settings or get_settings()
    repository = repository if repository is not None else create_repository(settings)
    image_store = ImageStore(
        directory=settings.get_uploads_dir(),
        base_url=settings.get_public_base_url(),
        max_bytes=settings.max_upload_bytes,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler."""
        logger.info("Starting BubbleTasks API server")
        logger.info(f"Loaded {len(repository.list_all())} tasks")
        yield
        logger.info("Shutting down BubbleTasks API server")

    app = FastAPI(
        title="BubbleTasks API",
        description="Task timer queue with image uploads",
        version=get_version(),
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.task_service = TaskService(
        repository, default_est_minutes=settings.default_est_minutes
    )
    app.state.image_store = image_store

    _register_exception_handlers(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.get("/api/health", response_model=HealthEnvelope)
    def health_check() -> HealthEnvelope:
        """Health check endpoint."""
        return HealthEnvelope(
            message="BubbleTasks API is running",
            timestamp=utc_now(),
            version=get_version(),
        )

    @app.get("/api/tasks", response_model=TaskListEnvelope)
    def list_tasks(
        scope: TaskScope = TaskScope.ALL,
        service: TaskService = Depends(get_task_service),
    ) -> TaskListEnvelope:
        """List tasks in the requested scope."""
        return TaskListEnvelope(tasks=service.list_tasks(scope))

    @app.post("/api/tasks", response_model=TaskEnvelope, status_code=201)
    def create_task(
        payload: TaskCreate,
        service: TaskService = Depends(get_task_service),
    ) -> TaskEnvelope:
        """Create a task. It starts Active when nothing else is."""
        return TaskEnvelope(task=service.create_task(payload))

    @app.put("/api/tasks/{task_id}", response_model=TaskEnvelope)
    def update_task(
        task_id: str,
        payload: TaskUpdate,
        service: TaskService = Depends(get_task_service),
    ) -> TaskEnvelope:
        """Apply the fields present in the body to a task."""
        return TaskEnvelope(task=service.update_task(task_id, payload))

    @app.delete("/api/tasks/{task_id}", response_model=TaskEnvelope)
    def delete_task(
        task_id: str,
        service: TaskService = Depends(get_task_service),
    ) -> TaskEnvelope:
        """Delete a task and return the removed record."""
        return TaskEnvelope(task=service.delete_task(task_id))

    @app.post("/api/upload", response_model=UploadEnvelope)
    def upload_image(
        image: UploadFile | None = File(default=None),
        store: ImageStore = Depends(get_image_store),
    ) -> UploadEnvelope:
        """Store an uploaded image and return the URL it is served from."""
        if image is None:
            raise UploadError("No file uploaded")
        # One byte past the limit is enough to detect an oversize file
        data = image.file.read(store.max_bytes + 1)
        filename = store.save(data, image.filename, image.content_type)
        return UploadEnvelope(image_url=store.url_for(filename), filename=filename)

    app.mount(
        UPLOADS_URL_PATH,
        StaticFiles(directory=image_store.ensure_directory()),
        name="uploads",
    )

    return app


def configure_logging(level: str = "INFO", log_file: Path | None = None) -> dict | None:
    """Configure root logging and return a matching uvicorn log config.

    Returns None when logging goes to stdout; uvicorn then propagates to the root logger.
    """
    if not log_file:
        logging.basicConfig(level=level, format=LOG_FORMAT)
        logging.getLogger("uvicorn.access").addFilter(HealthCheckFilter())
        return None

    log_file.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(level=level, format=LOG_FORMAT, filename=str(log_file), filemode="a")
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "health": {"()": HealthCheckFilter},
        },
        "formatters": {
            "default": {"format": LOG_FORMAT},
        },
        "handlers": {
            "file": {
                "class": "logging.FileHandler",
                "filename": str(log_file),
                "formatter": "default",
                "filters": ["health"],
            },
        },
        "root": {
            "level": level,
            "handlers": ["file"],
        },
    }


def start_api_server(
    host: str | None = None,
    port: int | None = None,
    log_file: Path | None = None,
) -> None:
    """Start the API server.

    Args:
        host: Host to bind to (default: settings.api_host)
        port: Port to listen on (default: settings.api_port)
        log_file: Path to log file (None for stdout)
    """
    import uvicorn

    settings = get_settings()
    overrides = {}
    if host:
        overrides["api_host"] = host
    if port:
        overrides["api_port"] = port
    if overrides:
        settings = settings.model_copy(update=overrides)

    log_config = configure_logging(settings.log_level, log_file)

    logger.info(f"Starting BubbleTasks API on {settings.api_host}:{settings.api_port}")
    uvicorn.run(
        create_app(settings),
        host=settings.api_host,
        port=settings.api_port,
        workers=1,
        log_config=log_config,
    )


if __name__ == "__main__":
    start_api_server()
