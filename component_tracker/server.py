"""HTTP scanner API.

Exposes file discovery, the repository metadata probe and confined
source read/write to browser clients. Every error response is
``{"error": "<message>"}``.
"""

from typing import Annotated, Any

from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from .config import ScanOptions, TrackerConfig
from .discovery import FileDiscoverer, probe_repository_info
from .errors import ErrorCategory, RootPathError, TrackerError
from .sources import read_source, write_source
from .tracker_logging import LogCategory, get_category_logger

logger = get_category_logger(LogCategory.SERVER)


class ScanRequest(BaseModel):
    """Body of ``POST /api/scan``."""

    model_config = ConfigDict(populate_by_name=True)

    path: str = Field(min_length=1, validation_alias=AliasChoices("path", "rootPath"))
    options: ScanOptions | None = None


class SourceRequest(BaseModel):
    """Body of ``POST /api/source``."""

    model_config = ConfigDict(populate_by_name=True)

    repo_path: str = Field(min_length=1, validation_alias=AliasChoices("repoPath", "repo_path"))
    file_path: str = Field(min_length=1, validation_alias=AliasChoices("filePath", "file_path"))


class SourceWriteRequest(SourceRequest):
    """Body of ``PUT /api/source``."""

    content: str


def _status_for(error: TrackerError) -> int:
    if isinstance(error, RootPathError):
        return 404
    if error.category in (ErrorCategory.VALIDATION, ErrorCategory.FILE_SYSTEM):
        return 400
    return 500


def _validation_message(error: RequestValidationError) -> str:
    errors = error.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    field = str(first.get("loc", ["", "request"])[-1])
    if first.get("type") == "missing":
        return f"Missing {field}"
    return f"Invalid {field}: {first.get('msg', 'invalid value')}"


def create_app(config: TrackerConfig | None = None) -> FastAPI:
    """Build the scanner API application.

    Args:
        config: Configuration supplying default scan options.

    Returns:
        Configured FastAPI app.
    """
    config = config or TrackerConfig()
    app = FastAPI(title="Component Tracker Scanner", version="1.0.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @app.exception_handler(TrackerError)
    async def tracker_error_handler(request: Request, exc: TrackerError) -> JSONResponse:
        status = _status_for(exc)
        if status >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=status, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": _validation_message(exc)})

    @app.exception_handler(FileNotFoundError)
    async def not_found_handler(request: Request, exc: FileNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"error": f"File not found: {exc.filename}"})

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"Unexpected error on {request.method} {request.url.path}")
        return JSONResponse(status_code=500, content={"error": str(exc) or "Internal error"})

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {"ok": True}

    @app.get("/api/repo-info")
    def repo_info(
        path: Annotated[str, Query(min_length=1, description="Repository root")],
    ) -> dict[str, Any]:
        """Best-effort repository name and description."""
        return probe_repository_info(path)

    @app.post("/api/scan", response_model=None)
    def scan(body: ScanRequest) -> dict[str, Any] | JSONResponse:
        """Discover candidate component files under a root directory."""
        options = body.options or config.scan
        try:
            files = FileDiscoverer(options).discover(body.path)
        except RootPathError as e:
            return JSONResponse(status_code=400, content={"error": e.message})
        logger.info(f"Scan of {body.path} returned {len(files)} files")
        return {"files": [f.to_dict() for f in files]}

    @app.post("/api/source")
    def get_source(body: SourceRequest) -> dict[str, Any]:
        """Read a source file inside a repository root."""
        return {"content": read_source(body.repo_path, body.file_path)}

    @app.put("/api/source")
    def put_source(body: SourceWriteRequest) -> dict[str, Any]:
        """Overwrite a source file inside a repository root."""
        write_source(body.repo_path, body.file_path, body.content)
        return {"success": True}

    return app


def run_server(config: TrackerConfig) -> None:
    """Serve the scanner API with uvicorn until interrupted."""
    import uvicorn

    logger.info(f"Scanner API listening on http://{config.server_host}:{config.server_port}")
    uvicorn.run(
        create_app(config),
        host=config.server_host,
        port=config.server_port,
        log_level=config.log_level.lower(),
    )
