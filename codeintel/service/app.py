"""FastAPI application entrypoint for codeintel service mode."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

try:  # pragma: no cover - optional dependency
    from fastapi import FastAPI
    from fastapi.responses import JSONResponse
    from pydantic import BaseModel

    _FASTAPI_AVAILABLE = True
except ModuleNotFoundError:  # pragma: no cover - service mode optional
    FastAPI = None  # type: ignore[assignment]
    JSONResponse = None  # type: ignore[assignment]
    BaseModel = object  # type: ignore[assignment]
    _FASTAPI_AVAILABLE = False

from ..config import CodeIntelConfig, ConfigError, load_config
from ..core import ENGINE_VERSION
from ..pipeline import AnalysisPipeline, PipelineOptions


class AnalyzeRequest(BaseModel):
    path: str
    extensions: Optional[List[str]] = None
    limit: Optional[int] = None
    include_tests: bool = False


class SourcesRequest(BaseModel):
    files: Dict[str, str] = {}
    repository_path: str = "."


class HealthResponse(BaseModel):
    status: str
    engine_version: str


PipelineFactory = Callable[[CodeIntelConfig], AnalysisPipeline]


def _ensure_repository(path: str) -> Path:
    repo_path = Path(path).expanduser()
    if not repo_path.exists():
        raise FileNotFoundError(f"Repository path not found: {path}")
    if not repo_path.is_dir():
        raise ValueError(f"Repository path is not a directory: {path}")
    return repo_path


async def _in_executor(func: Callable[[], Any]) -> Any:
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:  # pragma: no cover - fallback path when not in async context
        return func()
    return await loop.run_in_executor(None, func)


def create_app(pipeline_factory: PipelineFactory = AnalysisPipeline) -> FastAPI:
    """Create the FastAPI application exposing codeintel analysis."""

    if not _FASTAPI_AVAILABLE:  # pragma: no cover - validated via unit tests
        raise RuntimeError(
            "FastAPI is required for service mode. Install it with `pip install codeintel[service]`."
        )

    app = FastAPI(title="codeintel", version=ENGINE_VERSION)

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok", engine_version=ENGINE_VERSION)

    @app.post("/analyze")
    async def analyze(payload: AnalyzeRequest) -> Dict[str, Any]:
        repo_path = _ensure_repository(payload.path)
        pipeline = pipeline_factory(load_config(repo_path))
        options = PipelineOptions(
            extensions=payload.extensions,
            limit=payload.limit,
            exclude_test_files=False if payload.include_tests else None,
        )
        result = await _in_executor(lambda: pipeline.run(payload.path, options))
        return result.to_dict()

    @app.post("/analyze/sources")
    async def analyze_sources(payload: SourcesRequest) -> Dict[str, Any]:
        if any(not path for path in payload.files):
            raise ValueError("Source paths must be non-empty strings")
        pipeline = pipeline_factory(CodeIntelConfig(root=Path(payload.repository_path)))
        result = await _in_executor(lambda: pipeline.run_sources(payload.files, payload.repository_path))
        return result.to_dict()

    @app.exception_handler(FileNotFoundError)
    async def file_not_found_handler(
        _: Any, exc: FileNotFoundError
    ) -> JSONResponse:  # pragma: no cover - simple mapping
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(ValueError)
    async def value_error_handler(
        _: Any, exc: ValueError
    ) -> JSONResponse:  # pragma: no cover - simple mapping
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(ConfigError)
    async def config_error_handler(
        _: Any, exc: ConfigError
    ) -> JSONResponse:  # pragma: no cover - simple mapping
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    return app


def run_service(
    host: str = "127.0.0.1", port: int = 8000
) -> None:  # pragma: no cover - integration path
    if not _FASTAPI_AVAILABLE:
        raise RuntimeError(
            "FastAPI is required for service mode. Install it with `pip install codeintel[service]`."
        )

    try:
        import uvicorn
    except ModuleNotFoundError as exc:  # pragma: no cover - optional dependency
        raise RuntimeError(
            "uvicorn is required to run the service. Install it with `pip install uvicorn`."
        ) from exc

    app = create_app()
    uvicorn.run(app, host=host, port=port)
