"""
FastAPI service layer for the AskScript question/answer backend.

Wraps ScriptService; every blocking call runs on a thread pool so file and
spreadsheet I/O never stalls the event loop.

Run with:
    uvicorn askscript.api_server:app --host 0.0.0.0 --port 8080
"""
from __future__ import annotations

import asyncio
import functools
import time
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI, File, Form, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from . import config
from .errors import ScriptError
from .metrics import MetricsCollector
from .observability import get_logger
from .script_service import ScriptService

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Pydantic request / response models
# ---------------------------------------------------------------------------

class UploadResponse(BaseModel):
    scriptId: str
    fileName: str
    clientName: str
    redirectUrl: str


class SpeechRequest(BaseModel):
    question: str | None = None


class UpdateSheetRequest(BaseModel):
    scriptId: str | None = None
    sheet: Any = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def _run(request: Request, func, *args):
    """Runs a blocking service call on the app's I/O pool."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(request.app.state.executor, functools.partial(func, *args))


async def _speech_request(request: Request) -> SpeechRequest:
    try:
        payload = await request.json()
    except ValueError:
        return SpeechRequest()
    try:
        return SpeechRequest.model_validate(payload)
    except PydanticValidationError:
        return SpeechRequest()


def _service(request: Request) -> ScriptService:
    return request.app.state.service


def _page(public_dir: Path, name: str):
    path = public_dir / name
    if not path.is_file():
        return _error(404, "Page not found.")
    return FileResponse(path)


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_app(
    service: ScriptService | None = None,
    *,
    public_dir: Path | None = None,
    metrics: MetricsCollector | None = None,
) -> FastAPI:
    """Builds the app; without an explicit service one is loaded from config at startup."""
    pages = Path(public_dir) if public_dir is not None else config.PUBLIC_DIR

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        executor = ThreadPoolExecutor(max_workers=config.IO_MAX_WORKERS)
        current = service
        if current is None:
            current = ScriptService.from_config()
            if config.RESTORE_INDEXES_ON_STARTUP:
                current.restore_indexes()
        app.state.service = current
        app.state.executor = executor
        app.state.metrics = metrics or MetricsCollector(config.METRICS_DIR)
        logger.info("api_started", records=len(current.records), public_dir=str(pages))

        yield  # Application is running.

        executor.shutdown(wait=False)
        logger.info("api_stopped")

    app = FastAPI(
        title="AskScript API",
        description="Upload question/answer sheets and answer spoken questions from them",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def record_metrics(request: Request, call_next):
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            latency_ms = (time.perf_counter() - start) * 1000.0
            request.app.state.metrics.record_request(latency_ms, success=False, route=request.url.path, status_code=500)
            raise
        latency_ms = (time.perf_counter() - start) * 1000.0
        route = getattr(request.scope.get("route"), "path", request.url.path)
        request.app.state.metrics.record_request(
            latency_ms,
            success=response.status_code < 500,
            route=route,
            status_code=response.status_code,
        )
        return response

    @app.exception_handler(ScriptError)
    async def script_error_handler(_request: Request, exc: ScriptError):
        if exc.status_code >= 500:
            logger.error("request_failed", error=exc.message, kind=type(exc).__name__)
        return _error(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(_request: Request, exc: RequestValidationError):
        return _error(400, "Invalid data format.")

    @app.exception_handler(Exception)
    async def unexpected_error_handler(_request: Request, exc: Exception):
        logger.exception("request_crashed", error=str(exc))
        return _error(500, "Server error.")

    # -----------------------------------------------------------------------
    # Endpoints
    # -----------------------------------------------------------------------

    @app.post("/upload", response_model=UploadResponse)
    async def upload_endpoint(
        request: Request,
        file: UploadFile | None = File(None),
        clientName: str | None = Form(None),
    ):
        """Stores a question/answer sheet and builds its search index."""
        content = await file.read() if file is not None else None
        file_name = file.filename if file is not None else None
        record = await _run(request, _service(request).upload, file_name, content, clientName)
        return UploadResponse(
            scriptId=record.script_id,
            fileName=record.file_name,
            clientName=record.client_name,
            redirectUrl=record.redirect_url,
        )

    @app.get("/script-links")
    async def script_links_endpoint(request: Request):
        entries = await _run(request, _service(request).script_links)
        return {"scripts": [entry.to_json() for entry in entries]}

    @app.post("/process-speech/{script_id}")
    async def process_speech_endpoint(script_id: str, request: Request):
        """Answers a transcribed question from the script's sheet.

        A missing or unreadable body counts as a blank question, so an
        unknown script still gets its no-data answer.
        """
        body = await _speech_request(request)
        result = _service(request).answer(script_id, body.question)
        request.app.state.metrics.record_ask(result.outcome)
        if result.outcome == "no_data":
            return JSONResponse(status_code=404, content={"answer": result.answer})
        return {"answer": result.answer}

    @app.get("/get-excel/{script_id}")
    async def get_sheet_endpoint(script_id: str, request: Request):
        rows = await _run(request, _service(request).get_sheet, script_id)
        return {"sheet": rows}

    @app.put("/update-excel")
    async def update_sheet_endpoint(body: UpdateSheetRequest, request: Request):
        await _run(request, _service(request).update_sheet, body.scriptId, body.sheet)
        return {"message": "Excel data updated successfully and reloaded for voice assistant!"}

    @app.delete("/delete/{script_id}")
    async def delete_endpoint(script_id: str, request: Request):
        await _run(request, _service(request).delete, script_id)
        return {"message": "Script deleted successfully!"}

    @app.get("/metrics")
    async def metrics_endpoint(request: Request):
        """Return aggregated service metrics."""
        return request.app.state.metrics.get_summary()

    @app.get("/ask/{script_id}")
    async def ask_page(script_id: str):
        return _page(pages, "ask.html")

    @app.get("/script")
    async def scripts_page():
        return _page(pages, "scripts.html")

    @app.get("/{full_path:path}")
    async def index_page(full_path: str):
        return _page(pages, "index.html")

    return app


app = create_app()
