# app/main.py
import logging
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import (
    API_PREFIX,
    CORS_ALLOWED_ORIGINS,
    LOG_LEVEL,
    MAX_UPLOAD_BYTES,
    OUTPUT_DIR,
    UPLOAD_DIR,
)
from app.convert import ImageConverter
from app.documents import DocumentTools
from app.engine import PdfEngine
from app.errors import PartialOutputError, PdfProcessingError
from app.merge import Merger
from app.mupdf_engine import MuPdfEngine
from app.routes import Services, router
from app.schemas import ApiResponse, FileResponse
from app.split import Splitter

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


def _error_body(message: str, data=None) -> dict:
    return ApiResponse(success=False, message=message, data=data).model_dump(by_alias=True, mode="json")


def create_app(
    engine: Optional[PdfEngine] = None,
    upload_dir: Path = UPLOAD_DIR,
    output_dir: Path = OUTPUT_DIR,
    max_upload_bytes: int = MAX_UPLOAD_BYTES,
) -> FastAPI:
    if engine is None:
        engine = MuPdfEngine()

    upload_dir = Path(upload_dir)
    output_dir = Path(output_dir)
    download_prefix = f"{API_PREFIX}/download"

    app = FastAPI(title="PDF Editor", description="PDF document operations over HTTP")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        max_age=3600,
    )
    app.state.engine = engine
    app.state.services = Services(
        upload_dir=upload_dir,
        output_dir=output_dir,
        max_upload_bytes=max_upload_bytes,
        download_prefix=download_prefix,
        splitter=Splitter(engine, output_dir),
        merger=Merger(engine, output_dir),
        converter=ImageConverter(engine, output_dir),
        tools=DocumentTools(engine, output_dir),
    )
    app.include_router(router, prefix=API_PREFIX)

    # ----------------------------
    # Startup
    # ----------------------------
    @app.on_event("startup")
    def on_startup():
        for d in (upload_dir, output_dir):
            d.mkdir(parents=True, exist_ok=True)
            logger.info("Working directory ready: %s", d.resolve())
        engine.initialize()

    # ----------------------------
    # Errors
    # ----------------------------
    @app.exception_handler(PdfProcessingError)
    async def handle_processing_error(request: Request, exc: PdfProcessingError):
        if exc.status_code >= 500:
            logger.error("PDF processing error on %s: %s", request.url.path, exc.message, exc_info=exc)
        else:
            logger.warning("Rejected request on %s: %s", request.url.path, exc.message)

        data = None
        if isinstance(exc, PartialOutputError) and exc.artifacts:
            # Files written before the failure stay downloadable.
            data = [FileResponse.from_artifact(a, download_prefix).model_dump(by_alias=True) for a in exc.artifacts]
        message = exc.message if exc.status_code < 500 else f"PDF processing failed: {exc.message}"
        return JSONResponse(status_code=exc.status_code, content=_error_body(message, data))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.exception("Unexpected error on %s", request.url.path)
        return JSONResponse(status_code=500, content=_error_body(f"An unexpected error occurred: {exc}"))

    # ----------------------------
    # Health
    # ----------------------------
    @app.get("/health")
    def health():
        return {"ok": True, "max_upload_mb": max_upload_bytes // (1024 * 1024)}

    return app


app = create_app()
