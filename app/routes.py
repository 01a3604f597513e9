# app/routes.py
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, File, Form, Request, UploadFile
from fastapi.responses import FileResponse as FileDownload
from starlette.concurrency import run_in_threadpool

from app.config import DEFAULT_DPI
from app.convert import ImageConverter
from app.documents import DocumentTools, parse_pdfa_level
from app.errors import InvalidRequest
from app.files import FileLifecycle, TransientFile, resolve_download
from app.merge import Merger
from app.schemas import (
    ApiResponse,
    DataExtractionResponse,
    FileResponse,
    MetadataResponse,
    PdfAValidationResponse,
)
from app.split import Splitter

router = APIRouter()

MEDIA_TYPES = {
    ".pdf": "application/pdf",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".tif": "image/tiff",
    ".tiff": "image/tiff",
}


@dataclass
class Services:
    upload_dir: Path
    output_dir: Path
    max_upload_bytes: int
    download_prefix: str
    splitter: Splitter
    merger: Merger
    converter: ImageConverter
    tools: DocumentTools


def services(request: Request) -> Services:
    return request.app.state.services


def _require_pdf(file: UploadFile) -> None:
    if not file.filename:
        raise InvalidRequest("No filename provided")
    if Path(file.filename).suffix.lower() != ".pdf":
        raise InvalidRequest(f"Only PDF files are supported: {file.filename}")


def _require_content(staged: TransientFile, action: str) -> None:
    if staged.size == 0:
        raise InvalidRequest(f"No file provided for {action}")


def _files(svc: Services, artifacts) -> List[FileResponse]:
    return [FileResponse.from_artifact(a, svc.download_prefix) for a in artifacts]


# ----------------------------
# Assembly APIs
# ----------------------------
@router.post("/merge", response_model=ApiResponse[FileResponse])
async def merge_pdf(
    request: Request,
    files: List[UploadFile] = File(...),
    output_file_name: Optional[str] = Form(None, alias="outputFileName"),
):
    svc = services(request)
    for f in files:
        _require_pdf(f)

    with FileLifecycle(svc.upload_dir, svc.max_upload_bytes) as lifecycle:
        staged = [await lifecycle.stage_upload(f) for f in files]
        for s in staged:
            _require_content(s, "merging")
        artifact = await run_in_threadpool(
            lambda: svc.merger.merge([s.read_bytes() for s in staged], output_file_name)
        )

    return ApiResponse(
        success=True,
        message="PDF files merged successfully",
        data=FileResponse.from_artifact(artifact, svc.download_prefix),
    )


@router.post("/split", response_model=ApiResponse[List[FileResponse]])
async def split_pdf(
    request: Request,
    file: UploadFile = File(...),
    split_mode: str = Form(..., alias="splitMode"),
    split_points: List[str] = Form(..., alias="splitPoints"),
    output_file_name_base: Optional[str] = Form(None, alias="outputFileNameBase"),
):
    svc = services(request)
    _require_pdf(file)

    with FileLifecycle(svc.upload_dir, svc.max_upload_bytes) as lifecycle:
        staged = await lifecycle.stage_upload(file)
        _require_content(staged, "splitting")
        artifacts = await run_in_threadpool(
            lambda: svc.splitter.split(staged.read_bytes(), split_mode, split_points, output_file_name_base)
        )

    return ApiResponse(
        success=True,
        message=f"PDF split into {len(artifacts)} files successfully",
        data=_files(svc, artifacts),
    )


@router.post("/convert", response_model=ApiResponse[List[FileResponse]])
async def convert_pdf(
    request: Request,
    file: UploadFile = File(...),
    image_format: str = Form("png", alias="imageFormat"),
    dpi: int = Form(DEFAULT_DPI),
    pages: Optional[str] = Form(None),
    output_file_name_base: Optional[str] = Form(None, alias="outputFileNameBase"),
):
    svc = services(request)
    _require_pdf(file)

    with FileLifecycle(svc.upload_dir, svc.max_upload_bytes) as lifecycle:
        staged = await lifecycle.stage_upload(file)
        _require_content(staged, "conversion")
        artifacts = await run_in_threadpool(
            lambda: svc.converter.convert(staged.read_bytes(), pages, image_format, dpi, output_file_name_base)
        )

    return ApiResponse(
        success=True,
        message=f"PDF converted to {len(artifacts)} image(s) successfully",
        data=_files(svc, artifacts),
    )


# ----------------------------
# Document APIs
# ----------------------------
@router.post("/compress", response_model=ApiResponse[FileResponse])
async def compress_pdf(
    request: Request,
    file: UploadFile = File(...),
    compression_profile: str = Form("web", alias="compressionProfile"),
    image_quality: Optional[int] = Form(None, alias="imageQuality"),
    output_file_name: Optional[str] = Form(None, alias="outputFileName"),
):
    svc = services(request)
    _require_pdf(file)

    with FileLifecycle(svc.upload_dir, svc.max_upload_bytes) as lifecycle:
        staged = await lifecycle.stage_upload(file)
        _require_content(staged, "compression")
        artifact = await run_in_threadpool(
            lambda: svc.tools.compress(staged.read_bytes(), compression_profile, image_quality, output_file_name)
        )

    ratio = artifact.compression_ratio or 0.0
    message = (
        f"PDF compressed successfully ({ratio:.2f}% size reduction)"
        if ratio > 0
        else "PDF processed successfully (no size reduction achieved)"
    )
    return ApiResponse(success=True, message=message, data=FileResponse.from_artifact(artifact, svc.download_prefix))


@router.post("/convert-pdfa", response_model=ApiResponse[FileResponse])
async def convert_pdfa(
    request: Request,
    file: UploadFile = File(...),
    conformance_level: str = Form("2b", alias="conformanceLevel"),
    output_file_name: Optional[str] = Form(None, alias="outputFileName"),
    copy_metadata: bool = Form(True, alias="copyMetadata"),
    embed_fonts: bool = Form(True, alias="embedFonts"),
):
    svc = services(request)
    _require_pdf(file)
    part, conformance = parse_pdfa_level(conformance_level)

    with FileLifecycle(svc.upload_dir, svc.max_upload_bytes) as lifecycle:
        staged = await lifecycle.stage_upload(file)
        _require_content(staged, "PDF/A conversion")
        artifact = await run_in_threadpool(
            lambda: svc.tools.convert_to_pdfa(
                staged.read_bytes(),
                conformance_level,
                output_file_name,
                staged.original_name,
                copy_metadata,
                embed_fonts,
            )
        )

    return ApiResponse(
        success=True,
        message=f"PDF converted to PDF/A-{part}{conformance.upper()} successfully",
        data=FileResponse.from_artifact(artifact, svc.download_prefix),
    )


@router.post("/validate-pdfa", response_model=ApiResponse[PdfAValidationResponse])
async def validate_pdfa(
    request: Request,
    file: UploadFile = File(...),
    conformance_level: Optional[str] = Form(None, alias="conformanceLevel"),
):
    svc = services(request)
    _require_pdf(file)

    with FileLifecycle(svc.upload_dir, svc.max_upload_bytes) as lifecycle:
        staged = await lifecycle.stage_upload(file)
        _require_content(staged, "PDF/A validation")
        result = await run_in_threadpool(lambda: svc.tools.validate_pdfa(staged.read_bytes(), conformance_level))

    data = PdfAValidationResponse.from_validation(result)
    return ApiResponse(success=True, message=data.summary, data=data)


@router.post("/extract", response_model=ApiResponse[DataExtractionResponse])
async def extract_data(
    request: Request,
    file: UploadFile = File(...),
    extract_images: bool = Form(False, alias="extractImages"),
    pages: Optional[str] = Form(None),
):
    svc = services(request)
    _require_pdf(file)

    with FileLifecycle(svc.upload_dir, svc.max_upload_bytes) as lifecycle:
        staged = await lifecycle.stage_upload(file)
        _require_content(staged, "data extraction")
        extraction = await run_in_threadpool(
            lambda: svc.tools.extract(staged.read_bytes(), pages, extract_images)
        )

    data = DataExtractionResponse.from_extraction(extraction, svc.download_prefix)
    return ApiResponse(
        success=True,
        message=f"Data extracted successfully ({data.word_count} words from {len(data.pages)} pages)",
        data=data,
    )


@router.post("/metadata", response_model=ApiResponse[MetadataResponse])
async def extract_metadata(request: Request, file: UploadFile = File(...)):
    svc = services(request)
    _require_pdf(file)

    with FileLifecycle(svc.upload_dir, svc.max_upload_bytes) as lifecycle:
        staged = await lifecycle.stage_upload(file)
        _require_content(staged, "metadata extraction")
        meta = await run_in_threadpool(lambda: svc.tools.read_metadata(staged.read_bytes()))

    data = MetadataResponse.from_metadata(meta, staged.size)
    return ApiResponse(
        success=True,
        message=f"Metadata extracted successfully ({data.page_count} pages)",
        data=data,
    )


# ----------------------------
# Downloads
# ----------------------------
@router.get("/download/{filename:path}")
def download(request: Request, filename: str):
    svc = services(request)
    path = resolve_download(svc.output_dir, filename)
    return FileDownload(
        path=str(path),
        media_type=MEDIA_TYPES.get(path.suffix.lower(), "application/octet-stream"),
        filename=path.name,
    )
