# app/schemas.py
from datetime import datetime
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from app.documents import Extraction, PdfAValidation
from app.engine import DocumentMetadata
from app.files import OutputArtifact

T = TypeVar("T")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ApiResponse(CamelModel, Generic[T]):
    success: bool
    message: str
    data: Optional[T] = None


class FileResponse(CamelModel):
    file_name: str
    file_path: str
    file_size: int
    download_url: str
    original_size: Optional[int] = None
    compression_ratio: Optional[float] = None

    @classmethod
    def from_artifact(cls, artifact: OutputArtifact, download_prefix: str) -> "FileResponse":
        return cls(
            file_name=artifact.name,
            file_path=str(artifact.path),
            file_size=artifact.size,
            download_url=f"{download_prefix}/{artifact.name}",
            original_size=artifact.original_size,
            compression_ratio=artifact.compression_ratio,
        )


class MetadataResponse(CamelModel):
    title: Optional[str] = None
    author: Optional[str] = None
    subject: Optional[str] = None
    keywords: Optional[str] = None
    creator: Optional[str] = None
    producer: Optional[str] = None
    creation_date: Optional[datetime] = None
    modification_date: Optional[datetime] = None
    pdf_version: Optional[str] = None
    page_count: int
    file_size: int
    is_encrypted: bool = False
    is_linearized: bool = False
    has_forms: bool = False
    is_tagged: bool = False
    pdfa_conformance: Optional[str] = None

    @classmethod
    def from_metadata(cls, meta: DocumentMetadata, file_size: int) -> "MetadataResponse":
        return cls(
            title=meta.title,
            author=meta.author,
            subject=meta.subject,
            keywords=meta.keywords,
            creator=meta.creator,
            producer=meta.producer,
            creation_date=meta.creation_date,
            modification_date=meta.modification_date,
            pdf_version=meta.pdf_version,
            page_count=meta.page_count,
            file_size=file_size,
            is_encrypted=meta.is_encrypted,
            is_linearized=meta.is_linearized,
            has_forms=meta.has_forms,
            is_tagged=meta.is_tagged,
            pdfa_conformance=meta.pdfa_claim,
        )


class PageContent(CamelModel):
    page_number: int
    text: str
    word_count: int


class ExtractedImageResponse(CamelModel):
    page_number: int
    image_index: int
    file_name: str
    download_url: str
    file_size: int
    width: int
    height: int
    format: str


class DataExtractionResponse(CamelModel):
    text_content: str
    pages: List[PageContent]
    image_count: int
    images: List[ExtractedImageResponse]
    table_count: int
    word_count: int
    character_count: int

    @classmethod
    def from_extraction(cls, extraction: Extraction, download_prefix: str) -> "DataExtractionResponse":
        return cls(
            text_content=extraction.text_content,
            pages=[
                PageContent(page_number=p.page_number, text=p.text, word_count=p.word_count)
                for p in extraction.pages
            ],
            image_count=len(extraction.images),
            images=[
                ExtractedImageResponse(
                    page_number=img.page_number,
                    image_index=img.image_index,
                    file_name=img.artifact.name,
                    download_url=f"{download_prefix}/{img.artifact.name}",
                    file_size=img.artifact.size,
                    width=img.width,
                    height=img.height,
                    format=img.format,
                )
                for img in extraction.images
            ],
            table_count=extraction.table_count,
            word_count=extraction.word_count,
            character_count=extraction.character_count,
        )


class ValidationIssueResponse(CamelModel):
    code: str
    message: str
    severity: str
    page_number: Optional[int] = None
    object_type: Optional[str] = None
    context: Optional[str] = None


class PdfAValidationResponse(CamelModel):
    is_compliant: bool
    conformance_level: Optional[str] = None
    pdfa_part: Optional[int] = None
    pdfa_level: Optional[str] = None
    error_count: int
    warning_count: int
    errors: List[ValidationIssueResponse]
    warnings: List[ValidationIssueResponse]
    summary: str

    @classmethod
    def from_validation(cls, result: PdfAValidation) -> "PdfAValidationResponse":
        def issues(items):
            return [
                ValidationIssueResponse(
                    code=i.code,
                    message=i.message,
                    severity=i.severity,
                    page_number=i.page_number,
                    object_type=i.object_type,
                    context=i.context,
                )
                for i in items
            ]

        return cls(
            is_compliant=result.is_compliant,
            conformance_level=result.conformance_level,
            pdfa_part=result.pdfa_part,
            pdfa_level=result.pdfa_level,
            error_count=len(result.errors),
            warning_count=len(result.warnings),
            errors=issues(result.errors),
            warnings=issues(result.warnings),
            summary=result.summary,
        )
