# app/documents.py
"""
Single-document operations: compression, PDF/A conversion and validation,
content extraction and metadata.
"""
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from app.engine import DocumentMetadata, PdfEngine, open_document
from app.errors import ConversionFailure, EngineError, InvalidRequest
from app.files import OutputArtifact, artifact_for, write_output
from app.naming import base_or_random, page_embedded_image_name, pdf_name, pdfa_name
from app.pages import parse_page_selection

logger = logging.getLogger(__name__)

COMPRESSION_PROFILES = ("web", "print", "custom")

_PDFA_LEVEL = re.compile(r"^(?:pdf/?a)?[-_ ]?([1-3])([abu])?$", re.IGNORECASE)


def parse_pdfa_level(level: Optional[str]) -> Tuple[int, str]:
    """'2b', 'PDF/A-3u', 'pdfa-1' -> (part, conformance letter)."""
    m = _PDFA_LEVEL.match((level or "").strip())
    if not m:
        raise InvalidRequest(f"Unsupported PDF/A conformance level: {level}. Expected e.g. 1b, 2b, 2u, 3b")
    return int(m.group(1)), (m.group(2) or "b").lower()


def count_words(text: str) -> int:
    return len(text.split())


@dataclass
class ValidationIssue:
    code: str
    message: str
    severity: str = "error"
    page_number: Optional[int] = None
    object_type: Optional[str] = None
    context: Optional[str] = None


@dataclass
class PdfAValidation:
    is_compliant: bool
    conformance_level: Optional[str]
    pdfa_part: Optional[int]
    pdfa_level: Optional[str]
    errors: List[ValidationIssue] = field(default_factory=list)
    warnings: List[ValidationIssue] = field(default_factory=list)
    summary: str = ""


@dataclass
class PageText:
    page_number: int
    text: str
    word_count: int


@dataclass
class ExtractedImage:
    page_number: int
    image_index: int
    artifact: OutputArtifact
    width: int
    height: int
    format: str


@dataclass
class Extraction:
    text_content: str
    pages: List[PageText]
    images: List[ExtractedImage]
    table_count: int
    word_count: int
    character_count: int


class DocumentTools:
    def __init__(self, engine: PdfEngine, output_dir: Path):
        self.engine = engine
        self.output_dir = Path(output_dir)

    # ----------------------------
    # Compression
    # ----------------------------
    def compress(
        self,
        data: bytes,
        profile: str = "web",
        image_quality: Optional[int] = None,
        output_name: Optional[str] = None,
    ) -> OutputArtifact:
        profile = (profile or "web").strip().lower()
        if profile == "custom":
            logger.info("Using custom compression profile with quality: %s (web settings)", image_quality)
            profile = "web"
        elif profile not in COMPRESSION_PROFILES:
            logger.warning("Unknown profile '%s', defaulting to web", profile)
            profile = "web"

        original_size = len(data)
        out_pdf = self.output_dir / pdf_name(output_name, "compressed")
        with open_document(self.engine, data) as source:
            try:
                optimized = self.engine.optimize(source.handle, profile)
            except EngineError as e:
                raise ConversionFailure(f"Failed to compress PDF file: {e}") from e
        write_output(out_pdf, optimized)

        artifact = artifact_for(out_pdf, original_size=original_size)
        logger.info(
            "PDF compression completed: %d -> %d bytes (%.2f%% reduction)",
            original_size,
            artifact.size,
            artifact.compression_ratio or 0.0,
        )
        return artifact

    # ----------------------------
    # PDF/A
    # ----------------------------
    def convert_to_pdfa(
        self,
        data: bytes,
        level: str = "2b",
        output_name: Optional[str] = None,
        original_name: Optional[str] = None,
        copy_metadata: bool = True,
        embed_fonts: bool = True,
    ) -> OutputArtifact:
        part, conformance = parse_pdfa_level(level)
        logger.info(
            "Starting PDF/A conversion for file: %s, target level: %d%s (copyMetadata=%s, embedFonts=%s)",
            original_name,
            part,
            conformance,
            copy_metadata,
            embed_fonts,
        )
        if not embed_fonts:
            # PDF/A requires embedded fonts
            logger.warning("embedFonts=false ignored for PDF/A output")

        out_pdf = self.output_dir / pdfa_name(output_name, original_name)
        with open_document(self.engine, data) as source:
            try:
                converted = self.engine.convert_to_pdfa(source.handle, part, conformance)
            except EngineError as e:
                raise ConversionFailure(f"Failed to convert PDF to PDF/A format: {e}") from e
        write_output(out_pdf, converted)

        artifact = artifact_for(out_pdf, original_size=len(data))
        logger.info("PDF/A conversion completed: %d -> %d bytes", len(data), artifact.size)
        return artifact

    def validate_pdfa(self, data: bytes, level: Optional[str] = None) -> PdfAValidation:
        """
        Report the PDF/A identification a document declares.

        Rule-level conformance checking is not performed: a document is
        considered compliant when it declares a PDF/A part (and, if a level is
        requested, the declared one matches it).
        """
        requested = parse_pdfa_level(level) if level else None
        meta = self.read_metadata(data)

        errors: List[ValidationIssue] = []
        warnings: List[ValidationIssue] = []
        if meta.pdfa_part is None:
            errors.append(
                ValidationIssue(
                    code="PDFA_NOT_DECLARED",
                    message="Document does not declare PDF/A conformance (no pdfaid entries in XMP metadata)",
                    object_type="Metadata",
                )
            )
        else:
            if meta.pdfa_conformance is None:
                warnings.append(
                    ValidationIssue(
                        code="PDFA_CONFORMANCE_MISSING",
                        message=f"PDF/A-{meta.pdfa_part} is declared without a conformance level",
                        severity="warning",
                        object_type="Metadata",
                    )
                )
            if requested is not None:
                part, conformance = requested
                declared = (meta.pdfa_part, (meta.pdfa_conformance or "").lower())
                if declared != (part, conformance):
                    errors.append(
                        ValidationIssue(
                            code="PDFA_LEVEL_MISMATCH",
                            message=f"Document declares {meta.pdfa_claim}, expected PDF/A-{part}{conformance}",
                            object_type="Metadata",
                            context=meta.pdfa_claim,
                        )
                    )

        compliant = not errors
        if compliant:
            summary = f"Document conforms to {meta.pdfa_claim}"
        else:
            summary = f"Document is NOT PDF/A compliant ({len(errors)} errors, {len(warnings)} warnings)"

        logger.info("PDF/A validation completed: compliant=%s, conformance=%s", compliant, meta.pdfa_claim)
        return PdfAValidation(
            is_compliant=compliant,
            conformance_level=meta.pdfa_claim,
            pdfa_part=meta.pdfa_part,
            pdfa_level=meta.pdfa_conformance.lower() if meta.pdfa_conformance else None,
            errors=errors,
            warnings=warnings,
            summary=summary,
        )

    # ----------------------------
    # Extraction
    # ----------------------------
    def extract(self, data: bytes, pages: Optional[str] = None, extract_images: bool = False) -> Extraction:
        logger.info("Starting data extraction: pages=%s, extractImages=%s", pages or "all", extract_images)

        texts: List[PageText] = []
        images: List[ExtractedImage] = []
        table_count = 0
        base = base_or_random(None, "extracted")

        with open_document(self.engine, data) as source:
            selected = parse_page_selection(pages, source.page_count)
            if not selected:
                raise InvalidRequest(f"No valid pages selected. PDF has {source.page_count} pages")
            try:
                for page in selected:
                    text = self.engine.extract_text(source.handle, page)
                    texts.append(PageText(page_number=page, text=text, word_count=count_words(text)))
                    table_count += self.engine.count_tables(source.handle, page)
                    if extract_images:
                        images.extend(self._write_images(source, page, base))
            except EngineError as e:
                raise ConversionFailure(f"Failed to extract data from PDF file: {e}") from e

        text_content = "\n".join(t.text for t in texts)
        extraction = Extraction(
            text_content=text_content,
            pages=texts,
            images=images,
            table_count=table_count,
            word_count=sum(t.word_count for t in texts),
            character_count=len(text_content),
        )
        logger.info("Data extraction completed: %d pages, %d words", len(texts), extraction.word_count)
        return extraction

    def _write_images(self, source, page: int, base: str) -> List[ExtractedImage]:
        out: List[ExtractedImage] = []
        for img in self.engine.extract_images(source.handle, page):
            name = page_embedded_image_name(base, page, img.index, source.page_count, img.ext)
            artifact = write_output(self.output_dir / name, img.data)
            out.append(
                ExtractedImage(
                    page_number=page,
                    image_index=img.index,
                    artifact=artifact,
                    width=img.width,
                    height=img.height,
                    format=img.ext,
                )
            )
        return out

    # ----------------------------
    # Metadata
    # ----------------------------
    def read_metadata(self, data: bytes) -> DocumentMetadata:
        with open_document(self.engine, data) as source:
            try:
                return self.engine.read_metadata(source.handle)
            except EngineError as e:
                raise ConversionFailure(f"Failed to extract metadata from PDF file: {e}") from e
