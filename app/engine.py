# app/engine.py
"""
Boundary between the document operations and the PDF engine that does the
actual parsing, rendering and rewriting.

Everything in this package talks to the engine through ``PdfEngine`` so tests
can run against a fake and the underlying library stays swappable.
Implementations raise ``EngineError`` for any internal failure; callers wrap
it into their own error kinds without looking at engine details.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator, List, Optional, Protocol, Sequence

from app.errors import EngineError, InvalidDocument

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssemblyUnit:
    """A page span of an open document, queued for assembly into an output file."""

    handle: Any
    start: int
    end: int


@dataclass(frozen=True)
class RenderProfile:
    image_format: str = "png"
    dpi: int = 150


@dataclass(frozen=True)
class EmbeddedImage:
    page: int
    index: int
    data: bytes
    ext: str
    width: int
    height: int


@dataclass
class DocumentMetadata:
    title: Optional[str] = None
    author: Optional[str] = None
    subject: Optional[str] = None
    keywords: Optional[str] = None
    creator: Optional[str] = None
    producer: Optional[str] = None
    creation_date: Optional[datetime] = None
    modification_date: Optional[datetime] = None
    pdf_version: Optional[str] = None
    page_count: int = 0
    is_encrypted: bool = False
    is_linearized: bool = False
    has_forms: bool = False
    is_tagged: bool = False
    pdfa_part: Optional[int] = None
    pdfa_conformance: Optional[str] = None

    @property
    def pdfa_claim(self) -> Optional[str]:
        if self.pdfa_part is None:
            return None
        return f"PDF/A-{self.pdfa_part}{(self.pdfa_conformance or '').lower()}"


class PdfEngine(Protocol):
    def initialize(self) -> None:
        ...

    def open(self, data: bytes) -> Any:
        ...

    def close(self, handle: Any) -> None:
        ...

    def page_count(self, handle: Any) -> int:
        ...

    def append_pages(self, handle: Any, start: int, end: int) -> AssemblyUnit:
        ...

    def assemble(self, units: Sequence[AssemblyUnit], dest: Path) -> None:
        ...

    def render(self, handle: Any, page: int, profile: RenderProfile) -> bytes:
        ...

    def optimize(self, handle: Any, profile: str) -> bytes:
        ...

    def convert_to_pdfa(self, handle: Any, part: int, conformance: str) -> bytes:
        ...

    def extract_text(self, handle: Any, page: int) -> str:
        ...

    def extract_images(self, handle: Any, page: int) -> List[EmbeddedImage]:
        ...

    def count_tables(self, handle: Any, page: int) -> int:
        ...

    def read_metadata(self, handle: Any) -> DocumentMetadata:
        ...


@dataclass(frozen=True)
class SourceDocument:
    handle: Any
    page_count: int


@contextmanager
def open_document(engine: PdfEngine, data: bytes, label: str = "input") -> Iterator[SourceDocument]:
    """Open ``data`` for the duration of the block; the handle is released on every exit path."""
    try:
        handle = engine.open(data)
    except EngineError as e:
        raise InvalidDocument(f"Could not open {label} as PDF: {e}") from e

    try:
        try:
            total = engine.page_count(handle)
        except EngineError as e:
            raise InvalidDocument(f"Could not read pages of {label}: {e}") from e
        yield SourceDocument(handle=handle, page_count=total)
    finally:
        try:
            engine.close(handle)
        except EngineError:
            logger.warning("Failed to close document handle for %s", label, exc_info=True)
