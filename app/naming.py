# app/naming.py
import uuid
from pathlib import PurePath
from typing import Optional


def _safe_name(name: Optional[str]) -> str:
    # Only the final path component survives; directories in user input are ignored.
    name = PurePath((name or "").replace("\\", "/")).name
    cleaned = "".join(c for c in name if c.isalnum() or c in ("-", "_", " ", "."))
    return cleaned.strip().lstrip(".")


def with_extension(name: str, ext: str) -> str:
    ext = "." + ext.lstrip(".").lower()
    if name.lower().endswith(ext):
        return name
    return name + ext


def base_or_random(base: Optional[str], prefix: str) -> str:
    """Sanitized caller-supplied base, or ``<prefix>_<uuid4>`` when none is usable."""
    base = _safe_name(base)
    if base:
        return base
    return f"{prefix}_{uuid.uuid4()}"


def pdf_name(name: Optional[str], prefix: str) -> str:
    return with_extension(base_or_random(name, prefix), "pdf")


def split_part_name(base: str, part: int, start: int, end: int) -> str:
    return f"{base}_part{part}_pages{start}-{end}.pdf"


def page_image_name(base: str, page: int, total_pages: int, ext: str) -> str:
    # Pad to the digit width of the page count so lexical and numeric order agree.
    width = len(str(total_pages))
    return f"{base}_page_{page:0{width}d}.{ext.lower()}"


def page_embedded_image_name(base: str, page: int, index: int, total_pages: int, ext: str) -> str:
    width = len(str(total_pages))
    return f"{base}_page_{page:0{width}d}_img_{index}.{ext.lower()}"


def pdfa_name(name: Optional[str], original_name: Optional[str]) -> str:
    base = _safe_name(name)
    if base:
        return with_extension(base, "pdf")
    stem = _safe_name(PurePath(original_name or "").stem) or "document"
    return f"{stem}_pdfa_{uuid.uuid4().hex[:8]}.pdf"


def staged_name(original_name: Optional[str]) -> str:
    return f"{uuid.uuid4().hex}_{_safe_name(original_name) or 'upload'}"
