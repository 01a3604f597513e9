# app/mupdf_engine.py
"""
PDF engine backed by PyMuPDF (rendering, text, images, metadata), PyPDF2
(page assembly) and Ghostscript (optimization, PDF/A output).
"""
import io
import logging
import re
import shutil
import subprocess
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional, Sequence

import fitz  # PyMuPDF
from PIL import Image
from PyPDF2 import PdfReader, PdfWriter

from app.config import GHOSTSCRIPT_BIN, PDFA_ICC_PROFILE
from app.engine import AssemblyUnit, DocumentMetadata, EmbeddedImage, RenderProfile
from app.errors import EngineError

logger = logging.getLogger(__name__)

GS_PRESETS = {
    "web": "/ebook",
    "print": "/printer",
    "screen": "/screen",
    "ebook": "/ebook",
    "printer": "/printer",
    "prepress": "/prepress",
}

PIL_FORMATS = {"jpeg": "JPEG", "tiff": "TIFF"}

_PDF_DATE = re.compile(
    r"^(?:D:)?(\d{4})(\d{2})?(\d{2})?(\d{2})?(\d{2})?(\d{2})?\s*(?:([Zz+\-])(\d{2})?'?(\d{2})?'?)?"
)
_PDFA_PART = re.compile(r"pdfaid:part(?:>|=[\"'])\s*(\d)")
_PDFA_CONFORMANCE = re.compile(r"pdfaid:conformance(?:>|=[\"'])\s*([A-Za-z])")


def parse_pdf_date(value: Optional[str]) -> Optional[datetime]:
    """Parse a PDF date string such as ``D:20231015120000+02'00'``."""
    if not value:
        return None
    m = _PDF_DATE.match(value.strip())
    if not m:
        return None
    year, month, day, hour, minute, second, sign, tz_h, tz_m = m.groups()
    tz = None
    if sign in ("Z", "z"):
        tz = timezone.utc
    elif sign in ("+", "-"):
        offset = timedelta(hours=int(tz_h or 0), minutes=int(tz_m or 0))
        tz = timezone(offset if sign == "+" else -offset)
    try:
        return datetime(
            int(year),
            int(month or 1),
            int(day or 1),
            int(hour or 0),
            int(minute or 0),
            int(second or 0),
            tzinfo=tz,
        )
    except ValueError:
        return None


def read_pdfa_claim(xmp: Optional[str]):
    """Return (part, conformance) declared in XMP ``pdfaid`` entries, or (None, None)."""
    if not xmp:
        return None, None
    part = _PDFA_PART.search(xmp)
    conformance = _PDFA_CONFORMANCE.search(xmp)
    return (
        int(part.group(1)) if part else None,
        conformance.group(1).upper() if conformance else None,
    )


class MuPdfDocument:
    def __init__(self, data: bytes):
        self.data = data
        self.doc = fitz.open(stream=data, filetype="pdf")
        if self.doc.needs_pass and not self.doc.authenticate(""):
            self.doc.close()
            raise EngineError("Document is password protected")
        self._reader: Optional[PdfReader] = None

    @property
    def reader(self) -> PdfReader:
        if self._reader is None:
            reader = PdfReader(io.BytesIO(self.data))
            if reader.is_encrypted:
                reader.decrypt("")
            self._reader = reader
        return self._reader

    def page(self, number: int):
        if number < 1 or number > self.doc.page_count:
            raise EngineError(f"Page {number} does not exist (document has {self.doc.page_count} pages)")
        return self.doc.load_page(number - 1)


class MuPdfEngine:
    def __init__(self, gs_binary: str = GHOSTSCRIPT_BIN, icc_profile: Path = PDFA_ICC_PROFILE):
        self.gs_binary = gs_binary
        self.icc_profile = Path(icc_profile)
        self.gs_path: Optional[str] = None
        self.initialized = False

    # ----------------------------
    # Lifecycle
    # ----------------------------
    def initialize(self) -> None:
        """One-time process setup; call before the first request is served."""
        if self.initialized:
            return
        fitz.TOOLS.mupdf_display_errors(False)
        self.gs_path = shutil.which(self.gs_binary)
        if self.gs_path:
            logger.info("Ghostscript found at %s", self.gs_path)
        else:
            logger.warning("Ghostscript (%s) not found - compression and PDF/A conversion are unavailable", self.gs_binary)
        if not self.icc_profile.exists():
            logger.warning("ICC profile %s not found - PDF/A conversion is unavailable", self.icc_profile)
        logger.info("PDF engine initialized (PyMuPDF %s)", fitz.VersionBind)
        self.initialized = True

    def _ghostscript(self) -> str:
        if not self.initialized:
            self.initialize()
        if not self.gs_path:
            raise EngineError(f"Ghostscript binary '{self.gs_binary}' is not available")
        return self.gs_path

    def _run_gs(self, handle: MuPdfDocument, args: List[str]) -> bytes:
        gs = self._ghostscript()
        with tempfile.TemporaryDirectory(prefix="pdfengine-") as tmp:
            input_pdf = Path(tmp) / "input.pdf"
            out_pdf = Path(tmp) / "output.pdf"
            input_pdf.write_bytes(handle.data)

            cmd = [gs, *args, "-dNOPAUSE", "-dBATCH", "-dQUIET", f"-sOutputFile={out_pdf}", str(input_pdf)]
            try:
                p = subprocess.run(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True)
            except OSError as e:
                raise EngineError(f"Failed to invoke Ghostscript: {e}") from e
            if p.returncode != 0:
                raise EngineError(p.stderr or p.stdout or "Ghostscript failed")
            if not out_pdf.exists():
                raise EngineError("Ghostscript produced no output")
            return out_pdf.read_bytes()

    # ----------------------------
    # Documents
    # ----------------------------
    def open(self, data: bytes) -> MuPdfDocument:
        try:
            return MuPdfDocument(data)
        except EngineError:
            raise
        except Exception as e:
            raise EngineError(str(e)) from e

    def close(self, handle: MuPdfDocument) -> None:
        handle.doc.close()

    def page_count(self, handle: MuPdfDocument) -> int:
        return handle.doc.page_count

    # ----------------------------
    # Assembly
    # ----------------------------
    def append_pages(self, handle: MuPdfDocument, start: int, end: int) -> AssemblyUnit:
        total = handle.doc.page_count
        if not 1 <= start <= end <= total:
            raise EngineError(f"Cannot append pages {start}-{end} from a {total}-page document")
        return AssemblyUnit(handle=handle, start=start, end=end)

    def assemble(self, units: Sequence[AssemblyUnit], dest: Path) -> None:
        writer = PdfWriter()
        try:
            for unit in units:
                reader = unit.handle.reader
                for idx in range(unit.start - 1, unit.end):
                    writer.add_page(reader.pages[idx])
            with Path(dest).open("wb") as fp:
                writer.write(fp)
        except Exception as e:
            raise EngineError(str(e)) from e

    # ----------------------------
    # Rendering
    # ----------------------------
    def render(self, handle: MuPdfDocument, page: int, profile: RenderProfile) -> bytes:
        try:
            zoom = profile.dpi / 72.0
            pix = handle.page(page).get_pixmap(matrix=fitz.Matrix(zoom, zoom), alpha=False)
            if profile.image_format == "png":
                return pix.tobytes("png")

            img = Image.frombytes("RGB", (pix.width, pix.height), pix.samples)
            buf = io.BytesIO()
            options = {"dpi": (profile.dpi, profile.dpi)}
            if profile.image_format == "tiff":
                options["compression"] = "tiff_lzw"
            img.save(buf, format=PIL_FORMATS[profile.image_format], **options)
            img.close()
            return buf.getvalue()
        except EngineError:
            raise
        except Exception as e:
            raise EngineError(str(e)) from e

    # ----------------------------
    # Rewriting
    # ----------------------------
    def optimize(self, handle: MuPdfDocument, profile: str) -> bytes:
        preset = GS_PRESETS.get(profile, "/ebook")
        return self._run_gs(
            handle,
            ["-sDEVICE=pdfwrite", "-dCompatibilityLevel=1.4", f"-dPDFSETTINGS={preset}"],
        )

    def convert_to_pdfa(self, handle: MuPdfDocument, part: int, conformance: str) -> bytes:
        # PDF/A requires an explicit OutputIntent ICC profile.
        if not self.icc_profile.exists():
            raise EngineError(f"Required ICC profile not found: {self.icc_profile}")
        if conformance.lower() != "b":
            logger.info("Ghostscript writes level B output; requested PDF/A-%s%s", part, conformance)

        out = self._run_gs(
            handle,
            [
                f"-dPDFA={part}",
                "-dPDFACompatibilityPolicy=1",
                "-sDEVICE=pdfwrite",
                "-dAutoRotatePages=/None",
                "-sProcessColorModel=DeviceRGB",
                "-sColorConversionStrategy=RGB",
                f"-sPDFAOutputIntentProfile={self.icc_profile}",
                "-dEmbedAllFonts=true",
                "-dSubsetFonts=true",
            ],
        )

        # Hard post-condition: the output must carry PDF/A identification.
        try:
            with fitz.open(stream=out, filetype="pdf") as doc:
                claimed_part, _ = read_pdfa_claim(doc.get_xml_metadata())
        except Exception as e:
            raise EngineError(f"Converted document is unreadable: {e}") from e
        if claimed_part != part:
            raise EngineError(f"Converted document does not declare PDF/A-{part} identification")
        return out

    # ----------------------------
    # Extraction
    # ----------------------------
    def extract_text(self, handle: MuPdfDocument, page: int) -> str:
        try:
            return handle.page(page).get_text("text")
        except EngineError:
            raise
        except Exception as e:
            raise EngineError(str(e)) from e

    def extract_images(self, handle: MuPdfDocument, page: int) -> List[EmbeddedImage]:
        images: List[EmbeddedImage] = []
        try:
            for index, info in enumerate(handle.page(page).get_images(full=True), start=1):
                extracted = handle.doc.extract_image(info[0])
                if not extracted:
                    continue
                images.append(
                    EmbeddedImage(
                        page=page,
                        index=index,
                        data=extracted["image"],
                        ext=extracted["ext"],
                        width=extracted["width"],
                        height=extracted["height"],
                    )
                )
        except EngineError:
            raise
        except Exception as e:
            raise EngineError(str(e)) from e
        return images

    def count_tables(self, handle: MuPdfDocument, page: int) -> int:
        try:
            return len(handle.page(page).find_tables().tables)
        except EngineError:
            raise
        except Exception as e:
            raise EngineError(str(e)) from e

    def read_metadata(self, handle: MuPdfDocument) -> DocumentMetadata:
        doc = handle.doc
        try:
            info = doc.metadata or {}
            fmt = info.get("format") or ""
            marked = doc.xref_get_key(doc.pdf_catalog(), "MarkInfo/Marked")
            part, conformance = read_pdfa_claim(doc.get_xml_metadata())
            return DocumentMetadata(
                title=info.get("title") or None,
                author=info.get("author") or None,
                subject=info.get("subject") or None,
                keywords=info.get("keywords") or None,
                creator=info.get("creator") or None,
                producer=info.get("producer") or None,
                creation_date=parse_pdf_date(info.get("creationDate")),
                modification_date=parse_pdf_date(info.get("modDate")),
                pdf_version=fmt.replace("PDF", "").strip() or None,
                page_count=doc.page_count,
                is_encrypted=bool(info.get("encryption")),
                is_linearized=bool(doc.is_fast_webaccess),
                has_forms=bool(doc.is_form_pdf),
                is_tagged=marked[1] == "true",
                pdfa_part=part,
                pdfa_conformance=conformance,
            )
        except Exception as e:
            raise EngineError(str(e)) from e
