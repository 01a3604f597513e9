# app/convert.py
import logging
from pathlib import Path
from typing import List, Optional

from app.engine import PdfEngine, RenderProfile, open_document
from app.errors import EngineError, InvalidRequest, RenderFailure, StorageError
from app.files import OutputArtifact, write_output
from app.naming import base_or_random, page_image_name
from app.pages import parse_page_selection

logger = logging.getLogger(__name__)

IMAGE_FORMATS = {
    "png": "png",
    "jpeg": "jpeg",
    "jpg": "jpeg",
    "tiff": "tiff",
    "tif": "tiff",
}

MIN_DPI = 72
MAX_DPI = 300


def normalize_format(image_format: Optional[str]) -> str:
    fmt = (image_format or "png").strip().lower()
    if fmt not in IMAGE_FORMATS:
        raise InvalidRequest(f"Unsupported image format: {fmt}. Supported: png, jpeg, tiff")
    return IMAGE_FORMATS[fmt]


class ImageConverter:
    def __init__(self, engine: PdfEngine, output_dir: Path):
        self.engine = engine
        self.output_dir = Path(output_dir)

    def convert(
        self,
        data: bytes,
        pages: Optional[str] = None,
        image_format: str = "png",
        dpi: int = 150,
        base: Optional[str] = None,
    ) -> List[OutputArtifact]:
        """
        Render the selected pages to one image file each.

        Images come out in the order the pages were requested ("5,1" renders
        page 5 first). If a page fails, images already written are kept and
        reported on the raised ``RenderFailure``.
        """
        fmt = normalize_format(image_format)
        profile = RenderProfile(image_format=fmt, dpi=max(MIN_DPI, min(int(dpi), MAX_DPI)))
        logger.info("Starting PDF to image conversion: format=%s, dpi=%d", fmt, profile.dpi)

        base = base_or_random(base, "converted")
        artifacts: List[OutputArtifact] = []

        with open_document(self.engine, data) as source:
            selected = parse_page_selection(pages, source.page_count)
            if not selected:
                raise InvalidRequest(f"No valid pages selected. PDF has {source.page_count} pages")
            logger.info("Converting %d of %d pages", len(selected), source.page_count)

            rendered = {}
            for page in selected:
                if page in rendered:
                    # same page, same file name
                    artifacts.append(rendered[page])
                    continue
                out_img = self.output_dir / page_image_name(base, page, source.page_count, fmt)
                try:
                    image = self.engine.render(source.handle, page, profile)
                    rendered[page] = write_output(out_img, image)
                except (EngineError, StorageError) as e:
                    logger.error("Rendering failed on page %d; %d images kept", page, len(artifacts))
                    raise RenderFailure(page, str(e), artifacts) from e
                artifacts.append(rendered[page])
                logger.debug("Converted page %d to %s", page, out_img.name)

        logger.info("PDF to image conversion completed: %d pages converted", len(artifacts))
        return artifacts
