# app/split.py
import logging
from pathlib import Path
from typing import List, Optional, Sequence

from app.engine import PdfEngine, SourceDocument, open_document
from app.errors import AssemblyFailure, EngineError, InvalidRequest, StorageError
from app.files import OutputArtifact, artifact_for, guard_output
from app.naming import base_or_random, split_part_name
from app.pages import Segment, parse_page_ranges, parse_split_points, plan_split_by_points

logger = logging.getLogger(__name__)

SPLIT_MODES = ("ranges", "pages")


class Splitter:
    """
    Split one PDF into several.

    ``ranges`` mode takes explicit "start-end" ranges and rejects any range that
    does not fit the document. ``pages`` mode takes split points; each point
    starts a new output document.
    """

    def __init__(self, engine: PdfEngine, output_dir: Path):
        self.engine = engine
        self.output_dir = Path(output_dir)

    def plan(self, mode: str, points: Sequence[str], total_pages: int) -> List[Segment]:
        mode = (mode or "").strip().lower()
        if mode == "ranges":
            return parse_page_ranges(points, total_pages)
        if mode == "pages":
            return plan_split_by_points(parse_split_points(points, total_pages), total_pages)
        raise InvalidRequest(f"Invalid split mode: {mode or '(empty)'}. Use one of: {', '.join(SPLIT_MODES)}")

    def split(
        self,
        data: bytes,
        mode: str,
        points: Sequence[str],
        base: Optional[str] = None,
    ) -> List[OutputArtifact]:
        logger.info("Starting PDF split operation: mode=%s, points=%d", mode, len(points))

        with open_document(self.engine, data) as source:
            logger.info("Source PDF has %d pages", source.page_count)
            segments = self.plan(mode, points, source.page_count)
            artifacts = self._write_segments(source, segments, base_or_random(base, "split"))

        logger.info("PDF split completed successfully: %d files created", len(artifacts))
        return artifacts

    def _write_segments(self, source: SourceDocument, segments: List[Segment], base: str) -> List[OutputArtifact]:
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Output directory is not writable: {e}") from e

        artifacts: List[OutputArtifact] = []
        for part, (start, end) in enumerate(segments, start=1):
            out_pdf = self.output_dir / split_part_name(base, part, start, end)
            logger.info("Writing part %d: pages %d-%d -> %s", part, start, end, out_pdf.name)
            try:
                with guard_output(out_pdf):
                    unit = self.engine.append_pages(source.handle, start, end)
                    self.engine.assemble([unit], out_pdf)
            except (EngineError, OSError) as e:
                logger.error("Split failed at part %d (pages %d-%d); %d parts kept", part, start, end, len(artifacts))
                raise AssemblyFailure(
                    f"Failed to assemble part {part} (pages {start}-{end}): {e}",
                    artifacts,
                ) from e
            artifacts.append(artifact_for(out_pdf))
        return artifacts
