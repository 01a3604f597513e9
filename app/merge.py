# app/merge.py
import logging
from contextlib import ExitStack
from pathlib import Path
from typing import List, Optional, Sequence

from app.engine import AssemblyUnit, PdfEngine, open_document
from app.errors import AssemblyFailure, EngineError, InsufficientInputs, StorageError
from app.files import OutputArtifact, artifact_for, guard_output
from app.naming import pdf_name

logger = logging.getLogger(__name__)

MIN_MERGE_INPUTS = 2


class Merger:
    def __init__(self, engine: PdfEngine, output_dir: Path):
        self.engine = engine
        self.output_dir = Path(output_dir)

    def merge(self, sources: Sequence[bytes], output_name: Optional[str] = None) -> OutputArtifact:
        """
        Concatenate ``sources`` in the given order into a single PDF.

        Either every source ends up in the output, or no output file is left behind.
        """
        if len(sources) < MIN_MERGE_INPUTS:
            raise InsufficientInputs(len(sources), MIN_MERGE_INPUTS)

        logger.info("Starting PDF merge operation for %d files", len(sources))
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Output directory is not writable: {e}") from e
        out_pdf = self.output_dir / pdf_name(output_name, "merged")

        with ExitStack() as stack:
            units: List[AssemblyUnit] = []
            for position, data in enumerate(sources, start=1):
                source = stack.enter_context(open_document(self.engine, data, label=f"file {position}"))
                try:
                    units.append(self.engine.append_pages(source.handle, 1, source.page_count))
                except EngineError as e:
                    raise AssemblyFailure(f"Failed to append file {position}: {e}") from e

            try:
                with guard_output(out_pdf):
                    self.engine.assemble(units, out_pdf)
            except (EngineError, OSError) as e:
                raise AssemblyFailure(f"Failed to merge PDF files: {e}") from e

        logger.info("PDF merge completed successfully: %s", out_pdf.name)
        return artifact_for(out_pdf)
