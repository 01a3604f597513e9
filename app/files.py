# app/files.py
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional

from fastapi import UploadFile

from app.errors import ArtifactNotFound, PathTraversal, StorageError, UploadTooLarge
from app.naming import staged_name

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024  # 1MB


@dataclass(frozen=True)
class TransientFile:
    path: Path
    original_name: str
    size: int

    def read_bytes(self) -> bytes:
        return self.path.read_bytes()


@dataclass(frozen=True)
class OutputArtifact:
    name: str
    path: Path
    size: int
    original_size: Optional[int] = None
    compression_ratio: Optional[float] = None


def _remove_quietly(path: Path, what: str) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError:
        logger.warning("Failed to delete %s: %s", what, path, exc_info=True)


def artifact_for(path: Path, original_size: Optional[int] = None) -> OutputArtifact:
    path = path.resolve()
    size = path.stat().st_size
    ratio = None
    if original_size:
        ratio = (original_size - size) / float(original_size) * 100
    return OutputArtifact(
        name=path.name,
        path=path,
        size=size,
        original_size=original_size,
        compression_ratio=ratio,
    )


@contextmanager
def guard_output(path: Path) -> Iterator[Path]:
    """Delete ``path`` if the block fails, so a truncated output never looks finished."""
    try:
        yield path
    except BaseException:
        if path.exists():
            _remove_quietly(path, "partial output file")
        raise


def write_output(path: Path, data: bytes) -> OutputArtifact:
    with guard_output(path):
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            raise StorageError(f"Failed to write output file {path.name}: {e}") from e
    return artifact_for(path)


class FileLifecycle:
    """
    Per-request staging area.

    Every file staged through this object is deleted when the ``with`` block
    exits, whether the work inside succeeded or raised. Deletion problems are
    logged and never replace the block's own outcome.
    """

    def __init__(self, staging_dir: Path, max_upload_bytes: Optional[int] = None):
        self.staging_dir = Path(staging_dir)
        self.max_upload_bytes = max_upload_bytes
        self.staged: List[TransientFile] = []
        self._written = 0
        self._tracked: List[Path] = []

    def __enter__(self) -> "FileLifecycle":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.cleanup()
        return False

    def _new_path(self, original_name: Optional[str]) -> Path:
        try:
            self.staging_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Staging area is not writable: {e}") from e
        path = self.staging_dir / staged_name(original_name)
        self._tracked.append(path)
        return path

    def _remaining(self) -> Optional[int]:
        if self.max_upload_bytes is None:
            return None
        return max(0, self.max_upload_bytes - self._written)

    def _too_large(self) -> UploadTooLarge:
        mb = (self.max_upload_bytes or 0) // (1024 * 1024)
        return UploadTooLarge(f"Total upload too large. Max allowed is {mb}MB.")

    def stage_bytes(self, data: bytes, original_name: Optional[str]) -> TransientFile:
        remaining = self._remaining()
        if remaining is not None and len(data) > remaining:
            raise self._too_large()
        path = self._new_path(original_name)
        try:
            path.write_bytes(data)
        except OSError as e:
            raise StorageError(f"Failed to stage upload {original_name!r}: {e}") from e
        self._written += len(data)
        staged = TransientFile(path=path, original_name=original_name or "", size=len(data))
        self.staged.append(staged)
        return staged

    async def stage_upload(self, file: UploadFile) -> TransientFile:
        """Stream an upload to the staging area, enforcing the request's size budget while writing."""
        path = self._new_path(file.filename)
        remaining = self._remaining()
        total = 0
        try:
            with path.open("wb") as out:
                while True:
                    chunk = await file.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    total += len(chunk)
                    if remaining is not None and total > remaining:
                        raise self._too_large()
                    out.write(chunk)
        except OSError as e:
            raise StorageError(f"Failed to stage upload {file.filename!r}: {e}") from e
        finally:
            await file.close()

        self._written += total
        staged = TransientFile(path=path, original_name=file.filename or "", size=total)
        self.staged.append(staged)
        logger.debug("Staged upload %s as %s (%d bytes)", file.filename, path.name, total)
        return staged

    def cleanup(self) -> None:
        for path in self._tracked:
            if path.exists():
                _remove_quietly(path, "temp file")
        self._tracked.clear()
        self.staged.clear()


# ----------------------------
# Download boundary
# ----------------------------
def resolve_download(output_dir: Path, filename: str) -> Path:
    root = Path(output_dir).resolve()
    target = (root / filename).resolve()
    if target != root and root not in target.parents:
        logger.warning("Path traversal attempt detected: %s", filename)
        raise PathTraversal(f"Invalid file name: {filename}")
    if target == root or not target.is_file():
        raise ArtifactNotFound(f"File not found: {filename}")
    return target
