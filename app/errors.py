# app/errors.py
from typing import List, Optional


class PdfProcessingError(RuntimeError):
    """Base class for every failure surfaced to API callers."""

    status_code = 500
    code = "PDF_PROCESSING_FAILED"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class EngineError(PdfProcessingError):
    """Generic failure signal raised by the PDF engine implementation."""

    code = "ENGINE_ERROR"


# ----------------------------
# Client errors (4xx)
# ----------------------------
class InvalidRequest(PdfProcessingError):
    status_code = 400
    code = "INVALID_REQUEST"


class MalformedPageSpec(InvalidRequest):
    code = "MALFORMED_PAGE_SPEC"

    def __init__(self, token: str, reason: str = "not a page number or page range"):
        super().__init__(f"Invalid page specification '{token}': {reason}")
        self.token = token


class PageRangeOutOfBounds(InvalidRequest):
    code = "PAGE_RANGE_OUT_OF_BOUNDS"

    def __init__(self, spec: str, page: int, bound: int, message: Optional[str] = None):
        super().__init__(
            message
            or f"Page {page} in '{spec}' is out of range. PDF has {bound} pages (valid range: 1-{bound})"
        )
        self.spec = spec
        self.page = page
        self.bound = bound


class InsufficientInputs(InvalidRequest):
    code = "INSUFFICIENT_INPUTS"

    def __init__(self, count: int, minimum: int = 2):
        super().__init__(f"At least {minimum} files are required, got {count}")
        self.count = count
        self.minimum = minimum


class InvalidDocument(InvalidRequest):
    code = "INVALID_DOCUMENT"


class PathTraversal(InvalidRequest):
    code = "PATH_TRAVERSAL"


class ArtifactNotFound(PdfProcessingError):
    status_code = 404
    code = "NOT_FOUND"


class UploadTooLarge(PdfProcessingError):
    status_code = 413
    code = "PAYLOAD_TOO_LARGE"


# ----------------------------
# Server errors (5xx)
# ----------------------------
class StorageError(PdfProcessingError):
    code = "STORAGE_ERROR"


class ConversionFailure(PdfProcessingError):
    code = "CONVERSION_FAILED"


class PartialOutputError(PdfProcessingError):
    """
    A multi-artifact operation failed midway.

    Artifacts written before the failure are valid standalone files and stay
    on disk; they are listed in ``artifacts`` so the caller can still reach them.
    """

    def __init__(self, message: str, artifacts: Optional[List] = None):
        super().__init__(message)
        self.artifacts = list(artifacts or [])


class AssemblyFailure(PartialOutputError):
    code = "ASSEMBLY_FAILED"


class RenderFailure(PartialOutputError):
    code = "RENDER_FAILED"

    def __init__(self, page: int, reason: str, artifacts: Optional[List] = None):
        super().__init__(f"Failed to render page {page}: {reason}", artifacts)
        self.page = page
