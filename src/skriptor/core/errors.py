"""Error taxonomy for the ingestion pipeline.

Fatal errors abort a request: ConfigurationError, DownloadError, DecodeError
and PersistenceError. The remaining ones are raised and caught inside a stage
so a single bad image or a model outage degrades the result instead.
"""

from typing import Optional


class SkriptorError(Exception):
    """Base class for all pipeline errors."""

    stage: str = "pipeline"

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.context = context

    def __str__(self) -> str:
        message = super().__str__()
        if not self.context:
            return message
        details = ", ".join(f"{key}={value}" for key, value in sorted(self.context.items()))
        return f"{message} ({details})"


class ConfigurationError(SkriptorError):
    """Missing storage, database or model credentials."""

    stage = "configuration"


class DownloadError(SkriptorError):
    """Source PDF bytes could not be fetched."""

    stage = "download"


class DecodeError(SkriptorError):
    """Bytes are not a readable PDF (corrupt, unsupported or encrypted)."""

    stage = "decode"


class PageRangeError(SkriptorError):
    """A page number outside ``[1, page_count]`` was requested."""

    stage = "decode"

    def __init__(self, page_number: int, page_count: int):
        super().__init__(
            f"Page {page_number} out of range",
            page_number=page_number,
            page_count=page_count,
        )
        self.page_number = page_number
        self.page_count = page_count


class ImageConversionError(SkriptorError):
    """Raw pixel buffer could not be re-encoded."""

    stage = "image_conversion"


class ImageUploadError(SkriptorError):
    """One encoded image could not be uploaded to the blob store."""

    stage = "image_upload"


class StructuringError(SkriptorError):
    """Model call failed or returned an unusable document."""

    stage = "structuring"


class PersistenceError(SkriptorError):
    """A batch write against the relational store failed."""

    stage = "persistence"

    def __init__(self, message: str, cause: Optional[BaseException] = None, **context):
        super().__init__(message, **context)
        self.cause = cause
