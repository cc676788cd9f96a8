"""Error kinds raised while converting a G-code preview.

Every error carries the file path and, where it applies, the 1-based line
number of the offending block so the CLI can log it with context. Nothing is
retried: the slicer invokes the tool once per export.
"""

from pathlib import Path
from typing import Optional, Union


class PreviewError(Exception):
    """Base class for all conversion failures."""

    def __init__(
        self,
        message: str,
        path: Optional[Union[str, Path]] = None,
        line: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.path = Path(path) if path is not None else None
        self.line = line

    def __str__(self) -> str:
        where = []
        if self.path is not None:
            where.append(str(self.path))
        if self.line is not None:
            where.append(f"line {self.line}")
        if where:
            return f"{self.message} ({', '.join(where)})"
        return self.message


class FileNotFound(PreviewError):
    """Input G-code file does not exist or cannot be read."""


class MalformedThumbnail(PreviewError, ValueError):
    """Thumbnail block is truncated, undecodable or has the wrong length."""


class UnsupportedFormat(PreviewError, ValueError):
    """Image format tag is outside the supported set."""


class CorruptImage(PreviewError, ValueError):
    """Image bytes do not parse under their declared format."""


class WriteFailure(PreviewError):
    """Converted G-code could not be persisted."""
