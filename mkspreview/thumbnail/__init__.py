"""Thumbnail conversion stages.

    scanner   → locate and decode thumbnail blocks in G-code
    codec     → image bytes ↔ RasterImage
    transform → resize to the firmware slot size
    firmware  → RGB565 payload and MKS text rendering
    rewriter  → splice blocks into G-code, atomic write
"""

from . import codec, firmware, rewriter, scanner, transform
from .errors import (
    CorruptImage,
    FileNotFound,
    MalformedThumbnail,
    PreviewError,
    UnsupportedFormat,
    WriteFailure,
)
from .raster import RasterImage

__all__ = [
    'codec',
    'firmware',
    'rewriter',
    'scanner',
    'transform',
    'RasterImage',
    'PreviewError',
    'FileNotFound',
    'MalformedThumbnail',
    'UnsupportedFormat',
    'CorruptImage',
    'WriteFailure',
]
