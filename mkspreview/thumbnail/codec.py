"""Image codec adapter: slicer thumbnail bytes ↔ RasterImage.

Supported formats form a closed set (ImageFormat):
    - PNG   (``; thumbnail begin`` / ``; thumbnail_PNG begin``)
    - JPEG  (``; thumbnail_JPG begin``)
    - TGA   uncompressed 32-bit BGRA, the lossless interchange format

The format tag written by the slicer is trusted: bytes are only parsed with
the decoder for that tag, there is no sniffing. Decoded rasters are always
RGBA so that every format yields the same sample layout.

Usage:
    from mkspreview.thumbnail import codec
    raster = codec.decode(png_bytes, "PNG")
    tga_bytes = codec.encode_uncompressed(raster)
"""

import io
import logging
from enum import Enum
from typing import Union

from PIL import Image, UnidentifiedImageError

from .errors import CorruptImage, UnsupportedFormat
from .raster import RasterImage

logger = logging.getLogger(__name__)


class ImageFormat(Enum):
    """Supported thumbnail encodings (value is the Pillow format name)."""
    PNG = "PNG"
    JPEG = "JPEG"
    TGA = "TGA"

    @classmethod
    def from_tag(cls, tag: str) -> "ImageFormat":
        """Resolve a slicer format tag (e.g. "PNG", "JPG").

        Raises
        ------
        UnsupportedFormat
            If the tag is not in the supported set (e.g. "QOI")
        """
        try:
            return _TAGS[tag.upper()]
        except KeyError:
            raise UnsupportedFormat(
                f"Unsupported thumbnail format '{tag}'. "
                f"Supported: {', '.join(sorted(_TAGS))}"
            ) from None


_TAGS = {
    "PNG": ImageFormat.PNG,
    "JPG": ImageFormat.JPEG,
    "JPEG": ImageFormat.JPEG,
    "TGA": ImageFormat.TGA,
}


def decode(data: bytes, fmt: Union[ImageFormat, str]) -> RasterImage:
    """Decode image bytes under the declared format.

    Parameters
    ----------
    data : bytes
        Raw image file bytes (already base64-decoded)
    fmt : Union[ImageFormat, str]
        Format member or slicer tag

    Returns
    -------
    RasterImage
        RGBA raster

    Raises
    ------
    UnsupportedFormat
        If ``fmt`` is outside the supported set
    CorruptImage
        If the bytes do not parse as ``fmt``
    """
    if not isinstance(fmt, ImageFormat):
        fmt = ImageFormat.from_tag(fmt)

    logger.debug(f"Decoding {len(data)} bytes as {fmt.value}")
    try:
        with Image.open(io.BytesIO(data), formats=[fmt.value]) as img:
            img.load()
            raster = RasterImage.from_pil(img, "RGBA")
    except (UnidentifiedImageError, Image.DecompressionBombError,
            OSError, SyntaxError, ValueError, EOFError) as e:
        raise CorruptImage(f"Cannot decode {fmt.value} image: {e}") from e

    logger.debug(f"{raster.width}x{raster.height} {fmt.value} image has been decoded")
    return raster


def encode_uncompressed(raster: RasterImage) -> bytes:
    """Encode a raster as uncompressed 32-bit TGA (lossless).

    Parameters
    ----------
    raster : RasterImage
        Image to encode; RGB rasters are widened to opaque RGBA

    Returns
    -------
    bytes
        TGA file bytes, decodable with ``decode(data, ImageFormat.TGA)``
    """
    img = raster.to_pil()
    if img.mode != "RGBA":
        img = img.convert("RGBA")

    buf = io.BytesIO()
    img.save(buf, format=ImageFormat.TGA.value)
    return buf.getvalue()
