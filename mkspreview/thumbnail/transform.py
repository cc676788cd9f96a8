"""Image transform stage: resize a raster to an exact firmware slot size.

Target dimensions are applied exactly; the aspect ratio is not preserved
because the display slots are fixed squares. Scaling uses Pillow's resampling
filters, which are deterministic for a given input, filter and size. The
default is bilinear.
"""

import logging

from PIL import Image

from .raster import RasterImage

logger = logging.getLogger(__name__)

_FILTERS = {
    "nearest": Image.Resampling.NEAREST,
    "bilinear": Image.Resampling.BILINEAR,
    "bicubic": Image.Resampling.BICUBIC,
    "lanczos": Image.Resampling.LANCZOS,
}


def resize(
    raster: RasterImage,
    width: int,
    height: int,
    resample: str = "bilinear",
) -> RasterImage:
    """Resize to exactly ``width`` x ``height``.

    Parameters
    ----------
    raster : RasterImage
        Source image
    width, height : int
        Target dimensions in pixels (> 0)
    resample : str
        One of "nearest", "bilinear", "bicubic", "lanczos"

    Returns
    -------
    RasterImage
        New raster with the same channel count; an identical copy when the
        source already has the target size

    Raises
    ------
    ValueError
        On non-positive dimensions or an unknown filter name
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Target size must be positive, got {width}x{height}")
    try:
        pil_filter = _FILTERS[resample.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown resample filter: {resample}. Use one of {', '.join(_FILTERS)}"
        ) from None

    if (raster.width, raster.height) == (width, height):
        return raster.copy()

    logger.debug(
        f"Resizing {raster.width}x{raster.height} → {width}x{height} ({resample})"
    )
    resized = raster.to_pil().resize((width, height), pil_filter)
    return RasterImage.from_pil(resized, raster.mode)
