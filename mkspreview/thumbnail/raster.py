"""In-memory raster image shared by the codec, transform and firmware stages.

Pixels are a read-only uint8 array of shape (height, width, channels), row
major, with 3 (RGB) or 4 (RGBA) channels. Stages never mutate a raster; they
return new instances.
"""

from dataclasses import dataclass

import numpy as np
from PIL import Image

_MODES = {3: "RGB", 4: "RGBA"}


@dataclass(frozen=True, eq=False)
class RasterImage:
    """Decoded image.

    Parameters
    ----------
    pixels : np.ndarray
        (H, W, 3) or (H, W, 4) uint8 array; copied and frozen on construction

    Raises
    ------
    ValueError
        If shape, dtype or dimensions are invalid
    """
    pixels: np.ndarray

    def __post_init__(self):
        pixels = self.pixels
        if not isinstance(pixels, np.ndarray) or pixels.dtype != np.uint8:
            raise ValueError("pixels must be a uint8 numpy array")
        if pixels.ndim != 3 or pixels.shape[2] not in _MODES:
            raise ValueError(f"pixels must have shape (H, W, 3|4), got {pixels.shape}")
        if pixels.shape[0] <= 0 or pixels.shape[1] <= 0:
            raise ValueError(f"image must be at least 1x1, got {pixels.shape[1]}x{pixels.shape[0]}")

        frozen = np.array(pixels, copy=True, order="C")
        frozen.setflags(write=False)
        object.__setattr__(self, "pixels", frozen)

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    @property
    def channels(self) -> int:
        return self.pixels.shape[2]

    @property
    def mode(self) -> str:
        """Pillow mode name: "RGB" or "RGBA"."""
        return _MODES[self.channels]

    @property
    def buffer(self) -> bytes:
        """Row-major samples, width * height * channels bytes long."""
        return self.pixels.tobytes()

    def copy(self) -> "RasterImage":
        return RasterImage(self.pixels)

    def to_pil(self) -> Image.Image:
        return Image.fromarray(np.array(self.pixels))

    @classmethod
    def from_pil(cls, img: Image.Image, mode: str = "RGBA") -> "RasterImage":
        """Build a raster from a Pillow image, converting to ``mode``."""
        if mode not in _MODES.values():
            raise ValueError(f"mode must be RGB or RGBA, got {mode}")
        if img.mode != mode:
            img = img.convert(mode)
        return cls(np.asarray(img, dtype=np.uint8))

    def __repr__(self) -> str:
        return f"RasterImage({self.width}x{self.height} {self.mode})"
