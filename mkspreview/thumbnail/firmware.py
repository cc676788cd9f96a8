"""MKS TFT firmware preview format.

The MKS TFT24/28/32/35 firmware reads two previews from the start of a
G-code file:

    ;simage:<row 0 hex>            small image, file list
    M10086 ;<row 1 hex>
    ...
    M10086 ;<row H-1 hex>
    M10086 ;
    ;;gimage:<row 0 hex>           large image, print screen
    ...

Pixels are RGB565 (5 bits red, 6 green, 5 blue) stored little-endian, so
pure red 0xF800 is written as ``00f8``. Rows after the first are separated by
``\\r`` and the closing ``M10086 ;`` sits on its own ``\\n`` line. This byte
layout is what the firmware parser accepts; it is reproduced as is.

The firmware does not read a width, height or checksum: the slot prefix
selects the display area and each row is one hex line. ``encode`` /
``decode`` are a pure pair over FirmwarePayload; ``render_as_text`` and
``parse_rows`` convert between payloads and G-code lines.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, Sequence

import numpy as np

from .raster import RasterImage

logger = logging.getLogger(__name__)

TERMINATOR = "M10086 ;"
ROW_SEPARATOR = "\r"
BYTES_PER_PIXEL = 2


class Slot(Enum):
    """Display slot; value is the G-code prefix before the first ':'."""
    SIMAGE = ";simage"
    GIMAGE = ";;gimage"

    @property
    def label(self) -> str:
        return self.value.lstrip(";")


@dataclass(frozen=True)
class FirmwarePayload:
    """RGB565 little-endian pixel bytes, row-major.

    Raises
    ------
    ValueError
        If ``data`` is not exactly ``width * height * 2`` bytes long
    """
    width: int
    height: int
    data: bytes

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"payload must be at least 1x1, got {self.width}x{self.height}")
        if len(self.data) != self.declared_size:
            raise ValueError(
                f"{self.width}x{self.height} payload needs {self.declared_size} bytes, "
                f"got {len(self.data)}"
            )

    @property
    def declared_size(self) -> int:
        return self.width * self.height * BYTES_PER_PIXEL

    def rows(self) -> Iterator[bytes]:
        stride = self.width * BYTES_PER_PIXEL
        for offset in range(0, len(self.data), stride):
            yield self.data[offset:offset + stride]


def encode(raster: RasterImage) -> FirmwarePayload:
    """Pack a raster into RGB565 little-endian. Alpha is ignored."""
    rgb = raster.pixels[..., :3].astype(np.uint16)
    color = ((rgb[..., 0] >> 3) << 11) | ((rgb[..., 1] >> 2) << 5) | (rgb[..., 2] >> 3)
    return FirmwarePayload(raster.width, raster.height, color.astype("<u2").tobytes())


def decode(payload: FirmwarePayload) -> RasterImage:
    """Expand RGB565 back to an RGB raster (low bits filled by replication)."""
    color = np.frombuffer(payload.data, dtype="<u2").reshape(payload.height, payload.width)
    r = (color >> 11) & 0x1F
    g = (color >> 5) & 0x3F
    b = color & 0x1F
    rgb = np.stack(
        [(r << 3) | (r >> 2), (g << 2) | (g >> 4), (b << 3) | (b >> 2)],
        axis=-1,
    )
    return RasterImage(rgb.astype(np.uint8))


def render_as_text(payload: FirmwarePayload, slot: Slot) -> List[str]:
    """Render a payload as G-code lines (without line endings).

    The first row shares the line with the slot prefix, every further row is
    prefixed with ``M10086 ;`` and a bare ``M10086 ;`` closes the block.
    """
    logger.debug(
        f"Creating {slot.label} block of size {payload.width}x{payload.height}"
    )
    rows = [row.hex() for row in payload.rows()]
    lines = [f"{slot.value}:{rows[0]}"]
    lines.extend(f"{TERMINATOR}{row}" for row in rows[1:])
    lines.append(TERMINATOR)
    return lines


def join_block(lines: Sequence[str]) -> str:
    """Join rendered lines with the separators the firmware expects."""
    return ROW_SEPARATOR.join(lines[:-1]) + "\n" + lines[-1] + "\n"


def parse_rows(hex_rows: Sequence[str]) -> FirmwarePayload:
    """Rebuild a payload from the hex rows of a rendered block.

    Raises
    ------
    ValueError
        If rows are empty, ragged, odd-length or not hexadecimal
    """
    if not hex_rows or not hex_rows[0]:
        raise ValueError("block has no pixel rows")
    row_len = len(hex_rows[0])
    if row_len % (2 * BYTES_PER_PIXEL):
        raise ValueError(f"row length {row_len} is not a whole number of pixels")
    for i, row in enumerate(hex_rows):
        if len(row) != row_len:
            raise ValueError(f"row {i} has {len(row)} hex digits, expected {row_len}")
    data = bytes.fromhex("".join(hex_rows))
    return FirmwarePayload(row_len // (2 * BYTES_PER_PIXEL), len(hex_rows), data)
