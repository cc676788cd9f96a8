"""G-code thumbnail scanner.

Locates embedded preview blocks in G-code and decodes their payloads.

Source blocks (written by PrusaSlicer, OrcaSlicer, SuperSlicer, Cura):

    ; thumbnail begin 300x300 13512
    ; iVBORw0KGgoAAAANSUhEUgAAASwAAAEsCAYAAAB5fY51AAAgAElEQVR4nOy9...
    ; ...
    ; thumbnail end

    ; thumbnail_JPG begin 300x300 9876
    ; ...
    ; thumbnail_JPG end

The size may also be written as ``300 300``. The declared length is the
base64 character count in PrusaSlicer and derivatives; it is accepted when it
matches either the encoded character count or the decoded byte count.
OrcaSlicer wraps blocks in ``; THUMBNAIL_BLOCK_START`` /
``; THUMBNAIL_BLOCK_END`` comments, which are left to the rewriter.

Firmware blocks (written by this tool on an earlier run) use the MKS layout
described in ``firmware``; they are reported so that a rerun replaces them
instead of stacking new ones on top. An incomplete one (no closing line,
ragged rows) is only warned about and left where it is.

Public API:
    lines = split_lines(text)
    for block in scan(lines, path="part.gcode"):
        ...
"""

import base64
import binascii
import logging
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Union

from . import firmware
from .errors import MalformedThumbnail

logger = logging.getLogger(__name__)

SOURCE_BEGIN = re.compile(
    r"^;\s*thumbnail(?:_(?P<tag>[A-Za-z0-9]+))?\s+begin\s+"
    r"(?P<width>\d+)(?:x|\s+)(?P<height>\d+)\s+(?P<length>\d+)\s*$"
)
FIRMWARE_BEGIN = re.compile(r"^(?P<prefix>;;gimage|;simage):(?P<hex>[0-9A-Fa-f]*)\s*$")
FIRMWARE_ROW = re.compile(r"^M10086 ;(?P<hex>[0-9A-Fa-f]*)\s*$")

WRAPPER_START = "THUMBNAIL_BLOCK_START"
WRAPPER_END = "THUMBNAIL_BLOCK_END"

DEFAULT_TAG = "PNG"


class BlockKind(Enum):
    SOURCE = "source"
    FIRMWARE = "firmware"


@dataclass(frozen=True)
class ThumbnailBlock:
    """A located thumbnail block.

    Attributes
    ----------
    kind : BlockKind
        Slicer source block or MKS firmware block
    start_line, end_line : int
        0-based indices of the first and last line of the block (inclusive)
    width, height : int
        Declared (source) or measured (firmware) dimensions
    declared_length : int
        Length from the begin marker; payload size for firmware blocks
    tag : str
        Format tag for source blocks ("PNG", "JPG", ...), slot label for
        firmware blocks ("simage", "gimage")
    data : bytes
        Decoded payload (image file bytes or RGB565 pixels)
    """
    kind: BlockKind
    start_line: int
    end_line: int
    width: int
    height: int
    declared_length: int
    tag: str
    data: bytes

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    @property
    def line_span(self) -> range:
        return range(self.start_line, self.end_line + 1)

    @property
    def slot(self) -> Optional[firmware.Slot]:
        if self.kind is not BlockKind.FIRMWARE:
            return None
        return firmware.Slot.SIMAGE if self.tag == "simage" else firmware.Slot.GIMAGE

    def payload(self) -> firmware.FirmwarePayload:
        """Firmware payload of an MKS block."""
        if self.kind is not BlockKind.FIRMWARE:
            raise ValueError("only firmware blocks carry a firmware payload")
        return firmware.FirmwarePayload(self.width, self.height, self.data)


def split_lines(text: str) -> List[str]:
    """Split G-code text into lines, keeping line endings.

    ``"".join(split_lines(text)) == text`` always holds. A lone ``\\r`` ends a
    line, which is how MKS rows are separated.
    """
    return text.splitlines(keepends=True)


def _strip_eol(line: str) -> str:
    return line.rstrip("\r\n")


def _end_pattern(tag: Optional[str]) -> re.Pattern:
    suffix = f"_{re.escape(tag)}" if tag else ""
    return re.compile(rf"^;\s*thumbnail{suffix}\s+end\s*$")


def scan(
    lines: Sequence[str],
    path: Optional[Union[str, Path]] = None,
) -> Iterator[ThumbnailBlock]:
    """Yield thumbnail blocks in file order.

    Parameters
    ----------
    lines : Sequence[str]
        G-code lines (see split_lines)
    path : Union[str, Path], optional
        File path, used for error context only

    Yields
    ------
    ThumbnailBlock
        Located blocks; nothing when the file carries no preview

    Raises
    ------
    MalformedThumbnail
        When a source block has no end marker, an undecodable body or a
        declared length that disagrees with its content. Incomplete MKS
        blocks are logged and skipped instead.
    """
    i = 0
    n = len(lines)
    while i < n:
        text = _strip_eol(lines[i])

        match = SOURCE_BEGIN.match(text)
        if match:
            block = _read_source_block(lines, i, match, path)
            yield block
            i = block.end_line + 1
            continue

        match = FIRMWARE_BEGIN.match(text)
        if match:
            block = _read_firmware_block(lines, i, match)
            if block is None:
                i += 1
                continue
            yield block
            i = block.end_line + 1
            continue

        i += 1


def _read_source_block(
    lines: Sequence[str],
    start: int,
    match: re.Match,
    path: Optional[Union[str, Path]],
) -> ThumbnailBlock:
    tag = match.group("tag")
    width = int(match.group("width"))
    height = int(match.group("height"))
    declared = int(match.group("length"))
    end_re = _end_pattern(tag)
    logger.debug(f"Thumbnail begin found at line {start + 1}: {width}x{height} {tag or DEFAULT_TAG}")

    parts = []
    end = None
    for j in range(start + 1, len(lines)):
        text = _strip_eol(lines[j])
        if end_re.match(text):
            end = j
            break
        stripped = text.strip()
        if not stripped:
            continue
        if not stripped.startswith(";"):
            # Slicers comment every payload line; code means the end was lost
            break
        parts.append(stripped.lstrip(";").strip())

    if end is None:
        raise MalformedThumbnail(
            "Thumbnail block has no end marker", path=path, line=start + 1
        )

    encoded = "".join(parts)
    try:
        data = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise MalformedThumbnail(
            f"Cannot base64 decode thumbnail: {e}", path=path, line=start + 1
        ) from e

    if declared not in (len(data), len(encoded)):
        raise MalformedThumbnail(
            f"Thumbnail declares {declared} bytes but holds {len(data)} bytes "
            f"({len(encoded)} base64 characters)",
            path=path,
            line=start + 1,
        )

    return ThumbnailBlock(
        kind=BlockKind.SOURCE,
        start_line=start,
        end_line=end,
        width=width,
        height=height,
        declared_length=declared,
        tag=(tag or DEFAULT_TAG).upper(),
        data=data,
    )


def _read_firmware_block(
    lines: Sequence[str],
    start: int,
    match: re.Match,
) -> Optional[ThumbnailBlock]:
    """Read an MKS block left by an earlier run; None if it is incomplete."""
    slot = firmware.Slot(match.group("prefix"))
    rows = [match.group("hex")]
    end = None
    for j in range(start + 1, len(lines)):
        row = FIRMWARE_ROW.match(_strip_eol(lines[j]))
        if row is None:
            break
        if not row.group("hex"):
            end = j
            break
        rows.append(row.group("hex"))

    if end is None:
        logger.warning(
            f"Ignoring {slot.label} block at line {start + 1}: "
            f"no closing '{firmware.TERMINATOR}' line"
        )
        return None

    try:
        payload = firmware.parse_rows(rows)
    except ValueError as e:
        logger.warning(f"Ignoring invalid {slot.label} block at line {start + 1}: {e}")
        return None

    logger.debug(
        f"{slot.label} block found at line {start + 1}: {payload.width}x{payload.height}"
    )
    return ThumbnailBlock(
        kind=BlockKind.FIRMWARE,
        start_line=start,
        end_line=end,
        width=payload.width,
        height=payload.height,
        declared_length=payload.declared_size,
        tag=slot.label,
        data=payload.data,
    )
