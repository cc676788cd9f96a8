"""Conversion pipeline: one G-code file in, one converted G-code out.

Steps:
    1. Read the file losslessly (line endings and stray bytes preserved)
    2. Scan for thumbnail blocks
    3. Pick the source thumbnail and decode it
    4. Resize to each requested slot and encode as MKS firmware blocks
    5. Splice the blocks into the G-code and write it atomically

A file without a source thumbnail is passed through unchanged: a warning is
logged and an in-place target is not touched at all.

Public API:
    result = convert_file(request)   # → ConversionResult
    result = convert_text(text, request)
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from . import __version__
from .thumbnail import codec, firmware, rewriter, scanner, transform
from .thumbnail.errors import FileNotFound, PreviewError, UnsupportedFormat
from .thumbnail.scanner import BlockKind, ThumbnailBlock
from .utils import fs
from .utils.validators import ConversionRequest

logger = logging.getLogger(__name__)

NOTE_MARKER = "; MKS_TFT_PREVIEW_POSTPROCESS"


@dataclass
class ConversionResult:
    """Outcome of one conversion.

    Attributes
    ----------
    text : str
        Converted G-code (the input text when unchanged)
    changed : bool
        False when no source thumbnail was found
    source : Optional[ThumbnailBlock]
        Thumbnail the previews were generated from
    slots : Dict[str, Tuple[int, int]]
        Generated slots → (width, height)
    """
    text: str
    changed: bool
    source: Optional[ThumbnailBlock] = None
    slots: Dict[str, Tuple[int, int]] = field(default_factory=dict)


def select_source(blocks: Sequence[ThumbnailBlock]) -> ThumbnailBlock:
    """Largest source thumbnail in a supported format.

    Falls back to the largest thumbnail overall when none is supported, so
    decoding reports UnsupportedFormat for it.
    """
    def supported(block: ThumbnailBlock) -> bool:
        try:
            codec.ImageFormat.from_tag(block.tag)
        except UnsupportedFormat:
            return False
        return True

    candidates = [b for b in blocks if supported(b)] or list(blocks)
    return max(candidates, key=lambda b: b.pixel_count)


def postprocess_note(source: ThumbnailBlock, raster_size: Tuple[int, int],
                     request: ConversionRequest) -> List[str]:
    """Comment lines recording what was converted."""
    width, height = raster_size
    return [
        NOTE_MARKER,
        f"; Post processed by mks-tft-preview v{__version__}",
        f";  The original {source.tag} image was removed from here. Its size was {width}x{height}",
        f";  simage = {request.simage_size}",
        f";  gimage = {request.gimage_size}",
    ]


def convert_text(text: str, request: ConversionRequest) -> ConversionResult:
    """Convert G-code text in memory.

    Raises
    ------
    MalformedThumbnail, UnsupportedFormat, CorruptImage
        See the thumbnail stage modules
    """
    path = request.input_path
    lines = scanner.split_lines(text)
    blocks = list(scanner.scan(lines, path=path))
    sources = [b for b in blocks if b.kind is BlockKind.SOURCE]

    if not sources:
        logger.warning("There is no image in the G-code file. Leaving the original content unchanged")
        return ConversionResult(text=text, changed=False)

    source = select_source(sources)
    logger.info(
        f"Using {source.width}x{source.height} {source.tag} thumbnail "
        f"at line {source.start_line + 1} ({len(sources)} found)"
    )

    try:
        raster = codec.decode(source.data, source.tag)
    except PreviewError as e:
        e.path = e.path or path
        e.line = e.line or source.start_line + 1
        raise

    rendered = []
    slots = {}
    for slot, size in ((firmware.Slot.SIMAGE, request.simage_size),
                       (firmware.Slot.GIMAGE, request.gimage_size)):
        if size == 0:
            logger.info(f"{slot.label} disabled, dropping it")
            continue
        resized = transform.resize(raster, size, size, request.resample)
        payload = firmware.encode(resized)
        rendered.append(firmware.render_as_text(payload, slot))
        slots[slot.label] = (payload.width, payload.height)

    note = postprocess_note(source, (raster.width, raster.height), request)
    new_text = rewriter.rewrite(lines, blocks, rendered, note)
    return ConversionResult(text=new_text, changed=True, source=source, slots=slots)


def convert_file(request: ConversionRequest) -> ConversionResult:
    """Convert ``request.input_path`` and write the result.

    Raises
    ------
    FileNotFound
        If the input cannot be read
    MalformedThumbnail, UnsupportedFormat, CorruptImage
        If the source thumbnail cannot be decoded
    WriteFailure
        If the output cannot be written
    """
    path = request.input_path
    logger.info(f"Reading G-code from {path}")
    try:
        text = fs.read_text_lossless(path)
    except OSError as e:
        raise FileNotFound(f"Cannot open G-code file for reading: {e.strerror or e}", path=path) from e

    result = convert_text(text, request)

    if result.changed or not request.in_place:
        rewriter.write_output(result.text, request.output_path)
    return result
