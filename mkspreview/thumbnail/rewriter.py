"""File rewriter: splice firmware blocks into G-code and persist it.

Layout of the rewritten file:
    1. Rendered firmware blocks (simage, then gimage). The firmware only
       looks for previews at the very start of the file.
    2. The original G-code with every located block removed. The
       post-processing note takes the place of the first source thumbnail,
       and OrcaSlicer ``THUMBNAIL_BLOCK_START`` / ``END`` wrappers emptied
       by the removal go with it.

The text is assembled completely in memory before anything is written, and
files are replaced via fs.atomic_write_text(), so a failure never leaves a
truncated G-code behind.
"""

import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence, Set

from ..utils import fs
from . import firmware
from .errors import WriteFailure
from .scanner import WRAPPER_END, WRAPPER_START, BlockKind, ThumbnailBlock

logger = logging.getLogger(__name__)


def detect_newline(lines: Sequence[str]) -> str:
    """Line ending of the first terminated line ("\\n" if none)."""
    for line in lines:
        if line.endswith("\r\n"):
            return "\r\n"
        if line.endswith("\n"):
            return "\n"
    return "\n"


def _is_blank_comment(line: str) -> bool:
    return line.strip() in ("", ";")


def _emptied_wrappers(lines: Sequence[str], removed: Set[int]) -> Set[int]:
    """Lines of wrapper pairs that hold nothing but removed or blank lines."""
    extra = set()
    n = len(lines)
    i = 0
    while i < n:
        if i in removed or WRAPPER_START not in lines[i] or not lines[i].lstrip().startswith(";"):
            i += 1
            continue
        j = i + 1
        touched = False
        while j < n and (j in removed or _is_blank_comment(lines[j])):
            touched = touched or j in removed
            j += 1
        if touched and j < n and WRAPPER_END in lines[j]:
            extra.update(range(i, j + 1))
            i = j + 1
        else:
            i += 1
    return extra


def rewrite(
    lines: Sequence[str],
    blocks: Sequence[ThumbnailBlock],
    rendered: Sequence[Sequence[str]],
    note: Sequence[str] = (),
) -> str:
    """Build the converted G-code text.

    Parameters
    ----------
    lines : Sequence[str]
        Original G-code lines with line endings
    blocks : Sequence[ThumbnailBlock]
        Every located block; all of them are removed
    rendered : Sequence[Sequence[str]]
        Firmware blocks from firmware.render_as_text(), in output order
    note : Sequence[str]
        Comment lines (without endings) placed where the first source
        thumbnail was

    Returns
    -------
    str
        New G-code text
    """
    removed: Set[int] = set()
    for block in blocks:
        removed.update(block.line_span)
    removed |= _emptied_wrappers(lines, removed)

    anchor: Optional[int] = None
    sources = [b for b in blocks if b.kind is BlockKind.SOURCE]
    if sources and note:
        anchor = min(b.start_line for b in sources)
        while anchor - 1 in removed:
            anchor -= 1

    newline = detect_newline(lines)
    out: List[str] = [firmware.join_block(block) for block in rendered]
    for i, line in enumerate(lines):
        if i == anchor:
            out.extend(f"{note_line}{newline}" for note_line in note)
        if i not in removed:
            out.append(line)

    logger.debug(
        f"Removed {len(removed)} lines, added {len(rendered)} firmware blocks"
    )
    return "".join(out)


def write_output(text: str, target: Optional[Path]) -> None:
    """Persist converted G-code.

    Parameters
    ----------
    text : str
        Complete file content
    target : Optional[Path]
        File to replace atomically, or None for standard output

    Raises
    ------
    WriteFailure
        If the content cannot be written; an existing target is untouched
    """
    if target is None:
        logger.debug("Writing G-code to standard output")
        try:
            sys.stdout.flush()
            sys.stdout.buffer.write(text.encode(fs.TEXT_ENCODING, fs.TEXT_ERRORS))
            sys.stdout.buffer.flush()
        except OSError as e:
            raise WriteFailure(f"Failed to write G-code to standard output: {e}") from e
        return

    logger.debug(f"Writing G-code with converted image back to {target}")
    try:
        fs.atomic_write_text(target, text)
    except RuntimeError as e:
        raise WriteFailure(f"Failed to write G-code: {e.__cause__ or e}", path=target) from e
