"""Shared fixtures: synthetic images and slicer-style G-code."""

import base64
import io
import logging
import struct
import sys
import zlib

import numpy as np
import pytest
from PIL import Image

from mkspreview.utils import logging_config

GCODE_HEADER = "; generated by PrusaSlicer 2.7.1 on 2025-10-28 at 13:45:12 UTC\n\n"
GCODE_BODY = (
    "; external perimeters extrusion width = 0.45mm\n"
    "M73 P0 R12\n"
    "M107\n"
    "G90 ; use absolute coordinates\n"
    "G28 ; home all axes\n"
    "G1 Z0.2 F720\n"
    "G1 X10 Y10 E0.5 F1200\n"
    "; filament used [mm] = 123.45\n"
)


@pytest.fixture(autouse=True)
def _restore_logging():
    """Undo root logger changes made by setup_logging()."""
    root = logging.getLogger()
    level = root.level
    hook = sys.excepthook
    yield
    for handler in list(logging_config._installed_handlers):
        root.removeHandler(handler)
        handler.close()
    logging_config._installed_handlers.clear()
    logging_config.pop_context()
    root.setLevel(level)
    sys.excepthook = hook


@pytest.fixture
def make_pixels():
    """Factory: deterministic random (H, W, C) uint8 array."""
    def _make(width, height, channels=3, seed=0):
        rng = np.random.default_rng(seed)
        return rng.integers(0, 256, size=(height, width, channels), dtype=np.uint8)
    return _make


@pytest.fixture
def make_image_bytes(make_pixels):
    """Factory: encoded image file bytes (PNG by default)."""
    def _make(width, height, fmt="PNG", channels=3, seed=0):
        img = Image.fromarray(make_pixels(width, height, channels, seed))
        buf = io.BytesIO()
        img.save(buf, format=fmt)
        return buf.getvalue()
    return _make


@pytest.fixture
def make_png_header():
    """Factory: PNG that declares width x height but carries no pixel data."""
    def _chunk(cid, body):
        return struct.pack(">I", len(body)) + cid + body + struct.pack(">I", zlib.crc32(cid + body))

    def _make(width, height):
        ihdr = struct.pack(">IIBBBBB", width, height, 8, 2, 0, 0, 0)
        return (
            b"\x89PNG\r\n\x1a\n"
            + _chunk(b"IHDR", ihdr)
            + _chunk(b"IDAT", zlib.compress(b""))
            + _chunk(b"IEND", b"")
        )
    return _make


@pytest.fixture
def make_thumbnail_block():
    """Factory: PrusaSlicer-style thumbnail comment block (with newlines)."""
    def _make(data, width, height, tag=None, declared=None, wrap=78, newline="\n"):
        encoded = base64.b64encode(data).decode("ascii")
        if declared is None:
            declared = len(encoded)
        name = f"thumbnail_{tag}" if tag else "thumbnail"
        lines = [f"; {name} begin {width}x{height} {declared}"]
        lines += [f"; {encoded[i:i + wrap]}" for i in range(0, len(encoded), wrap)]
        lines.append(f"; {name} end")
        lines.append(";")
        return newline.join(lines) + newline
    return _make


@pytest.fixture
def make_gcode(make_thumbnail_block):
    """Factory: G-code file content around zero or more thumbnail blocks."""
    def _make(*blocks, orca_wrapper=False):
        body = ""
        for block in blocks:
            if orca_wrapper:
                block = f"; THUMBNAIL_BLOCK_START\n{block}; THUMBNAIL_BLOCK_END\n"
            body += block + "\n"
        return GCODE_HEADER + body + GCODE_BODY
    return _make


@pytest.fixture
def png_gcode(make_image_bytes, make_thumbnail_block, make_gcode):
    """G-code with a single 200x200 PNG thumbnail."""
    png = make_image_bytes(200, 200)
    return make_gcode(make_thumbnail_block(png, 200, 200))
