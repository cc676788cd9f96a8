"""Test the image codec adapter.

Tests for mkspreview.thumbnail.codec and raster:
    - PNG/JPEG/TGA decoding into RGBA rasters
    - Uncompressed round trip is lossless (RGB and RGBA sources)
    - Unsupported tags and undecodable bytes raise the right error kinds
    - No format sniffing: PNG bytes under a JPG tag are corrupt

Run:
    pytest tests/test_codec.py -v
"""

import numpy as np
import pytest

from mkspreview.thumbnail import codec
from mkspreview.thumbnail.errors import CorruptImage, UnsupportedFormat
from mkspreview.thumbnail.raster import RasterImage


class TestRasterImage:

    def test_dimensions_and_buffer(self, make_pixels):
        raster = RasterImage(make_pixels(7, 5, 4))
        assert (raster.width, raster.height, raster.channels) == (7, 5, 4)
        assert raster.mode == "RGBA"
        assert len(raster.buffer) == 7 * 5 * 4

    def test_pixels_are_frozen_copy(self, make_pixels):
        pixels = make_pixels(4, 4)
        raster = RasterImage(pixels)
        pixels[0, 0] = 0
        assert raster.pixels.flags.writeable is False
        with pytest.raises(ValueError):
            raster.pixels[0, 0, 0] = 1

    @pytest.mark.parametrize("bad", [
        np.zeros((4, 4), dtype=np.uint8),
        np.zeros((4, 4, 2), dtype=np.uint8),
        np.zeros((0, 4, 3), dtype=np.uint8),
        np.zeros((4, 4, 3), dtype=np.float32),
    ])
    def test_rejects_invalid(self, bad):
        with pytest.raises(ValueError):
            RasterImage(bad)


class TestImageFormat:

    @pytest.mark.parametrize("tag, fmt", [
        ("PNG", codec.ImageFormat.PNG),
        ("png", codec.ImageFormat.PNG),
        ("JPG", codec.ImageFormat.JPEG),
        ("JPEG", codec.ImageFormat.JPEG),
        ("TGA", codec.ImageFormat.TGA),
    ])
    def test_from_tag(self, tag, fmt):
        assert codec.ImageFormat.from_tag(tag) is fmt

    @pytest.mark.parametrize("tag", ["QOI", "BMP", "WEBP", ""])
    def test_unsupported(self, tag):
        with pytest.raises(UnsupportedFormat, match="Unsupported thumbnail format"):
            codec.ImageFormat.from_tag(tag)


class TestDecode:

    def test_png_rgb(self, make_pixels, make_image_bytes):
        raster = codec.decode(make_image_bytes(32, 24), "PNG")
        assert (raster.width, raster.height) == (32, 24)
        assert raster.mode == "RGBA"
        np.testing.assert_array_equal(raster.pixels[..., :3], make_pixels(32, 24))
        assert np.all(raster.pixels[..., 3] == 255)

    def test_png_rgba_keeps_alpha(self, make_pixels, make_image_bytes):
        raster = codec.decode(make_image_bytes(16, 16, channels=4), codec.ImageFormat.PNG)
        np.testing.assert_array_equal(raster.pixels, make_pixels(16, 16, 4))

    def test_jpeg(self, make_image_bytes):
        raster = codec.decode(make_image_bytes(40, 30, fmt="JPEG"), "JPG")
        assert (raster.width, raster.height) == (40, 30)

    def test_unsupported_format(self, make_image_bytes):
        with pytest.raises(UnsupportedFormat):
            codec.decode(make_image_bytes(8, 8), "QOI")

    def test_garbage_is_corrupt(self):
        with pytest.raises(CorruptImage):
            codec.decode(b"definitely not an image", "PNG")

    def test_truncated_png_is_corrupt(self, make_image_bytes):
        png = make_image_bytes(64, 64)
        with pytest.raises(CorruptImage):
            codec.decode(png[:len(png) // 2], "PNG")

    @pytest.mark.parametrize("size", [16, 20000])
    def test_header_without_pixels_is_corrupt(self, make_png_header, size):
        # 20000x20000 is past Pillow's decompression bomb limit
        with pytest.raises(CorruptImage):
            codec.decode(make_png_header(size, size), "PNG")

    def test_no_sniffing(self, make_image_bytes):
        with pytest.raises(CorruptImage):
            codec.decode(make_image_bytes(8, 8), "JPG")


class TestUncompressedRoundTrip:

    @pytest.mark.parametrize("fmt, channels", [("PNG", 3), ("PNG", 4), ("TGA", 4)])
    def test_lossless(self, make_image_bytes, fmt, channels):
        original = codec.decode(make_image_bytes(23, 17, fmt=fmt, channels=channels), fmt)
        restored = codec.decode(codec.encode_uncompressed(original), codec.ImageFormat.TGA)
        assert (restored.width, restored.height) == (original.width, original.height)
        np.testing.assert_array_equal(restored.pixels, original.pixels)

    def test_is_uncompressed_32bit(self, make_pixels):
        raster = RasterImage(make_pixels(10, 6, 3))
        data = codec.encode_uncompressed(raster)
        assert data[2] == 2       # uncompressed true-colour
        assert data[16] == 32     # bits per pixel
        assert len(data) >= 18 + 10 * 6 * 4
