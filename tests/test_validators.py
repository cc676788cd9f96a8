"""Test configuration models and defaults-file loading.

Tests for mkspreview.utils.validators:
    - ConversionRequest defaults, ranges and immutability
    - Output target resolution (in place, other path, stdout)
    - Defaults file loading and rejection of unknown keys

Run:
    pytest tests/test_validators.py -v
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from mkspreview.utils import validators


class TestConversionRequest:

    def test_defaults(self):
        req = validators.ConversionRequest(input_path="part.gcode")
        assert req.input_path == Path("part.gcode")
        assert req.simage_size == 50
        assert req.gimage_size == 200
        assert req.log_level == "WARN"
        assert req.resample == "bilinear"
        assert req.fail_on_error is True

    def test_frozen(self):
        req = validators.ConversionRequest(input_path="part.gcode")
        with pytest.raises(ValidationError):
            req.simage_size = 100

    @pytest.mark.parametrize("field, value", [
        ("simage_size", -1),
        ("simage_size", 256),
        ("gimage_size", 70000),
        ("log_level", "LOUD"),
        ("resample", "hamming"),
        ("log_format", "xml"),
    ])
    def test_rejects_invalid(self, field, value):
        with pytest.raises(ValidationError):
            validators.ConversionRequest(input_path="part.gcode", **{field: value})

    def test_zero_disables_slot(self):
        req = validators.ConversionRequest(input_path="part.gcode", simage_size=0)
        assert req.simage_size == 0

    def test_level_normalized(self):
        req = validators.ConversionRequest(input_path="part.gcode", log_level="debug")
        assert req.log_level == "DEBUG"

    def test_in_place_by_default(self, tmp_path):
        req = validators.ConversionRequest(input_path=tmp_path / "part.gcode")
        assert req.output_path == tmp_path / "part.gcode"
        assert req.in_place
        assert not req.to_stdout

    def test_other_output(self, tmp_path):
        req = validators.ConversionRequest(
            input_path=tmp_path / "part.gcode", output=str(tmp_path / "out.gcode")
        )
        assert req.output_path == tmp_path / "out.gcode"
        assert not req.in_place

    def test_stdout(self, tmp_path):
        req = validators.ConversionRequest(input_path=tmp_path / "part.gcode", output="-")
        assert req.to_stdout
        assert req.output_path is None
        assert not req.in_place


class TestDefaultsFile:

    def test_load(self, tmp_path):
        path = tmp_path / "mks.yaml"
        path.write_text(
            "simage_size: 100\n"
            "resample: Bicubic\n"
            "logging:\n"
            "  level: info\n"
            "  format: json\n"
        )
        defaults = validators.load_defaults(path)
        assert defaults.simage_size == 100
        assert defaults.gimage_size == 200
        assert defaults.resample == "bicubic"
        assert defaults.logging.level == "INFO"
        assert defaults.logging.format == "json"
        assert defaults.logging.file is None

    def test_unknown_key_rejected(self, tmp_path):
        path = tmp_path / "mks.yaml"
        path.write_text("simage: 100\n")
        with pytest.raises(ValueError, match="validation failed"):
            validators.load_defaults(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            validators.load_defaults(tmp_path / "missing.yaml")

    def test_yaml_syntax_error(self, tmp_path):
        path = tmp_path / "mks.yaml"
        path.write_text("simage_size: [1,\n")
        with pytest.raises(ValueError, match="not valid YAML"):
            validators.load_defaults(path)
