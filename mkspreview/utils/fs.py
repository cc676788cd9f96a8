"""Atomic filesystem operations for safe G-code rewrites and YAML handling.

Provides:
    - Atomic writes: tmp file → fsync → rename (never truncates the original)
    - Lossless text reads (surrogateescape keeps undecodable bytes intact)
    - YAML load with safe_load
    - Directory creation with exist_ok semantics

Slicers hand us the only copy of the sliced G-code, so every write goes to a
sibling temporary file that replaces the target only once it is complete.

All paths use pathlib.Path for cross-platform compatibility.

Usage:
    from mkspreview.utils import fs
    text = fs.read_text_lossless("part.gcode")
    fs.atomic_write_text("part.gcode", new_text)
"""

import os
import shutil
from pathlib import Path
from typing import Any, Dict, Union

import yaml

# G-code is nominally ASCII; comments may carry anything the slicer saw fit
# to write, so undecodable bytes round-trip through lone surrogates.
TEXT_ENCODING = "utf-8"
TEXT_ERRORS = "surrogateescape"


def ensure_dir(p: Union[str, Path]) -> Path:
    """Create directory if it doesn't exist, return Path object.

    Parameters
    ----------
    p : Union[str, Path]
        Directory path

    Returns
    -------
    Path
        Path object (guaranteed to exist)
    """
    p = Path(p)
    p.mkdir(parents=True, exist_ok=True)
    return p


def atomic_write_bytes(
    path: Union[str, Path],
    data: bytes,
    tmp_suffix: str = ".tmp"
) -> None:
    """Write bytes to file atomically (tmp → fsync → rename).

    Parameters
    ----------
    path : Union[str, Path]
        Target file path
    data : bytes
        Data to write
    tmp_suffix : str
        Temporary file suffix, default ".tmp"

    Raises
    ------
    RuntimeError
        If the temporary file cannot be written or renamed; the target is
        left as it was.

    Notes
    -----
    Uses same directory for tmp file to ensure atomic rename on same filesystem.
    Permission bits of an existing target are copied onto the replacement.
    """
    path = Path(path)
    ensure_dir(path.parent)

    tmp_path = path.with_suffix(path.suffix + tmp_suffix)

    try:
        with open(tmp_path, 'wb') as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())

        if path.exists():
            shutil.copymode(path, tmp_path)

        # Atomic rename (overwrites existing file on POSIX)
        tmp_path.replace(path)
    except Exception as e:
        if tmp_path.exists():
            tmp_path.unlink()
        raise RuntimeError(f"Failed to write {path} atomically: {e}") from e


def atomic_write_text(
    path: Union[str, Path],
    text: str,
    encoding: str = TEXT_ENCODING
) -> None:
    """Write text to file atomically.

    Parameters
    ----------
    path : Union[str, Path]
        Target file path
    text : str
        Text content, written without newline translation
    encoding : str
        Text encoding, default "utf-8"

    Notes
    -----
    Convenience wrapper around atomic_write_bytes. Lone surrogates produced by
    read_text_lossless() are written back as the original bytes.
    """
    atomic_write_bytes(path, text.encode(encoding, TEXT_ERRORS))


def read_text_lossless(path: Union[str, Path], encoding: str = TEXT_ENCODING) -> str:
    """Read a text file without newline translation or decode errors.

    Parameters
    ----------
    path : Union[str, Path]
        File path

    Returns
    -------
    str
        File content; ``\\r``, ``\\r\\n`` and invalid bytes are preserved so
        that writing the string back reproduces the file byte for byte.

    Raises
    ------
    FileNotFoundError
        If file doesn't exist
    """
    return Path(path).read_bytes().decode(encoding, TEXT_ERRORS)


def load_yaml(path: Union[str, Path]) -> Dict[str, Any]:
    """Load YAML file safely.

    Parameters
    ----------
    path : Union[str, Path]
        YAML file path

    Returns
    -------
    Dict[str, Any]
        Parsed YAML content; an empty document yields an empty dict

    Raises
    ------
    FileNotFoundError
        If file doesn't exist
    yaml.YAMLError
        If YAML parsing fails

    Notes
    -----
    Uses safe_load to prevent arbitrary code execution.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"YAML file not found: {path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise yaml.YAMLError(f"Failed to parse YAML file {path}: {e}") from e
