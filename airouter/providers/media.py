"""
Media persistence for generated images, audio and video.

Adapters hand raw bytes or base64 strings to save_media(); this module owns
file naming and directory creation.
"""

from __future__ import annotations

import base64
import time
from pathlib import Path, PurePath
from typing import Optional, Tuple, Union

from airouter.observability.logging import get_logger

logger = get_logger(__name__)

DEFAULT_OUTPUT_DIR = "./output"
DEFAULT_FILENAME_PATTERN = "{type}_{timestamp}"


def _timestamp() -> str:
    return str(int(time.time() * 1000))


def save_media(
    data: Union[bytes, str],
    directory: Union[str, Path] = DEFAULT_OUTPUT_DIR,
    filename: Optional[str] = None,
    media_type: str = "file",
    format: str = "bin",
) -> Path:
    """
    Write generated media to disk.

    Args:
        data: Raw bytes, or a base64 string which is decoded first
        directory: Target directory, created if missing
        filename: File name; defaults to ``{media_type}_{timestamp}.{format}``
        media_type: Kind of media used in the default name (image, audio, video)
        format: Extension used in the default name

    Returns:
        Path of the written file
    """
    payload = base64.b64decode(data) if isinstance(data, str) else data
    target_dir = Path(directory)
    target_dir.mkdir(parents=True, exist_ok=True)

    name = filename or f"{media_type}_{_timestamp()}.{format}"
    path = target_dir / name
    path.write_bytes(payload)

    logger.info("media_saved", path=str(path), bytes=len(payload), media_type=media_type)
    return path


def split_output_path(
    output_path: Optional[str], default_directory: str = DEFAULT_OUTPUT_DIR
) -> Tuple[str, Optional[str]]:
    """Split a user supplied output path into (directory, filename).

    Without an output path the default directory is used and the filename is
    left to save_media().
    """
    if not output_path:
        return default_directory, None
    path = PurePath(output_path)
    directory = str(path.parent) if str(path.parent) else "."
    return directory, path.name


def indexed_filename(filename: Optional[str], index: int, total: int) -> Optional[str]:
    """
    Name for result ``index`` out of ``total``.

    A single result keeps the exact name. Several results get ``_<index>``
    inserted before the extension (or appended when there is none).

    Example:
        >>> indexed_filename("cat.png", 1, 3)
        'cat_1.png'
    """
    if filename is None or total <= 1:
        return filename
    path = PurePath(filename)
    if path.suffix:
        return f"{path.stem}_{index}{path.suffix}"
    return f"{filename}_{index}"


def get_output_path(
    directory: str,
    pattern: str,
    media_type: str,
    extension: str,
) -> str:
    """Build an output path from the configured directory and filename pattern."""
    stem = pattern.replace("{type}", media_type).replace("{timestamp}", _timestamp())
    return str(Path(directory) / f"{stem}.{extension}")


__all__ = [
    "DEFAULT_OUTPUT_DIR",
    "DEFAULT_FILENAME_PATTERN",
    "save_media",
    "split_output_path",
    "indexed_filename",
    "get_output_path",
]
