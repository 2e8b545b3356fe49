"""Local persistence for downloaded content."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol, Union

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class Storage(Protocol):
    def write(self, path: PathLike, content: bytes) -> None:
        ...


class FileStorage:
    """Write bytes to the filesystem. Parent directories must already exist."""

    def write(self, path: PathLike, content: bytes) -> None:
        target = Path(path)
        target.write_bytes(content)
        logger.debug("wrote %d bytes -> %s", len(content), target)


__all__ = ["Storage", "FileStorage", "PathLike"]
