"""
Binary Image Loading
====================

The image pushed to the target is a raw binary (e.g. kernel8.img) read
in full before any byte is sent. It is loaded again from disk for every
session attempt; nothing is cached between attempts.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Final, Union

from bootpush.errors import ImageError

logger = logging.getLogger(__name__)

# Largest image the 32-bit little-endian length field can describe
MAX_IMAGE_SIZE: Final[int] = 0xFFFFFFFF


@dataclass(frozen=True)
class BinaryImage:
    """
    Immutable binary image and the file it came from.

    Attributes:
        data: Image contents
        path: Source file
    """

    data: bytes
    path: Path

    @property
    def length(self) -> int:
        """Image size in bytes."""
        return len(self.data)

    @classmethod
    def load(cls, path: Union[str, Path]) -> "BinaryImage":
        """
        Read an image file in full.

        Raises:
            FileNotFoundError: If the file does not exist.
            ImageError: If the path is not a file or the image is too large.
        """
        path = Path(path)
        if path.exists() and not path.is_file():
            raise ImageError("not a regular file", path=str(path))

        data = path.read_bytes()
        if len(data) > MAX_IMAGE_SIZE:
            raise ImageError(
                f"image is {len(data)} bytes, larger than the {MAX_IMAGE_SIZE} byte limit",
                path=str(path),
            )

        logger.debug("Loaded %s (%d bytes)", path, len(data))
        return cls(data=data, path=path)

    def __repr__(self) -> str:
        return f"BinaryImage({str(self.path)!r}, {self.length} bytes)"
