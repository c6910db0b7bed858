"""Decoding of note photos with Pillow."""

import io
from pathlib import Path
from typing import Union

from PIL import Image, UnidentifiedImageError


class ImageDecodeError(Exception):
    """Raised when bytes or a file cannot be decoded as an image."""

    pass


def decode_image(data: bytes) -> Image.Image:
    """Decode raw image bytes into a fully loaded Pillow image.

    Raises:
        ImageDecodeError: If the bytes are not a supported image
    """
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError) as e:
        raise ImageDecodeError(f"Cannot decode image ({len(data)} bytes): {e}") from e
    return image


def load_image(path: Union[str, Path]) -> Image.Image:
    """Load and decode an image file picked by the user.

    Raises:
        ImageDecodeError: If the file is missing or not a supported image
    """
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise ImageDecodeError(f"Cannot read image file {path}: {e}") from e
    return decode_image(data)
