"""Image helpers shared by the encoder, compositors and CLI."""

import io
import os
from enum import Enum

from PIL import Image


class VerifyResult(Enum):
    """Result of QR scannability verification."""
    SCANNABLE = "scannable"
    NOT_SCANNABLE = "not_scannable"
    SKIPPED = "skipped"  # pyzbar not installed


def load_overlay(path: str, max_width: int, max_height: int) -> Image.Image:
    """Load an overlay image and fit it inside a box, keeping its aspect ratio.

    Args:
        path: Path to the image file.
        max_width: Maximum width in pixels.
        max_height: Maximum height in pixels.

    Returns:
        Resized PIL Image in RGBA mode.

    Raises:
        FileNotFoundError: If the image file doesn't exist.
        ValueError: If the file is not a valid image.
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Image not found: {path}")

    try:
        img = Image.open(path)
        img = img.convert("RGBA")
    except (OSError, SyntaxError, Image.DecompressionBombError) as e:
        raise ValueError(f"Could not open image '{path}': {e}")

    width, height = img.size
    ratio = min(max_width / width, max_height / height)
    target = (max(1, round(width * ratio)), max(1, round(height * ratio)))
    return img.resize(target, Image.LANCZOS)


def encode_png(img: Image.Image) -> bytes:
    """Serialize an image to PNG bytes."""
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


def decode_png(data: bytes) -> Image.Image:
    """Decode image bytes into a fully loaded RGBA image.

    Raises:
        ValueError: If the bytes are empty or not a readable image.
    """
    if not data:
        raise ValueError("image data is empty")
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (OSError, SyntaxError) as e:
        raise ValueError(f"could not decode image: {e}")
    return img.convert("RGBA")


def verify_qr_scannable(image_path: str) -> tuple[VerifyResult, str | None]:
    """Attempt to decode a QR code from an exported PNG.

    Uses pyzbar if available, otherwise returns SKIPPED.

    Args:
        image_path: Path to the image to verify.

    Returns:
        Tuple of (VerifyResult, decoded_data: str | None).
    """
    try:
        from pyzbar.pyzbar import decode as pyzbar_decode
    except ImportError:
        return VerifyResult.SKIPPED, None

    try:
        img = Image.open(image_path)
        # pyzbar reads transparent pixels as black
        flattened = Image.new("RGB", img.size, "white")
        rgba = img.convert("RGBA")
        flattened.paste(rgba, mask=rgba.getchannel("A"))
        results = pyzbar_decode(flattened)
    except (OSError, ValueError):
        return VerifyResult.NOT_SCANNABLE, None

    if results:
        decoded = results[0].data.decode("utf-8")
        return VerifyResult.SCANNABLE, decoded
    return VerifyResult.NOT_SCANNABLE, None
