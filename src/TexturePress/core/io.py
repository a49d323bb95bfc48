"""Image decoding, pixel helpers, and atomic file writes."""

import json
import logging
import os
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

import numpy as np
from PIL import Image

from ..errors import DecodeError

logger = logging.getLogger("texture_press.io")


@dataclass
class DecodedImage:
    """RGBA8 pixels in row-major HxWx4 layout."""

    width: int
    height: int
    pixels: np.ndarray
    has_alpha_channel: bool

    def tobytes(self) -> bytes:
        return np.ascontiguousarray(self.pixels, dtype=np.uint8).tobytes()


def decode_image(path: str) -> DecodedImage:
    """Decode `path` into RGBA8.

    Sources without an alpha channel get a fully opaque one, so callers
    can always assume four channels.
    """
    try:
        with Image.open(path) as img:
            img.load()
            has_alpha = "A" in img.getbands() or "transparency" in img.info
            rgba = img.convert("RGBA")
    except (OSError, SyntaxError, ValueError, Image.DecompressionBombError) as exc:
        raise DecodeError(f"Failed to decode image {path}: {exc}") from exc

    pixels = np.asarray(rgba, dtype=np.uint8)
    if pixels.ndim != 3 or pixels.shape[2] != 4:
        raise DecodeError(f"Unexpected pixel layout {pixels.shape} decoded from {path}")
    height, width = pixels.shape[:2]
    if width == 0 or height == 0:
        raise DecodeError(f"Image {path} has zero size")
    logger.debug("Decoded %s: %dx%d mode=%s alpha=%s",
                 path, width, height, rgba.mode, has_alpha)
    return DecodedImage(width, height, pixels, has_alpha)


def has_alpha_mask(pixels: np.ndarray) -> bool:
    """Return True when any alpha byte is below 255."""
    return bool((pixels[..., 3] < 255).any())


def premultiply_alpha(pixels: np.ndarray) -> np.ndarray:
    """Scale RGB by A/255 with truncating integer division.

    Returns a new array; opaque pixels are left unchanged.
    """
    out = np.array(pixels, dtype=np.uint8, copy=True)
    alpha = out[..., 3:4].astype(np.uint16)
    out[..., :3] = (out[..., :3].astype(np.uint16) * alpha // 255).astype(np.uint8)
    return out


def _temp_path_for(path: str) -> str:
    ext = os.path.splitext(path)[1]
    return f"{path}.tmp.{os.getpid()}.{threading.get_ident()}{ext}"


@contextmanager
def atomic_output(path: str) -> Iterator[str]:
    """Yield a temp path that replaces `path` only if the block succeeds."""
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    tmp_path = _temp_path_for(path)
    try:
        yield tmp_path
        os.replace(tmp_path, path)
    finally:
        if os.path.exists(tmp_path):
            try:
                os.remove(tmp_path)
            except OSError:
                logger.warning("Failed to remove temp file %s", tmp_path)


def write_bytes_atomic(path: str, data: bytes) -> None:
    with atomic_output(path) as tmp_path:
        with open(tmp_path, "wb") as f:
            f.write(data)


def write_json_atomic(path: str, payload) -> None:
    with atomic_output(path) as tmp_path:
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(payload, f)
