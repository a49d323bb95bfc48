"""Convert source images into raw BC1/BC3 blobs plus a JSON sidecar."""

import logging
import os
from enum import Enum

import etcpak
import numpy as np

from ..core import (
    ImageMetadata, decode_image, get_output_path, get_sidecar_path,
    has_alpha_mask, premultiply_alpha, write_bytes_atomic, write_json_atomic,
)
from ..errors import CompressionError
from .base import ImageConverter

logger = logging.getLogger("texture_press.dxt")

_BLOCK_DIM = 4


class BlockFormat(Enum):
    """Fixed-rate 4x4 block codecs."""

    BC1 = "BC1"
    BC3 = "BC3"

    @property
    def extension(self) -> str:
        return "dxt1" if self is BlockFormat.BC1 else "dxt4"

    @property
    def block_bytes(self) -> int:
        return 8 if self is BlockFormat.BC1 else 16

    @classmethod
    def for_pixels(cls, pixels: np.ndarray) -> "BlockFormat":
        return cls.BC3 if has_alpha_mask(pixels) else cls.BC1

    def compressed_size(self, width: int, height: int) -> int:
        blocks_x = -(-width // _BLOCK_DIM)
        blocks_y = -(-height // _BLOCK_DIM)
        return blocks_x * blocks_y * self.block_bytes

    def encode(self, pixels: np.ndarray) -> bytes:
        """Encode HxWx4 RGBA8 pixels, edge-padding to whole blocks."""
        height, width = pixels.shape[:2]
        expected = self.compressed_size(width, height)
        padded = _pad_to_blocks(pixels)
        padded_h, padded_w = padded.shape[:2]
        data = np.ascontiguousarray(padded, dtype=np.uint8).tobytes()
        if self is BlockFormat.BC1:
            encoded = etcpak.compress_bc1(data, padded_w, padded_h)
        else:
            encoded = etcpak.compress_bc3(data, padded_w, padded_h)
        if len(encoded) != expected:
            raise CompressionError(
                self, native_message=f"encoder returned {len(encoded)} bytes, "
                                     f"expected {expected}",
            )
        return bytes(encoded)


def _pad_to_blocks(pixels: np.ndarray) -> np.ndarray:
    height, width = pixels.shape[:2]
    pad_y = (-height) % _BLOCK_DIM
    pad_x = (-width) % _BLOCK_DIM
    if not pad_x and not pad_y:
        return pixels
    return np.pad(pixels, ((0, pad_y), (0, pad_x), (0, 0)), mode="edge")


class DxtConverter(ImageConverter):
    """Encode one image as BC1 (opaque) or BC3 (alpha-masked)."""

    def output_path_for(self, image_path: str, block_format: BlockFormat) -> str:
        return get_output_path(
            image_path, block_format.extension,
            self.config.from_directory, self.config.to_directory,
        )

    def _convert(self, image_path: str) -> str:
        decoded = decode_image(image_path)
        pixels = decoded.pixels
        block_format = BlockFormat.for_pixels(pixels)
        if self.config.compression_config.premultiply:
            pixels = premultiply_alpha(pixels)

        blob = block_format.encode(pixels)
        output_path = self.output_path_for(image_path, block_format)
        write_bytes_atomic(output_path, blob)

        metadata = ImageMetadata(block_format.extension, decoded.width, decoded.height)
        try:
            write_json_atomic(get_sidecar_path(output_path), metadata.to_dict())
        except Exception:
            # Never leave a blob without its sidecar.
            try:
                os.remove(output_path)
            except OSError:
                logger.warning("Failed to remove orphaned blob %s", output_path)
            raise
        logger.debug("Wrote %s as %s (%dx%d)",
                     output_path, block_format.value, decoded.width, decoded.height)
        return output_path
