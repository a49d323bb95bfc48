"""Core utilities -- re-exports all public symbols for convenience."""

from .records import ImageMetadata
from .io import (
    DecodedImage,
    decode_image,
    has_alpha_mask,
    premultiply_alpha,
    atomic_output,
    write_bytes_atomic,
    write_json_atomic,
)
from .scanning import (
    SUPPORTED_EXTENSIONS,
    IgnoreRule,
    find_images,
    is_supported_image,
    resolve_ignore_list,
    should_ignore,
)
from .paths import get_output_path, get_sidecar_path
from .logging import setup_logging

__all__ = [
    "ImageMetadata",
    "DecodedImage", "decode_image", "has_alpha_mask", "premultiply_alpha",
    "atomic_output", "write_bytes_atomic", "write_json_atomic",
    "SUPPORTED_EXTENSIONS", "IgnoreRule", "find_images", "is_supported_image",
    "resolve_ignore_list", "should_ignore",
    "get_output_path", "get_sidecar_path",
    "setup_logging",
]
