"""Per-file conversion pipelines."""

from .base import ImageConverter
from .dxt import BlockFormat, DxtConverter
from .ktx import KTX_EXTENSION, KtxConverter

__all__ = [
    "ImageConverter",
    "BlockFormat", "DxtConverter",
    "KTX_EXTENSION", "KtxConverter",
]
