"""Native texture compression engine boundary."""

from .engine import KtxErrorCode, TextureEngine, VkFormat
from .libktx import LibKtxEngine, get_default_engine

__all__ = [
    "KtxErrorCode", "TextureEngine", "VkFormat",
    "LibKtxEngine", "get_default_engine",
]
