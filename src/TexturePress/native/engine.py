"""Abstract contract for the native texture compression engine.

Every call returns a KTX status code (``KtxErrorCode.SUCCESS`` on success)
except `destroy_texture`, which cannot fail. Handles are opaque; callers
only hand them back to the engine that produced them.
"""

import abc
from enum import IntEnum
from typing import Any, Dict, Tuple


class VkFormat(IntEnum):
    """Vulkan pixel formats accepted for uncompressed source images."""

    R8G8B8A8_UNORM = 37
    R8G8B8A8_SRGB = 43


class KtxErrorCode(IntEnum):
    SUCCESS = 0
    FILE_DATA_ERROR = 1
    FILE_ISPIPE = 2
    FILE_OPEN_FAILED = 3
    FILE_OVERFLOW = 4
    FILE_READ_ERROR = 5
    FILE_SEEK_ERROR = 6
    FILE_UNEXPECTED_EOF = 7
    FILE_WRITE_ERROR = 8
    GL_ERROR = 9
    INVALID_OPERATION = 10
    INVALID_VALUE = 11
    NOT_FOUND = 12
    OUT_OF_MEMORY = 13
    TRANSCODE_FAILED = 14
    UNKNOWN_FILE_FORMAT = 15
    UNSUPPORTED_TEXTURE_TYPE = 16
    UNSUPPORTED_FEATURE = 17
    LIBRARY_NOT_LINKED = 18
    DECOMPRESS_LENGTH_ERROR = 19
    DECOMPRESS_CHECKSUM_ERROR = 20

    @classmethod
    def describe(cls, code: int) -> str:
        try:
            return f"KTX_{cls(code).name}"
        except ValueError:
            return f"unknown KTX status {code}"


class TextureEngine(abc.ABC):
    """Operations the staged texture resource needs from a native engine."""

    @abc.abstractmethod
    def create_texture(self, width: int, height: int,
                       vk_format: VkFormat) -> Tuple[int, Any]:
        """Allocate a single-level, single-layer, single-face 2D texture."""

    @abc.abstractmethod
    def set_image_from_memory(self, handle, data: bytes) -> int:
        """Copy `data` into level 0, layer 0, face 0."""

    @abc.abstractmethod
    def compress_basis(self, handle, fields: Dict[str, Any], uastc: bool) -> int:
        """Encode as Basis Universal (ETC1S or UASTC)."""

    @abc.abstractmethod
    def compress_astc(self, handle, fields: Dict[str, Any]) -> int:
        ...

    @abc.abstractmethod
    def deflate_zstd(self, handle, level: int) -> int:
        ...

    @abc.abstractmethod
    def deflate_zlib(self, handle, level: int) -> int:
        ...

    @abc.abstractmethod
    def write_to_named_file(self, handle, path: bytes) -> int:
        """Serialize the texture to the UTF-8 encoded `path`."""

    @abc.abstractmethod
    def destroy_texture(self, handle) -> None:
        ...

    def error_string(self, code: int) -> str:
        return KtxErrorCode.describe(code)
