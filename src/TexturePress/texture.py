"""Staged wrapper around one native texture object.

`StagedTexture` enforces the call order the native engine requires::

    create -> bind_image -> [compress] -> write

and guarantees the native object is destroyed exactly once, whether the
wrapper is released explicitly, exits a ``with`` block, or is simply
dropped. A texture whose creation failed owns nothing and is never
destroyed.
"""

import logging
import weakref
from enum import Enum
from typing import Optional

from .compression import Algorithm, CompressionConfig
from .errors import (
    CompressionError, ImageBindError, NativeAllocationError,
    TextureStateError, WriteError,
)
from .native.engine import KtxErrorCode, TextureEngine, VkFormat

logger = logging.getLogger("texture_press.texture")

_SUCCESS = int(KtxErrorCode.SUCCESS)


class TextureState(Enum):
    UNINITIALIZED = "uninitialized"
    IMAGE_BOUND = "image_bound"
    COMPRESSED = "compressed"
    WRITTEN = "written"
    RELEASED = "released"


def _destroy(engine: TextureEngine, handle) -> None:
    engine.destroy_texture(handle)


class StagedTexture:
    """Exclusive owner of a single native texture object."""

    def __init__(self, engine: TextureEngine, handle, width: int, height: int,
                 pixel_format: VkFormat):
        self._engine = engine
        self._handle = handle
        self.width = width
        self.height = height
        self.pixel_format = pixel_format
        self._state = TextureState.UNINITIALIZED
        self._finalizer = weakref.finalize(self, _destroy, engine, handle)

    @classmethod
    def create(cls, width: int, height: int,
               pixel_format: VkFormat = VkFormat.R8G8B8A8_UNORM,
               engine: Optional[TextureEngine] = None) -> "StagedTexture":
        """Allocate a native texture sized for one level, layer and face."""
        if width <= 0 or height <= 0:
            raise NativeAllocationError(
                f"Texture dimensions must be positive, got {width}x{height}"
            )
        if engine is None:
            from .native.libktx import get_default_engine
            engine = get_default_engine()
        code, handle = engine.create_texture(width, height, pixel_format)
        if code != _SUCCESS or handle is None:
            raise NativeAllocationError(
                f"Failed to allocate {width}x{height} texture",
                code, engine.error_string(code),
            )
        logger.debug("Allocated %dx%d native texture", width, height)
        return cls(engine, handle, width, height, pixel_format)

    @property
    def state(self) -> TextureState:
        return self._state

    @property
    def expected_image_size(self) -> int:
        return self.width * self.height * 4

    def _require(self, operation: str, *allowed: TextureState):
        if self._state not in allowed:
            raise TextureStateError(
                f"Cannot {operation} a texture in state '{self._state.value}'"
            )

    def bind_image(self, pixels) -> "StagedTexture":
        """Copy an RGBA8 pixel buffer of exactly width*height*4 bytes."""
        self._require("bind an image to", TextureState.UNINITIALIZED)
        data = bytes(pixels)
        if len(data) != self.expected_image_size:
            raise ImageBindError(
                f"Pixel buffer is {len(data)} bytes, expected "
                f"{self.expected_image_size} for {self.width}x{self.height} RGBA8"
            )
        code = self._engine.set_image_from_memory(self._handle, data)
        if code != _SUCCESS:
            raise ImageBindError(
                "Failed to copy image into texture",
                code, self._engine.error_string(code),
            )
        self._state = TextureState.IMAGE_BOUND
        return self

    def compress(self, config: CompressionConfig) -> "StagedTexture":
        """Run the native entry point selected by `config.algorithm`.

        On failure the texture stays owned and must still be released.
        """
        self._require("compress", TextureState.IMAGE_BOUND)
        args = config.marshal()
        engine = self._engine
        if args.algorithm is Algorithm.ETC1S:
            code = engine.compress_basis(self._handle, args.fields, uastc=False)
        elif args.algorithm is Algorithm.UASTC:
            code = engine.compress_basis(self._handle, args.fields, uastc=True)
        elif args.algorithm is Algorithm.ASTC:
            code = engine.compress_astc(self._handle, args.fields)
        elif args.algorithm is Algorithm.ZSTD:
            code = engine.deflate_zstd(self._handle, args.fields["level"])
        elif args.algorithm is Algorithm.ZLIB:
            code = engine.deflate_zlib(self._handle, args.fields["level"])
        else:
            raise TextureStateError(f"Unsupported algorithm {args.algorithm!r}")
        if code != _SUCCESS:
            raise CompressionError(args.algorithm, code, engine.error_string(code))
        self._state = TextureState.COMPRESSED
        return self

    def write(self, path) -> None:
        """Serialize the texture to `path`; terminal for this texture."""
        self._require("write", TextureState.IMAGE_BOUND, TextureState.COMPRESSED)
        try:
            encoded = str(path).encode("utf-8")
        except UnicodeEncodeError as exc:
            raise WriteError(f"Output path {path!r} is not valid UTF-8: {exc}") from exc
        code = self._engine.write_to_named_file(self._handle, encoded)
        if code != _SUCCESS:
            raise WriteError(
                f"Failed to write texture to {path}",
                code, self._engine.error_string(code),
            )
        self._state = TextureState.WRITTEN

    def release(self) -> None:
        """Destroy the native object. Safe to call more than once."""
        if self._finalizer.alive:
            self._finalizer()
        self._state = TextureState.RELEASED

    @property
    def released(self) -> bool:
        return not self._finalizer.alive

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False

    def __repr__(self):
        return (
            f"StagedTexture({self.width}x{self.height}, "
            f"{self.pixel_format.name}, state={self._state.value})"
        )
