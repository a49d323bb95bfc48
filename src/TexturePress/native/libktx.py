"""ctypes binding to the KTX-Software library (libktx).

Only the handful of `ktxTexture2_*` entry points needed to build a single
2D texture, compress it, and write it out are bound. The library is loaded
lazily, once per process; a failed load is cached and re-raised so every
worker sees the same error.
"""

import ctypes
import ctypes.util
import logging
import os
import sys
import threading
from ctypes import (
    POINTER, Structure, byref, c_bool, c_char, c_char_p, c_float, c_int,
    c_size_t, c_uint32, c_void_p,
)
from pathlib import Path
from typing import Any, Dict, List, Tuple

from .. import LIB_DIR
from ..errors import NativeLibraryError
from .engine import TextureEngine, VkFormat

logger = logging.getLogger("texture_press.native")

KTX_TEXTURE_CREATE_ALLOC_STORAGE = 1
KTX_ETC1S_DEFAULT_COMPRESSION_LEVEL = 2


class KtxTextureCreateInfo(Structure):
    _fields_ = [
        ("glInternalformat", c_uint32),
        ("vkFormat", c_uint32),
        ("pDfd", POINTER(c_uint32)),
        ("baseWidth", c_uint32),
        ("baseHeight", c_uint32),
        ("baseDepth", c_uint32),
        ("numDimensions", c_uint32),
        ("numLevels", c_uint32),
        ("numLayers", c_uint32),
        ("numFaces", c_uint32),
        ("isArray", c_bool),
        ("generateMipmaps", c_bool),
    ]


class KtxBasisParams(Structure):
    _fields_ = [
        ("structSize", c_uint32),
        ("uastc", c_bool),
        ("verbose", c_bool),
        ("noSSE", c_bool),
        ("threadCount", c_uint32),
        # ETC1S
        ("compressionLevel", c_uint32),
        ("qualityLevel", c_uint32),
        ("maxEndpoints", c_uint32),
        ("endpointRDOThreshold", c_float),
        ("maxSelectors", c_uint32),
        ("selectorRDOThreshold", c_float),
        ("inputSwizzle", c_char * 4),
        ("normalMap", c_bool),
        ("separateRGToRGB_A", c_bool),
        ("preSwizzle", c_bool),
        ("noEndpointRDO", c_bool),
        ("noSelectorRDO", c_bool),
        # UASTC
        ("uastcFlags", c_uint32),
        ("uastcRDO", c_bool),
        ("uastcRDOQualityScalar", c_float),
        ("uastcRDODictSize", c_uint32),
        ("uastcRDOMaxSmoothBlockErrorScale", c_float),
        ("uastcRDOMaxSmoothBlockStdDev", c_float),
        ("uastcRDODontFavorSimplerModes", c_bool),
        ("uastcRDONoMultithreading", c_bool),
    ]


class KtxAstcParams(Structure):
    _fields_ = [
        ("structSize", c_uint32),
        ("verbose", c_bool),
        ("threadCount", c_uint32),
        ("blockDimension", c_uint32),
        ("mode", c_uint32),
        ("qualityLevel", c_uint32),
        ("normalMap", c_bool),
        ("perceptual", c_bool),
        ("inputSwizzle", c_char * 4),
    ]


# Values libktx itself uses when a caller does not set a field.
_BASIS_DEFAULTS = {
    "threadCount": 1,
    "compressionLevel": KTX_ETC1S_DEFAULT_COMPRESSION_LEVEL,
    "qualityLevel": 128,
    "endpointRDOThreshold": 1.25,
    "selectorRDOThreshold": 1.25,
    "uastcFlags": 2,
    "uastcRDOQualityScalar": 1.0,
    "uastcRDODictSize": 4096,
    "uastcRDOMaxSmoothBlockErrorScale": 10.0,
    "uastcRDOMaxSmoothBlockStdDev": 18.0,
}

_ASTC_DEFAULTS = {
    "threadCount": 1,
    "blockDimension": 4,  # 6x6
    "mode": 0,
    "qualityLevel": 60,
}


def _fill_struct(struct: Structure, defaults: Dict[str, Any], fields: Dict[str, Any]):
    """Apply engine defaults, then overwrite only the supplied fields."""
    names = {name for name, _ in struct._fields_}
    for source in (defaults, fields):
        for name, value in source.items():
            if name not in names:
                raise KeyError(f"{type(struct).__name__} has no field {name!r}")
            if name == "inputSwizzle":
                value = value.encode("ascii")
            setattr(struct, name, value)
    return struct


def build_basis_params(fields: Dict[str, Any], uastc: bool) -> KtxBasisParams:
    params = KtxBasisParams()
    _fill_struct(params, _BASIS_DEFAULTS, fields)
    params.structSize = ctypes.sizeof(KtxBasisParams)
    params.uastc = uastc
    return params


def build_astc_params(fields: Dict[str, Any]) -> KtxAstcParams:
    params = KtxAstcParams()
    _fill_struct(params, _ASTC_DEFAULTS, fields)
    params.structSize = ctypes.sizeof(KtxAstcParams)
    return params


def build_create_info(width: int, height: int, vk_format: VkFormat) -> KtxTextureCreateInfo:
    info = KtxTextureCreateInfo()
    info.vkFormat = int(vk_format)
    info.baseWidth = width
    info.baseHeight = height
    info.baseDepth = 1
    info.numDimensions = 2
    info.numLevels = 1
    info.numLayers = 1
    info.numFaces = 1
    info.isArray = False
    info.generateMipmaps = False
    return info


# ──────────────────────────────────────────
# Library loading
# ──────────────────────────────────────────

_libktx = None
_load_error = None
_load_lock = threading.Lock()


def _library_names() -> List[str]:
    if sys.platform == "win32":
        return ["ktx.dll"]
    if sys.platform == "darwin":
        return ["libktx.dylib", "libktx.4.dylib"]
    return ["libktx.so", "libktx.so.4"]


def _library_candidates() -> List[str]:
    candidates = []
    env = os.environ.get("TexturePress_LIBKTX")
    if env:
        candidates.append(str(Path(env).expanduser()))
    if LIB_DIR is not None:
        for name in _library_names():
            path = Path(LIB_DIR) / name
            if path.is_file():
                candidates.append(str(path))
    found = ctypes.util.find_library("ktx")
    if found:
        candidates.append(found)
    return candidates


def _setup_signatures(lib):
    lib.ktxTexture2_Create.argtypes = [
        POINTER(KtxTextureCreateInfo), c_int, POINTER(c_void_p),
    ]
    lib.ktxTexture2_Create.restype = c_int

    lib.ktxTexture2_SetImageFromMemory.argtypes = [
        c_void_p, c_uint32, c_uint32, c_uint32, c_char_p, c_size_t,
    ]
    lib.ktxTexture2_SetImageFromMemory.restype = c_int

    lib.ktxTexture2_CompressBasisEx.argtypes = [c_void_p, POINTER(KtxBasisParams)]
    lib.ktxTexture2_CompressBasisEx.restype = c_int

    lib.ktxTexture2_CompressAstcEx.argtypes = [c_void_p, POINTER(KtxAstcParams)]
    lib.ktxTexture2_CompressAstcEx.restype = c_int

    lib.ktxTexture2_DeflateZstd.argtypes = [c_void_p, c_uint32]
    lib.ktxTexture2_DeflateZstd.restype = c_int

    lib.ktxTexture2_DeflateZLIB.argtypes = [c_void_p, c_uint32]
    lib.ktxTexture2_DeflateZLIB.restype = c_int

    lib.ktxTexture2_WriteToNamedFile.argtypes = [c_void_p, c_char_p]
    lib.ktxTexture2_WriteToNamedFile.restype = c_int

    lib.ktxTexture2_Destroy.argtypes = [c_void_p]
    lib.ktxTexture2_Destroy.restype = None

    lib.ktxErrorString.argtypes = [c_int]
    lib.ktxErrorString.restype = c_char_p


def load_libktx():
    """Load libktx and configure its signatures (cached per process)."""
    global _libktx, _load_error
    with _load_lock:
        if _libktx is not None:
            return _libktx
        if _load_error is not None:
            raise _load_error

        candidates = _library_candidates()
        if not candidates:
            _load_error = NativeLibraryError(
                "libktx not found. Install KTX-Software "
                "(https://github.com/KhronosGroup/KTX-Software), set "
                "TexturePress_LIBKTX to the library path, or place it in "
                "TexturePress_LIB_DIR."
            )
            logger.warning("Native KTX library not available: no candidates found")
            raise _load_error

        errors = []
        for path in candidates:
            try:
                if sys.platform == "win32" and os.path.isabs(path):
                    os.add_dll_directory(os.path.dirname(path))
                lib = ctypes.CDLL(path)
                _setup_signatures(lib)
            except (OSError, AttributeError) as exc:
                logger.debug("Failed to load libktx from %s: %s", path, exc)
                errors.append(f"{path}: {exc}")
                continue
            logger.info("Loaded native KTX library: %s", path)
            _libktx = lib
            return lib

        _load_error = NativeLibraryError(
            "Failed to load libktx:\n" + "\n".join(f"  - {e}" for e in errors)
        )
        logger.warning("Native KTX library not available: %s", "; ".join(errors))
        raise _load_error


class LibKtxEngine(TextureEngine):
    """`TextureEngine` backed by the real libktx shared library."""

    def __init__(self, lib=None):
        self._lib = lib if lib is not None else load_libktx()

    def create_texture(self, width: int, height: int,
                       vk_format: VkFormat) -> Tuple[int, Any]:
        info = build_create_info(width, height, vk_format)
        handle = c_void_p()
        code = self._lib.ktxTexture2_Create(
            byref(info), KTX_TEXTURE_CREATE_ALLOC_STORAGE, byref(handle)
        )
        if code != 0 or not handle.value:
            return code, None
        return code, handle

    def set_image_from_memory(self, handle, data: bytes) -> int:
        return self._lib.ktxTexture2_SetImageFromMemory(handle, 0, 0, 0, data, len(data))

    def compress_basis(self, handle, fields: Dict[str, Any], uastc: bool) -> int:
        params = build_basis_params(fields, uastc)
        return self._lib.ktxTexture2_CompressBasisEx(handle, byref(params))

    def compress_astc(self, handle, fields: Dict[str, Any]) -> int:
        params = build_astc_params(fields)
        return self._lib.ktxTexture2_CompressAstcEx(handle, byref(params))

    def deflate_zstd(self, handle, level: int) -> int:
        return self._lib.ktxTexture2_DeflateZstd(handle, level)

    def deflate_zlib(self, handle, level: int) -> int:
        return self._lib.ktxTexture2_DeflateZLIB(handle, level)

    def write_to_named_file(self, handle, path: bytes) -> int:
        return self._lib.ktxTexture2_WriteToNamedFile(handle, path)

    def destroy_texture(self, handle) -> None:
        self._lib.ktxTexture2_Destroy(handle)

    def error_string(self, code: int) -> str:
        raw = self._lib.ktxErrorString(code)
        if raw:
            return raw.decode("utf-8", errors="replace")
        return super().error_string(code)


_default_engine = None
_default_engine_lock = threading.Lock()


def get_default_engine() -> LibKtxEngine:
    """Return the process-wide libktx engine, loading the library on first use."""
    global _default_engine
    with _default_engine_lock:
        if _default_engine is None:
            _default_engine = LibKtxEngine()
        return _default_engine
