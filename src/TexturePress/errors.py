"""Exception taxonomy shared by the converters and the batch engine."""

from typing import Optional


class TexturePressError(Exception):
    """Base class for every error raised by TexturePress."""


class ConfigValidationError(TexturePressError, ValueError):
    """Configuration is malformed; raised before any conversion starts."""


class NativeLibraryError(TexturePressError, ImportError):
    """The native texture library could not be located or loaded."""


class NativeEngineError(TexturePressError):
    """A native engine call returned a non-success status code."""

    def __init__(self, message: str, native_code: Optional[int] = None,
                 native_message: str = ""):
        self.native_code = native_code
        self.native_message = native_message
        if native_code is not None:
            detail = native_message or f"code {native_code}"
            message = f"{message} ({detail})"
        super().__init__(message)


class NativeAllocationError(NativeEngineError):
    """Allocation of a native texture object failed."""


class ImageBindError(NativeEngineError):
    """Copying pixel data into a native texture object failed."""


class CompressionError(NativeEngineError):
    """A native compression entry point failed."""

    def __init__(self, algorithm, native_code: Optional[int] = None,
                 native_message: str = ""):
        self.algorithm = algorithm
        name = getattr(algorithm, "value", algorithm)
        super().__init__(f"{name} compression failed", native_code, native_message)


class WriteError(NativeEngineError):
    """Serializing a texture to disk failed."""


class TextureStateError(TexturePressError, RuntimeError):
    """An operation was invoked in a state that does not allow it."""


class DecodeError(TexturePressError, OSError):
    """An input image could not be decoded."""


class ConversionError(TexturePressError):
    """Per-file failure envelope carrying the offending path."""

    def __init__(self, path, cause: BaseException):
        self.path = path
        self.cause = cause
        super().__init__(f"Failed to convert {path}: {cause}")
