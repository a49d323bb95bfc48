"""Provide package metadata and shared paths for `TexturePress`."""

import logging as _logging
import os as _os
from pathlib import Path as _Path

__version__ = "0.4.0"
_logger = _logging.getLogger("texture_press")


def _lib_dir_candidates():
    env = _os.environ.get("TexturePress_LIB_DIR")
    if env:
        yield _Path(env).expanduser()

    pkg_dir = _Path(__file__).resolve().parent
    # Wheel/package-data layout (if libktx is bundled).
    yield pkg_dir / "lib"
    # Editable/repo layout: src/TexturePress -> project_root/lib.
    yield pkg_dir.parent.parent / "lib"
    yield _Path.cwd() / "lib"


def _resolve_lib_dir():
    for candidate in _lib_dir_candidates():
        if candidate.is_dir():
            return candidate
    _logger.debug("No bundled native library directory found; relying on system search paths.")
    return None


LIB_DIR = _resolve_lib_dir()

__all__ = ["__version__", "LIB_DIR"]
