"""Output path helpers."""

import os
from pathlib import Path, PurePosixPath
from typing import Optional


def _normalize_rel_image_path(rel_path: str) -> Path:
    """Normalize a path relative to the source root, rejecting escapes."""
    raw = str(rel_path).replace("\\", "/")
    p = PurePosixPath(raw)
    if p.is_absolute():
        raise ValueError(f"Image path must be relative, got absolute path: {rel_path}")

    parts = []
    for part in p.parts:
        if part in ("", "."):
            continue
        if part == "..":
            if not parts:
                raise ValueError(f"Image path escapes source root via '..': {rel_path}")
            parts.pop()
            continue
        parts.append(part)

    if not parts:
        raise ValueError(f"Image path is empty after normalization: {rel_path}")
    return Path(*parts)


def get_output_path(image_path: str, ext: str,
                    from_directory: Optional[str] = None,
                    to_directory: Optional[str] = None) -> str:
    """Return where the converted form of `image_path` goes.

    With a destination root, the output mirrors the image's location
    relative to `from_directory`; otherwise it sits beside the source.
    Only the extension changes either way.
    """
    ext = ext if ext.startswith(".") else f".{ext}"
    if to_directory:
        if not from_directory:
            raise ValueError("from_directory is required when to_directory is set")
        rel = _normalize_rel_image_path(os.path.relpath(image_path, from_directory))
        return str(Path(to_directory) / rel.with_suffix(ext))
    return str(Path(image_path).with_suffix(ext))


def get_sidecar_path(output_path: str) -> str:
    """Return the JSON metadata path stored beside `output_path`."""
    return str(Path(output_path).with_suffix(".json"))
