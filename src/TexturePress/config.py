"""Define the batch conversion configuration.

Use `ConverterConfig` to load, validate, and persist run settings. Config
files may be JSON or YAML; both are read with the YAML loader.
"""

import dataclasses
import json
import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

import yaml

from .compression import CompressionConfig
from .core.io import atomic_output
from .core.scanning import IgnoreRule, resolve_ignore_list
from .errors import ConfigValidationError

logger = logging.getLogger("texture_press.config")

MIN_THREADS = 1
MAX_THREADS = 20
DEFAULT_THREADS = 4


class ContainerType(Enum):
    """Output pipeline selected for a run."""

    KTX = "KTX"
    DXT = "DXT"

    @classmethod
    def parse(cls, value) -> "ContainerType":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = _CONTAINER_ALIASES.get(value.strip().lower())
            if key is not None:
                return key
        raise ConfigValidationError(
            f"compression_container must be one of {[c.value for c in cls]}, got {value!r}"
        )


_CONTAINER_ALIASES = {
    "ktx": ContainerType.KTX,
    "ktx2": ContainerType.KTX,
    "container": ContainerType.KTX,
    "dxt": ContainerType.DXT,
    "block": ContainerType.DXT,
}


def clamp_thread_count(value: int) -> int:
    """Clamp a worker count into [MIN_THREADS, MAX_THREADS]."""
    clamped = min(max(int(value), MIN_THREADS), MAX_THREADS)
    if clamped != value:
        logger.warning(
            "number_of_threads %s out of range [%d, %d]; using %d",
            value, MIN_THREADS, MAX_THREADS, clamped,
        )
    return clamped


_SUPPORTED_CONFIG_VERSION = 1


@dataclass
class ConverterConfig:
    """Master batch configuration."""

    config_version: int = 1
    from_directory: str = "."
    to_directory: Optional[str] = None
    delete_original_images: bool = False
    ignore_list: List[str] = field(default_factory=list)
    compression_container: str = "KTX"
    number_of_threads: int = DEFAULT_THREADS
    skip_errors: bool = False
    verbose: bool = False
    log_level: str = "INFO"
    log_file: str = ""
    compression_config: CompressionConfig = field(default_factory=CompressionConfig.default)

    @property
    def container(self) -> ContainerType:
        return ContainerType.parse(self.compression_container)

    @classmethod
    def from_file(cls, path: str) -> "ConverterConfig":
        """Load and validate a JSON or YAML config file."""
        if not os.path.exists(path):
            raise ConfigValidationError(f"Config file not found: {path}")
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigValidationError(
                f"Failed to parse config '{path}': {exc}"
            ) from exc
        if not isinstance(data, dict):
            raise ConfigValidationError(
                f"Config file '{path}' must contain a mapping, "
                f"got {type(data).__name__}"
            )
        file_version = data.get("config_version", 1)
        if isinstance(file_version, int) and file_version > _SUPPORTED_CONFIG_VERSION:
            logger.warning(
                "Config file '%s' has config_version=%d, but this build only "
                "supports up to version %d. Some settings may be ignored.",
                path, file_version, _SUPPORTED_CONFIG_VERSION,
            )
        try:
            config = cls.from_dict(data)
            config.validate()
        except ConfigValidationError as exc:
            raise ConfigValidationError(f"{path}: {exc}") from exc
        return config

    @classmethod
    def from_dict(cls, data: dict) -> "ConverterConfig":
        """Build a config from a mapping without validating directories.

        Unknown keys are ignored with a warning. Values of the wrong type
        raise `ConfigValidationError`.
        """
        data = dict(data)
        config = cls()
        if "compression_config" in data:
            raw = data.pop("compression_config")
            if raw is not None:
                config.compression_config = CompressionConfig.from_dict(raw)
        _merge_dict_to_dataclass(config, data)
        return config

    def to_dict(self) -> dict:
        data = {f.name: getattr(self, f.name) for f in dataclasses.fields(self)}
        data["ignore_list"] = list(self.ignore_list)
        data["compression_config"] = self.compression_config.to_dict()
        return data

    def to_file(self, path: str):
        """Write configuration to YAML, or JSON when the path ends in .json."""
        data = self.to_dict()
        with atomic_output(path) as tmp_path:
            with open(tmp_path, "w", encoding="utf-8") as f:
                if path.lower().endswith(".json"):
                    json.dump(data, f, indent=2)
                else:
                    yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)

    def validate(self):
        """Validate and normalize values. Raises ConfigValidationError."""
        errors = []

        if not isinstance(self.from_directory, str) or not self.from_directory:
            errors.append("from_directory must be a non-empty path")
        elif not os.path.isdir(self.from_directory):
            errors.append(f"from_directory does not exist or is not a directory: "
                          f"{self.from_directory}")
        else:
            self.from_directory = os.path.realpath(self.from_directory)

        if self.to_directory is not None:
            if not isinstance(self.to_directory, str) or not self.to_directory:
                errors.append("to_directory must be a non-empty path when set")
            elif os.path.exists(self.to_directory) and not os.path.isdir(self.to_directory):
                errors.append(f"to_directory exists but is not a directory: {self.to_directory}")

        if not isinstance(self.ignore_list, list) or not all(
                isinstance(entry, str) for entry in self.ignore_list):
            errors.append("ignore_list must be a list of path strings")

        try:
            ContainerType.parse(self.compression_container)
        except ConfigValidationError as exc:
            errors.append(str(exc))

        if isinstance(self.number_of_threads, bool) or not isinstance(self.number_of_threads, int):
            errors.append(f"number_of_threads must be an integer, got {self.number_of_threads!r}")
        else:
            self.number_of_threads = clamp_thread_count(self.number_of_threads)

        valid_log_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if str(self.log_level).upper() not in valid_log_levels:
            errors.append(
                f"log_level must be one of {sorted(valid_log_levels)}, "
                f"got '{self.log_level}'"
            )

        if not isinstance(self.compression_config, CompressionConfig):
            errors.append("compression_config must be a CompressionConfig")
        else:
            try:
                self.compression_config.validate()
            except ConfigValidationError as exc:
                errors.append(str(exc))

        if errors:
            raise ConfigValidationError(
                "Configuration validation failed:\n" +
                "\n".join(f"  - {e}" for e in errors)
            )

    def prepare_directories(self):
        """Create the destination root if needed and canonicalize it."""
        if self.to_directory:
            os.makedirs(self.to_directory, exist_ok=True)
            self.to_directory = os.path.realpath(self.to_directory)

    def resolve_ignore_list(self) -> List[IgnoreRule]:
        return resolve_ignore_list(self.ignore_list, self.from_directory)


# Expected value type per top-level key; to_directory may also be null.
_FIELD_TYPES = {
    "config_version": int,
    "from_directory": str,
    "to_directory": str,
    "delete_original_images": bool,
    "ignore_list": list,
    "compression_container": str,
    "number_of_threads": int,
    "skip_errors": bool,
    "verbose": bool,
    "log_level": str,
    "log_file": str,
}
_NULLABLE_FIELDS = {"to_directory"}


def _merge_dict_to_dataclass(obj, data: dict, _path: str = ""):
    known = {f.name for f in dataclasses.fields(obj)}
    errors = []
    for key, value in data.items():
        full_key = f"{_path}{key}"
        if key not in known:
            logger.warning("Unknown config key ignored: '%s'", full_key)
            continue
        expected_type = _FIELD_TYPES[key]
        if value is None:
            if key not in _NULLABLE_FIELDS:
                errors.append(f"{full_key} must not be null")
                continue
        else:
            # Allow exact-integer floats where ints are expected (YAML 4.0 -> 4).
            if expected_type is int and isinstance(value, float) and value == int(value):
                value = int(value)
            if not isinstance(value, expected_type) or (
                    expected_type is int and isinstance(value, bool)):
                errors.append(
                    f"{full_key} must be {expected_type.__name__}, "
                    f"got {type(value).__name__} ({value!r})"
                )
                continue
        setattr(obj, key, value)
    if errors:
        raise ConfigValidationError(
            "Configuration validation failed:\n" +
            "\n".join(f"  - {e}" for e in errors)
        )
