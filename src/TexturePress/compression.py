"""Typed model of the native compression settings.

A `CompressionConfig` pairs an `Algorithm` with the matching parameter
record. Every tunable on a record is optional: ``None`` means "let the
engine pick its own default", which is not the same as zero. Supplied
values are type-checked, enum values are resolved from either their name
or their integer code, and numeric values are clamped into the range the
engine accepts.
"""

import dataclasses
import logging
import re
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, Optional

from .errors import ConfigValidationError

logger = logging.getLogger("texture_press.compression")

_SWIZZLE_RE = re.compile(r"^[rgba01]{4}$")


class Algorithm(Enum):
    """Enumerate the native compression entry points."""

    ETC1S = "ETC1S"
    UASTC = "UASTC"
    ASTC = "ASTC"
    ZLIB = "ZLib"
    ZSTD = "Zstd"

    @classmethod
    def parse(cls, value) -> "Algorithm":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = _ALGORITHM_ALIASES.get(value.strip().lower())
            if key is not None:
                return key
        raise ConfigValidationError(
            f"Unknown compression algorithm {value!r}; expected one of "
            f"{[a.value for a in cls]}"
        )


_ALGORITHM_ALIASES = {
    "etc1s": Algorithm.ETC1S,
    "basisuniversalbasislzetc1s": Algorithm.ETC1S,
    "uastc": Algorithm.UASTC,
    "basisuniversaluastc": Algorithm.UASTC,
    "astc": Algorithm.ASTC,
    "zlib": Algorithm.ZLIB,
    "zstd": Algorithm.ZSTD,
}


class AstcBlockDimension(IntEnum):
    """ASTC block footprints, in libktx code order."""

    BLOCK_4x4 = 0
    BLOCK_5x4 = 1
    BLOCK_5x5 = 2
    BLOCK_6x5 = 3
    BLOCK_6x6 = 4
    BLOCK_8x5 = 5
    BLOCK_8x6 = 6
    BLOCK_10x5 = 7
    BLOCK_10x6 = 8
    BLOCK_8x8 = 9
    BLOCK_10x8 = 10
    BLOCK_10x10 = 11
    BLOCK_12x10 = 12
    BLOCK_12x12 = 13
    BLOCK_3x3x3 = 14
    BLOCK_4x3x3 = 15
    BLOCK_4x4x3 = 16
    BLOCK_4x4x4 = 17
    BLOCK_5x4x4 = 18
    BLOCK_5x5x4 = 19
    BLOCK_5x5x5 = 20
    BLOCK_6x5x5 = 21
    BLOCK_6x6x5 = 22
    BLOCK_6x6x6 = 23


class AstcMode(IntEnum):
    DEFAULT = 0
    LDR = 1
    HDR = 2


class AstcQuality(IntEnum):
    """Named ASTC quality presets; any integer in [0, 100] is also valid."""

    FASTEST = 0
    FAST = 10
    MEDIUM = 60
    THOROUGH = 98
    EXHAUSTIVE = 100


class UastcPackLevel(IntEnum):
    FASTEST = 0
    FASTER = 1
    DEFAULT = 2
    SLOWER = 3
    VERYSLOW = 4


# (native name prefix, short prefix stripped from member names)
_NATIVE_PREFIXES = {
    AstcBlockDimension: ("KTX_PACK_ASTC_BLOCK_DIMENSION_", "BLOCK_"),
    AstcMode: ("KTX_PACK_ASTC_ENCODER_MODE_", ""),
    AstcQuality: ("KTX_PACK_ASTC_QUALITY_LEVEL_", ""),
    UastcPackLevel: ("KTX_PACK_UASTC_LEVEL_", ""),
}


def native_name(member: IntEnum) -> str:
    """Return the libktx spelling of an enum member."""
    native_prefix, short_prefix = _NATIVE_PREFIXES[type(member)]
    return native_prefix + member.name[len(short_prefix):]


def parse_native_enum(enum_cls, value, what: str = "value"):
    """Resolve `value` to a member of `enum_cls`.

    Accepts a member, its integer code (or a decimal string of it), the
    libktx name, the member name, or the short name, case-insensitively.
    """
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if isinstance(value, int) and not isinstance(value, bool):
        try:
            return enum_cls(value)
        except ValueError:
            raise ConfigValidationError(
                f"{what}: {value} is not a valid {enum_cls.__name__} code"
            ) from None
    if isinstance(value, str):
        native_prefix, short_prefix = _NATIVE_PREFIXES[enum_cls]
        key = value.strip().upper()
        if key.startswith(native_prefix.upper()):
            key = key[len(native_prefix):]
        for member in enum_cls:
            name = member.name.upper()
            if key == name or key == name[len(short_prefix):]:
                return member
        raise ConfigValidationError(
            f"{what}: unknown {enum_cls.__name__} name {value!r}"
        )
    raise ConfigValidationError(
        f"{what}: expected {enum_cls.__name__} name or integer code, "
        f"got {type(value).__name__} ({value!r})"
    )


@dataclass(frozen=True)
class UastcFlags:
    """UASTC pack level plus the encoder hint bits.

    The level occupies the low three bits; the hint flags sit at bits 3-7.
    """

    level: UastcPackLevel = UastcPackLevel.DEFAULT
    favor_uastc_error: bool = False
    favor_bc7_error: bool = False
    etc1_faster_hints: bool = False
    etc1_fastest_hints: bool = False
    etc1_disable_flip_and_individual: bool = False

    _LEVEL_MASK = 0x7
    # libktx's ktx_pack_uastc_flag_bits_e places the three ETC1 hints at
    # bits 6-8 (64/128/256). These positions are kept so existing integer
    # flag values keep their meaning; the hints reach libktx one bit lower.
    _FLAG_BITS = {
        "favor_uastc_error": 3,
        "favor_bc7_error": 4,
        "etc1_faster_hints": 5,
        "etc1_fastest_hints": 6,
        "etc1_disable_flip_and_individual": 7,
    }

    def to_int(self) -> int:
        value = int(self.level)
        for name, bit in self._FLAG_BITS.items():
            if getattr(self, name):
                value |= 1 << bit
        return value

    @classmethod
    def from_int(cls, value: int) -> "UastcFlags":
        known = cls._LEVEL_MASK
        for bit in cls._FLAG_BITS.values():
            known |= 1 << bit
        if value < 0 or value & ~known:
            raise ConfigValidationError(f"uastc_flags: invalid bit pattern {value:#x}")
        flags = {name: bool((value >> bit) & 1) for name, bit in cls._FLAG_BITS.items()}
        level = parse_native_enum(UastcPackLevel, value & cls._LEVEL_MASK, "uastc_flags.level")
        return cls(level=level, **flags)

    @classmethod
    def parse(cls, value) -> "UastcFlags":
        if isinstance(value, cls):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            return cls.from_int(value)
        if isinstance(value, str):
            if value.strip().isdigit():
                return cls.from_int(int(value.strip()))
            return cls(level=parse_native_enum(UastcPackLevel, value, "uastc_flags"))
        if isinstance(value, dict):
            unknown = set(value) - set(cls._FLAG_BITS) - {"level"}
            if unknown:
                raise ConfigValidationError(
                    f"uastc_flags: unknown keys {sorted(unknown)}"
                )
            kwargs = {}
            if "level" in value:
                kwargs["level"] = parse_native_enum(
                    UastcPackLevel, value["level"], "uastc_flags.level"
                )
            for name in cls._FLAG_BITS:
                if name in value:
                    if not isinstance(value[name], bool):
                        raise ConfigValidationError(
                            f"uastc_flags.{name}: expected bool, got {value[name]!r}"
                        )
                    kwargs[name] = value[name]
            return cls(**kwargs)
        raise ConfigValidationError(
            f"uastc_flags: expected integer, level name or mapping, got {value!r}"
        )

    def to_dict(self) -> dict:
        data = {"level": self.level.name}
        for name in self._FLAG_BITS:
            if getattr(self, name):
                data[name] = True
        return data


# ──────────────────────────────────────────
# Parameter records
# ──────────────────────────────────────────

def _tunable(native: str, kind: str, low=None, high=None, default=None, parser=None):
    return field(default=default, metadata={
        "native": native, "kind": kind, "range": (low, high), "parser": parser,
    })


def _check_number(where: str, value, kind: str):
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigValidationError(
            f"{where}: expected {kind}, got {type(value).__name__} ({value!r})"
        )
    if kind == "int":
        if isinstance(value, float):
            if value != int(value):
                raise ConfigValidationError(f"{where}: expected int, got {value!r}")
            value = int(value)
        return value
    return float(value)


def _clamp(where: str, value, low, high):
    clamped = value
    if low is not None and clamped < low:
        clamped = low
    if high is not None and clamped > high:
        clamped = high
    if clamped != value:
        logger.warning("Clamping %s from %r to %r", where, value, clamped)
    return clamped


def _parse_astc_quality(value, where):
    if isinstance(value, str) and not value.strip().isdigit():
        return int(parse_native_enum(AstcQuality, value, where))
    if isinstance(value, AstcQuality):
        return int(value)
    return value


class _ParameterRecord:
    """Mixin that normalizes every declared tunable after construction."""

    def __post_init__(self):
        self.normalize()

    def normalize(self):
        prefix = type(self).__name__
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            setattr(self, f.name, _normalize_tunable(f"{prefix}.{f.name}", f, value))

    def marshal(self) -> Dict[str, Any]:
        """Return supplied tunables keyed by native field name.

        Absent tunables are left out entirely so the engine applies its own
        default for them.
        """
        supplied = {}
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            if value is None:
                value = f.default
            if value is None:
                continue
            if isinstance(value, UastcFlags):
                value = value.to_int()
            elif isinstance(value, IntEnum):
                value = int(value)
            supplied[f.metadata["native"]] = value
        return supplied

    def to_dict(self) -> dict:
        data = {}
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            if isinstance(value, UastcFlags):
                value = value.to_dict()
            elif isinstance(value, IntEnum):
                value = value.name
            data[f.name] = value
        return data

    @classmethod
    def from_dict(cls, data) -> "_ParameterRecord":
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ConfigValidationError(
                f"{cls.__name__}: expected a mapping, got {type(data).__name__}"
            )
        data = {_KEY_ALIASES.get(key, key): value for key, value in data.items()}
        names = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(data) - names)
        if unknown:
            raise ConfigValidationError(f"{cls.__name__}: unknown keys {unknown}")
        return cls(**data)


# Field spellings used by older JSON configs.
_KEY_ALIASES = {
    "separate_rgt_to_rgba": "separate_rg_to_rgb_a",
    "deflation_value": "deflation_level",
}


def _normalize_tunable(where: str, f: dataclasses.Field, value):
    kind = f.metadata["kind"]
    low, high = f.metadata["range"]
    if kind == "bool":
        if not isinstance(value, bool):
            raise ConfigValidationError(
                f"{where}: expected bool, got {type(value).__name__} ({value!r})"
            )
        return value
    if kind == "swizzle":
        if not isinstance(value, str) or not _SWIZZLE_RE.match(value):
            raise ConfigValidationError(
                f"{where}: swizzle must be exactly 4 characters from 'rgba01', got {value!r}"
            )
        return value
    if kind == "enum":
        return f.metadata["parser"](value, where)
    if kind == "flags":
        return UastcFlags.parse(value)
    if f.metadata["parser"] is not None:
        value = f.metadata["parser"](value, where)
    value = _check_number(where, value, kind)
    return _clamp(where, value, low, high)


def _enum_parser(enum_cls):
    def _parse(value, where):
        return parse_native_enum(enum_cls, value, where)
    return _parse


@dataclass
class Etc1sParameters(_ParameterRecord):
    """Basis Universal ETC1S (BasisLZ) tunables."""

    verbose: Optional[bool] = _tunable("verbose", "bool")
    no_sse: Optional[bool] = _tunable("noSSE", "bool")
    thread_count: Optional[int] = _tunable("threadCount", "int", 1, 16)
    compression_level: Optional[int] = _tunable("compressionLevel", "int", 0, 5)
    quality_level: Optional[int] = _tunable("qualityLevel", "int", 1, 255)
    max_endpoints: Optional[int] = _tunable("maxEndpoints", "int", 1, 16128)
    endpoint_rdo_threshold: Optional[float] = _tunable("endpointRDOThreshold", "float")
    max_selectors: Optional[int] = _tunable("maxSelectors", "int", 1, 16128)
    selector_rdo_threshold: Optional[float] = _tunable("selectorRDOThreshold", "float")
    input_swizzle: Optional[str] = _tunable("inputSwizzle", "swizzle")
    normal_map: Optional[bool] = _tunable("normalMap", "bool")
    separate_rg_to_rgb_a: Optional[bool] = _tunable("separateRGToRGB_A", "bool")
    pre_swizzle: Optional[bool] = _tunable("preSwizzle", "bool")
    no_endpoint_rdo: Optional[bool] = _tunable("noEndpointRDO", "bool")
    no_selector_rdo: Optional[bool] = _tunable("noSelectorRDO", "bool")


@dataclass
class UastcParameters(_ParameterRecord):
    """Basis Universal UASTC tunables."""

    verbose: Optional[bool] = _tunable("verbose", "bool")
    no_sse: Optional[bool] = _tunable("noSSE", "bool")
    thread_count: Optional[int] = _tunable("threadCount", "int", 1, 16)
    input_swizzle: Optional[str] = _tunable("inputSwizzle", "swizzle")
    pre_swizzle: Optional[bool] = _tunable("preSwizzle", "bool")
    uastc_flags: Optional[UastcFlags] = _tunable("uastcFlags", "flags")
    uastc_rdo: Optional[bool] = _tunable("uastcRDO", "bool")
    uastc_rdo_quality_scalar: Optional[float] = _tunable(
        "uastcRDOQualityScalar", "float", 0.001, 50.0)
    uastc_rdo_dict_size: Optional[int] = _tunable("uastcRDODictSize", "int", 64, 65536)
    uastc_rdo_max_smooth_block_error_scale: Optional[float] = _tunable(
        "uastcRDOMaxSmoothBlockErrorScale", "float", 1.0, 300.0)
    uastc_rdo_max_smooth_block_std_dev: Optional[float] = _tunable(
        "uastcRDOMaxSmoothBlockStdDev", "float", 0.01, 65536.0)
    uastc_rdo_dont_favor_simpler_modes: Optional[bool] = _tunable(
        "uastcRDODontFavorSimplerModes", "bool")
    uastc_rdo_no_multithreading: Optional[bool] = _tunable(
        "uastcRDONoMultithreading", "bool")


@dataclass
class AstcParameters(_ParameterRecord):
    """ASTC encoder tunables."""

    verbose: Optional[bool] = _tunable("verbose", "bool")
    thread_count: Optional[int] = _tunable("threadCount", "int", 1, 16)
    block_dimension: Optional[AstcBlockDimension] = _tunable(
        "blockDimension", "enum", parser=_enum_parser(AstcBlockDimension))
    mode: Optional[AstcMode] = _tunable("mode", "enum", parser=_enum_parser(AstcMode))
    quality_level: Optional[int] = _tunable(
        "qualityLevel", "int", 0, 100, parser=_parse_astc_quality)
    normal_map: Optional[bool] = _tunable("normalMap", "bool")
    perceptual: Optional[bool] = _tunable("perceptual", "bool")
    input_swizzle: Optional[str] = _tunable("inputSwizzle", "swizzle")


@dataclass
class ZLibParameters(_ParameterRecord):
    deflation_level: int = _tunable("level", "int", 1, 9, default=7)


@dataclass
class ZstdParameters(_ParameterRecord):
    deflation_level: int = _tunable("level", "int", 1, 22, default=17)


_RECORD_TYPES = {
    Algorithm.ETC1S: Etc1sParameters,
    Algorithm.UASTC: UastcParameters,
    Algorithm.ASTC: AstcParameters,
    Algorithm.ZLIB: ZLibParameters,
    Algorithm.ZSTD: ZstdParameters,
}


@dataclass(frozen=True)
class NativeCompressionArgs:
    """Marshalled arguments for one native compression call.

    `fields` holds only supplied tunables, keyed by native struct field.
    """

    algorithm: Algorithm
    fields: Dict[str, Any]


@dataclass
class CompressionConfig:
    """Algorithm discriminant, its parameter record, and the premultiply switch."""

    algorithm: Algorithm = Algorithm.ETC1S
    parameters: Any = None
    premultiply: bool = True

    def __post_init__(self):
        self.algorithm = Algorithm.parse(self.algorithm)
        if self.parameters is None:
            self.parameters = _RECORD_TYPES[self.algorithm]()
        self.validate()

    @classmethod
    def default(cls) -> "CompressionConfig":
        """Return the batch default: ETC1S, 4 threads, compression level 4."""
        return cls(Algorithm.ETC1S, Etc1sParameters(thread_count=4, compression_level=4))

    def validate(self):
        """Raise ConfigValidationError unless discriminant and record agree."""
        expected = _RECORD_TYPES[self.algorithm]
        if not isinstance(self.parameters, expected):
            raise ConfigValidationError(
                f"compression_config: algorithm {self.algorithm.value} requires "
                f"{expected.__name__}, got {type(self.parameters).__name__}"
            )
        if not isinstance(self.premultiply, bool):
            raise ConfigValidationError(
                f"compression_config.premultiply: expected bool, got {self.premultiply!r}"
            )
        self.parameters.normalize()

    def marshal(self) -> NativeCompressionArgs:
        self.validate()
        return NativeCompressionArgs(self.algorithm, self.parameters.marshal())

    @classmethod
    def from_dict(cls, data) -> "CompressionConfig":
        """Build a config from its mapping form.

        Accepts ``{"algorithm": ..., "parameters": {...}}``, the legacy
        ``{"config_type": ..., "config": {"<Algorithm>": {...}}}`` layout,
        and the single-key ``{"<Algorithm>": {...}}`` shorthand. A sibling
        ``premultiply`` key is honored in every layout.
        """
        if isinstance(data, CompressionConfig):
            return data
        if not isinstance(data, dict):
            raise ConfigValidationError(
                f"compression_config: expected a mapping, got {type(data).__name__}"
            )
        data = dict(data)
        premultiply = data.pop("premultiply", True)
        if premultiply is None:
            premultiply = True

        if "algorithm" in data or "config_type" in data:
            tag = data.pop("algorithm", None) or data.pop("config_type", None)
            if not tag:
                raise ConfigValidationError(
                    "compression_config: missing 'algorithm' discriminant"
                )
            algorithm = Algorithm.parse(tag)
            params = data.pop("parameters", None)
            if params is None:
                params = data.pop("config", None)
            if isinstance(params, dict) and len(params) == 1:
                (tag, inner), = params.items()
                if tag.lower() in _ALGORITHM_ALIASES:
                    if Algorithm.parse(tag) is not algorithm:
                        raise ConfigValidationError(
                            f"compression_config: algorithm {algorithm.value} does not "
                            f"match parameter record {tag!r}"
                        )
                    params = inner
            if data:
                raise ConfigValidationError(
                    f"compression_config: unknown keys {sorted(data)}"
                )
        elif len(data) == 1:
            (tag, params), = data.items()
            algorithm = Algorithm.parse(tag)
        else:
            raise ConfigValidationError(
                "compression_config: missing 'algorithm' discriminant"
            )

        record = _RECORD_TYPES[algorithm].from_dict(params)
        return cls(algorithm=algorithm, parameters=record, premultiply=premultiply)

    def to_dict(self) -> dict:
        return {
            "algorithm": self.algorithm.value,
            "parameters": self.parameters.to_dict(),
            "premultiply": self.premultiply,
        }
