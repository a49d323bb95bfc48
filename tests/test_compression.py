"""Tests for the compression configuration model."""

import unittest

import pytest

from TexturePress.compression import (
    Algorithm, AstcBlockDimension, AstcMode, AstcParameters, AstcQuality,
    CompressionConfig, Etc1sParameters, UastcFlags, UastcPackLevel,
    UastcParameters, ZLibParameters, ZstdParameters, native_name,
    parse_native_enum,
)
from TexturePress.errors import ConfigValidationError


class TestClamping(unittest.TestCase):
    def test_etc1s_values_are_clamped(self):
        with self.assertLogs("texture_press.compression", level="WARNING") as cm:
            params = Etc1sParameters(
                thread_count=99, compression_level=-3, quality_level=0,
                max_endpoints=20000, max_selectors=0,
            )
        self.assertEqual(params.thread_count, 16)
        self.assertEqual(params.compression_level, 0)
        self.assertEqual(params.quality_level, 1)
        self.assertEqual(params.max_endpoints, 16128)
        self.assertEqual(params.max_selectors, 1)
        self.assertTrue(any("thread_count" in line for line in cm.output))

    def test_in_range_values_untouched(self):
        params = Etc1sParameters(thread_count=8, compression_level=5, quality_level=255)
        self.assertEqual((params.thread_count, params.compression_level, params.quality_level),
                         (8, 5, 255))

    def test_uastc_float_ranges(self):
        params = UastcParameters(
            uastc_rdo_quality_scalar=0.0,
            uastc_rdo_dict_size=10,
            uastc_rdo_max_smooth_block_error_scale=1000.0,
            uastc_rdo_max_smooth_block_std_dev=0.0,
        )
        self.assertAlmostEqual(params.uastc_rdo_quality_scalar, 0.001)
        self.assertEqual(params.uastc_rdo_dict_size, 64)
        self.assertEqual(params.uastc_rdo_max_smooth_block_error_scale, 300.0)
        self.assertAlmostEqual(params.uastc_rdo_max_smooth_block_std_dev, 0.01)

    def test_deflation_levels(self):
        self.assertEqual(ZLibParameters().deflation_level, 7)
        self.assertEqual(ZstdParameters().deflation_level, 17)
        self.assertEqual(ZLibParameters(deflation_level=42).deflation_level, 9)
        self.assertEqual(ZstdParameters(deflation_level=0).deflation_level, 1)

    def test_astc_quality_clamped_to_100(self):
        self.assertEqual(AstcParameters(quality_level=250).quality_level, 100)

    def test_integral_float_accepted_for_int(self):
        self.assertEqual(Etc1sParameters(thread_count=4.0).thread_count, 4)


class TestTypeValidation(unittest.TestCase):
    def test_string_for_number_rejected(self):
        with self.assertRaises(ConfigValidationError):
            Etc1sParameters(thread_count="4")

    def test_bool_for_number_rejected(self):
        with self.assertRaises(ConfigValidationError):
            Etc1sParameters(quality_level=True)

    def test_non_bool_flag_rejected(self):
        with self.assertRaises(ConfigValidationError):
            Etc1sParameters(normal_map="yes")

    def test_fractional_float_for_int_rejected(self):
        with self.assertRaises(ConfigValidationError):
            Etc1sParameters(compression_level=2.5)

    def test_unknown_record_key_rejected(self):
        with self.assertRaises(ConfigValidationError):
            Etc1sParameters.from_dict({"thread_count": 2, "bogus": 1})


@pytest.mark.parametrize("swizzle", ["rgba", "bgra", "rrr1", "0001", "aaaa"])
def test_valid_swizzles(swizzle):
    assert Etc1sParameters(input_swizzle=swizzle).input_swizzle == swizzle


@pytest.mark.parametrize("swizzle", ["rgb", "rgbaa", "RGBA", "xyzw", "rg b", "", 1234])
def test_invalid_swizzles(swizzle):
    with pytest.raises(ConfigValidationError):
        AstcParameters(input_swizzle=swizzle)


class TestNativeEnums(unittest.TestCase):
    def test_name_and_code_agree(self):
        by_native = parse_native_enum(AstcBlockDimension, "KTX_PACK_ASTC_BLOCK_DIMENSION_6x6")
        by_short = parse_native_enum(AstcBlockDimension, "6x6")
        by_code = parse_native_enum(AstcBlockDimension, 4)
        by_code_str = parse_native_enum(AstcBlockDimension, "4")
        self.assertIs(by_native, AstcBlockDimension.BLOCK_6x6)
        self.assertIs(by_short, by_native)
        self.assertIs(by_code, by_native)
        self.assertIs(by_code_str, by_native)

    def test_3d_block_codes(self):
        self.assertEqual(parse_native_enum(AstcBlockDimension, "3x3x3"), 14)
        self.assertEqual(parse_native_enum(AstcBlockDimension, 23),
                         AstcBlockDimension.BLOCK_6x6x6)

    def test_mode_is_case_insensitive(self):
        self.assertIs(parse_native_enum(AstcMode, "ldr"), AstcMode.LDR)
        self.assertIs(parse_native_enum(AstcMode, "KTX_PACK_ASTC_ENCODER_MODE_HDR"),
                      AstcMode.HDR)

    def test_native_name_round_trip(self):
        for member in AstcBlockDimension:
            self.assertIs(parse_native_enum(AstcBlockDimension, native_name(member)), member)
        self.assertEqual(native_name(AstcQuality.THOROUGH), "KTX_PACK_ASTC_QUALITY_LEVEL_THOROUGH")

    def test_unknown_code_rejected(self):
        with self.assertRaises(ConfigValidationError):
            parse_native_enum(AstcBlockDimension, 24)

    def test_unknown_name_rejected(self):
        with self.assertRaises(ConfigValidationError):
            parse_native_enum(AstcMode, "SDR")

    def test_bool_and_float_rejected(self):
        with self.assertRaises(ConfigValidationError):
            parse_native_enum(AstcMode, True)
        with self.assertRaises(ConfigValidationError):
            parse_native_enum(AstcMode, 1.0)

    def test_astc_quality_accepts_preset_name(self):
        self.assertEqual(AstcParameters(quality_level="THOROUGH").quality_level, 98)
        self.assertEqual(AstcParameters(quality_level=AstcQuality.FAST).quality_level, 10)
        self.assertEqual(AstcParameters(quality_level=42).quality_level, 42)


class TestUastcFlags(unittest.TestCase):
    def test_bit_layout(self):
        flags = UastcFlags(level=UastcPackLevel.SLOWER, favor_bc7_error=True,
                           etc1_disable_flip_and_individual=True)
        self.assertEqual(flags.to_int(), 3 | (1 << 4) | (1 << 7))

    def test_from_int_round_trip(self):
        value = 1 | (1 << 3) | (1 << 5)
        flags = UastcFlags.from_int(value)
        self.assertIs(flags.level, UastcPackLevel.FASTER)
        self.assertTrue(flags.favor_uastc_error)
        self.assertTrue(flags.etc1_faster_hints)
        self.assertFalse(flags.etc1_fastest_hints)
        self.assertEqual(flags.to_int(), value)

    def test_parse_mapping(self):
        flags = UastcFlags.parse({"level": "VERYSLOW", "etc1_fastest_hints": True})
        self.assertEqual(flags.to_int(), 4 | (1 << 6))

    def test_invalid_level_bits_rejected(self):
        with self.assertRaises(ConfigValidationError):
            UastcFlags.from_int(7)

    def test_unknown_bits_rejected(self):
        with self.assertRaises(ConfigValidationError):
            UastcFlags.from_int(1 << 9)


class TestCompressionConfig(unittest.TestCase):
    def test_default(self):
        config = CompressionConfig.default()
        self.assertIs(config.algorithm, Algorithm.ETC1S)
        self.assertTrue(config.premultiply)
        self.assertEqual(config.parameters.thread_count, 4)
        self.assertEqual(config.parameters.compression_level, 4)

    def test_mismatched_record_rejected(self):
        with self.assertRaises(ConfigValidationError):
            CompressionConfig(Algorithm.ETC1S, UastcParameters())

    def test_mismatch_detected_after_mutation(self):
        config = CompressionConfig(Algorithm.ASTC)
        config.parameters = ZstdParameters()
        with self.assertRaises(ConfigValidationError):
            config.marshal()

    def test_missing_record_gets_empty_default(self):
        config = CompressionConfig("uastc")
        self.assertIsInstance(config.parameters, UastcParameters)

    def test_marshal_includes_only_supplied_fields(self):
        config = CompressionConfig(
            Algorithm.ETC1S, Etc1sParameters(compression_level=0, no_sse=False)
        )
        args = config.marshal()
        self.assertIs(args.algorithm, Algorithm.ETC1S)
        self.assertEqual(args.fields, {"compressionLevel": 0, "noSSE": False})

    def test_marshal_enums_and_flags(self):
        astc = CompressionConfig(Algorithm.ASTC, AstcParameters(
            block_dimension="8x8", mode="HDR", input_swizzle="rgb1",
        )).marshal()
        self.assertEqual(astc.fields, {"blockDimension": 9, "mode": 2, "inputSwizzle": "rgb1"})

        uastc = CompressionConfig(Algorithm.UASTC, UastcParameters(
            uastc_flags={"level": "FASTEST", "favor_uastc_error": True},
        )).marshal()
        self.assertEqual(uastc.fields, {"uastcFlags": 8})

    def test_marshal_deflate_default_level(self):
        self.assertEqual(CompressionConfig(Algorithm.ZSTD).marshal().fields, {"level": 17})
        self.assertEqual(CompressionConfig(Algorithm.ZLIB).marshal().fields, {"level": 7})

    def test_from_dict_canonical_layout(self):
        config = CompressionConfig.from_dict({
            "algorithm": "ASTC",
            "parameters": {"block_dimension": "KTX_PACK_ASTC_BLOCK_DIMENSION_4x4",
                           "quality_level": "MEDIUM"},
            "premultiply": False,
        })
        self.assertIs(config.algorithm, Algorithm.ASTC)
        self.assertIs(config.parameters.block_dimension, AstcBlockDimension.BLOCK_4x4)
        self.assertEqual(config.parameters.quality_level, 60)
        self.assertFalse(config.premultiply)

    def test_from_dict_legacy_layout(self):
        config = CompressionConfig.from_dict({
            "config_type": "BasisUniversalBasisLZETC1s",
            "config": {"BasisUniversalBasisLZETC1s": {
                "thread_count": 4, "compression_level": 4, "separate_rgt_to_rgba": True,
            }},
        })
        self.assertIs(config.algorithm, Algorithm.ETC1S)
        self.assertTrue(config.parameters.separate_rg_to_rgb_a)
        self.assertTrue(config.premultiply)

    def test_from_dict_shorthand(self):
        config = CompressionConfig.from_dict({"Zstd": {"deflation_value": 30}})
        self.assertIs(config.algorithm, Algorithm.ZSTD)
        self.assertEqual(config.parameters.deflation_level, 22)

    def test_from_dict_legacy_tag_mismatch_rejected(self):
        with self.assertRaises(ConfigValidationError):
            CompressionConfig.from_dict({
                "config_type": "ASTC",
                "config": {"ZLib": {"deflation_value": 3}},
            })

    def test_from_dict_unknown_algorithm(self):
        with self.assertRaises(ConfigValidationError):
            CompressionConfig.from_dict({"algorithm": "BC7"})

    def test_null_discriminant_rejected(self):
        for data in ({"algorithm": None, "parameters": {}},
                     {"algorithm": "", "config_type": None}):
            with self.assertRaises(ConfigValidationError) as cm:
                CompressionConfig.from_dict(data)
            self.assertIn("missing 'algorithm' discriminant", str(cm.exception))

    def test_config_type_used_when_algorithm_null(self):
        config = CompressionConfig.from_dict({"algorithm": None, "config_type": "ZLib"})
        self.assertIs(config.algorithm, Algorithm.ZLIB)

    def test_non_bool_premultiply_rejected(self):
        with self.assertRaises(ConfigValidationError):
            CompressionConfig.from_dict({"algorithm": "ZLib", "premultiply": "yes"})

    def test_to_dict_round_trip(self):
        original = CompressionConfig(Algorithm.UASTC, UastcParameters(
            thread_count=2, uastc_flags=UastcFlags(level=UastcPackLevel.SLOWER),
        ), premultiply=False)
        restored = CompressionConfig.from_dict(original.to_dict())
        self.assertEqual(restored, original)
