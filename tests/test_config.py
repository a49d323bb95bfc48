"""Tests for ConverterConfig loading, validation, and persistence."""

import json
import os
import tempfile
import unittest

import pytest
import yaml

from TexturePress.compression import Algorithm, AstcBlockDimension
from TexturePress.config import ContainerType, ConverterConfig, clamp_thread_count
from TexturePress.errors import ConfigValidationError


@pytest.mark.parametrize("value, expected", [(0, 1), (-5, 1), (255, 20), (7, 7), (20, 20)])
def test_thread_count_clamped(value, expected):
    assert clamp_thread_count(value) == expected


@pytest.mark.parametrize("value, expected", [
    ("KTX", ContainerType.KTX),
    ("ktx2", ContainerType.KTX),
    ("Container", ContainerType.KTX),
    ("DXT", ContainerType.DXT),
    ("block", ContainerType.DXT),
])
def test_container_aliases(value, expected):
    assert ContainerType.parse(value) is expected


def test_unknown_container_rejected():
    with pytest.raises(ConfigValidationError):
        ContainerType.parse("png")


class TestValidate(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.root = self.tmp.name

    def tearDown(self):
        self.tmp.cleanup()

    def test_defaults_valid(self):
        config = ConverterConfig(from_directory=self.root)
        config.validate()
        self.assertEqual(config.from_directory, os.path.realpath(self.root))
        self.assertIs(config.container, ContainerType.KTX)
        self.assertIs(config.compression_config.algorithm, Algorithm.ETC1S)

    def test_threads_clamped_with_warning(self):
        config = ConverterConfig(from_directory=self.root, number_of_threads=255)
        with self.assertLogs("texture_press.config", level="WARNING"):
            config.validate()
        self.assertEqual(config.number_of_threads, 20)

    def test_missing_source_directory(self):
        config = ConverterConfig(from_directory=os.path.join(self.root, "nope"))
        with self.assertRaises(ConfigValidationError) as cm:
            config.validate()
        self.assertIn("from_directory", str(cm.exception))

    def test_errors_are_collected(self):
        config = ConverterConfig(
            from_directory="", compression_container="zip", log_level="LOUD",
        )
        with self.assertRaises(ConfigValidationError) as cm:
            config.validate()
        message = str(cm.exception)
        self.assertIn("from_directory", message)
        self.assertIn("compression_container", message)
        self.assertIn("log_level", message)

    def test_destination_that_is_a_file(self):
        target = os.path.join(self.root, "file.txt")
        with open(target, "w") as f:
            f.write("x")
        config = ConverterConfig(from_directory=self.root, to_directory=target)
        with self.assertRaises(ConfigValidationError):
            config.validate()

    def test_prepare_directories_creates_destination(self):
        out = os.path.join(self.root, "out", "nested")
        config = ConverterConfig(from_directory=self.root, to_directory=out)
        config.validate()
        config.prepare_directories()
        self.assertTrue(os.path.isdir(out))
        self.assertEqual(config.to_directory, os.path.realpath(out))


class TestFromFile:
    def test_json_file(self, tmp_dir):
        path = os.path.join(tmp_dir, "config.json")
        with open(path, "w", encoding="utf-8") as f:
            json.dump({
                "from_directory": tmp_dir,
                "ignore_list": ["cache"],
                "compression_container": "DXT",
                "number_of_threads": 2,
                "skip_errors": True,
                "compression_config": {
                    "algorithm": "ASTC",
                    "parameters": {"block_dimension": "8x8"},
                    "premultiply": False,
                },
            }, f)
        config = ConverterConfig.from_file(path)
        assert config.container is ContainerType.DXT
        assert config.ignore_list == ["cache"]
        assert config.skip_errors is True
        assert config.compression_config.parameters.block_dimension is AstcBlockDimension.BLOCK_8x8
        assert config.compression_config.premultiply is False

    def test_yaml_file(self, tmp_dir):
        path = os.path.join(tmp_dir, "config.yaml")
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump({
                "from_directory": tmp_dir,
                "number_of_threads": 4.0,
                "compression_config": {"Zstd": {"deflation_level": 5}},
            }, f)
        config = ConverterConfig.from_file(path)
        assert config.number_of_threads == 4
        assert config.compression_config.algorithm is Algorithm.ZSTD

    def test_unknown_keys_warn(self, tmp_dir, caplog):
        path = os.path.join(tmp_dir, "config.json")
        with open(path, "w", encoding="utf-8") as f:
            json.dump({"from_directory": tmp_dir, "colour": "blue"}, f)
        with caplog.at_level("WARNING", logger="texture_press.config"):
            config = ConverterConfig.from_file(path)
        assert "Unknown config key ignored: 'colour'" in caplog.text
        assert config.from_directory == os.path.realpath(tmp_dir)

    @pytest.mark.parametrize("key, value", [
        ("from_directory", ["/data/textures"]),
        ("to_directory", 42),
        ("delete_original_images", "true"),
        ("ignore_list", "cache"),
        ("compression_container", 1),
        ("number_of_threads", "8"),
        ("number_of_threads", True),
        ("number_of_threads", 2.5),
        ("skip_errors", "true"),
        ("verbose", "yes"),
        ("log_level", 10),
        ("from_directory", None),
    ])
    def test_mistyped_value_rejected(self, tmp_dir, key, value):
        path = os.path.join(tmp_dir, "config.json")
        data = {"from_directory": tmp_dir}
        data[key] = value
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f)
        with pytest.raises(ConfigValidationError, match=key):
            ConverterConfig.from_file(path)

    def test_mistyped_source_never_falls_back_to_cwd(self, tmp_dir):
        with pytest.raises(ConfigValidationError) as excinfo:
            ConverterConfig.from_dict({
                "from_directory": ["/data/textures"],
                "delete_original_images": True,
            })
        assert "from_directory must be str" in str(excinfo.value)

    def test_every_type_error_reported(self):
        with pytest.raises(ConfigValidationError) as excinfo:
            ConverterConfig.from_dict({"number_of_threads": "8", "skip_errors": "true"})
        message = str(excinfo.value)
        assert "number_of_threads" in message
        assert "skip_errors" in message

    def test_null_destination_allowed(self):
        config = ConverterConfig.from_dict({"to_directory": None})
        assert config.to_directory is None

    def test_null_algorithm_reported_as_config_error(self, tmp_dir):
        path = os.path.join(tmp_dir, "config.json")
        with open(path, "w", encoding="utf-8") as f:
            json.dump({"from_directory": tmp_dir,
                       "compression_config": {"algorithm": None, "parameters": {}}}, f)
        with pytest.raises(ConfigValidationError, match="discriminant"):
            ConverterConfig.from_file(path)

    def test_bad_compression_config_names_file(self, tmp_dir):
        path = os.path.join(tmp_dir, "config.json")
        with open(path, "w", encoding="utf-8") as f:
            json.dump({"from_directory": tmp_dir,
                       "compression_config": {"algorithm": "ETC1S",
                                              "parameters": {"input_swizzle": "rgbx"}}}, f)
        with pytest.raises(ConfigValidationError, match="config.json"):
            ConverterConfig.from_file(path)

    def test_missing_file(self, tmp_dir):
        with pytest.raises(ConfigValidationError, match="not found"):
            ConverterConfig.from_file(os.path.join(tmp_dir, "absent.json"))

    def test_malformed_yaml(self, tmp_dir):
        path = os.path.join(tmp_dir, "broken.yaml")
        with open(path, "w", encoding="utf-8") as f:
            f.write("from_directory: [unclosed\n")
        with pytest.raises(ConfigValidationError, match="Failed to parse"):
            ConverterConfig.from_file(path)

    def test_non_mapping_document(self, tmp_dir):
        path = os.path.join(tmp_dir, "list.yaml")
        with open(path, "w", encoding="utf-8") as f:
            f.write("- a\n- b\n")
        with pytest.raises(ConfigValidationError, match="mapping"):
            ConverterConfig.from_file(path)


@pytest.mark.parametrize("name", ["saved.json", "saved.yaml"])
def test_to_file_round_trip(tmp_dir, name):
    config = ConverterConfig.from_dict({
        "from_directory": tmp_dir,
        "ignore_list": ["notes.txt"],
        "number_of_threads": 6,
        "compression_config": {"algorithm": "UASTC",
                               "parameters": {"uastc_flags": {"level": "SLOWER"}}},
    })
    config.validate()
    path = os.path.join(tmp_dir, name)
    config.to_file(path)
    restored = ConverterConfig.from_file(path)
    assert restored == config
    assert sorted(os.listdir(tmp_dir)) == [name]
