"""Shared test fixtures."""

import itertools
import shutil
import tempfile
import threading

import numpy as np
import pytest
from PIL import Image

from TexturePress.config import ConverterConfig
from TexturePress.native.engine import KtxErrorCode, TextureEngine


class FakeEngine(TextureEngine):
    """In-memory engine that records every call.

    Set ``fail[operation] = code`` to make that operation return `code`.
    """

    def __init__(self):
        self.calls = []
        self.fail = {}
        self.created = 0
        self.destroyed = []
        self.images = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def _record(self, name, *args):
        with self._lock:
            self.calls.append((name,) + args)
        return self.fail.get(name, KtxErrorCode.SUCCESS)

    def create_texture(self, width, height, vk_format):
        code = self._record("create_texture", width, height, vk_format)
        if code:
            return code, None
        with self._lock:
            self.created += 1
            handle = next(self._ids)
        return code, handle

    def set_image_from_memory(self, handle, data):
        code = self._record("set_image_from_memory", handle, len(data))
        if not code:
            with self._lock:
                self.images[handle] = bytes(data)
        return code

    def compress_basis(self, handle, fields, uastc):
        return self._record("compress_basis", handle, dict(fields), uastc)

    def compress_astc(self, handle, fields):
        return self._record("compress_astc", handle, dict(fields))

    def deflate_zstd(self, handle, level):
        return self._record("deflate_zstd", handle, level)

    def deflate_zlib(self, handle, level):
        return self._record("deflate_zlib", handle, level)

    def write_to_named_file(self, handle, path):
        code = self._record("write_to_named_file", handle, path)
        if not code:
            with open(path.decode("utf-8"), "wb") as f:
                f.write(b"\xabKTX 20\xbb\r\n\x1a\n")
        return code

    def destroy_texture(self, handle):
        with self._lock:
            self.destroyed.append(handle)
            self.calls.append(("destroy_texture", handle))

    def names(self):
        return [call[0] for call in self.calls]


@pytest.fixture
def tmp_dir():
    d = tempfile.mkdtemp()
    yield d
    shutil.rmtree(d, ignore_errors=True)


@pytest.fixture
def fake_engine():
    return FakeEngine()


@pytest.fixture
def default_config(tmp_dir):
    config = ConverterConfig(from_directory=tmp_dir)
    config.validate()
    return config


def save_test_png(path, width=4, height=4, alpha=None, color=(200, 100, 50)):
    """Write a solid-color PNG; `alpha` adds an alpha channel with that value."""
    if alpha is None:
        arr = np.empty((height, width, 3), dtype=np.uint8)
        arr[...] = color
        Image.fromarray(arr, "RGB").save(path)
    else:
        arr = np.empty((height, width, 4), dtype=np.uint8)
        arr[...] = (*color, 255)
        arr[..., 3] = alpha
        Image.fromarray(arr, "RGBA").save(path)
    return arr
