"""Convert source images into KTX2 containers via the native engine."""

import logging
from typing import Optional

from ..config import ConverterConfig
from ..core import atomic_output, decode_image, get_output_path, premultiply_alpha
from ..native.engine import TextureEngine, VkFormat
from ..texture import StagedTexture
from .base import ImageConverter

logger = logging.getLogger("texture_press.ktx")

KTX_EXTENSION = "ktx"


class KtxConverter(ImageConverter):
    """Decode, stage, compress and write one KTX2 file per image."""

    def __init__(self, config: ConverterConfig, engine: Optional[TextureEngine] = None):
        super().__init__(config)
        self._engine = engine

    @property
    def engine(self) -> TextureEngine:
        if self._engine is None:
            from ..native.libktx import get_default_engine
            self._engine = get_default_engine()
        return self._engine

    def output_path_for(self, image_path: str) -> str:
        return get_output_path(
            image_path, KTX_EXTENSION,
            self.config.from_directory, self.config.to_directory,
        )

    def _convert(self, image_path: str) -> str:
        decoded = decode_image(image_path)
        compression = self.config.compression_config
        pixels = decoded.pixels
        if compression is not None and compression.premultiply:
            pixels = premultiply_alpha(pixels)

        output_path = self.output_path_for(image_path)
        with StagedTexture.create(decoded.width, decoded.height,
                                  VkFormat.R8G8B8A8_UNORM, engine=self.engine) as texture:
            texture.bind_image(pixels.tobytes())
            if compression is not None:
                texture.compress(compression)
            # The engine writes beside the target; a failed write never
            # leaves a partial file at output_path.
            with atomic_output(output_path) as tmp_path:
                texture.write(tmp_path)

        logger.debug("Wrote %s (%dx%d)", output_path, decoded.width, decoded.height)
        return output_path
