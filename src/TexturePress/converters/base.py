"""Shared per-file conversion envelope."""

import abc
import logging
import os

from ..config import ConverterConfig
from ..errors import ConversionError, TexturePressError

logger = logging.getLogger("texture_press.converters")


class ImageConverter(abc.ABC):
    """Convert one source image and optionally remove it afterwards.

    Subclasses implement `_convert`, returning the primary output path.
    Every expected failure is re-raised as `ConversionError` carrying the
    source path.
    """

    def __init__(self, config: ConverterConfig):
        self.config = config

    @abc.abstractmethod
    def _convert(self, image_path: str) -> str:
        ...

    def convert(self, image_path: str) -> str:
        try:
            output_path = self._convert(image_path)
            if self.config.delete_original_images:
                os.remove(image_path)
                logger.debug("Deleted source image %s", image_path)
        except ConversionError:
            raise
        except (TexturePressError, OSError, ValueError) as exc:
            raise ConversionError(image_path, exc) from exc
        return output_path
