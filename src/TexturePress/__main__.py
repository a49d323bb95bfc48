"""Entrypoint for `python -m TexturePress`."""
import logging

from .cli import main

logger = logging.getLogger("texture_press")


if __name__ == "__main__":
    logger.debug("Dispatching to CLI entrypoint.")
    main()
