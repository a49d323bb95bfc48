"""Command-line interface for TexturePress."""

import argparse
import logging
import os
import sys

from .config import ConverterConfig
from .core import setup_logging
from .errors import ConfigValidationError, ConversionError, NativeLibraryError

logger = logging.getLogger("texture_press")

EXIT_OK = 0
EXIT_CONVERSION_FAILED = 1
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="texturepress",
        description="Batch-convert PNG/JPEG images into KTX2 or DXT textures",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  texturepress compress -c config.json
  texturepress compress -d ./textures -o ./textures_out --container dxt
  texturepress config --validate config.json
  texturepress config --generate config.yaml
        """
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    compress = subparsers.add_parser("compress", help="Convert a directory of images")
    compress.add_argument("--config", "-c", help="Path to a JSON or YAML config")
    compress.add_argument("--dir", "-d", help="Source directory (overrides from_directory)")
    compress.add_argument("--output", "-o", help="Destination directory (overrides to_directory)")
    compress.add_argument("--threads", "-t", type=int, help="Worker threads (1-20)")
    compress.add_argument("--container", choices=["ktx", "dxt"], help="Output container")
    compress.add_argument("--skip-errors", action="store_true",
                          help="Log per-file failures and keep going")
    compress.add_argument("--verbose", "-v", action="store_true", help="Show progress")
    compress.add_argument("--log-level",
                          choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    compress.add_argument("--log-file", help="Also write logs to this file")

    config = subparsers.add_parser("config", help="Validate or generate a config file")
    group = config.add_mutually_exclusive_group(required=True)
    group.add_argument("--validate", "-v", metavar="PATH", help="Validate a config file")
    group.add_argument("--generate", "-g", metavar="PATH", help="Write the default config")
    return parser


def _handle_config(args) -> int:
    if args.generate:
        dest = args.generate
        if os.path.isdir(dest):
            dest = os.path.join(dest, "texturepress.yaml")
        ConverterConfig().to_file(dest)
        print(f"Generated default {dest}")
        return EXIT_OK

    try:
        ConverterConfig.from_file(args.validate)
    except ConfigValidationError as exc:
        print(f"Error: Invalid config: {exc}")
        return EXIT_CONFIG_ERROR
    print(f"Config is valid: {args.validate}")
    return EXIT_OK


def _load_compress_config(args) -> ConverterConfig:
    config = ConverterConfig()
    if args.config:
        config = ConverterConfig.from_file(args.config)
    if args.dir:
        config.from_directory = args.dir
    if args.output:
        config.to_directory = args.output
    if args.threads is not None:
        config.number_of_threads = args.threads
    if args.container:
        config.compression_container = args.container.upper()
    if args.skip_errors:
        config.skip_errors = True
    if args.verbose:
        config.verbose = True
    if args.log_level:
        config.log_level = args.log_level
    if args.log_file:
        config.log_file = args.log_file
    config.validate()
    config.prepare_directories()
    return config


def _handle_compress(args) -> int:
    # Early validation warnings should reach stderr before logging is set up.
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s: %(message)s")
    try:
        config = _load_compress_config(args)
    except ConfigValidationError as exc:
        logger.error("%s", exc)
        print(f"Error: {exc}")
        return EXIT_CONFIG_ERROR

    setup_logging(config.log_level, config.log_file or None)

    from .pipeline import BatchConverter
    batch = BatchConverter(config)
    try:
        result = batch.run()
    except KeyboardInterrupt:
        batch.request_cancel()
        logger.warning("Interrupted by user.")
        return EXIT_INTERRUPTED
    except NativeLibraryError as exc:
        logger.error("%s", exc)
        print(f"Error: {exc}")
        return EXIT_CONFIG_ERROR
    except ConversionError as exc:
        logger.error("Conversion failed for %s: %s", exc.path, exc.cause)
        print(f"Error: {exc}")
        return EXIT_CONVERSION_FAILED

    print(
        f"Converted {len(result.succeeded)} of {result.total} image(s)"
        + (f", {len(result.failures)} failed" if result.failures else "")
    )
    return EXIT_OK


def main(argv=None):
    """Parse CLI arguments and dispatch to the selected subcommand."""
    args = build_parser().parse_args(argv)
    if args.command == "config":
        code = _handle_config(args)
    else:
        code = _handle_compress(args)
    if code:
        sys.exit(code)


if __name__ == "__main__":
    main()
