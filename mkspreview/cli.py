"""Command-line entry point for slicer post-processing.

Replaces the preview image in a G-code file with one suitable for MKS TFT
displays. Slicers append the G-code path as the last argument:

    PrusaSlicer / OrcaSlicer → Output options → Post-processing scripts:
        /usr/local/bin/mks-tft-preview --simage-size 100 --log-file /tmp/mks.log;

CLI:
    mks-tft-preview part.gcode
    mks-tft-preview --simage-size 100 --gimage-size 200 part.gcode
    mks-tft-preview --output - part.gcode > converted.gcode
    mks-tft-preview --config ~/mks_tft_preview.yaml --log-level DEBUG part.gcode

Settings resolve as built-in defaults → YAML file (``--config`` or the
MKS_TFT_PREVIEW_CONFIG environment variable) → command-line flags.

Exit codes:
    0  converted, or nothing to convert
    1  conversion failed (0 with --no-fail)
    2  invalid arguments or configuration
"""

import argparse
import logging
import os
import sys
from typing import List, Mapping, Optional

from . import __version__, pipeline
from .thumbnail.errors import PreviewError
from .utils import logging_config, validators

logger = logging.getLogger(__name__)

CONFIG_ENV = "MKS_TFT_PREVIEW_CONFIG"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mks-tft-preview",
        description="Replace preview image in the G-code with one that is "
                    "suitable for MKS TFT displays.",
    )
    parser.add_argument("path", help="Path to the G-code file")
    parser.add_argument(
        "-s", "--simage-size", type=int, default=None,
        help=f"Size of the simage, 0 to drop it "
             f"(default: {validators.DEFAULT_SIMAGE_SIZE})",
    )
    parser.add_argument(
        "-g", "--gimage-size", type=int, default=None,
        help=f"Size of the gimage, 0 to drop it "
             f"(default: {validators.DEFAULT_GIMAGE_SIZE})",
    )
    parser.add_argument(
        "--resample", choices=validators.RESAMPLE_CHOICES, default=None,
        help="Resampling filter (default: bilinear)",
    )
    parser.add_argument(
        "-o", "--output", default=None,
        help="Write to this path instead of modifying the file in place; "
             "'-' writes to standard output",
    )
    parser.add_argument(
        "--config", default=None,
        help=f"YAML defaults file (default: ${CONFIG_ENV} if set)",
    )
    parser.add_argument("--log-file", default=None, help="Log file (appended to)")
    parser.add_argument(
        "--log-level", default=None,
        help="Log level. Possible levels are OFF, DEBUG, INFO, WARN, ERROR "
             "(default: WARN)",
    )
    parser.add_argument(
        "--log-format", choices=("human", "json"), default=None,
        help="Log line format (default: human)",
    )
    parser.add_argument(
        "--no-fail", action="store_true",
        help="Log conversion errors but exit 0 so the slicer keeps the G-code",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def resolve_request(
    args: argparse.Namespace,
    environ: Optional[Mapping[str, str]] = None,
) -> validators.ConversionRequest:
    """Merge defaults file and flags into a ConversionRequest.

    Raises
    ------
    FileNotFoundError
        If the defaults file is missing
    ValueError
        If the defaults file or a flag fails validation
    """
    environ = os.environ if environ is None else environ
    config_path = args.config or environ.get(CONFIG_ENV)
    defaults = (
        validators.load_defaults(config_path) if config_path
        else validators.PreviewDefaults()
    )

    def pick(flag, default):
        return default if flag is None else flag

    return validators.ConversionRequest(
        input_path=args.path,
        output=args.output,
        simage_size=pick(args.simage_size, defaults.simage_size),
        gimage_size=pick(args.gimage_size, defaults.gimage_size),
        resample=pick(args.resample, defaults.resample),
        log_level=pick(args.log_level, defaults.logging.level),
        log_file=pick(args.log_file, defaults.logging.file),
        log_format=pick(args.log_format, defaults.logging.format),
        fail_on_error=defaults.fail_on_error and not args.no_fail,
    )


def init_logging(request: validators.ConversionRequest) -> None:
    """Configure logging; a log file that cannot be opened is reported, not fatal."""
    context = {"file": request.input_path.name}
    log_file = str(request.log_file) if request.log_file else None
    try:
        logging_config.setup_logging(
            request.log_level, log_file,
            json=request.log_format == "json", context=context,
            quiet_libs=["PIL"],
        )
    except OSError as e:
        logging_config.setup_logging(
            request.log_level, None,
            json=request.log_format == "json", context=context,
            quiet_libs=["PIL"],
        )
        logger.error(f"Failed to open log file {log_file} for writing: {e}")
    logging_config.install_excepthook()
    logger.debug("Logging initialized")


def run(request: validators.ConversionRequest) -> int:
    """Run one conversion and map the outcome to an exit code."""
    try:
        result = pipeline.convert_file(request)
    except PreviewError as e:
        logger.error(f"{type(e).__name__}: {e}")
        if request.fail_on_error:
            return 1
        logger.debug("Finished with errors. Do not fail, to let the slicer continue")
        return 0

    if result.changed:
        sizes = ", ".join(f"{name} {w}x{h}" for name, (w, h) in result.slots.items())
        logger.info(f"Converted preview: {sizes or 'all slots disabled'}")
    logger.debug("Finished successfully")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        request = resolve_request(args)
    except (FileNotFoundError, ValueError) as e:
        parser.error(str(e))

    init_logging(request)
    try:
        return run(request)
    finally:
        logging_config.pop_context(keys=["file"])


if __name__ == "__main__":
    sys.exit(main())
