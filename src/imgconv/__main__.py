import argparse
import logging
import os
import sys
from typing import Optional

from imgconv import ImgconvError, ResourceLimits, convert_file, convert_file_with_aspect

logger = logging.getLogger(__name__)


def parse_size(value: str) -> tuple[int, int]:
    """Parse ``WxH`` into a (width, height) tuple."""
    try:
        width, height = (int(v) for v in value.lower().split("x"))
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid size {value!r}, expected WxH") from None
    return width, height


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Convert an image using an installed conversion program"
    )
    parser.add_argument("input", metavar="INPUT", type=str, help="Input image path")
    parser.add_argument("output", metavar="OUTPUT", type=str, help="Output path")
    size = parser.add_mutually_exclusive_group()
    size.add_argument(
        "--size",
        metavar="WxH",
        type=parse_size,
        default=(-1, -1),
        help="Output size. Use -1x-1 for the native size (default).",
    )
    size.add_argument(
        "--max-size",
        metavar="N",
        type=int,
        default=None,
        help="Keep the aspect ratio and make the larger side N pixels.",
    )
    parser.add_argument(
        "--format",
        metavar="FORMAT",
        type=str,
        default=None,
        help="Output format. Default: extension of OUTPUT",
    )
    parser.add_argument(
        "--timeout",
        metavar="SECONDS",
        type=int,
        default=None,
        help="Kill the conversion program after SECONDS. Default: IMGCONV_TIMEOUT "
        "or 180, 0 to disable",
    )
    parser.add_argument(
        "--lenient",
        dest="strict",
        action="store_false",
        help="Accept warnings printed by a program that exits successfully.",
    )
    parser.add_argument(
        "--loglevel",
        metavar="LEVEL",
        default="WARNING",
        help="Logging level, default WARNING",
    )
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    """Main function to convert an image file."""
    args = parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.loglevel.upper(), "WARNING"))

    format = args.format or os.path.splitext(args.output)[1]
    if not format:
        logger.error("Output format is not given and OUTPUT has no extension")
        return 2

    limits = ResourceLimits.default()
    if args.timeout is not None:
        limits.timeout = args.timeout

    try:
        if args.max_size is not None:
            convert_file_with_aspect(
                args.input,
                args.output,
                args.max_size,
                format,
                limits=limits,
                strict=args.strict,
            )
        else:
            convert_file(
                args.input,
                args.output,
                *args.size,
                format,
                limits=limits,
                strict=args.strict,
            )
    except (ImgconvError, OSError) as e:
        print(f"imgconv: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
