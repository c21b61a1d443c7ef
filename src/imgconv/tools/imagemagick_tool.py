"""
ImageMagick converter.

Prerequisite:

    sudo apt-get install -y imagemagick

ImageMagick 7 installs ``magick``; ImageMagick 6 installs ``convert``. Both
accept the same arguments for the conversions used here.
"""

import logging
from dataclasses import dataclass
from typing import ClassVar

from imgconv.geometry import compute_dpi
from imgconv.tools.base_tool import ConversionRequest, ToolDescriptor

logger = logging.getLogger(__name__)

# Formats ImageMagick reads that the format sniffer can also recognize
IMAGEMAGICK_INPUTS = frozenset(
    {
        "svg", "png", "xpm", "jxl", "jp2", "jpf", "jpg", "gif", "webp", "bmp",
        "ico", "bpg", "dwg", "icns", "heic", "heif", "hdr", "xcf", "pat", "gbr",
        "tiff", "tga", "pcx", "ppm", "psd", "avif",
    }
)  # fmt: skip

IMAGEMAGICK_OUTPUTS = frozenset(
    {
        "png", "xpm", "jxl", "jp2", "jpf", "gbr", "jpg", "gif", "webp", "bmp",
        "ico", "bpg", "dwg", "icns", "heic", "heif", "hdr", "xcf", "pat",
        "tiff", "tga", "pcx", "ppm", "avif",
    }
)  # fmt: skip


@dataclass(frozen=True)
class ImageMagickTool(ToolDescriptor):
    """ImageMagick, the slowest candidate but with the widest format support.

    ImageMagick rasterizes SVG at 96 DPI and then resizes, which blurs small
    documents scaled up to a large target. For SVG input with a finite target
    the density is raised with :func:`~imgconv.geometry.compute_dpi`.
    """

    program: str = "magick"
    inputs: frozenset[str] = IMAGEMAGICK_INPUTS
    outputs: frozenset[str] = IMAGEMAGICK_OUTPUTS
    uses_source_size: ClassVar[bool] = True

    def build_args(self, request: ConversionRequest) -> list[str]:
        args = ["-background", "none"]
        if request.format_in == "svg" and not request.is_native:
            src_width, src_height = request.source_size or (0, 0)
            dpi = compute_dpi(src_width, src_height, request.width, request.height)
            logger.debug(f"Rasterizing svg at density {dpi}")
            args += ["-density", str(dpi)]
        args.append(f"{request.format_in}:-")
        if not request.is_native:
            args += ["-resize", f"{request.width}x{request.height}"]
        args.append(f"{request.format_out}:-")
        return args


def legacy_imagemagick() -> ImageMagickTool:
    """ImageMagick 6, installed as ``convert``."""
    return ImageMagickTool(program="convert")
