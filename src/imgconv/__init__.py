from imgconv.convert import convert_file, convert_file_with_aspect
from imgconv.errors import (
    ImgconvError,
    InvalidDimensionsError,
    MetricsUnavailableError,
    NoSuitableToolError,
    SubprocessError,
    SubprocessTimeoutError,
    UnsupportedFormatError,
    UnsupportedMediaError,
)
from imgconv.formats import FormatInfo, canonical_format, detect_format, identify
from imgconv.pipeline import convert, convert_with_aspect
from imgconv.resource_limits import ResourceLimits
from imgconv.tools import ConversionRequest, default_tools, select_tool
from imgconv.version import __version__ as __version__

__all__ = [
    "ConversionRequest",
    "FormatInfo",
    "ImgconvError",
    "InvalidDimensionsError",
    "MetricsUnavailableError",
    "NoSuitableToolError",
    "ResourceLimits",
    "SubprocessError",
    "SubprocessTimeoutError",
    "UnsupportedFormatError",
    "UnsupportedMediaError",
    "canonical_format",
    "convert",
    "convert_file",
    "convert_file_with_aspect",
    "convert_with_aspect",
    "default_tools",
    "detect_format",
    "identify",
    "select_tool",
]
