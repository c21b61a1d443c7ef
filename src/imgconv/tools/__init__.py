"""External conversion programs.

Each module describes one program: the executable, the formats it reads and
writes through standard input and output, and its command line. The selector
picks the first installed program, in preference order, that handles a
requested conversion.
"""

from .base_tool import NATIVE_SIZE, ConversionRequest, ToolDescriptor
from .imagemagick_tool import ImageMagickTool
from .inkscape_tool import InkscapeTool
from .resvg_tool import ResvgTool
from .rsvg_tool import RsvgConvertTool
from .selector import Selection, default_tools, select_tool

__all__ = [
    "NATIVE_SIZE",
    "ConversionRequest",
    "ImageMagickTool",
    "InkscapeTool",
    "ResvgTool",
    "RsvgConvertTool",
    "Selection",
    "ToolDescriptor",
    "default_tools",
    "select_tool",
]
