"""Choose an installed external program for a conversion."""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from imgconv.errors import NoSuitableToolError, UnsupportedFormatError
from imgconv.tools.base_tool import ConversionRequest, ToolDescriptor
from imgconv.tools.imagemagick_tool import ImageMagickTool, legacy_imagemagick
from imgconv.tools.inkscape_tool import InkscapeTool
from imgconv.tools.resvg_tool import ResvgTool
from imgconv.tools.rsvg_tool import RsvgConvertTool

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Selection:
    """Program chosen for a conversion and its complete argument list."""

    path: str
    tool: ToolDescriptor
    args: tuple[str, ...]

    @property
    def argv(self) -> list[str]:
        return [self.path, *self.args]


def default_tools() -> tuple[ToolDescriptor, ...]:
    """Known programs, fastest and most specialized first.

    A new set of descriptors is built on every call.
    """
    return (
        ResvgTool(),
        RsvgConvertTool(),
        InkscapeTool(),
        ImageMagickTool(),
        legacy_imagemagick(),
    )


def select_tool(
    request: ConversionRequest,
    tools: Optional[Sequence[ToolDescriptor]] = None,
) -> Selection:
    """Return the first installed tool that converts ``request``'s formats.

    Args:
        request: Formats and sizes of the conversion.
        tools: Candidates in preference order. Defaults to :func:`default_tools`.

    Returns:
        Selection with the resolved executable path and argument list.

    Raises:
        UnsupportedFormatError: If no candidate can write the output format,
            installed or not.
        NoSuitableToolError: If no installed candidate converts the pair.
    """
    candidates = default_tools() if tools is None else tuple(tools)

    if not any(request.format_out in tool.outputs for tool in candidates):
        raise UnsupportedFormatError(
            f"No known image conversion program writes {request.format_out!r}"
        )

    for tool in candidates:
        if not tool.supports(request.format_in, request.format_out):
            continue
        path = tool.which()
        if path is None:
            logger.debug(f"{tool.program} supports {request.format_in} to "
                         f"{request.format_out} but is not installed")
            continue
        args = tuple(tool.build_args(request))
        logger.debug(f"Selected {path} {' '.join(args)}")
        return Selection(path=path, tool=tool, args=args)

    raise NoSuitableToolError(request.format_in, request.format_out)
