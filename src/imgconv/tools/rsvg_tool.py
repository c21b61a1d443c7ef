"""
librsvg command line converter.

Prerequisite:

    sudo apt-get install -y librsvg2-bin

"""

from dataclasses import dataclass, field

from imgconv.tools.base_tool import ConversionRequest, ToolDescriptor


@dataclass(frozen=True)
class RsvgConvertTool(ToolDescriptor):
    """rsvg-convert."""

    program: str = "rsvg-convert"
    inputs: frozenset[str] = field(default_factory=lambda: frozenset({"svg"}))
    outputs: frozenset[str] = field(
        default_factory=lambda: frozenset({"png", "pdf", "ps", "eps", "svg", "xml"})
    )

    def build_args(self, request: ConversionRequest) -> list[str]:
        return self._size_args(request) + ["-f", request.format_out]
