"""
resvg command line rasterizer.

Prerequisite:

    cargo install resvg

"""

from dataclasses import dataclass, field

from imgconv.tools.base_tool import ConversionRequest, ToolDescriptor


@dataclass(frozen=True)
class ResvgTool(ToolDescriptor):
    """resvg, the fastest SVG rasterizer. Only writes PNG."""

    program: str = "resvg"
    inputs: frozenset[str] = field(default_factory=lambda: frozenset({"svg"}))
    outputs: frozenset[str] = field(default_factory=lambda: frozenset({"png"}))

    def build_args(self, request: ConversionRequest) -> list[str]:
        # "-" reads the document from stdin, -c writes the PNG to stdout
        return self._size_args(request) + ["-", "-c"]
