"""
Inkscape command line export.

Prerequisite:

    sudo apt-get install -y inkscape

Requires Inkscape 1.0 or later for ``--pipe`` and ``--export-type``.
"""

from dataclasses import dataclass, field

from imgconv.tools.base_tool import ConversionRequest, ToolDescriptor


@dataclass(frozen=True)
class InkscapeTool(ToolDescriptor):
    """Inkscape."""

    program: str = "inkscape"
    inputs: frozenset[str] = field(default_factory=lambda: frozenset({"svg"}))
    outputs: frozenset[str] = field(
        default_factory=lambda: frozenset({"png", "pdf", "ps", "eps", "svg", "emf", "wmf"})
    )

    def build_args(self, request: ConversionRequest) -> list[str]:
        # Inkscape has no "-1" size, so size flags are only added for a
        # finite target
        return [
            "--pipe",
            f"--export-type={request.format_out}",
            "--export-filename=-",
        ] + self._size_args(request)
