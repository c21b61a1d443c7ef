import logging
import shutil
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import ClassVar, Optional

logger = logging.getLogger(__name__)

# Width and height sentinel meaning "keep the source's own size"
NATIVE_SIZE = -1


@dataclass(frozen=True)
class ConversionRequest:
    """Parameters of a single conversion, passed to argument builders.

    ``source_size`` is the intrinsic size of a vector source when it is known;
    it is only needed for density compensation.
    """

    format_in: str
    format_out: str
    width: int = NATIVE_SIZE
    height: int = NATIVE_SIZE
    source_size: Optional[tuple[int, int]] = None

    @property
    def is_native(self) -> bool:
        return self.width == NATIVE_SIZE and self.height == NATIVE_SIZE


@dataclass(frozen=True)
class ToolDescriptor(ABC):
    """Base class for external conversion programs.

    A descriptor declares which executable to run, the formats it reads from
    standard input and writes to standard output, and how to build its command
    line. Subclasses must implement :meth:`build_args`.
    """

    program: str
    inputs: frozenset[str]
    outputs: frozenset[str]

    # Whether build_args reads ConversionRequest.source_size
    uses_source_size: ClassVar[bool] = False

    def which(self) -> Optional[str]:
        """Resolve the executable on PATH, or None if it is not installed."""
        return shutil.which(self.program)

    def supports(self, format_in: str, format_out: str) -> bool:
        return format_in in self.inputs and format_out in self.outputs

    @abstractmethod
    def build_args(self, request: ConversionRequest) -> list[str]:
        """Build the argument list (without the program) for ``request``.

        Native size requests must produce arguments that do not resize.
        """
        raise NotImplementedError

    def _size_args(self, request: ConversionRequest) -> list[str]:
        """``-w W -h H``, or nothing for a native size request."""
        if request.is_native:
            return []
        return ["-w", str(request.width), "-h", str(request.height)]
