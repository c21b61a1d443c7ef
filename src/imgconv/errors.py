"""Exceptions raised by imgconv.

Every error raised after the caller hands over a stream carries that stream's
content in ``error.stream``: either the untouched original or a replay of the
bytes read from it, so callers can retry or fall back without losing data.
"""

from typing import BinaryIO, Optional


class ImgconvError(Exception):
    """Base class for all imgconv errors."""

    def __init__(self, message: str, stream: Optional[BinaryIO] = None) -> None:
        super().__init__(message)
        self.stream = stream


class InvalidDimensionsError(ImgconvError, ValueError):
    """Target or source dimensions are zero or an invalid negative value."""


class UnsupportedMediaError(ImgconvError):
    """The input data was not detected as an image."""


class UnsupportedFormatError(ImgconvError):
    """The requested output format is not produced by any known tool."""


class MetricsUnavailableError(ImgconvError):
    """A vector document declares no usable width, height or viewBox."""


class NoSuitableToolError(ImgconvError):
    """No installed program converts between the requested formats."""

    def __init__(
        self, format_in: str, format_out: str, stream: Optional[BinaryIO] = None
    ) -> None:
        super().__init__(
            "Failed to find a suitable image conversion program on this machine "
            f"to convert {format_in} to {format_out}",
            stream,
        )
        self.format_in = format_in
        self.format_out = format_out


class SubprocessError(ImgconvError):
    """The external program failed or reported diagnostics.

    The message is the program's diagnostic output verbatim when there is any.
    ``output`` holds whatever the program wrote to its standard output.
    """

    def __init__(
        self,
        message: str,
        returncode: Optional[int] = None,
        stderr: str = "",
        output: bytes = b"",
        stream: Optional[BinaryIO] = None,
    ) -> None:
        super().__init__(message, stream)
        self.returncode = returncode
        self.stderr = stderr
        self.output = output


class SubprocessTimeoutError(SubprocessError, TimeoutError):
    """The external program did not finish within the configured timeout."""

    def __init__(
        self,
        program: str,
        timeout: int,
        stderr: str = "",
        output: bytes = b"",
        stream: Optional[BinaryIO] = None,
    ) -> None:
        super().__init__(
            f"{program} timed out after {timeout} seconds and was killed. "
            f"To allow more time: set IMGCONV_TIMEOUT={timeout * 2} environment "
            f"variable, or use ResourceLimits(timeout={timeout * 2}) in Python API.",
            stderr=stderr,
            output=output,
            stream=stream,
        )
        self.program = program
        self.timeout = timeout
