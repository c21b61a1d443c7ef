"""Stream conversion through external programs.

:func:`convert` and :func:`convert_with_aspect` detect the input format,
select an installed program with :func:`~imgconv.tools.select_tool`, and pipe
the input through it. Every error raised after validation carries a replay of
the original input in ``error.stream``.

Example:
    >>> with open("icon.svg", "rb") as f:
    ...     png = convert_with_aspect(f, 256, "png")
    >>> png.read(8)
    b'\\x89PNG\\r\\n\\x1a\\n'
"""

import contextlib
import dataclasses
import io
import logging
import os
import subprocess
from concurrent.futures import ThreadPoolExecutor
from typing import BinaryIO, Iterator, Optional, Sequence

from imgconv.errors import (
    ImgconvError,
    InvalidDimensionsError,
    MetricsUnavailableError,
    SubprocessError,
    SubprocessTimeoutError,
)
from imgconv.formats import FormatInfo, canonical_format, identify
from imgconv.geometry import scale_with_aspect
from imgconv.resource_limits import ResourceLimits
from imgconv.stream_tee import CHUNK_SIZE, StreamTee, TeeReader
from imgconv.svg_metrics import read_svg_size
from imgconv.timeout_utils import deadline, kill_process_group
from imgconv.tools import NATIVE_SIZE, ConversionRequest, ToolDescriptor, select_tool
from imgconv.tools.selector import Selection

logger = logging.getLogger(__name__)

# Removed from the child environment so a library path set for this process
# (e.g. inside an AppImage) does not break system programs
CLEARED_ENV_VARS = ("LD_LIBRARY_PATH",)


def convert(
    stream: BinaryIO,
    width: int,
    height: int,
    format: str,
    *,
    limits: Optional[ResourceLimits] = None,
    strict: bool = True,
    tools: Optional[Sequence[ToolDescriptor]] = None,
) -> BinaryIO:
    """Convert the image in ``stream`` to ``format`` at ``width`` x ``height``.

    Args:
        stream: Binary stream of the source image, read from its current
            position. Ownership passes to this function.
        width: Target width in pixels, or -1 together with ``height`` for the
            source's native size.
        height: Target height in pixels, or -1.
        format: Output format, e.g. ``"png"`` or ``".jpg"``.
        limits: Resource limits. Defaults to :meth:`ResourceLimits.default`.
        strict: Treat any diagnostic output of the program as an error, even
            when it exits successfully.
        tools: Candidate programs in preference order, for testing or
            restricting the choice.

    Returns:
        Binary stream with the converted image.

    Raises:
        InvalidDimensionsError: If the size is zero or an invalid negative.
        UnsupportedMediaError: If the input is not an image.
        UnsupportedFormatError: If no known program writes ``format``.
        NoSuitableToolError: If no installed program handles the conversion.
        SubprocessError: If the program fails or reports diagnostics.
    """
    limits = limits or ResourceLimits.default()
    validate_dimensions(width, height, limits, stream)
    format_out = canonical_format(format)

    with _replay_on_error(StreamTee(stream, limits.max_buffer_memory)) as tee:
        info = identify(tee.reader())
        request = ConversionRequest(
            format_in=info.format,
            format_out=format_out,
            width=width,
            height=height,
        )
        selection = select_tool(request, tools)
        if (
            info.format == "svg"
            and not request.is_native
            and selection.tool.uses_source_size
        ):
            selection = _with_svg_size(tee, request, selection)
        return _run(tee, request, selection, limits, strict)


def convert_with_aspect(
    stream: BinaryIO,
    max_dimension: int,
    format: str,
    *,
    limits: Optional[ResourceLimits] = None,
    strict: bool = True,
    tools: Optional[Sequence[ToolDescriptor]] = None,
) -> BinaryIO:
    """Convert keeping the aspect ratio, with the larger side ``max_dimension``.

    The source size is read from the SVG document, or from the raster header.
    Other arguments are as for :func:`convert`.

    Raises:
        MetricsUnavailableError: If an SVG source declares no usable size.
    """
    limits = limits or ResourceLimits.default()
    if max_dimension <= 0:
        raise InvalidDimensionsError(
            f"Maximum dimension must be above 0, got {max_dimension}", stream
        )
    format_out = canonical_format(format)

    with _replay_on_error(StreamTee(stream, limits.max_buffer_memory)) as tee:
        info = identify(tee.reader())
        source_size = _source_size(tee, info)
        if source_size is None:
            width, height = max_dimension, max_dimension
        else:
            width, height = scale_with_aspect(*source_size, max_dimension)
            # Very thin sources would otherwise truncate to zero
            width, height = max(1, width), max(1, height)
        logger.debug(f"Scaled {source_size} to {width}x{height}")
        validate_dimensions(width, height, limits)
        request = ConversionRequest(
            format_in=info.format,
            format_out=format_out,
            width=width,
            height=height,
            source_size=source_size if info.format == "svg" else None,
        )
        return _run(tee, request, select_tool(request, tools), limits, strict)


def validate_dimensions(
    width: int,
    height: int,
    limits: Optional[ResourceLimits] = None,
    stream: Optional[BinaryIO] = None,
) -> None:
    """Raise InvalidDimensionsError unless both sides are positive or both -1."""
    if not _is_native(width, height) and (width <= 0 or height <= 0):
        raise InvalidDimensionsError(
            "Invalid resolution; must either be -1 (native resolution) or above 0, "
            f"got {width}x{height}",
            stream,
        )
    if (
        limits is not None
        and limits.is_image_dimension_limited()
        and max(width, height) > limits.max_image_dimension
    ):
        raise InvalidDimensionsError(
            f"Resolution {width}x{height} exceeds the maximum dimension "
            f"{limits.max_image_dimension}. To allow it: set "
            "IMGCONV_MAX_IMAGE_DIMENSION environment variable, or use "
            "ResourceLimits(max_image_dimension=...) in Python API.",
            stream,
        )


def _is_native(width: int, height: int) -> bool:
    return width == NATIVE_SIZE and height == NATIVE_SIZE


def _source_size(tee: StreamTee, info: FormatInfo) -> Optional[tuple[int, int]]:
    if info.format == "svg":
        return read_svg_size(tee.reader())
    return info.size


@contextlib.contextmanager
def _replay_on_error(tee: StreamTee) -> Iterator[StreamTee]:
    """Attach a replay of the input to imgconv errors; release the tee otherwise."""
    try:
        yield tee
    except ImgconvError as e:
        e.stream = TeeReader.owning(tee)
        raise
    except BaseException:
        tee.close()
        raise
    else:
        tee.close()


def _child_environment() -> dict[str, str]:
    env = dict(os.environ)
    for key in CLEARED_ENV_VARS:
        env.pop(key, None)
    return env


def _with_svg_size(
    tee: StreamTee, request: ConversionRequest, selection: Selection
) -> Selection:
    """Rebuild the arguments of ``selection`` with the document's own size."""
    try:
        source_size = read_svg_size(tee.reader())
    except MetricsUnavailableError as e:
        logger.warning(f"Rasterizing at default density: {e}")
        return selection
    request = dataclasses.replace(request, source_size=source_size)
    return Selection(
        path=selection.path,
        tool=selection.tool,
        args=tuple(selection.tool.build_args(request)),
    )


def _run(
    tee: StreamTee,
    request: ConversionRequest,
    selection: Selection,
    limits: ResourceLimits,
    strict: bool,
) -> BinaryIO:
    logger.info(f"Converting {request.format_in} to {request.format_out} with "
                f"{' '.join(selection.argv)}")
    returncode, output, stderr, timed_out = run_selection(
        selection, tee.reader(), limits.timeout
    )

    if timed_out:
        raise SubprocessTimeoutError(
            selection.tool.program, limits.timeout, stderr=stderr, output=output
        )
    if returncode != 0 or (strict and stderr.strip()):
        message = stderr.strip() or (
            f"{selection.tool.program} exited with status {returncode}"
        )
        raise SubprocessError(
            message, returncode=returncode, stderr=stderr, output=output
        )
    if stderr.strip():
        logger.warning(f"{selection.tool.program}: {stderr.strip()}")
    return io.BytesIO(output)


def run_selection(
    selection: Selection, payload: BinaryIO, timeout: int = 0
) -> tuple[int, bytes, str, bool]:
    """Run the selected program with ``payload`` on its standard input.

    Standard input is fed and standard error drained on worker threads while
    the calling thread reads standard output, so no pipe can fill up and block
    the others. The workers are joined and the pipes closed before returning.

    Returns:
        Tuple of (return code, standard output, standard error text,
        whether the timeout killed the program).

    Raises:
        SubprocessError: If the program cannot be started.
    """
    try:
        process = subprocess.Popen(
            selection.argv,
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            env=_child_environment(),
            start_new_session=True,
        )
    except OSError as e:
        raise SubprocessError(f"Failed to start {selection.path}: {e}") from e

    with process, deadline(process, timeout) as watchdog:
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="imgconv") as pool:
            feeder = pool.submit(_feed, payload, process.stdin)
            drainer = pool.submit(process.stderr.read)  # type: ignore[union-attr]
            try:
                output = process.stdout.read()  # type: ignore[union-attr]
                stderr = drainer.result()
                feeder.result()
            except BaseException:
                kill_process_group(process)
                raise
        returncode = process.wait()

    logger.debug(f"{selection.tool.program} exited with status {returncode}, "
                 f"{len(output)} bytes written")
    return returncode, output, stderr.decode("utf-8", errors="replace"), watchdog.expired


def _feed(payload: BinaryIO, pipe: Optional[BinaryIO]) -> None:
    """Copy ``payload`` to ``pipe`` and close it."""
    assert pipe is not None
    try:
        while True:
            chunk = payload.read(CHUNK_SIZE)
            if not chunk:
                break
            pipe.write(chunk)
    except BrokenPipeError:
        # The program stopped reading; its exit status tells what happened
        logger.debug("Program closed its input before reading all data")
    finally:
        with contextlib.suppress(BrokenPipeError):
            pipe.close()
