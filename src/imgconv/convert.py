"""File path wrappers around the stream conversions."""

import logging
import os
import shutil
from typing import Any, BinaryIO

from imgconv.pipeline import convert, convert_with_aspect

logger = logging.getLogger(__name__)


def convert_file(
    src: str, dest: str, width: int, height: int, format: str, **kwargs: Any
) -> None:
    """Convert the image file ``src`` into ``dest``.

    No file is left at ``dest`` when the conversion fails. Keyword arguments
    are passed to :func:`~imgconv.pipeline.convert`.
    """
    with open(src, "rb") as f:
        _write_result(convert(f, width, height, format, **kwargs), dest)


def convert_file_with_aspect(
    src: str, dest: str, max_dimension: int, format: str, **kwargs: Any
) -> None:
    """Combination of :func:`convert_file` and
    :func:`~imgconv.pipeline.convert_with_aspect`."""
    with open(src, "rb") as f:
        _write_result(convert_with_aspect(f, max_dimension, format, **kwargs), dest)


def _write_result(result: BinaryIO, dest: str) -> None:
    # A destination that cannot be opened is left as it was
    with open(dest, "wb") as f:
        try:
            shutil.copyfileobj(result, f)
        except BaseException:
            f.close()
            logger.debug(f"Removing partially written {dest}")
            os.remove(dest)
            raise
