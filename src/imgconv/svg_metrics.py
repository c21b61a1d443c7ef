"""Intrinsic size of SVG documents."""

import logging
import re
import xml.etree.ElementTree as ET
from typing import BinaryIO, Optional

from imgconv.errors import MetricsUnavailableError

logger = logging.getLogger(__name__)

LENGTH_RE = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)\s*(px)?\s*$")
VIEWBOX_SEP_RE = re.compile(r"[\s,]+")


def read_svg_size(stream: BinaryIO) -> tuple[int, int]:
    """Read the intrinsic width and height of an SVG document.

    Only the root element is parsed. The ``width`` and ``height`` attributes are
    used when both are positive numbers (unitless or px). Otherwise the size is
    taken from ``viewBox``, read as ``x1 y1 x2 y2``; subtracting the first
    corner from the second keeps documents with a negative origin correct.

    Args:
        stream: Binary stream containing the SVG document.

    Returns:
        Tuple of positive (width, height) in pixels.

    Raises:
        MetricsUnavailableError: If the document is not SVG or has no usable
            size information.
    """
    root = _parse_root(stream)

    width = _parse_length(root.get("width"))
    height = _parse_length(root.get("height"))
    if width is not None and height is not None and width > 0 and height > 0:
        return width, height

    viewbox = root.get("viewBox")
    if viewbox:
        size = _parse_viewbox(viewbox)
        if size is not None:
            logger.debug(f"Using viewBox {viewbox!r} for size {size[0]}x{size[1]}")
            return size

    raise MetricsUnavailableError("Failed to get size information from image")


def _parse_root(stream: BinaryIO) -> ET.Element:
    try:
        for _, element in ET.iterparse(stream, events=("start",)):
            break
        else:
            raise MetricsUnavailableError("Empty SVG document")
    except ET.ParseError as e:
        raise MetricsUnavailableError(f"Failed to parse SVG document: {e}") from e

    tag = element.tag.rsplit("}", 1)[-1]
    if tag != "svg":
        raise MetricsUnavailableError(f"Root element is <{tag}>, not <svg>")
    return element


def _parse_length(value: Optional[str]) -> Optional[int]:
    """Parse a unitless or px length, truncating any fraction."""
    if not value:
        return None
    match = LENGTH_RE.match(value)
    if not match:
        return None
    return int(float(match.group(1)))


def _parse_viewbox(value: str) -> Optional[tuple[int, int]]:
    parts = VIEWBOX_SEP_RE.split(value.strip())
    if len(parts) != 4:
        return None
    try:
        x1, y1, x2, y2 = (float(part) for part in parts)
    except ValueError:
        return None
    width = int(x2 - x1)
    height = int(y2 - y1)
    if width > 0 and height > 0:
        return width, height
    return None
