"""Input format detection.

Formats are identified from content, never from a file extension. Raster
formats are recognized by a table of magic signatures for formats only
ImageMagick reads, then by Pillow's format plugins. SVG is recognized by its XML
root element.
"""

import logging
import re
from dataclasses import dataclass
from typing import BinaryIO, Optional

from PIL import Image, UnidentifiedImageError

from imgconv.errors import UnsupportedMediaError
from imgconv.stream_tee import StreamTee

logger = logging.getLogger(__name__)

# Bytes inspected when looking for an SVG root element
SVG_SNIFF_SIZE = 4096

# Pillow format names whose common extension differs from the lower-cased name
PILLOW_FORMATS: dict[str, str] = {
    "JPEG": "jpg",
    "MPO": "jpg",
    "JPEG2000": "jp2",
    "TIFF": "tiff",
    "PNG": "png",
    "GIF": "gif",
    "WEBP": "webp",
    "BMP": "bmp",
    "DIB": "bmp",
    "ICO": "ico",
    "ICNS": "icns",
    "XPM": "xpm",
    "PPM": "ppm",
    "PCX": "pcx",
    "TGA": "tga",
    "PSD": "psd",
    "GBR": "gbr",
    "AVIF": "avif",
}

FORMAT_ALIASES: dict[str, str] = {
    "jpeg": "jpg",
    "jpe": "jpg",
    "jfif": "jpg",
    "tif": "tiff",
    "j2k": "jp2",
    "jpx": "jpf",
    "pbm": "ppm",
    "pgm": "ppm",
    "pnm": "ppm",
}

# Formats ImageMagick reads that Pillow does not identify, as
# (offset, magic, FormatTag, MIME type). Checked before Pillow, whose GIMP brush
# plugin also accepts some pattern headers.
SIGNATURES: tuple[tuple[int, bytes, str, str], ...] = (
    (0, b"\xff\x0a", "jxl", "image/jxl"),
    (0, b"\x00\x00\x00\x0cJXL \r\n\x87\n", "jxl", "image/jxl"),
    (0, b"gimp xcf ", "xcf", "image/x-xcf"),
    (0, b"BPG\xfb", "bpg", "image/bpg"),
    (0, b"#?RADIANCE\n", "hdr", "image/vnd.radiance"),
    (0, b"#?RGBE\n", "hdr", "image/vnd.radiance"),
    (20, b"GPAT", "pat", "image/x-gimp-pat"),
)

# ISO base media files are identified by the major brand after "ftyp"
FTYP_BRANDS: dict[bytes, tuple[str, str]] = {
    b"heic": ("heic", "image/heic"),
    b"heix": ("heic", "image/heic"),
    b"hevc": ("heic", "image/heic-sequence"),
    b"hevx": ("heic", "image/heic-sequence"),
    b"mif1": ("heif", "image/heif"),
    b"msf1": ("heif", "image/heif-sequence"),
    b"heim": ("heif", "image/heif"),
    b"heis": ("heif", "image/heif"),
}

# AutoCAD drawings start with a release code such as AC1015
DWG_RE = re.compile(rb"^AC10(?:0[2-9]|1[0-9]|2[0-9]|3[0-2])")

# Optional BOM, whitespace, then any mix of XML declaration, comments,
# processing instructions and DOCTYPE before the <svg> root.
SVG_ROOT_RE = re.compile(
    rb"^(?:\xef\xbb\xbf)?\s*"
    rb"(?:(?:<\?[^>]*\?>|<!--.*?-->|<!DOCTYPE[^>\[]*(?:\[.*?\])?\s*>)\s*)*"
    rb"<(?:[A-Za-z_][\w.-]*:)?svg[\s>/]",
    re.DOTALL | re.IGNORECASE,
)


@dataclass(frozen=True)
class FormatInfo:
    """Detected format of an input stream.

    ``size`` is the pixel size reported by the raster header, or None for
    vector formats.
    """

    format: str
    mime: str
    size: Optional[tuple[int, int]] = None


def canonical_format(name: str) -> str:
    """Normalize a format name or extension to a FormatTag.

    Example:
        >>> canonical_format(".JPEG")
        'jpg'
    """
    tag = name.strip().lower().lstrip(".")
    return FORMAT_ALIASES.get(tag, tag)


def identify(stream: BinaryIO) -> FormatInfo:
    """Identify the image format of ``stream`` from its leading bytes.

    The stream should be seekable and positioned at its start. Pillow reads as
    much of the header as the format needs, so pass a
    :class:`~imgconv.stream_tee.TeeReader` rather than the caller's stream when
    the bytes are still needed afterwards.

    Non-seekable streams are buffered internally; their leading bytes are
    consumed.

    Raises:
        UnsupportedMediaError: If the data is not an image.
    """
    if not _is_seekable(stream):
        with StreamTee(stream) as tee:
            return identify(tee.reader())

    start = stream.tell()
    head = stream.read(SVG_SNIFF_SIZE)
    info = _match_signature(head)
    if info is not None:
        logger.debug(f"Detected {info.format} by signature")
        return info

    stream.seek(start)
    try:
        with Image.open(stream) as image:
            pillow_format = image.format or ""
            size = image.size
    except UnidentifiedImageError:
        pillow_format = ""
        size = None
    except Image.DecompressionBombError as e:
        raise UnsupportedMediaError(f"Image is too large to inspect: {e}") from e

    if pillow_format:
        mime = Image.MIME.get(pillow_format.upper(), f"image/{pillow_format.lower()}")
        if mime.split("/")[0] != "image":
            raise UnsupportedMediaError(
                f"Data magic was detected as {mime}, not an image format"
            )
        tag = PILLOW_FORMATS.get(pillow_format.upper(), pillow_format.lower())
        logger.debug(f"Detected {tag} ({pillow_format}, {size[0]}x{size[1]})")
        return FormatInfo(format=tag, mime=mime, size=size)

    if SVG_ROOT_RE.match(head):
        logger.debug("Detected svg")
        return FormatInfo(format="svg", mime="image/svg+xml")

    raise UnsupportedMediaError("Data magic wasn't detected as an image format")


def _match_signature(head: bytes) -> Optional[FormatInfo]:
    if head[4:8] == b"ftyp" and head[8:12] in FTYP_BRANDS:
        tag, mime = FTYP_BRANDS[head[8:12]]
        return FormatInfo(format=tag, mime=mime)
    if DWG_RE.match(head):
        return FormatInfo(format="dwg", mime="image/vnd.dwg")
    for offset, magic, tag, mime in SIGNATURES:
        if head[offset : offset + len(magic)] == magic:
            return FormatInfo(format=tag, mime=mime)
    return None


def _is_seekable(stream: BinaryIO) -> bool:
    try:
        return stream.seekable()
    except (AttributeError, ValueError):
        return False


def detect_format(stream: BinaryIO) -> str:
    """Return the FormatTag of the image in ``stream``, e.g. ``"png"``."""
    return identify(stream).format
