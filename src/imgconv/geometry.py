"""Size and resolution arithmetic for conversions."""

from imgconv.errors import InvalidDimensionsError

# Resolution most rasterizers assume when none is given
DEFAULT_DPI = 96


def scale_with_aspect(width: int, height: int, max_dimension: int) -> tuple[int, int]:
    """Scale (width, height) so the larger side equals ``max_dimension``.

    The smaller side keeps the aspect ratio and is truncated toward zero.

    Example:
        >>> scale_with_aspect(10, 5, 512)
        (512, 256)
    """
    if width <= 0 or height <= 0:
        raise InvalidDimensionsError(
            f"Source dimensions must be positive, got {width}x{height}"
        )
    if max_dimension <= 0:
        raise InvalidDimensionsError(
            f"Maximum dimension must be positive, got {max_dimension}"
        )

    wratio = width / height
    hratio = height / width
    if wratio < hratio:
        return int(max_dimension * wratio), max_dimension
    return max_dimension, int(max_dimension * hratio)


def compute_dpi(src_width: int, src_height: int, dst_width: int, dst_height: int) -> int:
    """Density to pass to rasterizers that default to 96 DPI.

    This is a heuristic rather than an exact formula: the density is raised in
    whole multiples of 96 so the vector source is rasterized at least as large
    as the requested output, which is then resized down. It never undersamples
    but can oversample by up to one multiple.

    Any non-positive argument yields :data:`DEFAULT_DPI`, as does a target
    smaller than the source. Unlike a plain ``96 * min(n1, n2)``, the multiplier
    is floored at 1 on purpose, so downscaling never asks for density 0.

    Example:
        >>> compute_dpi(16, 16, 512, 512)
        3072
    """
    if min(src_width, src_height, dst_width, dst_height) <= 0:
        return DEFAULT_DPI
    reference = max(src_width, src_height)
    factor = min(dst_width // reference, dst_height // reference)
    return DEFAULT_DPI * max(1, factor)
