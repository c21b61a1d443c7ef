"""Resource limits for external conversions.

This module provides configurable limits that keep a single conversion from
hanging forever or exhausting memory when it is handed a large input.
"""

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# Largest side ImageMagick and most codecs handle without special policy files
DEFAULT_MAX_IMAGE_DIMENSION = 32768

# Input bytes kept in memory by the stream tee before spilling to disk (16MB)
DEFAULT_MAX_BUFFER_MEMORY = 16 * 1024 * 1024


@dataclass
class ResourceLimits:
    """Resource limits for a conversion.

    These limits constrain:
    - Subprocess run time (a hung external program is killed)
    - Memory used to buffer the input stream (the rest spills to a temp file)
    - Requested output dimensions

    Limits can be configured via environment variables or constructor parameters.
    Constructor parameters take precedence over environment variables.

    Environment variables:
        IMGCONV_TIMEOUT: Subprocess timeout in seconds (default: 180 = 3 minutes)
        IMGCONV_MAX_BUFFER_MEMORY: Bytes of input buffered in memory
            (default: 16777216 = 16MB)
        IMGCONV_MAX_IMAGE_DIMENSION: Maximum output dimension in pixels
            (default: 32768)

    Example:
        >>> # Use default limits
        >>> limits = ResourceLimits.default()
        >>>
        >>> # Customize limits
        >>> limits = ResourceLimits(
        ...     timeout=30,  # 30 seconds
        ...     max_buffer_memory=1024 * 1024,  # 1MB
        ...     max_image_dimension=8192,
        ... )
        >>>
        >>> # Disable a specific limit (set to 0)
        >>> limits = ResourceLimits(timeout=0)  # Wait forever
    """

    timeout: int = 180
    max_buffer_memory: int = DEFAULT_MAX_BUFFER_MEMORY
    max_image_dimension: int = DEFAULT_MAX_IMAGE_DIMENSION

    @classmethod
    def default(cls) -> "ResourceLimits":
        """Create ResourceLimits with default values from environment variables.

        Returns:
            ResourceLimits instance with values from environment variables,
            falling back to hardcoded defaults if not set.

        Raises:
            ValueError: If environment variable contains invalid integer value.

        Note:
            Negative values are treated as 0 (disabled limit) with a warning logged.
        """

        def parse_env_int(key: str, default: int) -> int:
            value_str = os.environ.get(key)
            if value_str is None:
                return default

            try:
                value = int(value_str)
            except ValueError as e:
                raise ValueError(
                    f"Environment variable {key}={value_str!r} is not a valid integer"
                ) from e

            if value < 0:
                logger.warning(
                    f"Environment variable {key}={value} is negative, "
                    f"treating as 0 (disabled limit)."
                )
                return 0

            return value

        return cls(
            timeout=parse_env_int("IMGCONV_TIMEOUT", 180),
            max_buffer_memory=parse_env_int(
                "IMGCONV_MAX_BUFFER_MEMORY", DEFAULT_MAX_BUFFER_MEMORY
            ),
            max_image_dimension=parse_env_int(
                "IMGCONV_MAX_IMAGE_DIMENSION", DEFAULT_MAX_IMAGE_DIMENSION
            ),
        )

    @classmethod
    def unlimited(cls) -> "ResourceLimits":
        """Create ResourceLimits with all limits disabled.

        A zero ``max_buffer_memory`` means the whole input is kept in memory.

        Warning:
            Only use this for trusted inputs and trusted external programs.
        """
        return cls(timeout=0, max_buffer_memory=0, max_image_dimension=0)

    def is_image_dimension_limited(self) -> bool:
        """Check if image dimension limit is enabled."""
        return self.max_image_dimension > 0
