"""
Size negotiation against the fixed catalog of sizes the video service accepts.
"""

import logging
from typing import Optional

from .errors import ConfigurationError
from .models import VideoSize

logger = logging.getLogger(__name__)

# Order matters: the first entry is the default and the initial best match.
VALID_SIZES: tuple[VideoSize, ...] = (
    VideoSize(width=720, height=1280),    # portrait 9:16
    VideoSize(width=1280, height=720),    # landscape 16:9
    VideoSize(width=1024, height=1792),   # tall portrait 4:7
    VideoSize(width=1792, height=1024),   # wide landscape 7:4
)

DEFAULT_SIZE = VALID_SIZES[0]


def parse_size(value: str) -> Optional[VideoSize]:
    """Parse ``"WxH"``; returns None for anything else, including zero or negative sides."""
    parts = value.strip().split("x")
    if len(parts) != 2:
        return None
    try:
        width, height = int(parts[0]), int(parts[1])
    except ValueError:
        return None
    if width <= 0 or height <= 0:
        return None
    return VideoSize(width=width, height=height)


def negotiate_size(
    requested: Optional[str] = None,
    source: Optional[VideoSize] = None,
) -> VideoSize:
    """
    Map a requested size to the nearest catalog entry.

    Args:
        requested: ``"WxH"`` string from the caller, or None.
        source:    Decoded dimensions of the reference image, used when
                   nothing was requested.

    Returns:
        A member of VALID_SIZES. Malformed strings resolve to DEFAULT_SIZE.

    Raises:
        ConfigurationError: If neither a requested size nor source dimensions exist.
    """
    if requested:
        wanted = parse_size(requested)
        if wanted is None:
            logger.info(f"Unparseable size {requested!r} — using default {DEFAULT_SIZE}")
            return DEFAULT_SIZE
    elif source is not None:
        wanted = source
    else:
        raise ConfigurationError("No size requested and no source dimensions available")

    best = VALID_SIZES[0]
    smallest_diff = abs(wanted.ratio - best.ratio)

    for candidate in VALID_SIZES:
        if candidate.is_portrait != wanted.is_portrait:
            continue
        diff = abs(wanted.ratio - candidate.ratio)
        if diff < smallest_diff:
            smallest_diff = diff
            best = candidate

    return best
