"""Canonical text form of coordinates and positional patching of that form.

A coordinate travels as ``<degrees><MM.MMMM><hemisphere>``, for example
``3723.4567N``.  Delta frames do not send numbers: they overwrite the tail
of this text starting at a character offset, so the exact width and
zero-padding of the minutes matter::

    format_coordinate(37.390945)       → "3723.4567N"
    apply_patch(37.390945, 5, b"5000") → parse("3723.5000N") → 37.391667
"""

from __future__ import annotations

import math
import re
from typing import Optional, Union

COORDINATE_RE = re.compile(r"(\d+)(\d\d\.\d{4})([NSEW])")

# Returned by apply_patch when the spliced text does not parse.
NO_CHANGE = 0.0


def format_coordinate(value: float, positive: str = "N", negative: str = "S") -> str:
    """Render *value* (signed decimal degrees) in canonical text form.

    Degrees are truncated; minutes keep four decimals and are zero-padded
    to seven characters.  Non-negative values get the *positive* letter.
    """
    hemisphere = positive if value >= 0 else negative
    magnitude = abs(value)
    degrees = int(math.floor(magnitude))
    minutes = 60 * (magnitude - degrees)
    return f"{degrees}{minutes:07.4f}{hemisphere}"


def format_latitude(value: float) -> str:
    return format_coordinate(value, "N", "S")


def format_longitude(value: float) -> str:
    return format_coordinate(value, "E", "W")


def to_degrees(degrees: str, minutes: str, hemisphere: str) -> float:
    """Combine integer degrees, decimal minutes and a hemisphere letter."""
    value = int(degrees) + float(minutes) / 60
    if hemisphere in ("S", "W"):
        value = -value
    return value


def parse_coordinate(text: str) -> Optional[float]:
    """Parse canonical text form back to degrees, ``None`` if it does not match."""
    match = COORDINATE_RE.fullmatch(text)
    if match is None:
        return None
    return to_degrees(*match.groups())


def splice(text: str, index: int, payload: str) -> Optional[str]:
    """Keep ``text[:index]``, append *payload*, then the original last character.

    Returns ``None`` when *index* lies beyond the end of *text*.
    """
    if index < 0 or index > len(text):
        return None
    return text[:index] + payload + text[-1:]


def apply_patch(
    original: float,
    index: int,
    patch: Union[bytes, str],
    positive: str = "N",
    negative: str = "S",
) -> float:
    """Overwrite the text form of *original* from *index* on and re-parse it.

    The hemisphere letter of the original text always survives the splice.
    When the index is out of range or the result does not parse,
    :data:`NO_CHANGE` (``0.0``) is returned; callers treat a zero result
    as "patch did not apply".
    """
    if isinstance(patch, bytes):
        patch = patch.decode("latin-1")

    spliced = splice(format_coordinate(original, positive, negative), index, patch)
    if spliced is None:
        return NO_CHANGE

    value = parse_coordinate(spliced)
    if value is None:
        return NO_CHANGE
    return value
