"""Pixel geometry primitives and packed-string parsing."""

import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

from sprite_unpacker.errors import SchemaError, SchemaErrorKind


@dataclass(frozen=True)
class Size:
    """Width and height in pixels."""
    w: int
    h: int

    def swapped(self) -> "Size":
        return Size(self.h, self.w)


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle, top-left origin, y down."""
    x: int
    y: int
    w: int
    h: int

    @property
    def size(self) -> Size:
        return Size(self.w, self.h)

    @property
    def box(self) -> Tuple[int, int, int, int]:
        """(left, upper, right, lower) box as used by PIL."""
        return (self.x, self.y, self.x + self.w, self.y + self.h)

    def with_size(self, size: Size) -> "Rect":
        return Rect(self.x, self.y, size.w, size.h)

    def turned_clockwise(self, canvas: Size) -> "Rect":
        """This rect once its `canvas` is turned 90 degrees clockwise."""
        return Rect(canvas.h - self.y - self.h, self.x, self.h, self.w)

    def turned_counterclockwise(self, canvas: Size) -> "Rect":
        """This rect once its `canvas` is turned 90 degrees counter-clockwise."""
        return Rect(self.y, canvas.w - self.x - self.w, self.h, self.w)

    def fits_within(self, size: Size) -> bool:
        """True if the rectangle lies entirely inside a canvas of `size`."""
        return (
            self.x >= 0 and self.y >= 0
            and self.x + self.w <= size.w
            and self.y + self.h <= size.h
        )


def to_number(value) -> float:
    """Float-parse a numeric field, keeping any fractional part.

    Raises:
        SchemaError: If the value is not a finite number
    """
    if isinstance(value, bool):
        raise SchemaError(SchemaErrorKind.MALFORMED_ENTRY, f"Expected a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise SchemaError(SchemaErrorKind.MALFORMED_ENTRY, f"Expected a number, got {value!r}")
    if not math.isfinite(number):
        raise SchemaError(SchemaErrorKind.MALFORMED_ENTRY, f"Expected a finite number, got {value!r}")
    return number


def to_pixel(value) -> int:
    """Float-parse a numeric field and floor it to a pixel coordinate.

    Raises:
        SchemaError: If the value is not numeric
    """
    return math.floor(to_number(value))


def _packed_components(text: str, count: Optional[int]) -> List[float]:
    if not isinstance(text, str):
        raise SchemaError(
            SchemaErrorKind.MALFORMED_ENTRY,
            f"Expected a packed string like '{{a,b}}', got {text!r}"
        )

    stripped = text.replace("{", "").replace("}", "")
    values = [to_number(part.strip()) for part in stripped.split(",")]

    if count is not None and len(values) != count:
        raise SchemaError(
            SchemaErrorKind.MALFORMED_ENTRY,
            f"Expected {count} components in {text!r}, got {len(values)}"
        )
    return values


def parse_packed_numbers(text: str, count: Optional[int] = None) -> List[int]:
    """Parse a packed string such as "{a,b,c,d}" or "{{x,y},{w,h}}".

    Brace characters are stripped, the remainder is split on commas and each
    component is float-parsed then floored.

    Args:
        text: Packed numeric string
        count: Expected number of components (not checked if None)

    Returns:
        List of integer components

    Raises:
        SchemaError: If the string is malformed or has the wrong arity
    """
    return [math.floor(value) for value in _packed_components(text, count)]


def parse_packed_rect(text: str) -> Rect:
    x, y, w, h = parse_packed_numbers(text, 4)
    return Rect(x, y, w, h)


def parse_packed_size(text: str) -> Size:
    w, h = parse_packed_numbers(text, 2)
    return Size(w, h)


def parse_packed_point(text: str) -> Tuple[float, float]:
    """Parse a "{x,y}" offset without flooring.

    Packers write half-pixel offsets whenever the trimmed slack is odd, so
    the fraction has to survive until the placement is computed.
    """
    x, y = _packed_components(text, 2)
    return x, y


def centered_source_rect(
    source_size: Size,
    trimmed_size: Size,
    offset: Tuple[float, float],
    negate_y: bool = False
) -> Rect:
    """Place trimmed content inside its original canvas from a centre offset.

    The offset is how far the trimmed content's centre sits from the canvas
    centre, x right and y up. Only the final left/top sums are floored, so
    half-pixel offsets land exactly and the right/bottom pads absorb odd
    remainders:

        left = (W - w) / 2 + ox
        top  = (H - h) / 2 - oy

    Args:
        source_size: Original canvas size (W, H)
        trimmed_size: Size of the trimmed content (w, h), natural orientation
        offset: (ox, oy) centre offset
        negate_y: Use +oy instead of -oy for the top pad

    Returns:
        Rect of the trimmed content within the original canvas
    """
    ox, oy = offset
    if negate_y:
        oy = -oy
    left = math.floor((source_size.w - trimmed_size.w) / 2 + ox)
    top = math.floor((source_size.h - trimmed_size.h) / 2 - oy)
    return Rect(left, top, trimmed_size.w, trimmed_size.h)
