"""Tests for geometry primitives and packed-string parsing."""

import pytest
from sprite_unpacker.errors import SchemaError, SchemaErrorKind
from sprite_unpacker.geometry import (
    Rect,
    Size,
    centered_source_rect,
    parse_packed_numbers,
    parse_packed_point,
    parse_packed_rect,
    parse_packed_size,
    to_pixel,
)


def test_parse_packed_numbers_floors_float_components():
    """Float components are parsed then floored."""
    assert parse_packed_numbers("{10,20,30.5,40}") == [10, 20, 30, 40]


def test_parse_packed_numbers_nested_cocos_rect():
    assert parse_packed_numbers("{{2, 3}, {40, 50}}") == [2, 3, 40, 50]


def test_parse_packed_numbers_negative_components_floor_down():
    # floor, not truncation toward zero
    assert parse_packed_numbers("{-0.5,1.999}") == [-1, 1]


def test_parse_packed_numbers_checks_arity():
    with pytest.raises(SchemaError) as exc_info:
        parse_packed_numbers("{1,2,3}", count=4)
    assert exc_info.value.kind is SchemaErrorKind.MALFORMED_ENTRY


@pytest.mark.parametrize("text", ["{a,b}", "{1,,2}", "{}", None, 12])
def test_parse_packed_numbers_rejects_garbage(text):
    with pytest.raises(SchemaError) as exc_info:
        parse_packed_numbers(text, count=2)
    assert exc_info.value.kind is SchemaErrorKind.MALFORMED_ENTRY


def test_parse_packed_rect_and_size():
    assert parse_packed_rect("{{1,2},{3,4}}") == Rect(1, 2, 3, 4)
    assert parse_packed_size("{64,32}") == Size(64, 32)


def test_parse_packed_point_keeps_half_pixels():
    assert parse_packed_point("{-0.5,0.5}") == (-0.5, 0.5)
    assert parse_packed_point("{ 2 , -3 }") == (2.0, -3.0)


@pytest.mark.parametrize("text", ["{inf,0}", "{0,nan}"])
def test_parse_packed_point_rejects_non_finite(text):
    with pytest.raises(SchemaError):
        parse_packed_point(text)


def test_to_pixel_accepts_numbers_and_numeric_strings():
    assert to_pixel(3) == 3
    assert to_pixel(3.9) == 3
    assert to_pixel("7.2") == 7


def test_to_pixel_rejects_bools():
    with pytest.raises(SchemaError):
        to_pixel(True)


def test_rect_box_and_bounds():
    rect = Rect(2, 3, 4, 5)
    assert rect.box == (2, 3, 6, 8)
    assert rect.fits_within(Size(6, 8))
    assert not rect.fits_within(Size(5, 8))
    assert not Rect(-1, 0, 1, 1).fits_within(Size(10, 10))


def test_rect_turns_with_its_canvas():
    """A corner pixel of a 4x6 canvas ends up top-right after a clockwise turn."""
    canvas = Size(4, 6)
    assert Rect(0, 0, 1, 1).turned_clockwise(canvas) == Rect(5, 0, 1, 1)

    placed = Rect(1, 0, 3, 5)
    turned = placed.turned_clockwise(canvas)
    assert turned == Rect(1, 1, 5, 3)
    assert turned.turned_counterclockwise(canvas.swapped()) == placed


class TestCenteredSourceRect:
    def test_zero_offset_centres_content(self):
        assert centered_source_rect(Size(10, 10), Size(4, 6), (0, 0)) == Rect(3, 2, 4, 6)

    def test_offset_y_points_up(self):
        """Positive y offset moves content towards the top."""
        assert centered_source_rect(Size(10, 10), Size(4, 6), (1, 2)) == Rect(4, 0, 4, 6)

    def test_odd_remainder_floors_left_and_top(self):
        placed = centered_source_rect(Size(9, 7), Size(4, 4), (0, 0))
        assert placed == Rect(2, 1, 4, 4)

    @pytest.mark.parametrize("ox,left", [(-0.5, 0), (0.5, 1)])
    def test_half_pixel_offset_for_odd_slack(self, ox, left):
        """9 wide content in a 10 wide canvas sits flush or one pixel in."""
        assert centered_source_rect(Size(10, 10), Size(9, 10), (ox, 0)) == Rect(left, 0, 9, 10)

    def test_negated_y_offset(self):
        assert centered_source_rect(Size(10, 10), Size(4, 6), (0, 1), negate_y=True) == Rect(3, 3, 4, 6)
