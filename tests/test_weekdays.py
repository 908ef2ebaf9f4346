"""Tests for day-of-week numbering conversions."""

import pytest

from app.core.exceptions import ValidationException
from app.core.weekdays import (
    DayNumbering,
    from_iso,
    iso_from_sunday_zero,
    sunday_zero_from_iso,
    to_iso,
    validate_iso_day,
)


def test_sunday_zero_maps_to_iso_seven():
    assert iso_from_sunday_zero(0) == 7
    assert iso_from_sunday_zero(1) == 1
    assert iso_from_sunday_zero(6) == 6


def test_iso_seven_maps_back_to_sunday_zero():
    assert sunday_zero_from_iso(7) == 0
    assert sunday_zero_from_iso(1) == 1
    assert sunday_zero_from_iso(6) == 6


def test_conversions_are_inverse():
    for day in range(7):
        assert sunday_zero_from_iso(iso_from_sunday_zero(day)) == day


@pytest.mark.parametrize("day", [0, 8, -1])
def test_validate_iso_day_rejects_out_of_range(day):
    with pytest.raises(ValidationException):
        validate_iso_day(day)


def test_iso_from_sunday_zero_rejects_seven():
    with pytest.raises(ValidationException):
        iso_from_sunday_zero(7)


def test_to_iso_and_from_iso_respect_numbering():
    assert to_iso(0, DayNumbering.SUNDAY_ZERO) == 7
    assert to_iso(7, DayNumbering.ISO) == 7
    assert from_iso(7, DayNumbering.SUNDAY_ZERO) == 0
    assert from_iso(7, DayNumbering.ISO) == 7

    with pytest.raises(ValidationException):
        to_iso(0, DayNumbering.ISO)
