import pytest

from softcam.reftime import (
    MAX_TIME,
    MILLISECONDS,
    TIME_ZERO,
    UNITS,
    RefTime,
    convert_to_milliseconds,
)


def test_default_is_time_zero():
    assert RefTime() == RefTime(TIME_ZERO)
    assert int(RefTime()) == TIME_ZERO


def test_int_returns_stored_units():
    assert int(RefTime(42)) == 42


def test_one_millisecond_in_units():
    assert RefTime.from_milliseconds(1).time == UNITS // MILLISECONDS


@pytest.mark.parametrize("msecs", [0, 1, 250, -40, 123456])
def test_milliseconds_round_trip(msecs):
    assert RefTime.from_milliseconds(msecs).millisecs() == msecs
    assert convert_to_milliseconds(RefTime.from_milliseconds(msecs)) == msecs


def test_millisecs_truncates_toward_zero():
    just_under = UNITS // MILLISECONDS - 1
    assert RefTime(just_under).millisecs() == 0
    assert RefTime(-just_under).millisecs() == 0
    assert convert_to_milliseconds(-just_under) == 0


def test_convert_one_second():
    assert convert_to_milliseconds(UNITS) == MILLISECONDS


def test_max_time_conversion_consistent():
    assert RefTime(MAX_TIME).millisecs() == convert_to_milliseconds(MAX_TIME)


@pytest.mark.parametrize("a,b", [(10, 5), (-7, 300), (UNITS, MILLISECONDS)])
def test_add_sub_inverse(a, b):
    left = RefTime(a)
    right = RefTime(b)
    assert (left + right) - right == left
    assert (left + b) - b == left
    assert int(left + right) == a + b


def test_add_integer_on_left():
    assert 5 + RefTime(3) == RefTime(3) + 5


def test_add_unsupported_type_raises():
    with pytest.raises(TypeError):
        RefTime(1) + "x"


def test_ordering():
    assert RefTime(1) < RefTime(2)
    assert RefTime.from_milliseconds(2) > RefTime.from_milliseconds(1)