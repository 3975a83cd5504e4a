# tests/test_numbers.py
import math

import pytest

from core.numbers import fmt_money, fmt_percent, is_num, near_eq, parse_num_loose, round_to


@pytest.mark.parametrize("raw", ["1.234,56", "1234.56", "1 234,56", "1,234.56", " 1234,56 "])
def test_parse_rightmost_separator_is_decimal(raw):
    assert parse_num_loose(raw) == 1234.56


def test_parse_plain_and_signed():
    assert parse_num_loose("10") == 10.0
    assert parse_num_loose("-5") == -5.0
    assert parse_num_loose("12,5") == 12.5
    assert parse_num_loose("12,") == 12.0
    assert parse_num_loose(",5") == 0.5
    assert parse_num_loose(7) == 7.0


def test_parse_strips_nbsp_and_narrow_spaces():
    assert parse_num_loose("1\u00a0234,5") == 1234.5
    assert parse_num_loose("1\u202f234") == 1234.0


def test_parse_without_separator_drops_noise():
    assert parse_num_loose("€ 10") == 10.0
    assert parse_num_loose("25 %") == 25.0


@pytest.mark.parametrize("raw", [None, "", "   ", "-", "+", "abc", "inf", "nan", "12-3", "abc.5", "1.2.x"])
def test_parse_invalid_is_nan(raw):
    assert math.isnan(parse_num_loose(raw))


def test_parse_non_finite_number_is_nan():
    assert math.isnan(parse_num_loose(float("inf")))
    assert math.isnan(parse_num_loose(float("nan")))


def test_round_half_away_from_zero():
    assert round_to(0.125, 2) == 0.13
    assert round_to(-0.125, 2) == -0.13
    assert round_to(12.25, 1) == 12.3
    assert math.isnan(round_to(float("nan"), 2))
    assert math.isnan(round_to(None, 2))


def test_fmt_money():
    assert fmt_money(20.0) == "20"
    assert fmt_money(12.5) == "12.5"
    assert fmt_money(1 / 3) == "0.33"
    assert fmt_money(1e20) == "100000000000000000000"
    assert fmt_money(float("nan")) == ""
    assert fmt_money(None) == ""


def test_fmt_percent():
    assert fmt_percent(49.96) == "50"
    assert fmt_percent(33.333) == "33.3"
    assert fmt_percent(-0.01) == "0"
    assert fmt_percent(float("inf")) == ""


def test_is_num_and_near_eq():
    assert is_num(1) and is_num(0.5)
    assert not is_num(True)
    assert not is_num(float("nan"))
    assert not is_num("1")
    assert near_eq(10.0, 10.004, 0.005)
    assert not near_eq(10.0, 10.01, 0.005)
    assert not near_eq(None, 10.0, 0.005)


@pytest.mark.parametrize("raw", ["١٢", "١٢,٥", "１２"])
def test_parse_rejects_non_ascii_digits(raw):
    assert math.isnan(parse_num_loose(raw))
