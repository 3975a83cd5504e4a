# tests/test_engine.py
import math

import pytest

from core.model import Field, LastEdited, Mode
from core.numbers import parse_num_loose
from engine import (
    ERR_MARGIN_RANGE, ERR_MARKUP_ZERO_COST, compute, derive, margin_from, markup_from,
    price_from_margin, price_from_markup,
)


def _vals(cost="", price="", margin="", markup=""):
    return {Field.COST: cost, Field.PRICE: price, Field.MARGIN: margin, Field.MARKUP: markup}


def test_cost_and_margin_drive_price():
    res = compute(_vals(cost="10", margin="50", markup="99"), Mode.MARGIN, LastEdited.PERCENT)
    assert res.updates == {Field.PRICE: "20"}
    assert res.errors == {}
    assert res.derived.margin == pytest.approx(50.0)
    assert res.derived.markup == pytest.approx(100.0)
    assert res.derived_text == "Derived: Margin 50 % • Markup 100 %"


def test_cost_and_markup_drive_price():
    res = compute(_vals(cost="10", margin="99", markup="25"), Mode.MARKUP, LastEdited.COST)
    assert res.updates == {Field.PRICE: "12.5"}
    assert res.values[Field.MARGIN] == "99"


def test_initial_load_uses_cost_path():
    res = compute(_vals(cost="10", price="", margin="50"), Mode.MARGIN, LastEdited.NONE)
    assert res.values[Field.PRICE] == "20"


@pytest.mark.parametrize("margin", ["100", "150", "100,0"])
def test_margin_at_or_above_100_is_domain_error(margin):
    res = compute(_vals(cost="10", price="20", margin=margin), Mode.MARGIN, LastEdited.PERCENT)
    assert res.errors == {Field.MARGIN: ERR_MARGIN_RANGE}
    assert res.updates[Field.PRICE] == ""
    assert not res.derived.available
    assert res.derived_text == "Derived: —"


def test_markup_has_no_engine_bounds():
    res = compute(_vals(cost="10", markup="-150"), Mode.MARKUP, LastEdited.PERCENT)
    assert res.updates[Field.PRICE] == "-5"
    assert res.errors == {}
    res = compute(_vals(cost="10", markup="5000"), Mode.MARKUP, LastEdited.PERCENT)
    assert res.updates[Field.PRICE] == "510"


def test_price_edit_rewrites_active_percentage_only():
    res = compute(_vals(cost="10", price="25", margin="1", markup="7"), Mode.MARGIN, LastEdited.PRICE)
    assert res.updates == {Field.MARGIN: "60"}
    assert res.values[Field.MARKUP] == "7"

    res = compute(_vals(cost="10", price="25", margin="1", markup="7"), Mode.MARKUP, LastEdited.PRICE)
    assert res.updates == {Field.MARKUP: "150"}
    assert res.values[Field.MARGIN] == "1"


def test_price_edit_with_zero_cost_blanks_markup():
    res = compute(_vals(cost="0", price="5", markup="10"), Mode.MARKUP, LastEdited.PRICE)
    assert res.updates == {Field.MARKUP: ""}
    assert res.errors == {Field.MARKUP: ERR_MARKUP_ZERO_COST}
    assert res.derived.margin == pytest.approx(100.0)
    assert math.isnan(res.derived.markup)
    assert res.derived_text == "Derived: Margin 100 % • Markup — %"


@pytest.mark.parametrize("price", ["0", "-3", "", "x"])
def test_price_edit_needs_positive_price(price):
    res = compute(_vals(cost="10", price=price, margin="40"), Mode.MARGIN, LastEdited.PRICE)
    assert res.updates == {}
    assert res.values[Field.MARGIN] == "40"


def test_invalid_cost_changes_nothing():
    res = compute(_vals(cost="abc", price="20", margin="50"), Mode.MARGIN, LastEdited.COST)
    assert res.updates == {}
    assert res.values[Field.PRICE] == "20"
    assert not res.derived.available


def test_invalid_percentage_leaves_price():
    res = compute(_vals(cost="10", price="20", margin=""), Mode.MARGIN, LastEdited.PERCENT)
    assert res.updates == {}
    assert res.derived.margin == pytest.approx(50.0)


def test_locale_formatted_input():
    res = compute(_vals(cost="1.000,00", margin="20"), Mode.MARGIN, LastEdited.COST)
    assert res.updates[Field.PRICE] == "1250"


@pytest.mark.parametrize("cost", [0.01, 1.0, 9.99, 10.0, 123.45, 5000.0])
@pytest.mark.parametrize("margin", [0.0, 0.1, 12.5, 33.3, 50.0, 75.5, 99.0, 99.9])
def test_margin_round_trip(cost, margin):
    price = price_from_margin(cost, margin)
    assert margin_from(cost, price) == pytest.approx(margin, abs=0.05)


@pytest.mark.parametrize("cost", [100.0, 123.45, 5000.0])
@pytest.mark.parametrize("margin", ["0", "12,5", "33.3", "50", "99.9"])
def test_margin_round_trip_through_display(cost, margin):
    res = compute(_vals(cost=str(cost), margin=margin), Mode.MARGIN, LastEdited.PERCENT)
    price = parse_num_loose(res.values[Field.PRICE])
    assert margin_from(cost, price) == pytest.approx(parse_num_loose(margin), abs=0.05)


@pytest.mark.parametrize("cost", [100.0, 250.0, 9999.99])
@pytest.mark.parametrize("markup", [-99.0, -50.0, 0.0, 25.0, 150.0, 1000.0])
def test_markup_symmetry(cost, markup):
    assert markup_from(cost, price_from_markup(cost, markup)) == pytest.approx(markup, abs=1e-9)
    res = compute(_vals(cost=str(cost), markup=str(markup)), Mode.MARKUP, LastEdited.PERCENT)
    price = parse_num_loose(res.values[Field.PRICE])
    assert markup_from(cost, price) == pytest.approx(markup, abs=0.05)


def test_derive_requires_positive_price():
    assert not derive(10.0, 0.0).available
    assert not derive(float("nan"), 10.0).available
    d = derive(0.0, 10.0)
    assert d.margin == pytest.approx(100.0)
    assert math.isnan(d.markup)
