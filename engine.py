# >>> BEGIN ENGINE FILE <<<
# engine.py - Margin & Markup pricing core
# ---------------------------------------------------------------------
# - Pure compute: raw field strings + mode + last edited field -> updates
# - Price-authoritative path (price edited) vs cost-authoritative path
# - Derived line (margin + markup from current cost/price, mode-independent)
# - Domain errors are returned as field-scoped messages, never raised

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, Mapping

from core.model import Field, LastEdited, Mode, FIELDS, percent_field
from core.numbers import fmt_money, fmt_percent, is_num, parse_num_loose

# ============================== CONSTANTS ==============================

MARGIN_LIMIT = 100.0               # margin% must stay strictly below this
MARKUP_FLOOR_UI = -99.99           # input-widget minimum only; engine does not clamp

DERIVED_PLACEHOLDER = "—"

ERR_MARGIN_RANGE = "Margin % must be below 100."
ERR_MARKUP_ZERO_COST = "Markup is undefined when cost is 0."


# ============================== DATA MODEL ==============================

@dataclass(frozen=True)
class Derived:
    margin: float = math.nan
    markup: float = math.nan

    @property
    def available(self) -> bool:
        return is_num(self.margin)

    def text(self) -> str:
        if not self.available:
            return f"Derived: {DERIVED_PLACEHOLDER}"
        m = fmt_percent(self.markup) or DERIVED_PLACEHOLDER
        return f"Derived: Margin {fmt_percent(self.margin)} % • Markup {m} %"


@dataclass
class ComputeResult:
    updates: Dict[Field, str] = field(default_factory=dict)
    errors: Dict[Field, str] = field(default_factory=dict)
    values: Dict[Field, str] = field(default_factory=dict)
    derived: Derived = field(default_factory=Derived)

    @property
    def derived_text(self) -> str:
        return self.derived.text()


# ============================== FORMULAS ==============================

def margin_from(cost: float, price: float) -> float:
    """100·(price−cost)/price; NaN unless price > 0."""
    if not (is_num(cost) and is_num(price)) or price <= 0:
        return math.nan
    return 100.0 * (price - cost) / price


def markup_from(cost: float, price: float) -> float:
    """100·(price/cost − 1); NaN when cost is 0."""
    if not (is_num(cost) and is_num(price)) or cost == 0:
        return math.nan
    return 100.0 * (price / cost - 1.0)


def price_from_margin(cost: float, margin: float) -> float:
    if not (is_num(cost) and is_num(margin)) or margin >= MARGIN_LIMIT:
        return math.nan
    return cost / (1.0 - margin / 100.0)


def price_from_markup(cost: float, markup: float) -> float:
    if not (is_num(cost) and is_num(markup)):
        return math.nan
    return cost * (1.0 + markup / 100.0)


def derive(cost: float, price: float) -> Derived:
    if not (is_num(cost) and is_num(price)) or price <= 0:
        return Derived()
    return Derived(margin=margin_from(cost, price), markup=markup_from(cost, price))


# ============================== COMPUTE ==============================

def compute(values: Mapping[Field, str], mode: Mode, last_edited: LastEdited) -> ComputeResult:
    """
    Decide what the other fields become after an edit.

    Price edited -> price is authoritative; only the active mode's percentage
    is rewritten (the other one is left as typed). Anything else (cost,
    percentage, initial load) -> cost + active percentage drive price.
    The derived pair is always recomputed from the resulting cost/price.
    """
    current = {f: str(values.get(f, "") or "") for f in FIELDS}
    res = ComputeResult()

    cost = parse_num_loose(current[Field.COST])
    price = parse_num_loose(current[Field.PRICE])

    if last_edited is LastEdited.PRICE:
        if is_num(price) and price > 0 and is_num(cost):
            if mode is Mode.MARGIN:
                res.updates[Field.MARGIN] = fmt_percent(margin_from(cost, price))
            else:
                m = markup_from(cost, price)
                if not is_num(m):
                    res.errors[Field.MARKUP] = ERR_MARKUP_ZERO_COST
                res.updates[Field.MARKUP] = fmt_percent(m)
    elif is_num(cost):
        pct = parse_num_loose(current[percent_field(mode)])
        if is_num(pct):
            if mode is Mode.MARGIN:
                if pct >= MARGIN_LIMIT:
                    res.errors[Field.MARGIN] = ERR_MARGIN_RANGE
                    res.updates[Field.PRICE] = ""
                else:
                    res.updates[Field.PRICE] = fmt_money(price_from_margin(cost, pct))
            else:
                res.updates[Field.PRICE] = fmt_money(price_from_markup(cost, pct))

    current.update(res.updates)
    res.values = current
    res.derived = derive(parse_num_loose(current[Field.COST]), parse_num_loose(current[Field.PRICE]))
    return res
