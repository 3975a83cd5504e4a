# core/model.py - panel records (state, position, history) + enums
from __future__ import annotations

import enum
import time
from dataclasses import dataclass, asdict
from typing import Any, Dict, Mapping

from core.numbers import PERCENT_DECIMALS, is_num, round_to


class Mode(str, enum.Enum):
    MARGIN = "margin"
    MARKUP = "markup"

    @classmethod
    def coerce(cls, value: Any) -> "Mode":
        try:
            return cls(value)
        except ValueError:
            return cls.MARGIN

    @property
    def label(self) -> str:
        return "Margin" if self is Mode.MARGIN else "Markup"


class Field(str, enum.Enum):
    COST = "cost"
    PRICE = "price"
    MARGIN = "margin"
    MARKUP = "markup"


class LastEdited(str, enum.Enum):
    NONE = "none"
    COST = "cost"
    PRICE = "price"
    PERCENT = "percent"

    @classmethod
    def for_field(cls, field: Field) -> "LastEdited":
        if field is Field.PRICE:
            return cls.PRICE
        if field is Field.COST:
            return cls.COST
        return cls.PERCENT


FIELDS = (Field.COST, Field.PRICE, Field.MARGIN, Field.MARKUP)


def percent_field(mode: Mode) -> Field:
    return Field.MARGIN if mode is Mode.MARGIN else Field.MARKUP


@dataclass
class PanelState:
    """Raw display strings of the four inputs + active mode (what the user sees)."""
    mode: Mode = Mode.MARGIN
    cost: str = ""
    price: str = ""
    margin: str = ""
    markup: str = ""

    def values(self) -> Dict[Field, str]:
        return {f: getattr(self, f.value) for f in FIELDS}

    def to_record(self) -> Dict[str, str]:
        rec = {f.value: getattr(self, f.value) for f in FIELDS}
        rec["mode"] = self.mode.value
        return rec

    @classmethod
    def from_record(cls, rec: Mapping[str, Any] | None, *, default_percent: str = "") -> "PanelState":
        rec = rec if isinstance(rec, Mapping) else {}

        def _s(key: str, fallback: str) -> str:
            v = rec.get(key)
            return fallback if v is None else str(v)

        return cls(
            mode=Mode.coerce(rec.get("mode")),
            cost=_s("cost", ""),
            price=_s("price", ""),
            margin=_s("margin", default_percent),
            markup=_s("markup", default_percent),
        )


@dataclass(frozen=True)
class PanelPosition:
    left: float
    top: float

    def to_record(self) -> Dict[str, float]:
        return {"left": self.left, "top": self.top}

    @classmethod
    def from_record(cls, rec: Any) -> "PanelPosition | None":
        if not isinstance(rec, Mapping):
            return None
        left, top = rec.get("left"), rec.get("top")
        if not (is_num(left) and is_num(top)):
            return None
        return cls(float(left), float(top))


def clamp_to_viewport(left: float, top: float,
                      size: tuple[float, float], viewport: tuple[float, float],
                      *, padding: float = 4.0) -> PanelPosition:
    """Keep a panel of `size` (w, h) fully inside `viewport` (w, h)."""
    w, h = size
    vw, vh = viewport
    max_left = max(0.0, vw - w - padding)
    max_top = max(0.0, vh - h - padding)
    return PanelPosition(
        left=min(max(0.0, float(left)), max_left),
        top=min(max(0.0, float(top)), max_top),
    )


def _opt(n: float, d: int) -> float | None:
    r = round_to(n, d)
    return r if is_num(r) else None


@dataclass(frozen=True)
class HistoryEntry:
    t: int
    mode: Mode
    cost: float | None
    price: float | None
    margin: float | None
    markup: float | None

    @classmethod
    def build(cls, mode: Mode, cost: float, price: float, *, now_ms: int | None = None) -> "HistoryEntry | None":
        """
        Snapshot of a computation. Requires finite cost and price > 0;
        percentages are re-derived from cost/price so the row is self-consistent.
        """
        if not (is_num(cost) and is_num(price)) or price <= 0:
            return None
        margin = 100.0 * (price - cost) / price
        markup = 100.0 * (price / cost - 1.0) if cost != 0 else float("nan")
        return cls(
            t=int(time.time() * 1000) if now_ms is None else int(now_ms),
            mode=mode,
            cost=_opt(cost, 2),
            price=_opt(price, 2),
            margin=_opt(margin, PERCENT_DECIMALS),
            markup=_opt(markup, PERCENT_DECIMALS),
        )

    def to_record(self) -> Dict[str, Any]:
        rec = asdict(self)
        rec["mode"] = self.mode.value
        return rec

    @classmethod
    def from_record(cls, rec: Any) -> "HistoryEntry | None":
        if not isinstance(rec, Mapping):
            return None

        def _n(key: str) -> float | None:
            v = rec.get(key)
            return float(v) if is_num(v) else None

        t = rec.get("t")
        return cls(
            t=int(t) if is_num(t) else 0,
            mode=Mode.coerce(rec.get("mode")),
            cost=_n("cost"),
            price=_n("price"),
            margin=_n("margin"),
            markup=_n("markup"),
        )
