# core/numbers.py - tolerant number parsing + fixed-precision display

import math
import re

NAN = math.nan

MONEY_DECIMALS = 2
PERCENT_DECIMALS = 1

# Plain decimal literal after separator normalization (no "inf", "nan", "1_000").
_NUMERIC = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?$", re.ASCII)
_THOUSANDS = re.compile(r"[.,]")
_NOT_DIGIT_OR_MINUS = re.compile(r"[^\d\-]", re.ASCII)


def is_num(x) -> bool:
    """True for a finite int/float (bools excluded)."""
    return isinstance(x, (int, float)) and not isinstance(x, bool) and math.isfinite(x)


def parse_num_loose(v) -> float:
    """
    Parse human-entered numbers like '1.234,56', '1,234.56', '1 234,56' or '12'.

    The rightmost ',' or '.' is the decimal separator; earlier ones are
    thousands separators. Returns NaN for anything unparseable.
    """
    if v is None:
        return NAN
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return float(v) if math.isfinite(v) else NAN
    s = str(v).strip()
    if not s:
        return NAN
    s = s.replace("\u00a0", " ")
    s = re.sub("[\\s\u202f]", "", s)
    last_sep = max(s.rfind(","), s.rfind("."))
    if last_sep > -1:
        int_part = _THOUSANDS.sub("", s[:last_sep])
        frac_part = s[last_sep + 1:]
        s = f"{int_part}.{frac_part}"
    else:
        s = _NOT_DIGIT_OR_MINUS.sub("", s)
    if s in ("", "-", "+") or not _NUMERIC.match(s):
        return NAN
    try:
        n = float(s)
    except ValueError:
        return NAN
    return n if math.isfinite(n) else NAN


def round_to(n, d: int = MONEY_DECIMALS) -> float:
    """Round half away from zero to d decimals; NaN stays NaN."""
    if not is_num(n):
        return NAN
    f = 10 ** d
    return math.copysign(math.floor(abs(n) * f + 0.5), n) / f


def _plain(n: float, d: int) -> str:
    txt = f"{n:.{d}f}"
    if "." in txt:
        txt = txt.rstrip("0").rstrip(".")
    if txt in ("-0", ""):
        txt = "0"
    return txt


def fmt_money(n) -> str:
    r = round_to(n, MONEY_DECIMALS)
    return _plain(r, MONEY_DECIMALS) if is_num(r) else ""


def fmt_percent(n) -> str:
    r = round_to(n, PERCENT_DECIMALS)
    return _plain(r, PERCENT_DECIMALS) if is_num(r) else ""


def near_eq(a, b, eps: float) -> bool:
    return is_num(a) and is_num(b) and abs(a - b) <= eps
