# utils/validators.py
from typing import Optional


# ---- Numeric parsing & validators ----

def try_parse_float(x):
    """
    Best-effort parse to float.

    Returns:
        (ok: bool, value: float|None)

    ok == False means parsing failed and value is None.
    Thousands separators (",") are tolerated; NaN and infinities are not.
    """
    try:
        val = float(str(x).replace(",", "").strip())
    except (TypeError, ValueError):
        return False, None
    if val != val or val in (float("inf"), float("-inf")):
        return False, None
    return True, val


def parse_non_negative(x, upper: Optional[float] = None) -> Optional[float]:
    """
    Parse an edit buffer as a non-negative decimal.

    Returns the value, or None when the text does not parse, is negative,
    or exceeds `upper` (when given).
    """
    ok, val = try_parse_float(x)
    if not ok or val is None or val < 0:
        return None
    if upper is not None and val > upper:
        return None
    return val
