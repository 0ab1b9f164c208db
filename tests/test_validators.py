# tests/test_validators.py
import pytest

from pos_cart.utils.helpers import fmt_money, fmt_qty, same_uom
from pos_cart.utils.validators import parse_non_negative, try_parse_float


@pytest.mark.parametrize("text,expected", [
    ("5", 5.0),
    (" 2.5 ", 2.5),
    ("1,250", 1250.0),
    ("0", 0.0),
    ("-1", None),
    ("abc", None),
    ("", None),
    (None, None),
    ("inf", None),
])
def test_parse_non_negative(text, expected):
    assert parse_non_negative(text) == expected


def test_parse_non_negative_upper_bound():
    assert parse_non_negative("100", upper=100) == 100
    assert parse_non_negative("100.5", upper=100) is None


def test_try_parse_float():
    assert try_parse_float("nan") == (False, None)
    assert try_parse_float("3") == (True, 3.0)


def test_formatting():
    assert fmt_money(1234.5) == "1,234.50"
    assert fmt_money("x") == "x"
    assert fmt_qty(5.0) == "5"
    assert fmt_qty(0.125) == "0.125"
    assert fmt_qty(1200) == "1200"
    assert same_uom("NOS", " nos")
    assert not same_uom("Box", "Nos")
