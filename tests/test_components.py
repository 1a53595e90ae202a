"""Tests for backoffice.ui.components helpers that do not need a script run"""

from datetime import date

from backoffice.rpc.models import Product
from backoffice.ui.components import _row_dict, format_day


def test_format_day():
    assert format_day(date(2024, 3, 7)) == "07/03/2024"
    assert format_day(None) == ""


def test_row_dict():
    assert _row_dict(Product(id="p1", name="Seat"))["name"] == "Seat"
    assert _row_dict({"a": 1}) == {"a": 1}
    assert _row_dict(3) == {"value": 3}
