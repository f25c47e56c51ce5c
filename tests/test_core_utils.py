"""
Library calendar helpers.
"""

from datetime import date

import pytest

from core.utils import get_month_bounds
from utils.exceptions import ValidationFailed


def test_month_bounds_from_string(library):
    start, end = get_month_bounds('2025-12', library)

    assert start.date() == date(2025, 12, 1)
    assert end.date() == date(2026, 1, 1)
    assert str(start.tzinfo) == 'Asia/Kolkata'


@pytest.mark.parametrize('month', ['2025-13', '2025-00', 'last month'])
def test_month_bounds_rejects_malformed_month(library, month):
    with pytest.raises(ValidationFailed, match="Invalid month"):
        get_month_bounds(month, library)
