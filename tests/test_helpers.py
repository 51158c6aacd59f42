from datetime import date, datetime
from decimal import Decimal

import pytest

from gymledger.exceptions import InvalidAmount, InvalidEnumValue
from gymledger.models.enums import Gender, PaymentMethod, check_in_clause, coerce_enum
from gymledger.models.member import format_member_code
from gymledger.utils.helpers import as_date, as_datetime, day_bounds, to_money

pytestmark = pytest.mark.unit


def test_to_money_quantizes_to_cents():
    assert to_money(250000) == Decimal('250000.00')
    assert to_money('19.995') == Decimal('20.00')
    assert to_money(Decimal('0')) == Decimal('0.00')


@pytest.mark.parametrize('value', [-1, '-0.01', 1.5, True, None, 'abc', 'NaN', 'Infinity'])
def test_to_money_rejects_invalid_amounts(value):
    with pytest.raises(InvalidAmount):
        to_money(value)


def test_coerce_enum_accepts_member_or_exact_value():
    assert coerce_enum(PaymentMethod, PaymentMethod.CASH, 'method') is PaymentMethod.CASH
    assert coerce_enum(PaymentMethod, 'E_WALLET', 'method') is PaymentMethod.E_WALLET
    assert coerce_enum(Gender, 'F', 'gender') is Gender.FEMALE


def test_coerce_enum_does_not_guess():
    with pytest.raises(InvalidEnumValue) as excinfo:
        coerce_enum(PaymentMethod, 'cash', 'method')

    assert excinfo.value.field == 'method'
    assert 'CASH' in excinfo.value.allowed


def test_check_in_clause():
    assert check_in_clause('gender', Gender) == "gender IN ('M', 'F', 'O')"


def test_member_code_format():
    assert format_member_code(1) == 'MBR-0001'
    assert format_member_code(42) == 'MBR-0042'
    assert format_member_code(12345) == 'MBR-12345'


def test_date_conversions():
    moment = datetime(2026, 1, 31, 18, 30)
    assert as_date(moment) == date(2026, 1, 31)
    assert as_date(date(2026, 1, 31)) == date(2026, 1, 31)
    assert as_datetime(date(2026, 1, 31)) == datetime(2026, 1, 31)
    assert as_datetime(moment) is moment

    with pytest.raises(TypeError):
        as_date('2026-01-31')


def test_day_bounds_cover_whole_days():
    lower, upper = day_bounds(date(2026, 1, 1), date(2026, 1, 31))
    assert lower == datetime(2026, 1, 1)
    assert upper == datetime(2026, 2, 1)
    assert day_bounds() == (None, None)
