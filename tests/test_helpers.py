from decimal import Decimal

import pytest

from cryptoalertbot.helpers import fmt_price, is_evm_address, parse_decimal, to_native


@pytest.mark.parametrize('raw,network,expected', [
    (10 ** 18, 'ethereum', Decimal(1)),
    (25 * 10 ** 16, 'bsc', Decimal('0.25')),
    (1, 'polygon', Decimal('1E-18')),
])
def test_to_native(raw, network, expected):
    assert to_native(raw, network) == expected


def test_is_evm_address():
    assert is_evm_address('0x' + 'aB' * 20)
    assert is_evm_address(' 0x' + '0' * 40 + ' ')
    assert not is_evm_address('0x' + 'g' * 40)
    assert not is_evm_address('0x' + 'a' * 39)
    assert not is_evm_address('')


def test_parse_decimal():
    assert parse_decimal('1,500.5') == Decimal('1500.5')
    assert parse_decimal(2) == Decimal(2)
    assert parse_decimal('abc') is None
    assert parse_decimal('NaN') is None


def test_fmt_price():
    assert fmt_price(45000) == '$45,000.00'
    assert fmt_price(0.000123) == '$0.000123'
    assert fmt_price(None) == '—'
