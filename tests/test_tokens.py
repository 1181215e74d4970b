from decimal import Decimal

import pytest

from swapper.domain.errors import ErrorKind, InvalidInputError
from swapper.domain.tokens import (
    format_address,
    from_raw,
    parse_amount,
    to_raw,
    token_key_by_address,
    try_parse_amount,
    validate_request,
)

from conftest import A, CONTRACT, G, W


@pytest.mark.parametrize("raw", ["0", "-1", "", None, "abc", "NaN", "Infinity"])
def test_parse_amount_rejects_non_positive_and_garbage(raw):
    with pytest.raises(InvalidInputError) as exc:
        parse_amount(raw)
    assert exc.value.kind == ErrorKind.INVALID_INPUT
    assert try_parse_amount(raw) is None


def test_parse_amount_accepts_decimal_strings():
    assert parse_amount(" 1.5 ") == Decimal("1.5")
    assert parse_amount("10") == Decimal(10)


def test_raw_conversion_is_exact():
    assert to_raw(Decimal("1.5")) == 1_500_000_000_000_000_000
    assert from_raw(2_500_000_000_000_000_000) == Decimal("2.5")
    assert to_raw(parse_amount("0.000000000000000001")) == 1


@pytest.mark.parametrize("raw", ["0.0000000000000000001", "1.0000000000000000019", "1e-19"])
def test_amounts_finer_than_one_wei_are_rejected(raw):
    with pytest.raises(InvalidInputError):
        parse_amount(raw)


def test_trailing_zeros_do_not_count_as_decimals():
    assert parse_amount("1.500000000000000000000000") == Decimal("1.5")


def test_long_amounts_convert_without_rounding():
    amount = parse_amount("12345678901.123456789012345678")
    assert to_raw(amount) == 12345678901123456789012345678
    assert from_raw(to_raw(amount)) == amount


def test_large_balances_round_trip():
    raw = 123456789012345678901234567891
    assert from_raw(raw) == Decimal("123456789012.345678901234567891")
    assert to_raw(from_raw(raw)) == raw
    assert from_raw(raw) < parse_amount("123456789012.345678901234567892")


def test_amount_must_fit_uint256():
    with pytest.raises(InvalidInputError):
        parse_amount("1" + "0" * 60)
    with pytest.raises(InvalidInputError):
        parse_amount("9" * 90)


def test_validate_request_checks_addresses_and_pair():
    assert validate_request(A, G, "10", CONTRACT) == Decimal(10)

    with pytest.raises(InvalidInputError):
        validate_request(A, A.upper().replace("0X", "0x"), "10", CONTRACT)
    with pytest.raises(InvalidInputError):
        validate_request("0x1234", G, "10", CONTRACT)
    with pytest.raises(InvalidInputError):
        validate_request(A, G, "10", "not-a-contract")


def test_display_helpers():
    assert format_address(None) == "N/A"
    assert format_address(W) == "0xd3f7...d1f0"
    assert token_key_by_address(W.lower()) == "WAPLO"
    assert token_key_by_address("0x00000000000000000000000000000000000000ff") == "MANUAL"
