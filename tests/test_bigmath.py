import pytest

from hpingkit.bigmath import (
    BigNumberError,
    big_basic,
    big_compare,
    big_pow,
    parse_bignum,
)

BIG_A = "123456789012345678901234567890123456789"
BIG_B = "987654321098765432109876543210"


def test_parse_bases_agree():
    assert parse_bignum("0x10") == parse_bignum("16")
    assert parse_bignum("0b101") == parse_bignum("5")
    assert parse_bignum("010") == parse_bignum("8")


def test_parse_negative_and_int_passthrough():
    assert parse_bignum("-42") == -42
    assert parse_bignum(42) == 42


@pytest.mark.parametrize("text", ["abc", "", "12z", "0x", "1_000", "--3"])
def test_parse_invalid(text):
    with pytest.raises(BigNumberError) as info:
        parse_bignum(text)
    assert "Invalid big number" in str(info.value)


def test_empty_fold_starting_values():
    assert big_basic("+") == 0
    assert big_basic("*") == 1
    assert big_basic("/") == 1


def test_add_then_subtract_round_trip():
    total = big_basic("+", BIG_A, BIG_B)
    assert big_basic("-", total, BIG_B) == parse_bignum(BIG_A)


def test_multiply_then_divide_round_trip():
    product = big_basic("*", BIG_A, BIG_B)
    assert big_basic("/", product, BIG_B) == parse_bignum(BIG_A)


def test_single_minus_negates():
    assert big_basic("-", "5") == -5
    assert big_basic("-", big_basic("-", BIG_A)) == parse_bignum(BIG_A)


def test_division_truncates_toward_zero():
    negative = big_basic("/", "-7", "2")
    positive = big_basic("/", "7", "2")
    assert negative == -positive
    assert negative < 0


def test_division_chains_left_to_right():
    assert big_basic("/", "100", "5", "2") == big_basic("/", big_basic("/", "100", "5"), "2")


def test_modulo_is_not_negative():
    result = big_basic("%", "-7", "3")
    assert 0 <= result < 3
    assert (result + 7) % 3 == 0


@pytest.mark.parametrize("op", ["/", "%"])
def test_division_by_zero(op):
    with pytest.raises(BigNumberError):
        big_basic(op, "10", "0")


def test_unknown_operator():
    with pytest.raises(ValueError):
        big_basic("^", "1", "2")


def test_invalid_argument_in_fold():
    with pytest.raises(BigNumberError):
        big_basic("+", "1", "nope")


@pytest.mark.parametrize(
    "op,a,b,expected",
    [
        (">", BIG_A, BIG_B, True),
        (">=", BIG_B, BIG_B, True),
        ("<", BIG_A, BIG_B, False),
        ("<=", BIG_B, BIG_A, True),
        ("==", "0x10", "16", True),
        ("!=", "0x10", "16", False),
    ],
)
def test_compare(op, a, b, expected):
    assert big_compare(op, a, b) is expected


def test_compare_unknown_operator():
    with pytest.raises(ValueError):
        big_compare("<>", "1", "2")


def test_pow_matches_hex_literal():
    assert big_pow("2", "64") == parse_bignum("0x10000000000000000")


def test_pow_modulo_consistent():
    assert big_pow("3", "200", "7") == big_pow("3", "200") % 7


def test_pow_negative_exponent():
    with pytest.raises(BigNumberError, match="Negative exponent"):
        big_pow("2", "-1")