"""Arbitrary precision integer commands: arithmetic, comparison and powers."""

from __future__ import annotations

import string

_BASIC_OPS = ("+", "-", "*", "/", "%")
_COMPARE_OPS = (">", ">=", "<", "<=", "==", "!=")


class BigNumberError(ValueError):
    """A big number could not be parsed or an operation on it is undefined."""


def _invalid(text: str) -> BigNumberError:
    return BigNumberError(
        f'Invalid big number: "{text}" must be a relative integer number'
    )


def parse_bignum(text) -> int:
    """Parse a signed integer, with ``0x`` hex, ``0b`` binary and leading-zero octal."""
    if isinstance(text, bool):
        raise _invalid(str(text))
    if isinstance(text, int):
        return text
    original = str(text)
    body = original.strip()
    negative = False
    if body[:1] in ("+", "-"):
        negative = body[0] == "-"
        body = body[1:]
    lowered = body.lower()
    if lowered.startswith("0x"):
        base, digits, body = 16, string.hexdigits, body[2:]
    elif lowered.startswith("0b"):
        base, digits, body = 2, "01", body[2:]
    elif body.startswith("0") and len(body) > 1:
        base, digits, body = 8, "01234567", body[1:]
    else:
        base, digits = 10, string.digits
    if not body or any(char not in digits for char in body):
        raise _invalid(original)
    value = int(body, base)
    return -value if negative else value


def _trunc_div(a: int, b: int) -> int:
    quotient = abs(a) // abs(b)
    return quotient if (a >= 0) == (b > 0) else -quotient


def big_basic(op, *args) -> int:
    """Fold ``args`` with ``op`` (one of + - * / %), as the arithmetic commands do.

    ``*`` and ``/`` start from 1, the others from 0; ``/``, ``%`` and ``-`` take the
    first argument as the starting value, and ``-`` with a single argument negates it.
    Division truncates toward zero; the modulo result is never negative.
    """
    if op not in _BASIC_OPS:
        raise ValueError(f"unknown operator {op!r}, expected one of {' '.join(_BASIC_OPS)}")
    values = [parse_bignum(arg) for arg in args]
    result = 1 if op in ("*", "/") else 0
    if op in ("/", "%", "-") and values:
        result = values.pop(0)
        if op == "-" and not values:
            result = -result
    for value in values:
        if op == "+":
            result += value
        elif op == "-":
            result -= value
        elif op == "*":
            result *= value
        elif value == 0:
            raise BigNumberError("Division by zero")
        elif op == "/":
            result = _trunc_div(result, value)
        else:
            result %= abs(value)
    return result


def big_compare(op, a, b) -> bool:
    """Compare two big numbers with one of > >= < <= == !=."""
    if op not in _COMPARE_OPS:
        raise ValueError(f"unknown comparison {op!r}, expected one of {' '.join(_COMPARE_OPS)}")
    left, right = parse_bignum(a), parse_bignum(b)
    if op == ">":
        return left > right
    if op == ">=":
        return left >= right
    if op == "<":
        return left < right
    if op == "<=":
        return left <= right
    if op == "==":
        return left == right
    return left != right


def big_pow(base, exponent, modulo=None) -> int:
    """Raise ``base`` to ``exponent``, optionally modulo ``modulo`` (result not negative)."""
    b = parse_bignum(base)
    e = parse_bignum(exponent)
    m = None if modulo is None else parse_bignum(modulo)
    if e < 0:
        raise BigNumberError("Negative exponent")
    if m is None:
        return b ** e
    if m == 0:
        raise BigNumberError("Division by zero")
    return pow(b, e, abs(m))