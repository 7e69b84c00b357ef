"""Choosing source and destination addresses: lists, round robin and random patterns."""

from __future__ import annotations

import random
import socket
import string
import sys
from collections.abc import Iterable, Iterator
from os import PathLike

MAX_ADDRESSES = 100000


class TargetPatternError(ValueError):
    """A --rand-dest pattern is not four dot-separated fields."""


def load_address_list(path: str | PathLike[str]) -> list[str]:
    """Read one IPv4 address per line; invalid lines are reported and skipped."""
    addresses: list[str] = []
    with open(path, encoding="utf-8", errors="replace") as handle:
        for raw in handle:
            if len(addresses) >= MAX_ADDRESSES:
                break
            line = raw.split("\n", 1)[0]
            try:
                packed = socket.inet_aton(line)
            except (OSError, ValueError):
                print(f"Invalid IP address: {line}", file=sys.stderr)
                continue
            addresses.append(socket.inet_ntoa(packed))
    return addresses


class AddressCycle:
    """Hands out addresses from a list in round-robin order."""

    def __init__(self, addresses: Iterable[str]):
        self._addresses = list(addresses)
        self._index = 0

    def __len__(self) -> int:
        return len(self._addresses)

    def __iter__(self) -> Iterator[str]:
        return self

    def __next__(self) -> str:
        return self.next()

    def next(self) -> str:
        """Return the next address, wrapping around at the end of the list."""
        if not self._addresses:
            raise ValueError("IP list is empty. Make sure to load the IP list first.")
        address = self._addresses[self._index]
        self._index = (self._index + 1) % len(self._addresses)
        return address


def _dotted(octets: Iterable[int]) -> str:
    return ".".join(str(octet) for octet in octets)


def random_address(rng: random.Random) -> str:
    """Return a fully random IPv4 address."""
    return _dotted(rng.getrandbits(32) & 0xFF for _ in range(4))


def _scan_fields(pattern: str) -> list[str]:
    """Split like sscanf("%4[^.].%4[^.].%4[^.].%4[^.]")."""
    fields: list[str] = []
    pos = 0
    while len(fields) < 4:
        if fields:
            if pos >= len(pattern) or pattern[pos] != ".":
                break
            pos += 1
        end = pos
        while end < len(pattern) and end - pos < 4 and pattern[end] != ".":
            end += 1
        if end == pos:
            break
        fields.append(pattern[pos:end])
        pos = end
    return fields


def _strtoul(text: str) -> int:
    """Parse the leading number of ``text`` with C base-0 rules; 0 if none."""
    text = text.lstrip(" \t\n\r\v\f")
    negative = False
    if text[:1] in ("+", "-"):
        negative = text[0] == "-"
        text = text[1:]
    if text[:2].lower() == "0x" and text[2:3] in string.hexdigits and text[2:3]:
        base, digits, text = 16, string.hexdigits, text[2:]
    elif text[:1] == "0":
        base, digits = 8, "01234567"
    else:
        base, digits = 10, string.digits
    value = 0
    for char in text:
        if char not in digits:
            break
        value = value * base + int(char, 16)
    return -value if negative else value


def random_destination(pattern: str, rng: random.Random) -> str:
    """Expand a pattern such as ``192.168.x.x``: each ``x`` field becomes a random byte."""
    fields = _scan_fields(pattern)
    if len(fields) != 4:
        raise TargetPatternError(
            "wrong --rand-dest target host, correct examples:\n"
            "  x.x.x.x, 192,168.x.x, 128.x.x.255\n"
            f"you typed: {pattern}"
        )
    octets = (
        rng.getrandbits(32) & 0xFF if field[0] == "x" else _strtoul(field[:3]) & 0xFF
        for field in fields
    )
    return _dotted(octets)