"""Argument handling and result formatting for the scripting ``hping`` subcommands."""

from __future__ import annotations

import socket
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from hpingkit.bigmath import BigNumberError, parse_bignum
from hpingkit.protocol import internet_checksum

SUBCOMMANDS = (
    "resolve",
    "send",
    "sendraw",
    "recv",
    "recvraw",
    "setfilter",
    "iflist",
    "outifa",
    "getfield",
    "hasfield",
    "setfield",
    "delfield",
    "checksum",
    "event",
)


class ScriptError(Exception):
    """A scripting command was called wrongly or could not do its work."""


def _wrong_args(subcommand: str, usage: str) -> ScriptError:
    return ScriptError(f'wrong # args: should be "hping {subcommand} {usage}"')


@dataclass
class InterfaceInfo:
    """A network interface as listed by ``hping iflist``."""

    name: str
    mtu: int
    addresses: list[str] = field(default_factory=list)
    broadcast_addresses: list[str] = field(default_factory=list)
    loopback: bool = False
    pointopoint: bool = False
    promisc: bool = False
    broadcast: bool = False
    nolink: bool = False

    @property
    def flags(self) -> list[str]:
        """The flag names in the order they are listed."""
        named = (
            (self.loopback, "LOOPBACK"),
            (self.pointopoint, "POINTOPOINT"),
            (self.promisc, "PROMISC"),
            (self.broadcast, "BROADCAST"),
            (self.nolink, "NOLINK"),
        )
        return [name for present, name in named if present]


@dataclass(frozen=True)
class RecvRequest:
    """Arguments of ``hping recv``: timeout in ms (-1 waits forever), 0 packets means no limit."""

    ifname: str
    timeout: int = -1
    maxpackets: int = 1
    hexdata: bool = False

    @property
    def waits_forever(self) -> bool:
        """True when the request has neither a timeout nor a packet limit."""
        return self.timeout < 0 and self.maxpackets == 0


def format_interfaces(interfaces: Iterable[InterfaceInfo]) -> str:
    """Return the interface list as a Tcl list of ``{name mtu {addrs} {bcasts} {flags}}``."""
    parts = []
    for iface in interfaces:
        entry = f"{{{iface.name} {iface.mtu} {{{' '.join(iface.addresses)}}}"
        if iface.broadcast:
            count = len(iface.addresses)
            entry += f" {{{' '.join(iface.broadcast_addresses[:count])}}} {{"
        else:
            entry += " {} {"
        entry += " ".join(iface.flags)
        entry += "}} "
        parts.append(entry)
    return "".join(parts)


def checksum_command(data) -> int:
    """Return the Internet checksum of ``data``; text is taken as UTF-8."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return internet_checksum(bytes(data))


def resolve_command(args: Sequence[str]) -> str:
    """Resolve a host name to a dotted address, or with ``-ptr`` an address to a name."""
    args = list(args)
    if len(args) not in (1, 2):
        raise _wrong_args("resolve", "?-ptr? hostname")
    if len(args) == 2:
        option, ipaddr = args
        if option != "-ptr":
            raise ScriptError("The only valid option for resolve is -ptr")
        try:
            socket.inet_aton(ipaddr)
        except OSError:
            raise ScriptError(f"Invalid IP address: {ipaddr}") from None
        try:
            return socket.gethostbyaddr(ipaddr)[0]
        except OSError:
            return ipaddr
    hostname = args[0]
    try:
        return socket.gethostbyname(hostname)
    except (OSError, UnicodeError):
        raise ScriptError(f"Unable to resolve: {hostname}") from None


def _integer(text: str) -> int:
    try:
        return parse_bignum(text)
    except BigNumberError:
        raise ScriptError(f'expected integer but got "{text}"') from None


def parse_recv_args(args: Sequence[str]) -> RecvRequest:
    """Parse ``?-hexdata? ifname ?timeout? ?maxpackets?``."""
    args = list(args)
    hexdata = False
    if args and args[0] == "-hexdata":
        hexdata = True
        args = args[1:]
    if len(args) not in (1, 2, 3):
        raise _wrong_args("recv", "ifname ?timeout? ?maxpackets?")
    timeout = _integer(args[1]) if len(args) >= 2 else -1
    maxpackets = _integer(args[2]) if len(args) == 3 else 1
    return RecvRequest(args[0], timeout, maxpackets, hexdata)


def bad_option_message(name: str) -> str:
    """Return the error given for an unknown subcommand, listing the valid ones."""
    return f'Bad option "{name}" must be: ' + ", ".join(SUBCOMMANDS)