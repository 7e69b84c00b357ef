"""Reading and describing the replies to probes: flags, dumps, log lines and control messages."""

from __future__ import annotations

import struct
from dataclasses import dataclass

from hpingkit.protocol import (
    HCMP_HEADER_SIZE,
    ICMP_HEADER_SIZE,
    IP_HEADER_SIZE,
    HcmpHeader,
    ICMPHeader,
    IcmpType,
    IPHeader,
    IpProto,
    TcpFlags,
)

_FLAG_LETTERS = (
    (TcpFlags.RST, "R"),
    (TcpFlags.SYN, "S"),
    (TcpFlags.ACK, "A"),
    (TcpFlags.FIN, "F"),
    (TcpFlags.PUSH, "P"),
    (TcpFlags.URG, "U"),
    (TcpFlags.X, "X"),
    (TcpFlags.Y, "Y"),
)


@dataclass(frozen=True)
class QuotedProbe:
    """What an ICMP error tells about the probe it quotes, enough to match it to a sent one."""

    protocol: int
    src_port: int = 0
    sequence: int = 0


def tcp_flags_string(flags) -> str:
    """Return the flag letters in the order R S A F P U X Y, or ``none``."""
    value = int(flags)
    letters = "".join(letter for flag, letter in _FLAG_LETTERS if value & flag)
    return letters or "none"


def hex_dump(data) -> str:
    """Return ``data`` as hex, grouped in pairs of bytes and 16 bytes per line."""
    parts = ["\t\t"]
    for count, byte in enumerate(bytes(data), 1):
        parts.append(f"{byte:02x}")
        if count % 2 == 0:
            parts.append(" ")
        if count % 16 == 0:
            parts.append("\n\t\t")
    parts.append("\n\n")
    return "".join(parts)


def human_dump(data) -> str:
    """Return the printable characters of ``data``, dots elsewhere, 32 per line."""
    parts = ["\t\t"]
    for count, byte in enumerate(bytes(data), 1):
        parts.append(chr(byte) if 0x20 <= byte <= 0x7E else ".")
        if count % 32 == 0:
            parts.append("\n\t\t")
    parts.append("\n\n")
    return "".join(parts)


def format_ip_line(ip: IPHeader, size, status_dup, rel_id, ip_id, verbose) -> str:
    """Return the IP part of a reply line; ``ip_id`` is the id already put in display order."""
    prefix = "DUP! " if status_dup else ""
    line = (
        f"{prefix}len={size} ip={ip.saddr} ttl={ip.ttl} "
        f"{'DF ' if ip.frag_off else ''}id{'=+' if rel_id else '='}{ip_id} "
    )
    if verbose:
        line += f"tos={ip.tos:x} iplen={ip.tot_len}\n"
    return line


def format_icmp_timestamp(data, now_ms) -> str:
    """Describe the three times of a timestamp reply and the round trip seen from them."""
    data = bytes(data)
    if len(data) < 12:
        raise ValueError("[|icmp timestamp]")
    orig, recv, tran = struct.unpack_from("!III", data)
    tsrtt = (now_ms - orig) & 0xFFFFFFFFFFFFFFFF
    return (
        f"ICMP timestamp: Originate={orig} Receive={recv} Transmit={tran}\n"
        f"ICMP timestamp RTT tsrtt={tsrtt}\n\n"
    )


def format_icmp_address(data) -> str:
    """Describe the mask carried by an address mask reply."""
    data = bytes(data)
    if len(data) < 4:
        raise ValueError("[|icmp subnet address]")
    return "ICMP address mask: icmpam={}.{}.{}.{}\n\n".format(*data[:4])


def sequence_diff(old, new) -> int:
    """Return how far the TCP sequence number moved from ``old`` to ``new``."""
    old &= 0xFFFFFFFF
    new &= 0xFFFFFFFF
    if new >= old:
        return new - old
    return (0xFFFFFFFF - old) + new


def quoted_probe(quoted) -> QuotedProbe | None:
    """Read the probe quoted in an ICMP error, or None if it cannot be matched."""
    data = bytes(quoted)
    if len(data) < IP_HEADER_SIZE:
        return None
    qip = IPHeader.unpack(data)
    rest = data[qip.ihl << 2:]
    if qip.protocol in (IpProto.TCP, IpProto.UDP):
        if len(rest) < 2:
            return None
        return QuotedProbe(qip.protocol, src_port=int.from_bytes(rest[:2], "big"))
    if qip.protocol == IpProto.ICMP:
        if len(rest) < ICMP_HEADER_SIZE or rest[0] != IcmpType.ECHO:
            return None
        return QuotedProbe(qip.protocol, sequence=ICMPHeader.unpack(rest).sequence)
    return None


def find_hcmp(packet, rsign) -> HcmpHeader | None:
    """Find the control header that follows the reverse signature in ``packet``."""
    packet = bytes(packet)
    if isinstance(rsign, str):
        rsign = rsign.encode("latin-1")
    rsign = bytes(rsign)
    if not rsign:
        return None
    index = packet.find(rsign)
    if index == -1:
        return None
    start = index + len(rsign)
    if len(packet) - start < HCMP_HEADER_SIZE:
        raise ValueError("bad HCMP len received")
    return HcmpHeader.unpack(packet[start:start + HCMP_HEADER_SIZE])