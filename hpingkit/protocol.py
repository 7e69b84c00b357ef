"""Wire formats, protocol numbers and constants used when building and reading probes."""

from __future__ import annotations

import enum
import ipaddress
import struct
from dataclasses import dataclass

IP_HEADER_SIZE = 20
TCP_HEADER_SIZE = 20
UDP_HEADER_SIZE = 8
ICMP_HEADER_SIZE = 8
PSEUDO_HEADER_SIZE = 12
HCMP_HEADER_SIZE = 8
IP_MAX_SIZE = 65535

COUNTREACHED_TIMEOUT = 1
TABLESIZE = 400
S_SENT = 0
S_RECV = 1

PPPHDR_SIZE_LINUX = 0
PPPHDR_SIZE_BSD = 4
ETHHDR_SIZE = 14
LOHDR_SIZE = 14
WLANHDR_SIZE = 14
TRHDR_SIZE = 20

DEFAULT_SENDINGWAIT = 1
DEFAULT_DPORT = 0
DEFAULT_INITSPORT = -1
DEFAULT_COUNT = -1
DEFAULT_TTL = 64
DEFAULT_SRCWINSIZE = 512
DEFAULT_VIRTUAL_MTU = 16
DEFAULT_ICMP_TYPE = 8
DEFAULT_ICMP_CODE = 0
DEFAULT_ICMP_IP_VERSION = 4
DEFAULT_ICMP_IP_IHL = IP_HEADER_SIZE >> 2
DEFAULT_ICMP_IP_TOS = 0
DEFAULT_ICMP_IP_TOT_LEN = 0
DEFAULT_ICMP_IP_ID = 0
DEFAULT_ICMP_CKSUM = -1
DEFAULT_ICMP_IP_PROTOCOL = 6
DEFAULT_RAW_IP_PROTOCOL = 6
DEFAULT_TRACEROUTE_TTL = 1
DEFAULT_CS_WINDOW = 300
DEFAULT_CS_WINDOW_SHIFT = 5
DEFAULT_CS_VECTOR_LEN = 10

BIND_NONE = 0
BIND_DPORT = 1
BIND_TTL = 2
DEFAULT_BIND = BIND_DPORT

# IP fragmentation flags (in the 16-bit frag_off field)
MF = 0x2000
DF = 0x4000
NF = 0x0000

# IP options
IPOPT_COPY = 0x80
IPOPT_CLASS_MASK = 0x60
IPOPT_NUMBER_MASK = 0x1F
IPOPT_CONTROL = 0x00
IPOPT_RESERVED1 = 0x20
IPOPT_MEASUREMENT = 0x40
IPOPT_RESERVED2 = 0x60
IPOPT_END = 0 | IPOPT_CONTROL
IPOPT_NOOP = 1 | IPOPT_CONTROL
IPOPT_SEC = 2 | IPOPT_CONTROL | IPOPT_COPY
IPOPT_LSRR = 3 | IPOPT_CONTROL | IPOPT_COPY
IPOPT_TIMESTAMP = 4 | IPOPT_MEASUREMENT
IPOPT_RR = 7 | IPOPT_CONTROL
IPOPT_SID = 8 | IPOPT_CONTROL | IPOPT_COPY
IPOPT_SSRR = 9 | IPOPT_CONTROL | IPOPT_COPY
IPOPT_RA = 20 | IPOPT_CONTROL | IPOPT_COPY
IPOPT_OPTVAL = 0
IPOPT_OLEN = 1
IPOPT_OFFSET = 2
IPOPT_MINOFF = 4
MAX_IPOPTLEN = 40
IPOPT_TS_TSONLY = 0
IPOPT_TS_TSANDADDR = 1
IPOPT_TS_PRESPEC = 3

# ICMP codes
ICMP_NET_UNREACH = 0
ICMP_HOST_UNREACH = 1
ICMP_PROT_UNREACH = 2
ICMP_PORT_UNREACH = 3
ICMP_FRAG_NEEDED = 4
ICMP_SR_FAILED = 5
ICMP_NET_UNKNOWN = 6
ICMP_HOST_UNKNOWN = 7
ICMP_HOST_ISOLATED = 8
ICMP_NET_ANO = 9
ICMP_HOST_ANO = 10
ICMP_NET_UNR_TOS = 11
ICMP_HOST_UNR_TOS = 12
ICMP_PKT_FILTERED = 13
ICMP_PREC_VIOLATION = 14
ICMP_PREC_CUTOFF = 15
NR_ICMP_UNREACH = 15
ICMP_REDIR_NET = 0
ICMP_REDIR_HOST = 1
ICMP_REDIR_NETTOS = 2
ICMP_REDIR_HOSTTOS = 3
ICMP_EXC_TTL = 0
ICMP_EXC_FRAGTIME = 1


class TcpFlags(enum.IntFlag):
    """TCP header flag bits, including the two reserved bits X and Y."""

    FIN = 0x01
    SYN = 0x02
    RST = 0x04
    PUSH = 0x08
    ACK = 0x10
    URG = 0x20
    X = 0x40
    Y = 0x80


class IcmpType(enum.IntEnum):
    """ICMP message types."""

    ECHOREPLY = 0
    DEST_UNREACH = 3
    SOURCE_QUENCH = 4
    REDIRECT = 5
    ECHO = 8
    TIME_EXCEEDED = 11
    PARAMETERPROB = 12
    TIMESTAMP = 13
    TIMESTAMPREPLY = 14
    INFO_REQUEST = 15
    INFO_REPLY = 16
    ADDRESS = 17
    ADDRESSREPLY = 18


class HcmpType(enum.IntEnum):
    """Control message types carried after the reverse signature."""

    RESTART = 1
    SOURCE_QUENCH = 2
    SOURCE_STIRUP = 3
    CHPROTO = 4


class IpProto(enum.IntEnum):
    """IP protocol numbers."""

    IP = 0
    HOPOPTS = 0
    ICMP = 1
    IGMP = 2
    IPIP = 4
    TCP = 6
    EGP = 8
    IGRP = 9
    PUP = 12
    UDP = 17
    IDP = 22
    TP = 29
    IPV6 = 41
    ROUTING = 43
    FRAGMENT = 44
    RSVP = 46
    GRE = 47
    ESP = 50
    AH = 51
    ICMPV6 = 58
    NONE = 59
    DSTOPTS = 60
    MTP = 92
    ENCAP = 98
    PIM = 103
    COMP = 108
    RAW = 255


def _addr_bytes(address: str) -> bytes:
    return ipaddress.IPv4Address(address).packed


def _addr_str(raw: bytes) -> str:
    return str(ipaddress.IPv4Address(raw))


def _require(data: bytes, size: int, what: str) -> None:
    if len(data) < size:
        raise ValueError(f"{what} needs {size} bytes, got {len(data)}")


def internet_checksum(data: bytes) -> int:
    """Return the 16-bit one's complement Internet checksum of ``data``."""
    if len(data) % 2:
        data = bytes(data) + b"\x00"
    total = sum(word for (word,) in struct.iter_unpack("!H", data))
    while total >> 16:
        total = (total & 0xFFFF) + (total >> 16)
    return ~total & 0xFFFF


_IP_FORMAT = struct.Struct("!BBHHHBBH4s4s")


@dataclass
class IPHeader:
    """The fixed 20-byte IPv4 header."""

    saddr: str = "0.0.0.0"
    daddr: str = "0.0.0.0"
    version: int = 4
    ihl: int = 5
    tos: int = 0
    tot_len: int = 0
    id: int = 0
    frag_off: int = 0
    ttl: int = DEFAULT_TTL
    protocol: int = IpProto.TCP
    check: int = 0

    def pack(self) -> bytes:
        return _IP_FORMAT.pack(
            ((self.version & 0xF) << 4) | (self.ihl & 0xF),
            self.tos,
            self.tot_len,
            self.id,
            self.frag_off,
            self.ttl,
            self.protocol,
            self.check,
            _addr_bytes(self.saddr),
            _addr_bytes(self.daddr),
        )

    @classmethod
    def unpack(cls, data: bytes) -> IPHeader:
        _require(data, IP_HEADER_SIZE, "IP header")
        (vihl, tos, tot_len, ident, frag_off, ttl, proto, check,
         saddr, daddr) = _IP_FORMAT.unpack_from(data)
        return cls(
            saddr=_addr_str(saddr),
            daddr=_addr_str(daddr),
            version=vihl >> 4,
            ihl=vihl & 0xF,
            tos=tos,
            tot_len=tot_len,
            id=ident,
            frag_off=frag_off,
            ttl=ttl,
            protocol=proto,
            check=check,
        )


_TCP_FORMAT = struct.Struct("!HHIIBBHHH")


@dataclass
class TCPHeader:
    """The fixed 20-byte TCP header."""

    sport: int = 0
    dport: int = 0
    seq: int = 0
    ack: int = 0
    off: int = 5
    x2: int = 0
    flags: TcpFlags = TcpFlags(0)
    win: int = DEFAULT_SRCWINSIZE
    sum: int = 0
    urp: int = 0

    def pack(self) -> bytes:
        return _TCP_FORMAT.pack(
            self.sport,
            self.dport,
            self.seq & 0xFFFFFFFF,
            self.ack & 0xFFFFFFFF,
            ((self.off & 0xF) << 4) | (self.x2 & 0xF),
            int(self.flags) & 0xFF,
            self.win,
            self.sum,
            self.urp,
        )

    @classmethod
    def unpack(cls, data: bytes) -> TCPHeader:
        _require(data, TCP_HEADER_SIZE, "TCP header")
        sport, dport, seq, ack, offx2, flags, win, csum, urp = _TCP_FORMAT.unpack_from(data)
        return cls(
            sport=sport,
            dport=dport,
            seq=seq,
            ack=ack,
            off=offx2 >> 4,
            x2=offx2 & 0xF,
            flags=TcpFlags(flags),
            win=win,
            sum=csum,
            urp=urp,
        )


_UDP_FORMAT = struct.Struct("!HHHH")


@dataclass
class UDPHeader:
    """The 8-byte UDP header."""

    sport: int = 0
    dport: int = 0
    ulen: int = UDP_HEADER_SIZE
    sum: int = 0

    def pack(self) -> bytes:
        return _UDP_FORMAT.pack(self.sport, self.dport, self.ulen, self.sum)

    @classmethod
    def unpack(cls, data: bytes) -> UDPHeader:
        _require(data, UDP_HEADER_SIZE, "UDP header")
        return cls(*_UDP_FORMAT.unpack_from(data))


_ICMP_FORMAT = struct.Struct("!BBHHH")


@dataclass
class ICMPHeader:
    """The 8-byte ICMP header; ident and sequence also hold a redirect gateway."""

    type: int = IcmpType.ECHO
    code: int = 0
    checksum: int = 0
    ident: int = 0
    sequence: int = 0

    def pack(self) -> bytes:
        return _ICMP_FORMAT.pack(
            self.type, self.code, self.checksum, self.ident & 0xFFFF, self.sequence & 0xFFFF
        )

    @classmethod
    def unpack(cls, data: bytes) -> ICMPHeader:
        _require(data, ICMP_HEADER_SIZE, "ICMP header")
        return cls(*_ICMP_FORMAT.unpack_from(data))


_PSEUDO_FORMAT = struct.Struct("!4s4sBBH")


@dataclass
class PseudoHeader:
    """The pseudo header prepended for TCP and UDP checksums."""

    saddr: str
    daddr: str
    protocol: int
    length: int

    def pack(self) -> bytes:
        return _PSEUDO_FORMAT.pack(
            _addr_bytes(self.saddr), _addr_bytes(self.daddr), 0, self.protocol, self.length
        )


@dataclass
class HcmpHeader:
    """Control header: a type byte, padding, and a sequence number or microseconds."""

    type: int
    value: int = 0

    def pack(self) -> bytes:
        if self.type == HcmpType.RESTART:
            body = struct.pack("!H2x", self.value & 0xFFFF)
        elif self.type in (HcmpType.SOURCE_QUENCH, HcmpType.SOURCE_STIRUP):
            body = struct.pack("!I", self.value & 0xFFFFFFFF)
        else:
            raise ValueError(f"unsupported HCMP type {self.type}")
        return struct.pack("!B3x", self.type) + body

    @classmethod
    def unpack(cls, data: bytes) -> HcmpHeader:
        _require(data, HCMP_HEADER_SIZE, "HCMP header")
        kind = data[0]
        if kind == HcmpType.RESTART:
            (value,) = struct.unpack_from("!H", data, 4)
        else:
            (value,) = struct.unpack_from("!I", data, 4)
        return cls(type=kind, value=value)