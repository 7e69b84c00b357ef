"""Splitting a captured packet into its protocol layers, checking lengths and checksums."""

from __future__ import annotations

import enum
from dataclasses import dataclass

from hpingkit.protocol import (
    ICMP_HEADER_SIZE,
    IP_HEADER_SIZE,
    TCP_HEADER_SIZE,
    UDP_HEADER_SIZE,
    IcmpType,
    IPHeader,
    IpProto,
    PseudoHeader,
    internet_checksum,
)

IGRP_HEADER_SIZE = 12
IGRP_ENTRY_SIZE = 14

_IPOPT_END = 0
_IPOPT_NOOP = 1
_TCPOPT_EOL = 0
_TCPOPT_NOP = 1
_TCPOPT_SACK_PERM = 4

_ICMP_QUERY_TYPES = frozenset({
    IcmpType.ECHO,
    IcmpType.ECHOREPLY,
    IcmpType.TIMESTAMP,
    IcmpType.TIMESTAMPREPLY,
    IcmpType.INFO_REQUEST,
    IcmpType.INFO_REPLY,
})


class SplitError(ValueError):
    """A packet could not be split into layers."""


class LayerType(enum.Enum):
    """The kinds of layer a packet is split into."""

    IP = "ip"
    IPOPT = "ipopt"
    ICMP = "icmp"
    UDP = "udp"
    TCP = "tcp"
    TCPOPT = "tcpopt"
    IGRP = "igrp"
    IGRPENTRY = "igrpentry"
    DATA = "data"


@dataclass
class Layer:
    """One layer of a split packet: the bytes it covers and what was wrong with them."""

    type: LayerType
    data: bytes
    truncated: bool = False
    bad_checksum: bool = False


class _State(enum.Enum):
    DONE = enum.auto()
    IP = enum.auto()
    IPOPT = enum.auto()
    ICMP = enum.auto()
    UDP = enum.auto()
    TCP = enum.auto()
    TCPOPT = enum.auto()
    IGRP = enum.auto()
    IGRPENTRY = enum.auto()
    DATA = enum.auto()


_PROTO_STATE = {
    IpProto.IPIP: _State.IP,
    IpProto.ICMP: _State.ICMP,
    IpProto.TCP: _State.TCP,
    IpProto.UDP: _State.UDP,
    IpProto.IGRP: _State.IGRP,
}


def _next_by_protocol(proto: int) -> _State:
    return _PROTO_STATE.get(proto, _State.DATA)


def check_ip_checksum(data) -> bool:
    """Return True if the header checksum of the IP header at the start of ``data`` is right."""
    data = bytes(data)
    if not data:
        return False
    hdrsize = (data[0] & 0xF) << 2
    if hdrsize < 12 or len(data) < hdrsize:
        return False
    header = bytearray(data[:hdrsize])
    stored = int.from_bytes(header[10:12], "big")
    header[10:12] = b"\x00\x00"
    return internet_checksum(bytes(header)) == stored


def check_icmp_checksum(data) -> bool:
    """Return True if the checksum of the ICMP message ``data`` is right."""
    message = bytearray(data)
    if len(message) < 4:
        return False
    stored = int.from_bytes(message[2:4], "big")
    message[2:4] = b"\x00\x00"
    return internet_checksum(bytes(message)) == stored


def seems_ip(data) -> bool:
    """Return True if ``data`` starts with what looks like a valid IPv4 header."""
    data = bytes(data)
    if not data:
        return False
    version, ihl = data[0] >> 4, data[0] & 0xF
    return version == 4 and ihl >= 5 and (ihl << 2) <= len(data) and check_ip_checksum(data)


def guess_ip_offset(data) -> int:
    """Return the offset of the first plausible IP header, i.e. the link header size."""
    data = bytes(data)
    offset = 0
    while len(data) - offset >= IP_HEADER_SIZE:
        if seems_ip(data[offset:]):
            return offset
        offset += 1
    raise SplitError("IP offset autodetection failed")


class _Splitter:
    def __init__(self) -> None:
        self.layers: list[Layer] = []
        self.aux = 0
        self.aux_ipproto = 0

    def _add(self, kind: LayerType, data: bytes, truncated: bool = False,
             bad_checksum: bool = False) -> None:
        self.layers.append(Layer(kind, bytes(data), truncated, bad_checksum))

    def _transport_checksum(self, segment: bytes, proto: int, sum_at: int) -> int:
        ip_layer = next(
            (layer for layer in reversed(self.layers)
             if layer.type is LayerType.IP and len(layer.data) >= IP_HEADER_SIZE),
            None,
        )
        if ip_layer is None:
            raise SplitError("no IP layer to compute the checksum with")
        ip = IPHeader.unpack(ip_layer.data)
        zeroed = bytearray(segment)
        zeroed[sum_at:sum_at + 2] = bytes(len(zeroed[sum_at:sum_at + 2]))
        pseudo = PseudoHeader(ip.saddr, ip.daddr, proto, len(segment) & 0xFFFF).pack()
        return internet_checksum(pseudo + bytes(zeroed))

    def ip(self, data: bytes) -> tuple[int, _State]:
        size = len(data)
        truncated = bad = False
        if size < IP_HEADER_SIZE:
            truncated = True
            ipsize = size
        else:
            ihl = data[0] & 0xF
            ipsize = ihl << 2
            if size < ipsize:
                truncated = True
                ipsize = size
            elif ihl < 4 or not check_ip_checksum(data):
                bad = True
            ipsize = min(ipsize, IP_HEADER_SIZE)
        self._add(LayerType.IP, data[:ipsize], truncated, bad)
        if truncated:
            return ipsize, _State.DATA
        ihl = data[0] & 0xF
        if ihl > 5:
            self.aux_ipproto = data[9]
            self.aux = (ihl - 5) << 2
            return ipsize, _State.IPOPT
        return ipsize, _next_by_protocol(data[9])

    def _option(self, data: bytes, kind: LayerType, one_byte: frozenset) -> int | None:
        size = min(len(data), self.aux)
        if size == 0:
            return None
        if data[0] in one_byte:
            optsize = 1
        else:
            optsize = data[1] if len(data) > 1 else 0
        if optsize == 0:
            optsize = 1
        truncated = False
        if size < optsize:
            truncated = True
            optsize = size
        self.aux -= optsize
        self._add(kind, data[:optsize], truncated)
        return optsize

    def ipopt(self, data: bytes) -> tuple[int, _State]:
        optsize = self._option(data, LayerType.IPOPT, frozenset({_IPOPT_END, _IPOPT_NOOP}))
        if optsize is None:
            return 0, _State.DATA
        if self.aux > 0:
            return optsize, _State.IPOPT
        return optsize, _next_by_protocol(self.aux_ipproto)

    def icmp(self, data: bytes) -> tuple[int, _State]:
        size = len(data)
        icmpsize = ICMP_HEADER_SIZE
        truncated = bad = False
        if size < icmpsize:
            truncated = True
            icmpsize = size
        elif not check_icmp_checksum(data):
            bad = True
        self._add(LayerType.ICMP, data[:icmpsize], truncated, bad)
        if truncated:
            return icmpsize, _State.DATA
        if data[0] in _ICMP_QUERY_TYPES:
            return icmpsize, _State.DATA
        return icmpsize, _State.IP

    def udp(self, data: bytes) -> tuple[int, _State]:
        size = len(data)
        computed = self._transport_checksum(data, IpProto.UDP, 6)
        udpsize = UDP_HEADER_SIZE
        truncated = bad = False
        if size < udpsize:
            truncated = True
            udpsize = size
        elif int.from_bytes(data[6:8], "big") != computed:
            bad = True
        self._add(LayerType.UDP, data[:udpsize], truncated, bad)
        return udpsize, _State.DATA

    def tcp(self, data: bytes) -> tuple[int, _State]:
        size = len(data)
        th_off = data[12] >> 4 if size > 12 else 0
        tcpsize = th_off << 2
        computed = self._transport_checksum(data, IpProto.TCP, 16)
        truncated = bad = False
        if size < tcpsize:
            truncated = True
            tcpsize = size
        elif int.from_bytes(data[16:18], "big") != computed:
            bad = True
        tcpsize = min(tcpsize, TCP_HEADER_SIZE)
        self._add(LayerType.TCP, data[:tcpsize], truncated, bad)
        if th_off > 5:
            self.aux = (th_off - 5) << 2
            return tcpsize, _State.TCPOPT
        return tcpsize, _State.DATA

    def tcpopt(self, data: bytes) -> tuple[int, _State]:
        optsize = self._option(
            data, LayerType.TCPOPT,
            frozenset({_TCPOPT_EOL, _TCPOPT_NOP, _TCPOPT_SACK_PERM}),
        )
        if optsize is None:
            return 0, _State.DATA
        return optsize, _State.TCPOPT if self.aux > 0 else _State.DATA

    def _fixed(self, data: bytes, kind: LayerType, fixed: int) -> int:
        size = min(len(data), fixed)
        self._add(kind, data[:size], len(data) < fixed)
        return size

    def igrp(self, data: bytes) -> tuple[int, _State]:
        return self._fixed(data, LayerType.IGRP, IGRP_HEADER_SIZE), _State.IGRPENTRY

    def igrpentry(self, data: bytes) -> tuple[int, _State]:
        return self._fixed(data, LayerType.IGRPENTRY, IGRP_ENTRY_SIZE), _State.IGRPENTRY

    def data(self, data: bytes) -> tuple[int, _State]:
        self._add(LayerType.DATA, data)
        return len(data), _State.DONE


def split_packet(data, ipoff=0) -> list[Layer]:
    """Split ``data`` into layers, starting at ``ipoff``; -1 guesses where IP starts."""
    data = bytes(data)
    if ipoff == -1:
        ipoff = guess_ip_offset(data)
    if ipoff < 0 or ipoff > len(data):
        raise SplitError(f"IP offset {ipoff} outside a packet of {len(data)} bytes")
    splitter = _Splitter()
    handlers = {
        _State.IP: splitter.ip,
        _State.IPOPT: splitter.ipopt,
        _State.ICMP: splitter.icmp,
        _State.UDP: splitter.udp,
        _State.TCP: splitter.tcp,
        _State.TCPOPT: splitter.tcpopt,
        _State.IGRP: splitter.igrp,
        _State.IGRPENTRY: splitter.igrpentry,
        _State.DATA: splitter.data,
    }
    offset, size = ipoff, len(data) - ipoff
    state = _State.IP
    while state is not _State.DONE:
        consumed, state = handlers[state](data[offset:offset + size])
        layers = splitter.layers
        if len(layers) == 1 and layers[0].type is LayerType.IP:
            # drop link layer padding beyond the IP total length
            head = layers[0].data
            tot_len = int.from_bytes(head[2:4], "big") if len(head) >= 4 else 0
            size = min(size, tot_len)
        offset += consumed
        size = max(0, size - consumed)
        if size == 0:
            state = _State.DONE
    return splitter.layers