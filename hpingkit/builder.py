"""Assembling TCP, UDP, ICMP and raw IP probes and cutting them into IP fragments."""

from __future__ import annotations

import os
import random
import struct
from dataclasses import dataclass, field

from hpingkit.protocol import (
    DEFAULT_CS_VECTOR_LEN,
    DEFAULT_ICMP_IP_IHL,
    DEFAULT_RAW_IP_PROTOCOL,
    DEFAULT_SRCWINSIZE,
    DEFAULT_TTL,
    DEFAULT_VIRTUAL_MTU,
    DF,
    HCMP_HEADER_SIZE,
    ICMP_HEADER_SIZE,
    IP_HEADER_SIZE,
    MF,
    NF,
    TCP_HEADER_SIZE,
    UDP_HEADER_SIZE,
    HcmpHeader,
    ICMPHeader,
    IcmpType,
    IPHeader,
    IpProto,
    PseudoHeader,
    TCPHeader,
    TcpFlags,
    UDPHeader,
    internet_checksum,
)

_MODES = ("tcp", "udp", "icmp", "rawip")
_TCP_TIMESTAMP_OPTION_SIZE = 12


class UnsupportedIcmpType(ValueError):
    """The configured ICMP type cannot be sent without --force-icmp."""


@dataclass
class SenderConfig:
    """Everything the command line decides about the probes being sent."""

    src: str = "0.0.0.0"
    dst: str = "0.0.0.0"
    mode: str = "tcp"
    # IP layer
    ttl: int = DEFAULT_TTL
    tos: int = 0
    ip_id: int = -1
    fragment: bool = False
    more_fragments: bool = False
    dont_fragment: bool = False
    frag_offset: int = 0
    virtual_mtu: int = DEFAULT_VIRTUAL_MTU
    if_mtu: int = 1500
    ip_options: bytes = b""
    raw_ip_protocol: int = DEFAULT_RAW_IP_PROTOCOL
    safe: bool = False
    eof_reached: bool = False
    # TCP and UDP
    src_port: int | None = None
    dst_port: int = 0
    keep_still: bool = False
    force_incdport: bool = False
    tcp_flags: TcpFlags = TcpFlags(0)
    win: int = DEFAULT_SRCWINSIZE
    thoff: int = TCP_HEADER_SIZE >> 2
    seqnum: int | None = None
    ack: int | None = None
    tcp_timestamp: bool = False
    # ICMP
    icmp_type: int = IcmpType.ECHO
    icmp_code: int = 0
    icmp_cksum: int = -1
    force_icmp: bool = False
    icmp_gw: str = "0.0.0.0"
    icmp_ip_version: int = 4
    icmp_ip_ihl: int = DEFAULT_ICMP_IP_IHL
    icmp_ip_tos: int = 0
    icmp_ip_tot_len: int = 0
    icmp_ip_protocol: int = IpProto.TCP
    icmp_ip_src: str = "0.0.0.0"
    icmp_ip_dst: str = "0.0.0.0"
    icmp_ip_srcport: int = 0
    icmp_ip_dstport: int = 0
    cs_vector_len: int = DEFAULT_CS_VECTOR_LEN

    def __post_init__(self) -> None:
        if self.mode not in _MODES:
            raise ValueError(f"unknown mode {self.mode!r}, expected one of {', '.join(_MODES)}")

    @property
    def protocol(self) -> int:
        """The IP protocol number the probes are sent with."""
        if self.mode == "rawip":
            return self.raw_ip_protocol
        if self.mode == "icmp":
            return IpProto.ICMP
        if self.mode == "udp":
            return IpProto.UDP
        return IpProto.TCP


@dataclass(frozen=True)
class Fragment:
    """One slice of a payload: where it starts, how long it is, and whether more follow."""

    offset: int
    length: int
    more_fragments: bool

    @property
    def flags(self) -> int:
        return MF if self.more_fragments else NF


def build_ip_packet(src, dst, payload, protocol, ttl, tos, ident, flags, frag_offset, options):
    """Wrap ``payload`` in an IPv4 header; the header checksum is left to the kernel."""
    options = bytes(options or b"")
    payload = bytes(payload)
    size = IP_HEADER_SIZE + len(options) + len(payload)
    header = IPHeader(
        saddr=src,
        daddr=dst,
        version=4,
        ihl=(IP_HEADER_SIZE + len(options) + 3) >> 2,
        tos=tos & 0xFF,
        tot_len=size & 0xFFFF,
        id=ident & 0xFFFF,
        frag_off=(flags | (frag_offset >> 3)) & 0xFFFF,
        ttl=ttl & 0xFF,
        protocol=protocol & 0xFF,
        check=0,
    )
    return header.pack() + options + payload


def _auto_mtu(size: int, if_mtu: int, options_len: int) -> int | None:
    """The fragment size to switch to when a packet would not fit the interface."""
    if size + options_len + IP_HEADER_SIZE >= if_mtu:
        mtu = if_mtu - IP_HEADER_SIZE
        return mtu - (mtu % 8)
    return None


def plan_fragments(size, if_mtu, virtual_mtu, options_len, fragment):
    """Cut a payload of ``size`` bytes into fragments, turning fragmentation on if needed."""
    if not fragment:
        auto = _auto_mtu(size, if_mtu, options_len)
        if auto is None:
            return [Fragment(0, size, False)]
        virtual_mtu = auto
    if virtual_mtu <= 0:
        raise ValueError(f"fragment size must be positive, got {virtual_mtu}")
    fragments = []
    offset, remainder = 0, size
    while remainder > virtual_mtu:
        fragments.append(Fragment(offset, virtual_mtu, True))
        remainder -= virtual_mtu
        offset += virtual_mtu
    fragments.append(Fragment(offset, remainder, False))
    return fragments


def build_hcmp(kind, arg):
    """Return the control header asking the peer to restart, slow down or speed up."""
    packed = HcmpHeader(type=kind, value=arg).pack()
    assert len(packed) == HCMP_HEADER_SIZE
    return packed


class PacketBuilder:
    """Builds successive probes, keeping sequence numbers, ports and IP ids moving."""

    def __init__(self, config: SenderConfig, rng: random.Random | None = None,
                 ident: int | None = None):
        self.config = config
        self.rng = rng if rng is not None else random.Random()
        self.ident = (os.getpid() if ident is None else ident) & 0xFFFF
        self.initsport = (
            config.src_port if config.src_port is not None else self.rng.getrandbits(16)
        )
        self.src_port = self.initsport % 65536
        self.dst_port = config.dst_port
        self.sequence = 0
        self.icmp_seq = 0
        self.src_id = config.ip_id
        self.sent: list[tuple[int, int]] = []

    # ------------------------------------------------------------------ TCP/UDP

    def _advance_ports(self) -> None:
        self.sequence += 1
        if not self.config.keep_still:
            self.src_port = (self.sequence + self.initsport) % 65536
        if self.config.force_incdport:
            self.dst_port += 1

    def tcp_segment(self, data=b""):
        """Return a TCP segment with a valid checksum and step to the next sequence."""
        cfg = self.config
        data = bytes(data)
        options = b""
        if cfg.tcp_timestamp:
            options = (
                bytes((1, 1, 8, 10))
                + self.rng.getrandbits(32).to_bytes(4, "big")
                + bytes(4)
            )
        length = TCP_HEADER_SIZE + len(options) + len(data)
        header = TCPHeader(
            sport=self.src_port & 0xFFFF,
            dport=self.dst_port & 0xFFFF,
            seq=cfg.seqnum if cfg.seqnum is not None else self.rng.getrandbits(32),
            ack=cfg.ack if cfg.ack is not None else self.rng.getrandbits(32),
            off=(cfg.thoff + (len(options) >> 2)) & 0xF,
            flags=TcpFlags(int(cfg.tcp_flags) & 0xFF),
            win=cfg.win & 0xFFFF,
        )
        pseudo = PseudoHeader(cfg.src, cfg.dst, IpProto.TCP, length & 0xFFFF).pack()
        header.sum = internet_checksum(pseudo + header.pack() + options + data)
        self.sent.append((self.sequence, self.src_port))
        self._advance_ports()
        return header.pack() + options + data

    def udp_datagram(self, data=b""):
        """Return a UDP datagram with a valid checksum and step to the next sequence."""
        cfg = self.config
        data = bytes(data)
        length = (UDP_HEADER_SIZE + len(data)) & 0xFFFF
        header = UDPHeader(sport=self.src_port & 0xFFFF, dport=self.dst_port & 0xFFFF,
                           ulen=length)
        pseudo = PseudoHeader(cfg.src, cfg.dst, IpProto.UDP, length).pack()
        header.sum = internet_checksum(pseudo + header.pack() + data)
        self.sent.append((self.sequence, self.src_port))
        self._advance_ports()
        return header.pack() + data

    def raw_payload(self, data=b""):
        """Return the payload of a raw IP probe: the data itself."""
        return bytes(data)

    # --------------------------------------------------------------------- ICMP

    def _icmp_checksum(self, message: bytes) -> int:
        if self.config.icmp_cksum == -1:
            return internet_checksum(message)
        return self.config.icmp_cksum & 0xFFFF

    def icmp_message(self, data, now_ms):
        """Build the ICMP message that the configured type calls for."""
        kind = self.config.icmp_type
        if kind in (IcmpType.ECHO, IcmpType.ECHOREPLY):
            return self.icmp_echo(data)
        if kind in (IcmpType.DEST_UNREACH, IcmpType.SOURCE_QUENCH,
                    IcmpType.REDIRECT, IcmpType.TIME_EXCEEDED):
            return self.icmp_error(data)
        if kind in (IcmpType.TIMESTAMP, IcmpType.TIMESTAMPREPLY):
            return self.icmp_timestamp(now_ms)
        if kind in (IcmpType.ADDRESS, IcmpType.ADDRESSREPLY):
            return self.icmp_address()
        if self.config.force_icmp:
            return self.icmp_error(data)
        raise UnsupportedIcmpType(f"Unsupported icmp type {kind}")

    def _icmp_query(self, code: int, body: bytes, record_type: int) -> bytes:
        header = ICMPHeader(type=self.config.icmp_type, code=code, checksum=0,
                            ident=self.ident, sequence=self.icmp_seq)
        header.checksum = self._icmp_checksum(header.pack() + body)
        if self.config.icmp_type == record_type:
            self.sent.append((self.icmp_seq, 0))
        self.icmp_seq += 1
        return header.pack() + body

    def icmp_echo(self, data=b""):
        """Return an echo request or reply carrying ``data``."""
        return self._icmp_query(self.config.icmp_code, bytes(data), IcmpType.ECHO)

    def icmp_timestamp(self, now_ms):
        """Return a timestamp request whose originate time is ``now_ms``."""
        body = struct.pack("!III", now_ms & 0xFFFFFFFF, 0, 0)
        return self._icmp_query(0, body, IcmpType.TIMESTAMP)

    def icmp_address(self):
        """Return an address mask request with an empty mask."""
        return self._icmp_query(0, bytes(4), IcmpType.TIMESTAMP)

    def icmp_error(self, data=b""):
        """Return an ICMP error quoting a made-up IP and UDP header followed by ``data``."""
        cfg = self.config
        data = bytes(data)
        if cfg.icmp_type == IcmpType.REDIRECT:
            gateway = IPHeader(saddr=cfg.icmp_gw).pack()[12:16]
        else:
            gateway = bytes(4)
        header = ICMPHeader(
            type=cfg.icmp_type & 0xFF,
            code=cfg.icmp_code & 0xFF,
            checksum=0,
            ident=int.from_bytes(gateway[:2], "big"),
            sequence=int.from_bytes(gateway[2:], "big"),
        )
        tot_len = cfg.icmp_ip_tot_len or ((cfg.icmp_ip_ihl << 2) + UDP_HEADER_SIZE)
        quoted_ip = IPHeader(
            saddr=cfg.icmp_ip_src,
            daddr=cfg.icmp_ip_dst,
            version=cfg.icmp_ip_version,
            ihl=cfg.icmp_ip_ihl,
            tos=cfg.icmp_ip_tos & 0xFF,
            tot_len=tot_len & 0xFFFF,
            id=self.ident,
            frag_off=0,
            ttl=64,
            protocol=cfg.icmp_ip_protocol & 0xFF,
            check=0,
        )
        quoted_ip.check = internet_checksum(quoted_ip.pack())
        quoted_udp = UDPHeader(sport=cfg.icmp_ip_srcport & 0xFFFF,
                               dport=cfg.icmp_ip_dstport & 0xFFFF,
                               ulen=UDP_HEADER_SIZE)
        pseudo = PseudoHeader(cfg.icmp_ip_src, cfg.icmp_ip_dst, quoted_ip.protocol,
                              quoted_ip.tot_len).pack()
        quoted_udp.sum = internet_checksum(pseudo + quoted_udp.pack())
        body = quoted_ip.pack() + quoted_udp.pack() + data
        header.checksum = self._icmp_checksum(header.pack() + body)
        return header.pack() + body

    # ----------------------------------------------------------------------- IP

    def _next_ident(self) -> int:
        if self.src_id == -1:
            if self.config.fragment:
                return self.ident & 0xFF
            return self.rng.getrandbits(16)
        return self.src_id & 0xFFFF

    def _datagram(self, payload: bytes, flags: int, frag_offset: int) -> bytes:
        cfg = self.config
        packet = build_ip_packet(cfg.src, cfg.dst, payload, cfg.protocol, cfg.ttl, cfg.tos,
                                 self._next_ident(), flags, frag_offset, cfg.ip_options)
        if cfg.safe and not cfg.eof_reached:
            self.src_id += 1
        return packet

    def ip_datagrams(self, payload):
        """Wrap ``payload`` in IP, fragmenting when asked to or when it exceeds the MTU."""
        cfg = self.config
        payload = bytes(payload)
        options_len = len(cfg.ip_options)
        if not cfg.fragment:
            auto = _auto_mtu(len(payload), cfg.if_mtu, options_len)
            if auto is not None:
                cfg.virtual_mtu = auto
                cfg.fragment = True
                cfg.more_fragments = cfg.dont_fragment = False
        if not cfg.fragment:
            flags = (MF if cfg.more_fragments else 0) | (DF if cfg.dont_fragment else 0)
            return [self._datagram(payload, flags, cfg.frag_offset)]
        return [
            self._datagram(payload[frag.offset:frag.offset + frag.length], frag.flags,
                           frag.offset)
            for frag in plan_fragments(len(payload), cfg.if_mtu, cfg.virtual_mtu,
                                       options_len, True)
        ]