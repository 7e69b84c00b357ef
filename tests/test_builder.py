import random

import pytest

from hpingkit.builder import (
    Fragment,
    PacketBuilder,
    SenderConfig,
    UnsupportedIcmpType,
    build_hcmp,
    build_ip_packet,
    plan_fragments,
)
from hpingkit.protocol import (
    DF,
    ICMP_HEADER_SIZE,
    IP_HEADER_SIZE,
    MF,
    UDP_HEADER_SIZE,
    HcmpType,
    ICMPHeader,
    IPHeader,
    IpProto,
    PseudoHeader,
    TCPHeader,
    TcpFlags,
    UDPHeader,
    internet_checksum,
)

SRC = "10.0.0.1"
DST = "10.0.0.2"


def make_builder(**kwargs):
    kwargs.setdefault("src", SRC)
    kwargs.setdefault("dst", DST)
    return PacketBuilder(SenderConfig(**kwargs), rng=random.Random(7), ident=52)


def test_build_ip_packet_header_fields():
    packet = build_ip_packet(SRC, DST, b"abcd", IpProto.UDP, 33, 0x10, 777, DF, 0, b"")
    header = IPHeader.unpack(packet)
    assert header.version == 4
    assert header.ihl == 5
    assert header.tot_len == IP_HEADER_SIZE + 4
    assert header.protocol == IpProto.UDP
    assert header.ttl == 33
    assert header.tos == 0x10
    assert header.id == 777
    assert header.frag_off == DF
    assert (header.saddr, header.daddr) == (SRC, DST)
    assert packet[IP_HEADER_SIZE:] == b"abcd"


def test_build_ip_packet_options_and_offset():
    options = bytes([1, 1, 1, 0])
    packet = build_ip_packet(SRC, DST, b"xy", 6, 64, 0, 1, MF, 8, options)
    header = IPHeader.unpack(packet)
    assert header.ihl == 6
    assert header.frag_off == MF | 1
    assert packet[IP_HEADER_SIZE:IP_HEADER_SIZE + 4] == options
    assert packet[IP_HEADER_SIZE + 4:] == b"xy"


def test_tcp_segment_fields_and_checksum():
    builder = make_builder(src_port=1000, dst_port=80, tcp_flags=TcpFlags.SYN,
                           seqnum=12345, ack=0, win=2048)
    segment = builder.tcp_segment(b"hello")
    header = TCPHeader.unpack(segment)
    assert (header.sport, header.dport) == (1000, 80)
    assert header.seq == 12345
    assert header.flags == TcpFlags.SYN
    assert header.off == 5
    assert header.win == 2048
    assert segment.endswith(b"hello")
    pseudo = PseudoHeader(SRC, DST, IpProto.TCP, len(segment)).pack()
    assert internet_checksum(pseudo + segment) == 0


def test_tcp_sequence_and_source_port_advance():
    builder = make_builder(src_port=1000, dst_port=80, force_incdport=True)
    builder.tcp_segment()
    builder.tcp_segment()
    assert builder.sequence == 2
    assert builder.src_port == 1000 + 2
    assert builder.dst_port == 80 + 2
    assert builder.sent == [(0, 1000), (1, 1001)]


def test_tcp_keep_still_holds_source_port():
    builder = make_builder(src_port=4000, keep_still=True)
    for _ in range(3):
        builder.tcp_segment()
    assert builder.src_port == 4000


def test_tcp_timestamp_option():
    builder = make_builder(src_port=1, tcp_timestamp=True)
    segment = builder.tcp_segment()
    header = TCPHeader.unpack(segment)
    assert header.off == 8
    assert segment[20:24] == bytes([1, 1, 8, 10])
    assert segment[28:32] == bytes(4)
    pseudo = PseudoHeader(SRC, DST, IpProto.TCP, len(segment)).pack()
    assert internet_checksum(pseudo + segment) == 0


def test_udp_datagram_checksum_and_length():
    builder = make_builder(mode="udp", src_port=5000, dst_port=53)
    datagram = builder.udp_datagram(b"odd")
    header = UDPHeader.unpack(datagram)
    assert header.ulen == UDP_HEADER_SIZE + 3
    assert (header.sport, header.dport) == (5000, 53)
    pseudo = PseudoHeader(SRC, DST, IpProto.UDP, len(datagram)).pack()
    assert internet_checksum(pseudo + datagram) == 0
    assert builder.sequence == 1


def test_raw_payload_is_data():
    builder = make_builder(mode="rawip")
    assert builder.raw_payload(b"\x01\x02") == b"\x01\x02"


def test_icmp_echo_sequence_and_checksum():
    builder = make_builder(mode="icmp")
    first = builder.icmp_echo(b"data")
    second = builder.icmp_echo(b"data")
    h1, h2 = ICMPHeader.unpack(first), ICMPHeader.unpack(second)
    assert h1.type == 8
    assert h1.ident == 52
    assert (h1.sequence, h2.sequence) == (0, 1)
    assert internet_checksum(first) == 0
    assert builder.sent == [(0, 0), (1, 0)]


def test_icmp_fixed_checksum_is_used():
    builder = make_builder(mode="icmp", icmp_cksum=0xBEEF)
    assert ICMPHeader.unpack(builder.icmp_echo()).checksum == 0xBEEF


def test_icmp_timestamp_carries_origin_time():
    builder = make_builder(mode="icmp", icmp_type=13)
    message = builder.icmp_message(b"", 3600000)
    assert len(message) == ICMP_HEADER_SIZE + 12
    assert int.from_bytes(message[8:12], "big") == 3600000
    assert message[12:] == bytes(8)
    assert internet_checksum(message) == 0


def test_icmp_address_request():
    builder = make_builder(mode="icmp", icmp_type=17)
    message = builder.icmp_message(b"", 0)
    assert len(message) == ICMP_HEADER_SIZE + 4
    assert message[0] == 17
    assert builder.sent == []


def test_icmp_error_quotes_headers():
    builder = make_builder(mode="icmp", icmp_type=5, icmp_code=1, icmp_gw="192.0.2.9",
                           icmp_ip_src="10.1.1.1", icmp_ip_dst="10.2.2.2",
                           icmp_ip_srcport=1111, icmp_ip_dstport=2222)
    message = builder.icmp_message(b"zz", 0)
    assert len(message) == ICMP_HEADER_SIZE + IP_HEADER_SIZE + UDP_HEADER_SIZE + 2
    assert message[4:8] == IPHeader(saddr="192.0.2.9").pack()[12:16]
    quoted = IPHeader.unpack(message[8:28])
    assert (quoted.saddr, quoted.daddr) == ("10.1.1.1", "10.2.2.2")
    assert quoted.tot_len == IP_HEADER_SIZE + UDP_HEADER_SIZE
    assert internet_checksum(message[8:28]) == 0
    udp = UDPHeader.unpack(message[28:36])
    assert (udp.sport, udp.dport) == (1111, 2222)
    assert message.endswith(b"zz")
    assert internet_checksum(message) == 0


def test_unsupported_icmp_type_raises():
    builder = make_builder(mode="icmp", icmp_type=42)
    with pytest.raises(UnsupportedIcmpType):
        builder.icmp_message(b"", 0)


def test_forced_icmp_type_uses_error_layout():
    builder = make_builder(mode="icmp", icmp_type=42, force_icmp=True)
    message = builder.icmp_message(b"", 0)
    assert message[0] == 42
    assert len(message) == ICMP_HEADER_SIZE + IP_HEADER_SIZE + UDP_HEADER_SIZE


def test_plan_fragments_covers_payload():
    fragments = plan_fragments(100, 1500, 16, 0, True)
    assert sum(frag.length for frag in fragments) == 100
    assert all(frag.offset % 16 == 0 for frag in fragments)
    assert all(frag.more_fragments for frag in fragments[:-1])
    assert fragments[-1].more_fragments is False


def test_plan_fragments_unfragmented_and_auto():
    assert plan_fragments(100, 1500, 16, 0, False) == [Fragment(0, 100, False)]
    auto = plan_fragments(3000, 1500, 16, 0, False)
    assert auto[0].length == 1480
    assert sum(frag.length for frag in auto) == 3000


def test_plan_fragments_rejects_zero_size():
    with pytest.raises(ValueError):
        plan_fragments(10, 1500, 0, 0, True)


def test_ip_datagrams_fragment_reassembly():
    builder = make_builder(mode="rawip", fragment=True, virtual_mtu=8)
    payload = bytes(range(30))
    datagrams = builder.ip_datagrams(payload)
    reassembled = bytearray()
    for datagram in datagrams:
        header = IPHeader.unpack(datagram)
        assert (header.frag_off & 0x1FFF) * 8 == len(reassembled)
        assert header.id == 52
        reassembled += datagram[IP_HEADER_SIZE:]
    assert bytes(reassembled) == payload
    assert IPHeader.unpack(datagrams[0]).frag_off & MF
    assert not IPHeader.unpack(datagrams[-1]).frag_off & MF


def test_ip_datagrams_auto_fragmentation_clears_flags():
    builder = make_builder(mode="udp", if_mtu=100, dont_fragment=True)
    datagrams = builder.ip_datagrams(bytes(200))
    assert len(datagrams) > 1
    assert builder.config.fragment is True
    assert builder.config.dont_fragment is False
    assert builder.config.virtual_mtu % 8 == 0


def test_ip_datagrams_single_packet_flags_and_protocol():
    builder = make_builder(mode="udp", dont_fragment=True, ip_id=99)
    (datagram,) = builder.ip_datagrams(b"abc")
    header = IPHeader.unpack(datagram)
    assert header.frag_off == DF
    assert header.protocol == IpProto.UDP
    assert header.id == 99


def test_safe_mode_increments_ip_id():
    builder = make_builder(mode="rawip", raw_ip_protocol=47, ip_id=10, safe=True)
    first = IPHeader.unpack(builder.ip_datagrams(b"a")[0])
    second = IPHeader.unpack(builder.ip_datagrams(b"a")[0])
    assert second.id == first.id + 1
    assert first.protocol == 47


def test_build_hcmp_restart_round_trip():
    packed = build_hcmp(HcmpType.RESTART, 300)
    assert packed[0] == HcmpType.RESTART
    assert len(packed) == 8


def test_build_hcmp_rejects_unknown_type():
    with pytest.raises(ValueError):
        build_hcmp(HcmpType.CHPROTO, 0)


def test_sender_config_rejects_unknown_mode():
    with pytest.raises(ValueError):
        SenderConfig(mode="sctp")