import struct

import pytest

from hpingkit.protocol import (
    HcmpHeader,
    HcmpType,
    ICMPHeader,
    IcmpType,
    IPHeader,
    IpProto,
    TcpFlags,
    UDPHeader,
)
from hpingkit.replies import (
    QuotedProbe,
    find_hcmp,
    format_icmp_address,
    format_icmp_timestamp,
    format_ip_line,
    hex_dump,
    human_dump,
    quoted_probe,
    sequence_diff,
    tcp_flags_string,
)


def test_no_flags_is_none():
    assert tcp_flags_string(0) == "none"


def test_all_flags_in_display_order():
    everything = TcpFlags(0xFF)
    assert tcp_flags_string(everything) == "RSAFPUXY"


@pytest.mark.parametrize("flag", list(TcpFlags))
def test_single_flag_gives_one_letter(flag):
    result = tcp_flags_string(flag)
    assert len(result) == 1
    assert result in tcp_flags_string(TcpFlags(0xFF))


def test_hex_dump_round_trip():
    data = bytes(range(32))
    out = hex_dump(data)
    assert out.startswith("\t\t")
    assert out.endswith("\n\n")
    assert "".join(out.split()) == data.hex()
    assert out.count("\n\t\t") == 2


def test_human_dump_replaces_unprintable():
    assert human_dump(b"ab\x00c") == "\t\tab.c\n\n"


def test_human_dump_wraps_lines():
    out = human_dump(b"a" * 33)
    assert out.count("\n\t\t") == 1
    assert out.replace("\n", "").replace("\t", "") == "a" * 33


def _ip(**kwargs):
    return IPHeader(saddr="10.0.0.1", daddr="10.0.0.2", ttl=64, **kwargs)


def test_ip_line_plain():
    line = format_ip_line(_ip(), 40, False, 0, 1234, False)
    assert line.startswith("len=40 ip=10.0.0.1 ttl=64 ")
    assert "id=1234 " in line
    assert "DUP!" not in line
    assert "DF" not in line


def test_ip_line_dup_df_and_relative():
    line = format_ip_line(_ip(frag_off=0x4000), 40, True, 1, 7, False)
    assert line.startswith("DUP! ")
    assert "DF " in line
    assert "id=+7" in line


def test_ip_line_verbose():
    line = format_ip_line(_ip(tos=16, tot_len=40), 40, False, 0, 1, True)
    assert "tos=10 iplen=40" in line
    assert line.endswith("\n")


def test_icmp_timestamp_text():
    data = struct.pack("!III", 1000, 2000, 3000)
    text = format_icmp_timestamp(data, 1500)
    assert "Originate=1000 Receive=2000 Transmit=3000" in text
    assert "tsrtt=500" in text


def test_icmp_timestamp_too_short():
    with pytest.raises(ValueError):
        format_icmp_timestamp(b"\x00" * 11, 0)


def test_icmp_address_text():
    assert "icmpam=255.255.255.0" in format_icmp_address(bytes([255, 255, 255, 0]))


def test_icmp_address_too_short():
    with pytest.raises(ValueError):
        format_icmp_address(b"\x01\x02")


def test_sequence_diff_same_is_zero():
    assert sequence_diff(123456, 123456) == 0


def test_sequence_diff_forward():
    assert sequence_diff(100, 350) == 250


def test_sequence_diff_wrap():
    assert sequence_diff(4294967295, 5) == 5


def _quoted(protocol, payload):
    return IPHeader(saddr="1.2.3.4", daddr="5.6.7.8", protocol=protocol).pack() + payload


def test_quoted_udp_port():
    probe = quoted_probe(_quoted(IpProto.UDP, UDPHeader(sport=1234, dport=80).pack()))
    assert probe == QuotedProbe(IpProto.UDP, src_port=1234)


def test_quoted_tcp_needs_two_bytes():
    assert quoted_probe(_quoted(IpProto.TCP, b"\x01")) is None
    assert quoted_probe(_quoted(IpProto.TCP, b"\x04\xd2")).src_port == 1234


def test_quoted_icmp_echo_sequence():
    icmp = ICMPHeader(type=IcmpType.ECHO, sequence=7).pack()
    probe = quoted_probe(_quoted(IpProto.ICMP, icmp))
    assert probe.sequence == 7
    assert probe.src_port == 0


def test_quoted_icmp_not_echo():
    icmp = ICMPHeader(type=IcmpType.TIMESTAMP, sequence=7).pack()
    assert quoted_probe(_quoted(IpProto.ICMP, icmp)) is None


def test_quoted_too_short_or_other_protocol():
    assert quoted_probe(b"\x45" * 10) is None
    assert quoted_probe(_quoted(IpProto.GRE, b"\x00" * 8)) is None


def test_find_hcmp_restart():
    packet = b"junk" + b"SIGN" + HcmpHeader(HcmpType.RESTART, 42).pack() + b"tail"
    header = find_hcmp(packet, "SIGN")
    assert header.type == HcmpType.RESTART
    assert header.value == 42


def test_find_hcmp_quench_round_trip():
    sent = HcmpHeader(HcmpType.SOURCE_QUENCH, 99)
    assert find_hcmp(b"xxSIGN" + sent.pack(), b"SIGN") == sent


def test_find_hcmp_absent():
    assert find_hcmp(b"no signature here", b"SIGN") is None


def test_find_hcmp_short():
    with pytest.raises(ValueError):
        find_hcmp(b"SIGN\x01\x00", b"SIGN")