# hpingkit

Tools for building, taking apart and reporting on TCP/IP probe packets.
Everything works on plain `bytes`: the package crafts IPv4, TCP, UDP and
ICMP packets, splits captured packets into protocol layers, and formats
the lines a probing tool prints when replies come back. It uses only the
standard library.

## Modules

| Module | Purpose |
| --- | --- |
| `hpingkit.protocol` | Header dataclasses with `pack`/`unpack` (`IPHeader`, `TCPHeader`, `UDPHeader`, `ICMPHeader`, `HcmpHeader`; `PseudoHeader` packs only), the enums `TcpFlags`, `IcmpType`, `IpProto`, `HcmpType`, protocol constants and `internet_checksum` |
| `hpingkit.targets` | Address selection: `random_destination` expands patterns such as `192.168.x.x`, `random_address`, `load_address_list` reads one address per line, and `AddressCycle` hands addresses out round robin |
| `hpingkit.builder` | `SenderConfig` and `PacketBuilder` for TCP segments, UDP datagrams, raw payloads and ICMP echo, timestamp, address-mask and error messages; `ip_datagrams` wraps a payload in IP and fragments it; plus `build_ip_packet`, `plan_fragments` and `build_hcmp` |
| `hpingkit.split` | `split_packet` turns captured bytes into a list of `Layer` objects marked as truncated or with a bad checksum; `guess_ip_offset`, `seems_ip`, `check_ip_checksum`, `check_icmp_checksum` |
| `hpingkit.replies` | Reply formatting: `tcp_flags_string`, `hex_dump`, `human_dump`, `format_ip_line`, `format_icmp_timestamp`, `format_icmp_address`, `sequence_diff`, `quoted_probe` for ICMP errors and `find_hcmp` for control messages after a signature |
| `hpingkit.timestamps` | `parse_tcp_timestamp`, `guess_hz`, `uptime`, `TimestampTracker` to measure a remote clock rate and `ClockSkewEstimator` for the skew report |
| `hpingkit.bigmath` | Arbitrary precision integers given as text: `parse_bignum`, `big_basic`, `big_compare`, `big_pow` |
| `hpingkit.report` | `Statistics` with `loss_rate`, `report` and `exit_code`; `version_text` |
| `hpingkit.scriptcmds` | Helpers for scripting subcommands: `format_interfaces` (Tcl-style list of `InterfaceInfo`), `checksum_command`, `resolve_command`, `parse_recv_args` returning a `RecvRequest`, `bad_option_message` |

## Examples

Build a SYN probe and wrap it in IP:

```python
import random

from hpingkit.builder import PacketBuilder, SenderConfig
from hpingkit.protocol import TcpFlags

config = SenderConfig(src="192.0.2.1", dst="192.0.2.2", mode="tcp",
                      dst_port=80, tcp_flags=TcpFlags.SYN)
builder = PacketBuilder(config, rng=random.Random(1))
segment = builder.tcp_segment(b"")
packets = builder.ip_datagrams(segment)   # list of bytes, fragmented if needed
```

Split a captured IPv4 packet into layers:

```python
from hpingkit.split import SplitError, split_packet

try:
    layers = split_packet(packets[0], 0)
except SplitError as exc:
    print("cannot split:", exc)
else:
    for layer in layers:
        print(layer.type, len(layer.data), layer.truncated, layer.bad_checksum)
```

Pass `-1` as the offset to let `split_packet` find where the IP header
starts behind an unknown link-layer header.

Describe the flags of a TCP reply:

```python
from hpingkit.protocol import TcpFlags
from hpingkit.replies import tcp_flags_string

tcp_flags_string(TcpFlags.SYN | TcpFlags.ACK)   # "SA"
```

Work with big integers given as text:

```python
from hpingkit.bigmath import big_basic, big_compare, big_pow

total = big_basic("+", "123456789012345678901234567890", "1")
bigger = big_compare(">", total, "123456789012345678901234567890")   # True
power = big_pow("2", "128", None)
```

## Errors

Failures are raised as exceptions: `SplitError` for packets that cannot
be split, `TargetPatternError` for a malformed random destination
pattern, `UnsupportedIcmpType` for an ICMP type the builder will not
produce without `force_icmp`, `BigNumberError` for text that is not an
integer or an undefined operation, and `ScriptError` for bad scripting
command arguments or names that cannot be resolved.

## What the package does not do

- It has no command-line program and prints no usage or help text.
- It does not open raw sockets, send packets, or capture them from an
  interface; it only builds and reads bytes that you send or capture by
  other means.
- It has no scripting interpreter: `hpingkit.scriptcmds` only parses
  arguments and formats results for such commands.