"""TCP timestamp option: guessing the remote clock rate, uptime and clock skew."""

from __future__ import annotations

from dataclasses import dataclass, field

from hpingkit.protocol import (
    DEFAULT_CS_VECTOR_LEN,
    DEFAULT_CS_WINDOW,
    DEFAULT_CS_WINDOW_SHIFT,
    TCP_HEADER_SIZE,
)

_HZ_SET = (2, 10, 100, 1000)
_TCPOPT_TIMESTAMP = 8


def _cdiv(a: int, b: int) -> int:
    """Integer division truncating toward zero."""
    quotient = abs(a) // abs(b)
    return quotient if (a >= 0) == (b > 0) else -quotient


@dataclass(frozen=True)
class Uptime:
    """A duration split into days, hours, minutes and seconds."""

    days: int
    hours: int
    minutes: int
    seconds: int

    def __str__(self) -> str:
        return (f"{self.days} days, {self.hours} hours, "
                f"{self.minutes} minutes, {self.seconds} seconds")


def parse_tcp_timestamp(tcp):
    """Return ``(tstamp, echo)`` from the timestamp option of a TCP header, or None."""
    tcp = bytes(tcp)
    if len(tcp) < TCP_HEADER_SIZE:
        return None
    hdrlen = (tcp[12] >> 4) * 4
    if hdrlen <= TCP_HEADER_SIZE or hdrlen < len(tcp):
        return None
    options = tcp[TCP_HEADER_SIZE:hdrlen]
    pos = 0
    while pos < len(options):
        kind = options[pos]
        if kind == 0:
            return None
        if kind == 1:
            pos += 1
            continue
        remaining = len(options) - pos
        if remaining < 2:
            return None
        length = options[pos + 1]
        if length > remaining or length == 0:
            return None
        if kind != _TCPOPT_TIMESTAMP:
            pos += length
            continue
        if length != 10:
            return None
        tstamp = int.from_bytes(options[pos + 2:pos + 6], "big")
        echo = int.from_bytes(options[pos + 6:pos + 10], "big")
        return tstamp, echo
    return None


def guess_hz(measured) -> int:
    """Return the usual clock rate closest to the ``measured`` ticks per second."""
    if measured <= 0:
        raise ValueError(f"measured rate must be positive, got {measured}")
    best = _HZ_SET[0]
    for hz in _HZ_SET[1:]:
        if abs(measured - hz) < abs(measured - best):
            best = hz
    return best


def uptime(tstamp, hz) -> Uptime:
    """Return the uptime a timestamp of ``tstamp`` ticks at ``hz`` stands for."""
    if hz <= 0:
        raise ValueError(f"hz must be positive, got {hz}")
    sec = tstamp // hz
    days, sec = divmod(sec, 3600 * 24)
    hours, sec = divmod(sec, 3600)
    minutes, sec = divmod(sec, 60)
    return Uptime(days, hours, minutes, sec)


class TimestampTracker:
    """Compares each timestamp with the first one seen to measure the remote clock rate."""

    def __init__(self) -> None:
        self.first_tstamp = 0
        self.first_ms = 0

    def observe(self, tstamp, now_ms):
        """Record a timestamp seen at ``now_ms``.

        Returns None for the first one, otherwise ``(measured, hz, uptime)``, where
        ``hz`` and ``uptime`` are None when no rate could be measured.
        """
        tstamp &= 0xFFFFFFFF
        if not self.first_tstamp:
            self.first_tstamp = tstamp
            self.first_ms = now_ms
            return None
        waited = now_ms - self.first_ms
        if waited <= 0:
            raise ValueError("no time elapsed since the first timestamp")
        measured = ((tstamp - self.first_tstamp) & 0xFFFFFFFF) * 1000 // waited
        if measured <= 0:
            return measured, None, None
        hz = guess_hz(measured)
        return measured, hz, uptime(tstamp, hz)


@dataclass
class ClockSkewEstimator:
    """Estimates how fast the remote clock drifts against the local one."""

    window: int = DEFAULT_CS_WINDOW
    window_shift: int = DEFAULT_CS_WINDOW_SHIFT
    vector_len: int = DEFAULT_CS_VECTOR_LEN
    samples: list = field(default_factory=list)
    sample_times: list = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.window_shift < 1 or self.vector_len < 1:
            raise ValueError("window shift and vector length must be at least 1")
        self._deltas: list[int] = []
        self._rtts: list[int] = []

    def add(self, hz, tstamp, rttms, now_ms) -> str:
        """Add one timestamp seen at ``now_ms`` and return the report about the skew."""
        if hz <= 0:
            raise ValueError(f"hz must be positive, got {hz}")
        tstampms = (tstamp * (1000 // hz)) & 0xFFFFFFFF
        lines = [
            "  Clock skew detection...",
            f"    hz: {hz}",
            f"    received tstamp (converted in ms according to hz): {tstampms}",
            f"    rtt in milliseconds: {rttms}",
        ]
        corrected = tstampms - _cdiv(rttms, 2)
        delta = now_ms - corrected
        lines.append(f"    tstamp-(rtt/2): {corrected}")
        lines.append(f"    local/remote clock delta: {delta}")
        self._deltas.append(delta)
        self._rtts.append(rttms)

        if len(self._deltas) == self.vector_len:
            self._make_sample(lines, now_ms)

        limit = self.window * 1000
        count = len(self.samples)
        times, samples, shift = self.sample_times, self.samples, self.window_shift
        if count > shift and times[-1] - times[shift - 1] > limit:
            i = count - 2
            while times[-1] - times[i] < limit:
                i -= 1
            skews = []
            for j in range(shift - 1, -1, -1):
                localdelta = times[count - 1 - j] - times[i - j]
                diff = samples[count - 1 - j] - samples[i - j]
                skews.append(_cdiv(diff * 1000000, localdelta))
            lines.append("    Latest observed skews (no shift correction) ( "
                         + "".join(f"{skew} " for skew in skews)
                         + ") next line is the average")
            lines.append(f"    {self.window} sec. window SKEW: "
                         f"{_cdiv(sum(skews), shift)} nanoseconds/second")
            total = 0
            localdelta = 0
            for j in range(shift):
                localdelta = times[count - 1 - j] - times[shift - 1 - j]
                diff = samples[count - 1 - j] - samples[shift - 1 - j]
                total += _cdiv(diff * 1000000, localdelta)
            lines.append(f">   {_cdiv(localdelta, 1000)} sec. window SKEW: "
                         f"{_cdiv(total, shift)} nanoseconds/second")
        else:
            lines.append("  !! Not enough data to show reliable skew, wait please...")
            if count > 1:
                localdelta = times[-1] - times[0]
                diff = samples[-1] - samples[0]
                skew = _cdiv(diff * 1000000, localdelta)
                lines.append("")
                lines.append("  Early info just to take you happy... ;)")
                lines.append(f"     early unreliable skew guess: {skew} nanoseconds per second")
                lines.append(f"     early guess localdelta: {localdelta} ms")
                lines.append(f"     early delta: {diff} ms")
        lines.append(f"  collected {len(self._deltas)}/{self.vector_len} deltas for next sample")
        return "\n".join(lines) + "\n"

    def _make_sample(self, lines: list[str], now_ms: int) -> None:
        minrtt = min(self._rtts)
        total = 0
        valid = 0
        for number, (delta, rtt) in enumerate(zip(self._deltas, self._rtts), 1):
            if minrtt > 10 and rtt - minrtt > minrtt // 10:
                lines.append(f"    # Not used packet {number}/{self.vector_len} with rtt {rtt} "
                             f"(max acceptable {minrtt + minrtt // 10})")
                continue
            total += delta
            valid += 1
        self._deltas.clear()
        self._rtts.clear()
        if valid:
            average = _cdiv(total, valid)
            lines.append(f"    >> error corrected delta: {average}** "
                         f"(based on {valid} of {self.vector_len} packets)")
            self.samples.append(average)
            self.sample_times.append(now_ms)