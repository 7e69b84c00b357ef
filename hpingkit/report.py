"""End of run statistics, exit codes and the version banner."""

from __future__ import annotations

from dataclasses import dataclass

RELEASE_VERSION = "3.0.0-alpha-1"
RELEASE_DATE = "2004/04/09"


@dataclass
class Statistics:
    """Counters and round trip times gathered while probing."""

    sent: int = 0
    received: int = 0
    out_of_sequence: int = 0
    rtt_min: float = 0.0
    rtt_avg: float = 0.0
    rtt_max: float = 0.0

    def loss_rate(self) -> int:
        """Return the percentage of probes that got no reply."""
        if self.received > 0:
            return 100 - (self.received * 100) // self.sent
        return 0 if not self.sent else 100

    def report(self, target) -> str:
        """Return the summary printed when the run ends."""
        lines = [
            "",
            f"--- {target} hping statistic ---",
            f"{self.sent} packets tramitted, {self.received} packets received, "
            f"{self.loss_rate()}% packet loss",
        ]
        if self.out_of_sequence:
            lines.append(f"{self.out_of_sequence} out of sequence packets received")
        lines.append(
            f"round-trip min/avg/max = {self.rtt_min:.1f}/{self.rtt_avg:.1f}/"
            f"{self.rtt_max:.1f} ms"
        )
        return "\n".join(lines) + "\n"

    def exit_code(self, use_tcp_exitcode, tcp_exitcode) -> int:
        """Return the flags of the last TCP reply if asked, else 0 when anything came back."""
        if use_tcp_exitcode:
            return tcp_exitcode
        return 0 if self.received else 1


def version_text(scripting) -> str:
    """Return the version banner."""
    support = (
        "This binary is TCL scripting capable"
        if scripting
        else "NO TCL scripting support compiled in"
    )
    return f"hping version {RELEASE_VERSION} ({RELEASE_DATE})\n{support}\n"