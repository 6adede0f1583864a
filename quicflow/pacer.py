"""A simple pacer that spreads packet transmission over time.

The design guarantees that, for any pacer-restricted period::

    flow_rate * duration + 8 * mtu <= bytes_sent < flow_rate * duration + 10 * mtu
"""

from __future__ import annotations

BURST_LOW = 8
"""Lower bound of a burst, in packets."""

BURST_HIGH = 10
"""Upper bound of a burst, in packets."""


class Pacer:
    """Tracks sending credit against a flow rate given in bytes per millisecond."""

    def __init__(self) -> None:
        self.at: int | None = None
        self.bytes_sent = 0

    def reset(self) -> None:
        """Forget all history, allowing a full burst."""
        self.at = None
        self.bytes_sent = 0

    def can_send_at(self, bytes_per_msec: int, mtu: int) -> int:
        """Return when the next chunk can be sent; ``0`` means right away."""
        burst_size = BURST_LOW * mtu + 1
        burst_credit = max(burst_size - bytes_per_msec, 0)
        if self.bytes_sent < bytes_per_msec + burst_credit:
            return 0
        # rounded down: a slightly aggressive pacer is better than a sluggish one
        delay = (self.bytes_sent - burst_credit) // bytes_per_msec
        if self.at is None or delay <= 0:
            raise RuntimeError("pacer state is inconsistent")
        return self.at + delay

    def get_window(self, now: int, bytes_per_msec: int, mtu: int) -> int:
        """Return the number of bytes that may be sent at ``now``."""
        if self.at is not None and now < self.at:
            raise ValueError(f"time went backwards: {now} < {self.at}")

        if now < self.can_send_at(bytes_per_msec, mtu):
            return 0

        burst_window = max((BURST_HIGH - 1) * mtu + 1, bytes_per_msec)

        if self.at is not None and self.bytes_sent > (delta := (now - self.at) * bytes_per_msec):
            self.bytes_sent -= delta
            if burst_window > self.bytes_sent:
                packets = max((burst_window - self.bytes_sent + mtu - 1) // mtu, 2)
            else:
                packets = 2
        else:
            self.bytes_sent = 0
            packets = (burst_window + mtu - 1) // mtu

        self.at = now
        return packets * mtu

    def consume_window(self, delta: int) -> None:
        """Account for ``delta`` bytes having been sent."""
        self.bytes_sent += delta


def calc_send_rate(multiplier: int, cwnd: int, rtt: int) -> int:
    """Return the flow rate in bytes per millisecond, rounded up."""
    return (cwnd * multiplier + rtt - 1) // rtt