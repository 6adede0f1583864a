"""Delivery-rate estimation from acknowledgements received while CWND-limited."""

from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass
from typing import Iterator

SAMPLE_PERIOD = 50
"""Sampling period of the delivery rate, in milliseconds."""

SAMPLE_COUNT = 10
"""Number of past samples retained for averaging."""


@dataclass
class RateSample:
    """Bytes acknowledged over an elapsed period in milliseconds."""

    elapsed: int = 0
    bytes_acked: int = 0


@dataclass(frozen=True)
class Rate:
    """Estimated delivery rate, in bytes per second."""

    latest: int
    smoothed: int
    stdev: int


def _to_speed(bytes_acked: int, elapsed: int) -> int:
    return bytes_acked * 1000 // elapsed


class RateMeter:
    """Collects delivery-rate samples during CWND-limited periods."""

    def __init__(self) -> None:
        self.past_samples: deque[RateSample] = deque(maxlen=SAMPLE_COUNT)
        # packet-number window [start, end) in which the flow is CWND-limited;
        # start None: not tracking, end None: still limited
        self._limited_start: int | None = None
        self._limited_end: int | None = None
        self._start_at: int | None = None
        self._start_bytes_acked = 0
        self.current_sample = RateSample()

    def is_cc_limited(self) -> bool:
        """Return whether the flow is currently marked as CC-limited."""
        return self._limited_start is not None and self._limited_end is None

    def enter_cc_limited(self, pn: int) -> None:
        """Mark the flow CC-limited from packet number ``pn`` onwards."""
        if self.is_cc_limited():
            raise RuntimeError("already CC-limited")
        if self._limited_start is not None:
            # still waiting for the end of the previous period: extend it
            self._limited_end = None
            return
        self._limited_start = pn
        self._limited_end = None

    def exit_cc_limited(self, pn: int) -> None:
        """Mark the flow as leaving CC-limited state; ``pn`` is the next packet number."""
        if not self.is_cc_limited():
            raise RuntimeError("not CC-limited")
        self._limited_end = pn

    def _start_sampling(self, now: int, bytes_acked: int) -> None:
        self._start_at = now
        self._start_bytes_acked = bytes_acked

    def _commit_sample(self) -> None:
        self.past_samples.append(self.current_sample)
        self._start_at = None
        self.current_sample = RateSample()

    def on_ack(self, now: int, bytes_acked: int, pn: int) -> None:
        """Update the estimate; ``bytes_acked`` is the connection's running total."""
        start, end = self._limited_start, self._limited_end
        if start is not None and start <= pn and (end is None or pn < end):
            if self._start_at is None:
                self._start_sampling(now, bytes_acked)
            else:
                self.current_sample = RateSample(
                    elapsed=now - self._start_at,
                    bytes_acked=bytes_acked - self._start_bytes_acked,
                )
                if self.current_sample.elapsed >= SAMPLE_PERIOD:
                    self._commit_sample()
                    self._start_sampling(now, bytes_acked)
        elif end is not None and end <= pn:
            if self._start_at is not None:
                if self.current_sample.elapsed != 0:
                    self._commit_sample()
                self._start_at = None
            self._limited_start = None
            self._limited_end = None

    def _samples(self) -> Iterator[RateSample]:
        yield from (s for s in self.past_samples if s.elapsed != 0)
        if self.current_sample.elapsed != 0:
            yield self.current_sample

    def report(self) -> Rate:
        """Return the current delivery-rate estimate."""
        latest_sample = self.past_samples[-1] if self.past_samples else None
        if latest_sample is None or latest_sample.elapsed == 0:
            latest_sample = self.current_sample
            if latest_sample.elapsed == 0:
                return Rate(0, 0, 0)
        latest = _to_speed(latest_sample.bytes_acked, latest_sample.elapsed)

        samples = list(self._samples())
        total_bytes = sum(s.bytes_acked for s in samples)
        total_elapsed = sum(s.elapsed for s in samples)
        smoothed = _to_speed(total_bytes, total_elapsed)

        squares = sum((_to_speed(s.bytes_acked, s.elapsed) - smoothed) ** 2 for s in samples)
        stdev = math.isqrt(squares // len(samples))

        return Rate(latest=latest, smoothed=smoothed, stdev=stdev)