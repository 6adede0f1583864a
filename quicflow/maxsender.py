"""Tracking of MAX_DATA / MAX_STREAM_DATA / MAX_STREAMS announcements."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class MaxSent:
    """Record of one announced maximum, kept with the packet that carried it."""

    value: int
    inflight: bool = True


class MaxSender:
    """Decides when a new maximum should be announced to the peer."""

    def __init__(self, initial_value: int) -> None:
        self.max_committed = initial_value
        self.max_acked = initial_value
        self.num_inflight = 0
        self.force_send = False

    def request_transmit(self) -> None:
        """Force the next check to report that a maximum should be sent."""
        self.force_send = True

    def should_send_max(self, buffered_from: int, window_size: int, update_ratio: int) -> bool:
        """Return whether a new maximum should be sent; ``update_ratio`` is in 1/1024 units."""
        if self.force_send:
            return True
        threshold = buffered_from + (window_size * update_ratio) // 1024
        current = self.max_committed if self.num_inflight else self.max_acked
        return current <= threshold

    def should_send_blocked(self, local_max: int) -> bool:
        """Return whether the announced maximum lags behind ``local_max``."""
        return self.max_committed < local_max

    def record(self, value: int) -> MaxSent:
        """Record that ``value`` is being sent and return its tracking record."""
        if value < self.max_committed:
            raise ValueError(f"maximum {value} is below the committed {self.max_committed}")
        self.max_committed = value
        self.num_inflight += 1
        self.force_send = False
        return MaxSent(value=value)

    def acked(self, sent: MaxSent) -> None:
        """Handle acknowledgement of a previously recorded maximum (late ACKs allowed)."""
        if self.max_acked < sent.value:
            self.max_acked = sent.value
        if sent.inflight:
            if self.num_inflight == 0:
                raise RuntimeError("acknowledged a maximum with none in flight")
            self.num_inflight -= 1
            sent.inflight = False

    def lost(self, sent: MaxSent) -> None:
        """Handle loss of a previously recorded maximum; call at most once per record."""
        if self.num_inflight == 0:
            raise RuntimeError("lost a maximum with none in flight")
        self.num_inflight -= 1
        sent.inflight = False