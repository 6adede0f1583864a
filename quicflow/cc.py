"""Congestion-controller state shared by all algorithms: ECN episode accounting and jumpstart."""

from __future__ import annotations

MIN_CWND = 2
"""Minimum congestion window, in packets."""

RENO_BETA = 0.7
"""Multiplicative decrease factor used by Reno."""

UNLIMITED_SSTHRESH = 0xFFFFFFFF
"""Slow-start threshold meaning "still in slow start"."""


class CongestionState:
    """Window state of a congestion controller, including the jumpstart phase.

    Packet numbers that have not been set are held as ``None``.
    """

    def __init__(self, cwnd: int, ssthresh: int = UNLIMITED_SSTHRESH) -> None:
        self.cwnd = cwnd
        self.ssthresh = ssthresh
        self.recovery_end = 0
        self.episode_by_ecn = False
        self.cwnd_initial = cwnd
        self.cwnd_exiting_slow_start = 0
        self.exit_slow_start_at: int | None = None
        self.cwnd_exiting_jumpstart = 0
        self.cwnd_minimum = cwnd
        self.cwnd_maximum = cwnd
        self.num_loss_episodes = 0
        self.num_ecn_loss_episodes = 0
        self.jumpstart_enter_pn: int | None = None
        self.jumpstart_exit_pn: int | None = None
        self.jumpstart_bytes_acked = 0

    def update_ecn_episodes(self, lost_bytes: int, lost_pn: int) -> None:
        """Update the ECN episode counter; ``lost_bytes`` is zero when only ECN-CE was seen."""
        # a new episode is first assumed to be signalled by ECN alone ...
        if lost_pn >= self.recovery_end:
            self.num_ecn_loss_episodes += 1
            self.episode_by_ecn = True
        # ... until an actual packet loss is observed
        if lost_bytes != 0 and self.episode_by_ecn:
            self.num_ecn_loss_episodes -= 1
            self.episode_by_ecn = False

    def jumpstart_reset(self) -> None:
        """Clear all jumpstart state."""
        self.jumpstart_enter_pn = None
        self.jumpstart_exit_pn = None
        self.jumpstart_bytes_acked = 0

    def in_jumpstart(self) -> bool:
        """Return whether the unvalidated phase of jumpstart is running."""
        return self.jumpstart_enter_pn is not None and self.jumpstart_exit_pn is None

    def _sent_in_jumpstart(self, pn: int) -> bool:
        enter, exit_ = self.jumpstart_enter_pn, self.jumpstart_exit_pn
        return enter is not None and enter <= pn and (exit_ is None or pn < exit_)

    def jumpstart_enter(self, jump_cwnd: int, next_pn: int) -> None:
        """Enter jumpstart, raising the window to ``jump_cwnd`` from packet ``next_pn``."""
        if self.cwnd >= jump_cwnd:
            raise ValueError(f"jumpstart window {jump_cwnd} does not exceed cwnd {self.cwnd}")
        self.jumpstart_enter_pn = next_pn
        self.cwnd = jump_cwnd

    def jumpstart_on_acked(
        self, in_recovery: bool, bytes_acked: int, largest_acked: int, inflight: int, next_pn: int
    ) -> None:
        """Account for an acknowledgement with respect to jumpstart."""
        is_jumpstart_ack = self._sent_in_jumpstart(largest_acked)
        if is_jumpstart_ack:
            self.jumpstart_bytes_acked += bytes_acked

        if in_recovery:
            # proportional rate reduction: grow back to what was delivered during jumpstart
            if is_jumpstart_ack and self.cwnd < self.jumpstart_bytes_acked:
                self.cwnd = self.jumpstart_bytes_acked
            return

        # the first ack for jumpstart ends it; go back to slow start from the current inflight
        if (
            self.jumpstart_exit_pn is None
            and self.jumpstart_enter_pn is not None
            and self.jumpstart_enter_pn <= largest_acked
        ):
            if self.cwnd >= self.ssthresh:
                raise RuntimeError("jumpstart ended outside slow start")
            self.cwnd = inflight
            self.cwnd_exiting_jumpstart = self.cwnd
            self.jumpstart_exit_pn = next_pn

    def jumpstart_on_first_loss(self, lost_pn: int) -> None:
        """Handle the first loss of an episode that may involve jumpstart packets."""
        if self.jumpstart_enter_pn is None:
            return
        if self.jumpstart_exit_pn is not None and lost_pn >= self.jumpstart_exit_pn:
            return
        if self.cwnd >= self.ssthresh:
            raise RuntimeError("jumpstart loss outside slow start")
        self.cwnd = max(self.jumpstart_bytes_acked, self.cwnd_initial)
        if self.jumpstart_exit_pn is None:
            self.jumpstart_exit_pn = lost_pn