"""Connection IDs supplied by the remote peer."""

from __future__ import annotations

import enum
import os
from dataclasses import dataclass, replace
from typing import Callable, Iterator, Optional

from quicflow.errors import ConnectionIdLimitExceeded, ProtocolViolation
from quicflow.local_cid import LOCAL_ACTIVE_CONNECTION_ID_LIMIT, STATELESS_RESET_TOKEN_LEN

MIN_INITIAL_DCID_LEN = 8
"""Length of the destination CID generated when none is given."""

MAX_CID_LEN = 20
"""Maximum length of a connection ID."""


class RemoteCIDState(enum.Enum):
    """State of a slot holding a peer-supplied connection ID."""

    UNAVAILABLE = enum.auto()
    """Reserved for a sequence number whose CID has not been received yet."""
    IN_USE = enum.auto()
    """The CID is in use."""
    AVAILABLE = enum.auto()
    """The CID has been received but not used yet."""


@dataclass
class RemoteCID:
    """A connection ID given by the remote peer.

    While ``state`` is UNAVAILABLE, ``sequence`` is the number expected to be
    received for this slot and ``cid`` carries no meaning.
    """

    state: RemoteCIDState
    sequence: int
    cid: bytes = b""
    stateless_reset_token: bytes = bytes(STATELESS_RESET_TOKEN_LEN)


class RemoteCIDSet:
    """Holds the active connection IDs received from the remote peer."""

    def __init__(
        self,
        initial_cid: Optional[bytes] = None,
        random_bytes: Callable[[int], bytes] = os.urandom,
    ) -> None:
        if initial_cid is None:
            initial_cid = bytes(random_bytes(MIN_INITIAL_DCID_LEN))
        elif len(initial_cid) > MAX_CID_LEN:
            raise ValueError(f"connection ID too long: {len(initial_cid)} bytes")
        # a random token never matches anything the peer sends
        first = RemoteCID(
            state=RemoteCIDState.IN_USE,
            sequence=0,
            cid=bytes(initial_cid),
            stateless_reset_token=bytes(random_bytes(STATELESS_RESET_TOKEN_LEN)),
        )
        self.cids: list[RemoteCID] = [first]
        self.cids.extend(
            RemoteCID(state=RemoteCIDState.UNAVAILABLE, sequence=seq)
            for seq in range(1, LOCAL_ACTIVE_CONNECTION_ID_LIMIT)
        )
        self._largest_sequence_expected = LOCAL_ACTIVE_CONNECTION_ID_LIMIT - 1

    def __iter__(self) -> Iterator[RemoteCID]:
        return iter(self.cids)

    def __len__(self) -> int:
        return len(self.cids)

    @property
    def largest_sequence_expected(self) -> int:
        """The largest sequence number that may currently be received."""
        return self._largest_sequence_expected

    def _unregister_at(self, index: int) -> None:
        self._largest_sequence_expected += 1
        slot = self.cids[index]
        slot.state = RemoteCIDState.UNAVAILABLE
        slot.sequence = self._largest_sequence_expected

    def _unregister_prior_to(self, retire_prior_to: int) -> list[int]:
        unregistered = []
        for index, slot in enumerate(self.cids):
            if slot.sequence < retire_prior_to:
                unregistered.append(slot.sequence)
                self._unregister_at(index)
        return unregistered

    def _store(self, sequence: int, cid: bytes, token: bytes) -> None:
        if sequence > self._largest_sequence_expected:
            raise ConnectionIdLimitExceeded(f"sequence {sequence} exceeds the active connection ID limit")
        target = None
        for slot in self.cids:
            if slot.state is not RemoteCIDState.UNAVAILABLE:
                if slot.sequence == sequence:
                    if slot.cid == cid and slot.stateless_reset_token == token:
                        return  # retransmitted duplicate
                    raise ProtocolViolation(f"conflicting connection ID for sequence {sequence}")
                if slot.cid == cid:
                    raise ProtocolViolation("connection ID reused with a different sequence number")
            elif slot.sequence == sequence and target is None:
                target = slot
        # a sequence number with no slot has already been retired: ignore it
        if target is not None:
            target.cid = cid
            target.stateless_reset_token = token
            target.state = RemoteCIDState.AVAILABLE

    def register(
        self,
        sequence: int,
        cid: bytes,
        stateless_reset_token: bytes,
        retire_prior_to: int = 0,
    ) -> list[int]:
        """Register a CID received in a NEW_CONNECTION_ID frame.

        Returns the sequence numbers unregistered because of ``retire_prior_to``.
        Duplicates and already-retired CIDs are ignored. On error the set is left
        unchanged and :class:`ConnectionIdLimitExceeded` or
        :class:`ProtocolViolation` is raised.
        """
        if sequence < retire_prior_to:
            raise ValueError(f"sequence {sequence} is below retire_prior_to {retire_prior_to}")
        if len(cid) > MAX_CID_LEN:
            raise ValueError(f"connection ID too long: {len(cid)} bytes")
        if len(stateless_reset_token) != STATELESS_RESET_TOKEN_LEN:
            raise ValueError("stateless reset token has the wrong length")

        backup = [replace(slot) for slot in self.cids]
        backup_largest = self._largest_sequence_expected
        # retiring first lets one frame retire the whole limit and then install a new CID
        unregistered = self._unregister_prior_to(retire_prior_to)
        try:
            self._store(sequence, bytes(cid), bytes(stateless_reset_token))
        except Exception:
            self.cids = backup
            self._largest_sequence_expected = backup_largest
            raise
        return unregistered

    def unregister(self, sequence: int) -> None:
        """Remove the CID with ``sequence``, reserving its slot for the next sequence number."""
        for index, slot in enumerate(self.cids):
            if slot.sequence == sequence:
                self._unregister_at(index)
                return
        raise KeyError(sequence)