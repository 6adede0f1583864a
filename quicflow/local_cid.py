"""Connection IDs issued by the local endpoint to its peer."""

from __future__ import annotations

import abc
import enum
from dataclasses import dataclass, field, replace
from typing import Iterator, Optional

from quicflow.errors import ProtocolViolation

LOCAL_ACTIVE_CONNECTION_ID_LIMIT = 4
"""Number of connection IDs the local endpoint keeps issued at most."""

MAX_PATH_ID = 256
"""Upper bound (exclusive) of path IDs, hence of sequence numbers that can be issued."""

STATELESS_RESET_TOKEN_LEN = 16
"""Length of a stateless reset token, in bytes."""


class LocalCIDState(enum.Enum):
    """Lifecycle of an issued connection ID."""

    IDLE = enum.auto()
    """The slot is free."""
    PENDING = enum.auto()
    """To be sent in the next NEW_CONNECTION_ID round."""
    INFLIGHT = enum.auto()
    """Sent and waiting for an ACK (or to be deemed lost)."""
    DELIVERED = enum.auto()
    """Acknowledged by the peer and in use."""


@dataclass
class CIDPlaintext:
    """The clear-text identity that a connection ID encodes."""

    master_id: int = 0
    path_id: int = 0
    thread_id: int = 0
    node_id: int = 0


class CIDEncryptor(abc.ABC):
    """Turns a :class:`CIDPlaintext` into a connection ID and back."""

    @abc.abstractmethod
    def encrypt_cid(self, plaintext: CIDPlaintext) -> tuple[bytes, bytes]:
        """Return ``(cid, stateless_reset_token)`` for ``plaintext``."""

    @abc.abstractmethod
    def decrypt_cid(self, encrypted: bytes) -> CIDPlaintext:
        """Recover the plaintext encoded in ``encrypted``."""


@dataclass
class LocalCID:
    """One slot of the issued-CID table; ``sequence`` is ``None`` while idle."""

    state: LocalCIDState = LocalCIDState.IDLE
    sequence: Optional[int] = None
    cid: bytes = b""
    stateless_reset_token: bytes = field(default=bytes(STATELESS_RESET_TOKEN_LEN))


class LocalCIDSet:
    """Manages the connection IDs issued to the remote peer.

    Pending entries are kept at the front of :attr:`cids`, in the order they became
    pending, so that they are sent first-in first-out.
    """

    def __init__(self, encryptor: Optional[CIDEncryptor], plaintext: Optional[CIDPlaintext] = None) -> None:
        self._encryptor = encryptor
        self.plaintext = replace(plaintext) if plaintext is not None else CIDPlaintext()
        self._cids = [LocalCID() for _ in range(LOCAL_ACTIVE_CONNECTION_ID_LIMIT)]
        first = self._cids[0]
        if encryptor is not None:
            self._generate(first)
        else:
            first.sequence = self.plaintext.path_id
        first.state = LocalCIDState.DELIVERED
        self._size = 1

    @property
    def cids(self) -> tuple[LocalCID, ...]:
        """All slots, including the ones beyond the current size."""
        return tuple(self._cids)

    def __iter__(self) -> Iterator[LocalCID]:
        return iter(self._cids[: self._size])

    def _generate(self, slot: LocalCID) -> bool:
        if self._encryptor is None or self.plaintext.path_id >= MAX_PATH_ID:
            return False
        slot.cid, slot.stateless_reset_token = self._encryptor.encrypt_cid(replace(self.plaintext))
        slot.sequence = self.plaintext.path_id
        slot.state = LocalCIDState.PENDING
        self.plaintext.path_id += 1
        return True

    def _reorder(self) -> None:
        active = self._cids[: self._size]
        self._cids[: self._size] = sorted(active, key=lambda c: c.state is not LocalCIDState.PENDING)

    def _find(self, sequence: int) -> Optional[LocalCID]:
        for entry in self:
            if entry.state is not LocalCIDState.IDLE and entry.sequence == sequence:
                return entry
        return None

    def _has_pending(self) -> bool:
        return any(entry.state is LocalCIDState.PENDING for entry in self)

    def set_size(self, new_cap: int) -> bool:
        """Grow the number of issued CIDs to ``new_cap``; return whether there is something to send."""
        if not self._size <= new_cap <= LOCAL_ACTIVE_CONNECTION_ID_LIMIT:
            raise ValueError(f"invalid size {new_cap} (current {self._size})")
        if self._encryptor is None:
            return False
        generated = False
        for slot in self._cids[self._size : new_cap]:
            if slot.state is not LocalCIDState.IDLE:
                continue
            if not self._generate(slot):
                break
            generated = True
        self._size = new_cap
        self._reorder()
        return generated

    def size(self) -> int:
        """Return the number of usable slots."""
        return self._size

    def on_sent(self, num_sent: int) -> None:
        """Record that the first ``num_sent`` pending CIDs have been sent."""
        sent = self._cids[:num_sent]
        if num_sent > self._size or any(entry.state is not LocalCIDState.PENDING for entry in sent):
            raise ValueError(f"fewer than {num_sent} CIDs are pending")
        for entry in sent:
            entry.state = LocalCIDState.INFLIGHT
        self._reorder()

    def on_acked(self, sequence: int) -> None:
        """Record that the CID with ``sequence`` was acknowledged."""
        entry = self._find(sequence)
        if entry is None or entry.state is LocalCIDState.DELIVERED:
            return
        was_pending = entry.state is LocalCIDState.PENDING
        entry.state = LocalCIDState.DELIVERED
        if was_pending:
            self._reorder()

    def on_lost(self, sequence: int) -> bool:
        """Record that the CID with ``sequence`` was lost; return whether there is something to send."""
        entry = self._find(sequence)
        if entry is not None and entry.state is LocalCIDState.INFLIGHT:
            entry.state = LocalCIDState.PENDING
            self._reorder()
        return self._has_pending()

    def retire(self, sequence: int) -> bool:
        """Retire the CID with ``sequence``, issuing a replacement when possible.

        Returns whether there is something to send. Raises :class:`ProtocolViolation`
        if that CID is the last one in use.
        """
        retired_at = None
        becomes_empty = True
        for index, entry in enumerate(self._cids[: self._size]):
            if entry.state is LocalCIDState.IDLE:
                continue
            if entry.sequence == sequence:
                retired_at = index
            else:
                becomes_empty = False

        if retired_at is None:
            return False
        if becomes_empty:
            raise ProtocolViolation(f"peer retired the last connection ID (sequence {sequence})")

        del self._cids[retired_at]
        slot = LocalCID()
        self._cids.insert(self._size - 1, slot)
        self._generate(slot)
        self._reorder()
        return self._has_pending()