"""Bookkeeping of sent packets and the frames they carried, awaiting acknowledgement."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Optional, Union

BLOCK_SIZE = 16
"""Number of entries held by each storage block."""

_MAX_CC_BYTES = 0xFFFF


class SentEvent(enum.Enum):
    """What happened to a packet being tracked."""

    ACKED = enum.auto()
    """The packet has been acknowledged."""
    PTO = enum.auto()
    """The probe timer fired: the packet stays in flight, its frames are scheduled for retransmission."""
    LOST = enum.auto()
    """The packet is deemed lost."""
    EXPIRED = enum.auto()
    """The packet is being removed from the map (e.g. its epoch is discarded)."""


@dataclass
class SentPacket:
    """Packet-level record kept in the sent map."""

    packet_number: int
    sent_at: int
    ack_epoch: int
    ack_eliciting: bool = False
    frames_in_flight: bool = False
    """Whether the frames carried are still considered in flight (cleared on loss or PTO)."""
    cc_limited: bool = False
    promoted_path: bool = False
    cc_bytes_in_flight: int = 0
    """Bytes in flight from the view of congestion control (cleared on loss, not on PTO)."""


AckedCallback = Callable[["SentMap", SentPacket, bool, "SentFrame"], None]
"""Called as ``acked(map, packet, acked, frame)`` when a frame is acknowledged or must be resent."""


@dataclass(eq=False)
class SentFrame:
    """Frame-level record; ``data`` holds whatever the callback needs."""

    acked: AckedCallback
    data: Any = None


_Entry = Union[SentPacket, SentFrame]


@dataclass(eq=False)
class _Block:
    entries: list[Optional[_Entry]] = field(default_factory=list)
    num_entries: int = 0

    @property
    def is_full(self) -> bool:
        return len(self.entries) >= BLOCK_SIZE


class SentMap:
    """Ordered record of sent packets, each followed by the frames it carried.

    Writing is a transaction: :meth:`prepare`, any number of :meth:`allocate`, then
    :meth:`commit`. Reading and mutating goes through :meth:`iterator`.
    """

    def __init__(self) -> None:
        self._blocks: list[_Block] = []
        self.num_packets = 0
        self.num_packets_largest = 0
        self.bytes_in_flight = 0
        self._pending_packet: Optional[SentPacket] = None

    def is_open(self) -> bool:
        """Return whether a write transaction is in progress."""
        return self._pending_packet is not None

    def _append(self, entry: _Entry) -> None:
        if not self._blocks or self._blocks[-1].is_full:
            self._blocks.append(_Block())
        block = self._blocks[-1]
        block.entries.append(entry)
        block.num_entries += 1

    def prepare(self, packet_number: int, now: int, ack_epoch: int) -> SentPacket:
        """Start recording a packet and return its record."""
        if self.is_open():
            raise RuntimeError("a packet is already being recorded")
        packet = SentPacket(packet_number=packet_number, sent_at=now, ack_epoch=ack_epoch)
        self._append(packet)
        self._pending_packet = packet
        return packet

    def allocate(self, acked: AckedCallback) -> SentFrame:
        """Add a frame record to the packet being recorded."""
        if not self.is_open():
            raise RuntimeError("allocate called outside of prepare/commit")
        frame = SentFrame(acked=acked)
        self._append(frame)
        return frame

    def commit(self, bytes_in_flight: int, cc_limited: bool = False, promoted_path: bool = False) -> None:
        """Finish recording the current packet."""
        packet = self._pending_packet
        if packet is None:
            raise RuntimeError("commit called without prepare")
        if not 0 <= bytes_in_flight <= _MAX_CC_BYTES:
            raise ValueError(f"bytes in flight out of range: {bytes_in_flight}")
        if bytes_in_flight != 0:
            packet.ack_eliciting = True
            packet.cc_bytes_in_flight = bytes_in_flight
            packet.cc_limited = bool(cc_limited)
            self.bytes_in_flight += bytes_in_flight
        packet.frames_in_flight = True
        if promoted_path:
            packet.promoted_path = True
        self._pending_packet = None

        self.num_packets += 1
        self.num_packets_largest = max(self.num_packets_largest, self.num_packets)

    def iterator(self) -> "SentMapIterator":
        """Return an iterator positioned at the oldest packet."""
        return SentMapIterator(self)

    def num_blocks(self) -> int:
        """Return the number of storage blocks in use."""
        return len(self._blocks)

    def dispose(self) -> None:
        """Drop every record without invoking callbacks."""
        self._blocks.clear()
        self.num_packets = 0
        self.bytes_in_flight = 0
        self._pending_packet = None


class SentMapIterator:
    """Cursor over the packets of a :class:`SentMap`.

    :meth:`skip` and :meth:`update` both move the cursor to the next packet.
    """

    def __init__(self, sentmap: SentMap) -> None:
        self._map = sentmap
        self._block_index = 0
        self._entry_index = -1
        self._advance()

    def _current(self) -> Optional[_Entry]:
        blocks = self._map._blocks
        if self._block_index >= len(blocks):
            return None
        return blocks[self._block_index].entries[self._entry_index]

    def _advance(self) -> None:
        self._entry_index += 1
        blocks = self._map._blocks
        while self._block_index < len(blocks):
            block = blocks[self._block_index]
            if self._entry_index >= len(block.entries):
                self._block_index += 1
                self._entry_index = 0
            elif block.entries[self._entry_index] is None:
                self._entry_index += 1
            else:
                return

    def _discard(self) -> None:
        blocks = self._map._blocks
        block = blocks[self._block_index]
        block.entries[self._entry_index] = None
        block.num_entries -= 1
        if block.num_entries == 0:
            del blocks[self._block_index]
            # the following block now sits at the same index
            self._entry_index = -1

    def get(self) -> Optional[SentPacket]:
        """Return the packet under the cursor, or ``None`` at the end."""
        entry = self._current()
        if isinstance(entry, SentFrame):
            raise RuntimeError("iterator is not positioned at a packet")
        return entry

    def skip(self) -> None:
        """Move to the next packet."""
        if self._current() is None:
            raise RuntimeError("iterator is at the end")
        self._advance()
        while isinstance(self._current(), SentFrame):
            self._advance()

    def update(self, event: SentEvent) -> None:
        """Apply ``event`` to the packet under the cursor and its frames, then move on."""
        entry = self._current()
        if entry is None:
            raise RuntimeError("iterator is at the end")
        if not isinstance(entry, SentPacket):
            raise RuntimeError("iterator is not positioned at a packet")

        sentmap = self._map
        packet = replace(entry)
        acked = event is SentEvent.ACKED
        notify = acked or packet.frames_in_flight
        discard = acked or event is SentEvent.EXPIRED

        if discard or event is SentEvent.LOST:
            sentmap.bytes_in_flight -= packet.cc_bytes_in_flight
            entry.cc_bytes_in_flight = 0
        if not acked:
            entry.frames_in_flight = False
        if discard:
            self._discard()
            sentmap.num_packets -= 1
        self._advance()

        while isinstance(frame := self._current(), SentFrame):
            if notify:
                frame.acked(sentmap, packet, acked, frame)
            if discard:
                self._discard()
            self._advance()