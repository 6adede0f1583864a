# quicflow

Building blocks for the bookkeeping a QUIC transport has to do. The package
uses only the standard library.

| Module | What it provides |
| --- | --- |
| `quicflow.maxsender` | `MaxSender` and `MaxSent`: decide when to announce new MAX_DATA / MAX_STREAM_DATA / MAX_STREAMS limits |
| `quicflow.pacer` | `Pacer` and `calc_send_rate`: a burst-tolerant packet pacer |
| `quicflow.rate` | `RateMeter`, `RateSample`, `Rate`: delivery-rate estimation from acknowledgements received while congestion-limited |
| `quicflow.cc` | `CongestionState`: congestion-window state with jumpstart and ECN episode accounting |
| `quicflow.sentmap` | `SentMap`, `SentMapIterator`, `SentPacket`, `SentFrame`, `SentEvent`: tracking of sent packets and their frames until acked, lost or expired |
| `quicflow.local_cid` | `LocalCIDSet`, `LocalCID`, `LocalCIDState`, `CIDPlaintext`, `CIDEncryptor`: connection IDs issued to the peer |
| `quicflow.remote_cid` | `RemoteCIDSet`, `RemoteCID`, `RemoteCIDState`: connection IDs supplied by the peer |
| `quicflow.errors` | `TransportError` and its subclasses `ProtocolViolation` and `ConnectionIdLimitExceeded` |

## Installation

```
pip install quicflow
```

## Examples

Flow-control updates:

```python
from quicflow.maxsender import MaxSender

sender = MaxSender(100)
if sender.should_send_max(25, 100, 768):   # ratio in 1/1024 units
    sent = sender.record(125)
    # later, when the frame carrying the update is acknowledged:
    sender.acked(sent)
```

Pacing a flow:

```python
from quicflow.pacer import Pacer, calc_send_rate

rate = calc_send_rate(2, 50 * 1200, 10)   # 12000 bytes per millisecond
pacer = Pacer()
window = pacer.get_window(1, rate, 1200)  # bytes that may be sent now
pacer.consume_window(window)
next_send = pacer.can_send_at(rate, 1200) # 0 means "right away"
```

Estimating the delivery rate:

```python
from quicflow.rate import RateMeter

meter = RateMeter()
meter.enter_cc_limited(0)
total = 0
for pn in range(100):
    total += 1000
    meter.on_ack(1000 + 20 * (pn + 1), total, pn)
print(meter.report())   # Rate(latest=..., smoothed=..., stdev=...) in bytes/second
```

Jumpstart on a congestion window:

```python
from quicflow.cc import CongestionState

cc = CongestionState(10 * 1200)
cc.jumpstart_enter(20 * 1200, next_pn=2)
assert cc.in_jumpstart()
# the first ACK for a jumpstart packet ends the unvalidated phase
cc.jumpstart_on_acked(False, 1200, 2, 12 * 1200, 22)
assert not cc.in_jumpstart()
```

Tracking sent packets:

```python
from quicflow.sentmap import SentEvent, SentMap

def on_frame(sentmap, packet, acked, frame):
    print(packet.packet_number, "acked" if acked else "to be resent")

sentmap = SentMap()
sentmap.prepare(1, now=0, ack_epoch=0)
sentmap.allocate(on_frame)
sentmap.commit(1200)

it = sentmap.iterator()
it.update(SentEvent.ACKED)       # calls on_frame, removes the packet
assert sentmap.bytes_in_flight == 0
assert it.get() is None          # end of the map
```

Connection IDs from the peer:

```python
from quicflow.errors import ConnectionIdLimitExceeded
from quicflow.remote_cid import RemoteCIDSet

cids = RemoteCIDSet(initial_cid=bytes(8))
cids.register(1, bytes(range(1, 9)), bytes(16))
try:
    cids.register(4, bytes(range(4, 12)), bytes(16))
except ConnectionIdLimitExceeded as exc:
    print(hex(exc.code))   # 0x9
```

Connection IDs issued locally need a `CIDEncryptor` subclass that implements
`encrypt_cid` (returning the CID and its stateless reset token) and
`decrypt_cid`. `LocalCIDSet.retire` raises `ProtocolViolation` when the peer
retires the last connection ID in use.

Protocol errors are raised as exceptions derived from
`quicflow.errors.TransportError`, each carrying its QUIC error code in `code`.

## What this package does not do

It holds state and makes decisions; it does not send or receive packets, run a
handshake, or implement complete congestion-control algorithms such as Reno or
CUBIC — `CongestionState` only covers the window state they share. There is
no general range-set or acknowledgement-range type, and no command-line tool.

## Running the tests

```
pip install -e ".[test]"
pytest
```