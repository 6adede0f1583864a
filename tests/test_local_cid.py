import pytest

from quicflow.errors import ProtocolViolation
from quicflow.local_cid import (
    LOCAL_ACTIVE_CONNECTION_ID_LIMIT,
    MAX_PATH_ID,
    CIDEncryptor,
    CIDPlaintext,
    LocalCIDSet,
    LocalCIDState,
)

NUM_CIDS = 4


class _PathIdEncryptor(CIDEncryptor):
    def encrypt_cid(self, plaintext):
        return bytes([plaintext.path_id % 256]), bytes(16)

    def decrypt_cid(self, encrypted):
        return CIDPlaintext(path_id=encrypted[0])


def _verify_array(cid_set):
    allow_pending = True
    for entry in cid_set:
        if allow_pending:
            if entry.state is not LocalCIDState.PENDING:
                allow_pending = False
        elif entry.state is LocalCIDState.PENDING:
            return False
        if entry.state is not LocalCIDState.IDLE and cid_set._encryptor is not None:
            if cid_set._encryptor.decrypt_cid(entry.cid).path_id != entry.sequence % 256:
                return False
    return True


def _count(cid_set, state):
    return sum(1 for entry in cid_set.cids if entry.state is state)


def _exists_once(cid_set, sequence, state):
    matches = [entry for entry in cid_set if entry.sequence == sequence]
    return len(matches) == 1 and matches[0].state is state


@pytest.fixture
def cid_set():
    return LocalCIDSet(_PathIdEncryptor(), CIDPlaintext())


def test_set_size_to_full_limit(cid_set):
    assert LOCAL_ACTIVE_CONNECTION_ID_LIMIT >= NUM_CIDS
    assert cid_set.set_size(LOCAL_ACTIVE_CONNECTION_ID_LIMIT)
    assert cid_set.size() == LOCAL_ACTIVE_CONNECTION_ID_LIMIT
    assert _count(cid_set, LocalCIDState.PENDING) == LOCAL_ACTIVE_CONNECTION_ID_LIMIT - 1
    assert _verify_array(cid_set)


def test_initial_state(cid_set):
    assert _verify_array(cid_set)
    assert _count(cid_set, LocalCIDState.PENDING) == 0
    assert _exists_once(cid_set, 0, LocalCIDState.DELIVERED)
    assert cid_set.size() == 1


def test_plaintext_is_copied():
    plaintext = CIDPlaintext()
    LocalCIDSet(_PathIdEncryptor(), plaintext).set_size(NUM_CIDS)
    assert plaintext.path_id == 0


def test_full_scenario(cid_set):
    assert cid_set.set_size(NUM_CIDS)
    assert _verify_array(cid_set)
    assert _count(cid_set, LocalCIDState.PENDING) == NUM_CIDS - 1
    assert _exists_once(cid_set, 0, LocalCIDState.DELIVERED)
    for seq in (1, 2, 3):
        assert _exists_once(cid_set, seq, LocalCIDState.PENDING)

    cid_set.on_sent(NUM_CIDS - 1)
    assert _verify_array(cid_set)
    for seq in (1, 2, 3):
        assert _exists_once(cid_set, seq, LocalCIDState.INFLIGHT)

    cid_set.on_acked(1)
    cid_set.on_acked(3)
    assert cid_set.on_lost(2)
    assert _verify_array(cid_set)
    assert _count(cid_set, LocalCIDState.PENDING) == 1
    assert _exists_once(cid_set, 1, LocalCIDState.DELIVERED)
    assert _exists_once(cid_set, 2, LocalCIDState.PENDING)
    assert _exists_once(cid_set, 3, LocalCIDState.DELIVERED)

    cid_set.on_sent(1)
    assert _count(cid_set, LocalCIDState.PENDING) == 0

    for seq in range(4):
        assert cid_set.retire(seq)
    assert _count(cid_set, LocalCIDState.PENDING) == 4

    cid_set.on_sent(1)
    assert _verify_array(cid_set)
    assert _count(cid_set, LocalCIDState.PENDING) == 3
    assert _exists_once(cid_set, 4, LocalCIDState.INFLIGHT)
    for seq in (5, 6, 7):
        assert _exists_once(cid_set, seq, LocalCIDState.PENDING)

    assert cid_set.retire(6)
    assert _verify_array(cid_set)

    cid_set.on_sent(2)
    assert cid_set.on_lost(4)
    cid_set.on_acked(4)
    cid_set.on_acked(5)
    cid_set.on_acked(5)
    assert _exists_once(cid_set, 4, LocalCIDState.DELIVERED)
    assert _exists_once(cid_set, 5, LocalCIDState.DELIVERED)
    assert _exists_once(cid_set, 8, LocalCIDState.PENDING)

    assert cid_set.retire(4)
    assert cid_set.retire(5)

    for seq in range(7, MAX_PATH_ID):
        if seq == MAX_PATH_ID - 1:
            with pytest.raises(ProtocolViolation):
                cid_set.retire(seq)
        else:
            assert cid_set.retire(seq)


def test_retire_unknown_sequence(cid_set):
    cid_set.set_size(NUM_CIDS)
    assert cid_set.retire(1000) is False
    assert _count(cid_set, LocalCIDState.PENDING) == NUM_CIDS - 1


def test_retire_last_raises_protocol_violation(cid_set):
    with pytest.raises(ProtocolViolation) as info:
        cid_set.retire(0)
    assert info.value.code == 0x0A


def test_null_encryptor():
    empty_set = LocalCIDSet(None, None)
    assert empty_set.set_size(NUM_CIDS) is False
    assert _count(empty_set, LocalCIDState.DELIVERED) == 1
    assert _count(empty_set, LocalCIDState.IDLE) == LOCAL_ACTIVE_CONNECTION_ID_LIMIT - 1


def test_small_set():
    small_set = LocalCIDSet(_PathIdEncryptor(), CIDPlaintext())
    assert small_set.set_size(NUM_CIDS - 1)
    assert _verify_array(small_set)
    assert _count(small_set, LocalCIDState.PENDING) == NUM_CIDS - 2
    assert _exists_once(small_set, 0, LocalCIDState.DELIVERED)
    assert _exists_once(small_set, 1, LocalCIDState.PENDING)
    assert _exists_once(small_set, 2, LocalCIDState.PENDING)
    assert not _exists_once(small_set, 3, LocalCIDState.PENDING)
    assert small_set.retire(0)
    assert _exists_once(small_set, 3, LocalCIDState.PENDING)


def test_set_size_cannot_shrink(cid_set):
    cid_set.set_size(NUM_CIDS)
    with pytest.raises(ValueError):
        cid_set.set_size(1)


def test_set_size_cannot_exceed_limit(cid_set):
    with pytest.raises(ValueError):
        cid_set.set_size(LOCAL_ACTIVE_CONNECTION_ID_LIMIT + 1)


def test_on_sent_more_than_pending(cid_set):
    cid_set.set_size(NUM_CIDS)
    with pytest.raises(ValueError):
        cid_set.on_sent(NUM_CIDS)


def test_pending_kept_in_fifo_order(cid_set):
    cid_set.set_size(NUM_CIDS)
    cid_set.on_sent(3)
    cid_set.on_lost(3)
    cid_set.on_lost(1)
    front = [entry.sequence for entry in cid_set.cids[:2]]
    assert front == [3, 1]
    assert _verify_array(cid_set)


def test_on_lost_of_delivered_is_ignored(cid_set):
    assert cid_set.on_lost(0) is False
    assert _exists_once(cid_set, 0, LocalCIDState.DELIVERED)