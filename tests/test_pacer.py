import pytest

from quicflow.pacer import Pacer, calc_send_rate

MTU = 1200


def run_pattern(pacer, now, bytes_per_msec, pattern):
    for at, avail, consume in pattern:
        send_at = pacer.can_send_at(bytes_per_msec, MTU)
        if now == at:
            assert send_at <= now
        else:
            assert send_at == at
            now = send_at
        window = pacer.get_window(now, bytes_per_msec, MTU)
        assert (window + MTU - 1) // MTU * MTU == avail
        pacer.consume_window(consume)
    return now


@pytest.mark.parametrize(
    "multiplier, cwnd, rtt, expected",
    [
        (2, 50 * 1200, 10, 12000),
        (2, 100 * 1200, 10, 24000),
        (2, 50 * 1200, 100, 1200),
        (1, 50 * 1200, 100, 600),
    ],
)
def test_calc_rate(multiplier, cwnd, rtt, expected):
    assert calc_send_rate(multiplier, cwnd, rtt) == expected


def test_calc_rate_never_below_one():
    assert calc_send_rate(1, 1, 1000) >= 1


def test_medium():
    bytes_per_msec = 4 * MTU
    pacer = Pacer()

    now = run_pattern(
        pacer,
        1,
        bytes_per_msec,
        [
            (1, 10 * MTU, 10 * MTU),
            (2, 4 * MTU, 4 * MTU),
            (3, 4 * MTU, 4 * MTU),
            (4, 4 * MTU, 1 * MTU),
        ],
    )
    assert now == 4

    now = run_pattern(
        pacer,
        5,
        bytes_per_msec,
        [
            (5, 7 * MTU, 7 * MTU),
            (6, 4 * MTU, 1 * MTU),
        ],
    )
    assert now == 6

    now = run_pattern(
        pacer,
        8,
        bytes_per_msec,
        [
            (8, 10 * MTU, 10 * MTU),
            (9, 4 * MTU, 1 * MTU),
        ],
    )
    assert now == 9


def test_slow():
    pacer = Pacer()
    now = run_pattern(
        pacer,
        1,
        700,
        [
            (1, 10 * MTU, 10 * MTU),
            (5, 2 * MTU, 2 * MTU),
            (8, 2 * MTU, 2 * MTU),
            (12, 2 * MTU, 2 * MTU),
            (15, 2 * MTU, 2 * MTU),
            (19, 2 * MTU, 2 * MTU),
            (22, 2 * MTU, 2 * MTU),
            (25, 2 * MTU, 2 * MTU),
            (29, 2 * MTU, 2 * MTU),
        ],
    )
    assert now == 29


def test_fast():
    pacer = Pacer()
    now = run_pattern(
        pacer,
        1,
        100000,
        [
            (1, 84 * MTU, 84 * MTU),
            (2, 83 * MTU, 83 * MTU),
            (3, 83 * MTU, 83 * MTU),
            (4, 84 * MTU, 84 * MTU),
        ],
    )
    assert now == 4


def test_window_is_zero_before_send_time():
    pacer = Pacer()
    assert pacer.get_window(1, 700, MTU) == 10 * MTU
    pacer.consume_window(10 * MTU)
    send_at = pacer.can_send_at(700, MTU)
    assert send_at > 1
    assert pacer.get_window(send_at - 1, 700, MTU) == 0


def test_time_going_backwards_raises():
    pacer = Pacer()
    pacer.get_window(10, 4 * MTU, MTU)
    with pytest.raises(ValueError):
        pacer.get_window(9, 4 * MTU, MTU)


def test_reset_restores_full_burst():
    pacer = Pacer()
    first = pacer.get_window(1, 700, MTU)
    pacer.consume_window(first)
    assert pacer.can_send_at(700, MTU) > 1
    pacer.reset()
    assert pacer.can_send_at(700, MTU) == 0
    assert pacer.get_window(1, 700, MTU) == first