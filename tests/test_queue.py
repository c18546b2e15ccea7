import pytest

from vdens.queue import QueryQueue


class FakeClock:
    def __init__(self, now=500.0):
        self.now = now

    def __call__(self):
        return self.now


def test_push_and_find():
    q = QueryQueue(timeout=5, clock=FakeClock())
    q.push(10, b"name.example.com", ("192.0.2.1", 53))
    item = q.find(10)
    assert item.name == b"name.example.com"
    assert item.peer == ("192.0.2.1", 53)
    assert item.timeout == 505.0
    assert q.find(11) is None


def test_duplicate_push_ignored():
    q = QueryQueue(clock=FakeClock())
    q.push(1, b"first")
    q.push(1, b"second")
    assert len(q) == 1
    assert q.find(1).name == b"first"


def test_push_id_has_no_name_or_peer():
    q = QueryQueue(clock=FakeClock())
    q.push_id(7)
    item = q.find(7)
    assert item.name == b""
    assert item.peer is None


def test_ids_wrap_to_sixteen_bits():
    q = QueryQueue(clock=FakeClock())
    q.push_id(0x10000 + 3)
    assert q.find(3).id == 3


def test_pop_head_in_fifo_order():
    q = QueryQueue(clock=FakeClock())
    for ident in (4, 5, 6):
        q.push_id(ident)
    assert [q.pop().id for _ in range(3)] == [4, 5, 6]
    assert q.pop() is None


def test_pop_by_id():
    q = QueryQueue(clock=FakeClock())
    for ident in (4, 5, 6):
        q.push_id(ident)
    assert q.pop(5).id == 5
    assert len(q) == 2
    assert q.pop(4).id == 4
    assert q.find(6).id == 6


def test_pop_missing_id_returns_none():
    q = QueryQueue(clock=FakeClock())
    q.push_id(1)
    assert q.pop(2) is None
    assert len(q) == 1


def test_pop_empty_returns_none():
    assert QueryQueue(clock=FakeClock()).pop(3) is None


def test_expire_calls_callback_for_overdue_items():
    clock = FakeClock()
    q = QueryQueue(timeout=5, clock=clock)
    q.push_id(1)
    clock.now += 2
    q.push_id(2)
    clock.now += 3
    seen = []
    expired = q.expire(seen.append)
    assert [item.id for item in seen] == [1]
    assert [item.id for item in expired] == [1]
    assert len(q) == 1


def test_expire_without_callback():
    clock = FakeClock()
    q = QueryQueue(timeout=5, clock=clock)
    q.push_id(1)
    q.push_id(2)
    clock.now += 10
    assert len(q.expire()) == 2
    assert len(q) == 0


def test_timeout_can_be_changed():
    clock = FakeClock()
    q = QueryQueue(clock=clock)
    q.timeout = 10
    q.push_id(1)
    assert q.find(1).timeout == clock.now + 10


def test_overlong_name_rejected():
    q = QueryQueue(clock=FakeClock())
    with pytest.raises(ValueError):
        q.push(1, b"x" * 300)
    assert len(q) == 0