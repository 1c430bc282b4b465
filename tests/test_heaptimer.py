import pytest

from webserv.heaptimer import HeapTimer


def test_empty_timer_next_tick_is_minus_one():
    timer = HeapTimer()
    assert timer.get_next_tick() == -1
    assert len(timer) == 0


def test_expired_timers_fire_on_tick():
    timer = HeapTimer()
    fired = []
    for id_ in (3, 1, 2):
        timer.add(id_, 0, lambda id_=id_: fired.append(id_))
    timer.tick()
    assert sorted(fired) == [1, 2, 3]
    assert len(timer) == 0


def test_future_timer_does_not_fire():
    timer = HeapTimer()
    fired = []
    timer.add(1, 60000, lambda: fired.append(1))
    remaining = timer.get_next_tick()
    assert fired == []
    assert 0 < remaining <= 60000
    assert 1 in timer


def test_tick_fires_only_expired():
    timer = HeapTimer()
    fired = []
    timer.add(1, 60000, lambda: fired.append(1))
    timer.add(2, 0, lambda: fired.append(2))
    timer.tick()
    assert fired == [2]
    assert 1 in timer
    assert 2 not in timer


def test_do_work_runs_callback_and_removes():
    timer = HeapTimer()
    fired = []
    timer.add(5, 60000, lambda: fired.append(5))
    timer.add(6, 60000, lambda: fired.append(6))
    timer.do_work(5)
    assert fired == [5]
    assert 5 not in timer
    assert 6 in timer


def test_do_work_unknown_id_is_ignored():
    timer = HeapTimer()
    fired = []
    timer.add(1, 60000, lambda: fired.append(1))
    timer.do_work(99)
    assert fired == []
    assert len(timer) == 1


def test_add_existing_replaces_callback():
    timer = HeapTimer()
    fired = []
    timer.add(1, 60000, lambda: fired.append("old"))
    timer.add(1, 60000, lambda: fired.append("new"))
    assert len(timer) == 1
    timer.do_work(1)
    assert fired == ["new"]


def test_negative_id_rejected():
    timer = HeapTimer()
    with pytest.raises(ValueError):
        timer.add(-1, 10, lambda: None)


def test_adjust_unknown_raises():
    timer = HeapTimer()
    with pytest.raises(KeyError):
        timer.adjust(7, 100)


def test_adjust_moves_timer_later():
    timer = HeapTimer()
    timer.add(1, 1000, lambda: None)
    timer.add(2, 2000, lambda: None)
    timer.adjust(1, 5000)
    assert timer.pop().id == 2
    assert timer.pop().id == 1


def test_adjust_moves_timer_earlier():
    timer = HeapTimer()
    timer.add(1, 1000, lambda: None)
    timer.add(2, 5000, lambda: None)
    timer.adjust(2, 10)
    assert timer.pop().id == 2


def test_pop_empty_raises():
    timer = HeapTimer()
    with pytest.raises(IndexError):
        timer.pop()


def test_pop_does_not_run_callback():
    timer = HeapTimer()
    fired = []
    timer.add(1, 60000, lambda: fired.append(1))
    timer.add(2, 1000, lambda: fired.append(2))
    node = timer.pop()
    assert node.id == 2
    assert fired == []
    assert 1 in timer and 2 not in timer


def test_heap_order_after_removals():
    timer = HeapTimer()
    timeouts = [700, 100, 900, 300, 500, 200, 800, 400, 600, 1000]
    for id_, ms in enumerate(timeouts):
        timer.add(id_, ms * 100, lambda: None)
    for id_ in (0, 4, 7):
        timer.do_work(id_)
    popped = [timer.pop() for _ in range(len(timer))]
    expiries = [node.expires for node in popped]
    assert expiries == sorted(expiries)
    assert {node.id for node in popped} == set(range(len(timeouts))) - {0, 4, 7}


def test_clear_empties():
    timer = HeapTimer()
    timer.add(1, 100, lambda: None)
    timer.add(2, 100, lambda: None)
    timer.clear()
    assert len(timer) == 0
    assert 1 not in timer