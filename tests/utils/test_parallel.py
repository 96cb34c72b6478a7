from __future__ import annotations

import threading
import time

import pytest

from medfit.utils.parallel import parallel_map, resolve_workers


def _extract_value(payload: dict) -> int:
    return payload["value"]


def _square(value: int) -> int:
    return value * value


def test_parallel_map_handles_unhashable_items():
    items = [{"value": 1}, {"value": 2}, {"value": 1}]

    results = parallel_map(_extract_value, items, backend="thread", max_workers=2)

    assert results == [1, 2, 1]


def test_parallel_map_preserves_input_order():
    def slow_for_small(value: int) -> int:
        time.sleep(0.002 * (10 - value))
        return value

    results = parallel_map(slow_for_small, range(10), backend="thread", max_workers=4)

    assert results == list(range(10))


@pytest.mark.parametrize("backend", ["process", "joblib"])
def test_parallel_map_process_backends(backend: str):
    assert parallel_map(abs, range(0, -8, -1), backend=backend, max_workers=2) == list(range(8))


def test_sequential_backend_runs_in_calling_thread():
    caller = threading.get_ident()
    for kwargs in ({"backend": "sequential"}, {"backend": "thread", "max_workers": 1}):
        idents = parallel_map(lambda _: threading.get_ident(), range(3), **kwargs)
        assert set(idents) == {caller}


def test_thread_backend_bounds_in_flight_tasks():
    lock = threading.Lock()
    state = {"active": 0, "peak": 0}

    def track(_: int) -> None:
        with lock:
            state["active"] += 1
            state["peak"] = max(state["peak"], state["active"])
        time.sleep(0.005)
        with lock:
            state["active"] -= 1

    parallel_map(track, range(40), backend="thread", max_workers=3)

    assert 1 <= state["peak"] <= 3


def test_first_error_stops_submission_and_is_reraised():
    started: list[int] = []
    lock = threading.Lock()

    def fail_on_one(value: int) -> int:
        with lock:
            started.append(value)
        if value == 1:
            raise ValueError("boom")
        time.sleep(0.01)
        return value

    with pytest.raises(ValueError, match="boom"):
        parallel_map(fail_on_one, range(100), backend="thread", max_workers=2)

    assert len(started) < 10


def test_parallel_map_unknown_backend():
    with pytest.raises(ValueError, match="not recognised"):
        parallel_map(_square, [1, 2], backend="gpu")


def test_resolve_workers():
    assert resolve_workers(3) == 3
    assert resolve_workers(None) >= 1
    with pytest.raises(ValueError):
        resolve_workers(0)
