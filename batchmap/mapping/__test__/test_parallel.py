import threading

import pytest

from batchmap.mapping.parallel import cap_workers, evaluate_tasks


def test_cap_workers():
    assert cap_workers(2, 8, cores=8) == 4
    assert cap_workers(1, 3, cores=8) == 3
    assert cap_workers(16, 4, cores=8) == 1
    assert cap_workers(0, 4, cores=8) == 4


def test_evaluate_tasks_preserves_order():
    assert evaluate_tasks(lambda x: x * x, range(10), n_workers=1) == [x * x for x in range(10)]
    assert evaluate_tasks(lambda x: x * x, range(10), n_workers=4) == [x * x for x in range(10)]
    assert evaluate_tasks(lambda x: x, [], n_workers=4) == []


def test_evaluate_tasks_uses_worker_threads():
    names = set()
    barrier = threading.Barrier(2, timeout=5)

    def task(_):
        names.add(threading.current_thread().name)
        barrier.wait()
        return 1

    assert evaluate_tasks(task, range(2), n_workers=2) == [1, 1]
    assert len(names) == 2


def test_evaluate_tasks_propagates_errors():
    def task(x):
        if x == 3:
            raise RuntimeError("bad task")
        return x

    with pytest.raises(RuntimeError, match="bad task"):
        evaluate_tasks(task, range(5), n_workers=2)
