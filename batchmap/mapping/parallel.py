import logging
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Sequence, TypeVar


log = logging.getLogger(__name__)

T = TypeVar('T')
R = TypeVar('R')


def available_cores() -> int:
    return os.cpu_count() or 1


def cap_workers(outer: int, inner: int, cores: Optional[int] = None) -> int:
    """
    Largest inner worker count such that `outer * inner` does not exceed the
    available cores (at least 1).

    Args:
        outer (int): Workers already running at the enclosing level.
        inner (int): Requested workers for the nested level.
        cores (int, optional): Core budget. Defaults to `os.cpu_count()`.
    """
    cores = available_cores() if cores is None else cores
    outer = max(int(outer), 1)
    return max(1, min(int(inner), cores // outer))


def evaluate_tasks(fn: Callable[[T], R], tasks: Sequence[T], n_workers: int = 1) -> List[R]:
    """
    Evaluate `fn` on every task and return the results in task order.

    Tasks are independent; with more than one worker they run on a bounded
    thread pool and the call returns only once every task has finished.
    Exceptions raised by a task propagate to the caller.

    Args:
        fn (callable): Function applied to each task.
        tasks (sequence): Task arguments.
        n_workers (int): Maximum number of concurrent evaluations.

    Returns:
        **list:** `[fn(t) for t in tasks]`.
    """
    tasks = list(tasks)
    n_workers = min(max(int(n_workers), 1), max(len(tasks), 1))
    if n_workers == 1:
        return [fn(t) for t in tasks]

    log.debug(f"Evaluating {len(tasks)} tasks with {n_workers} workers")
    with ThreadPoolExecutor(max_workers=n_workers) as executor:
        return list(executor.map(fn, tasks))
