"""Bounded worker pool whose shutdown acts as a completion fence."""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from threading import Lock
from typing import Callable, Generic, Iterable, List, TypeVar

T = TypeVar("T")
R = TypeVar("R")


class WorkerPool(Generic[T, R]):
    """Run one callable per task on at most ``max_workers`` threads.

    Tasks are passed by value to the worker that executes them. ``join``
    blocks until every submitted task has finished and returns the results
    in submission order.
    """

    def __init__(self, max_workers: int, thread_name_prefix: str = "worker") -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self.max_workers = max_workers
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix=thread_name_prefix
        )
        self._futures: List[Future[R]] = []
        self._lock = Lock()
        self._closed = False

    def submit(self, fn: Callable[[T], R], task: T) -> Future[R]:
        with self._lock:
            if self._closed:
                raise RuntimeError("WorkerPool has already been joined")
            future = self._executor.submit(fn, task)
            self._futures.append(future)
            return future

    def map(self, fn: Callable[[T], R], tasks: Iterable[T]) -> list[R]:
        for task in tasks:
            self.submit(fn, task)
        return self.join()

    def join(self) -> list[R]:
        with self._lock:
            self._closed = True
        self._executor.shutdown(wait=True)
        return [future.result() for future in self._futures]

    def __enter__(self) -> "WorkerPool[T, R]":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        with self._lock:
            self._closed = True
        self._executor.shutdown(wait=True)


__all__ = ["WorkerPool"]
