# worker.py
from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional

from botlog import log
from registry import Table


class EngineWorker:
    """Engine thread pool; callers block on their own event lane, never on the dispatcher."""

    def __init__(self, name: str = "engine", threads: int = 1):
        self.name = name
        self._pool = ThreadPoolExecutor(max_workers=max(1, threads), thread_name_prefix=name)

    def submit(self, fn: Callable, *args, **kwargs) -> Future:
        return self._pool.submit(fn, *args, **kwargs)

    def run(self, fn: Callable, *args, timeout: Optional[float] = None, **kwargs):
        return self.submit(fn, *args, **kwargs).result(timeout)

    def shutdown(self, wait: bool = False):
        log(f"stopping {self.name} worker", "🛑")
        self._pool.shutdown(wait=wait, cancel_futures=True)


class OrderedDispatcher:
    """
    One single-thread lane per key (a channel, a puzzle user). Work on the
    same lane runs in submission order; different lanes run side by side.
    """

    def __init__(self, name: str = "lane"):
        self.name = name
        self.lanes: Table = Table(name)

    def submit(self, key: str, fn: Callable, *args, **kwargs) -> Future:
        lane, created = self.lanes.claim(
            key, lambda: ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"{self.name}-{key}"))
        if created:
            log(f"new lane {key}", "🛤️", tag=self.name)
        return lane.submit(fn, *args, **kwargs)

    def forget(self, key: str):
        """Retire a lane; anything already queued on it still runs."""
        lane = self.lanes.pop(key)
        if lane is not None:
            lane.shutdown(wait=False)

    def shutdown(self, wait: bool = False):
        lanes = self.lanes.drain()
        log(f"stopping {len(lanes)} {self.name}s", "🛑")
        for lane in lanes:
            lane.shutdown(wait=wait, cancel_futures=True)
