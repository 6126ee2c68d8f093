"""
In-process sliding-window rate limiter keyed by email and client IP.

Each key owns its own lock; no code path ever holds two key locks at once,
so the request path and the periodic sweep cannot deadlock. Counters live in
this process only: several server instances each keep their own windows.
"""
from __future__ import annotations

import asyncio
import threading
from collections import deque
from datetime import datetime, timedelta, timezone
from typing import Callable, Deque, Dict, Optional

from core.logging_config import get_logger


logger = get_logger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _AttemptLog:
    __slots__ = ("lock", "times", "retired")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.times: Deque[datetime] = deque()
        # set by the sweep when the log is dropped from its table
        self.retired = False

    def prune(self, cutoff: datetime) -> None:
        while self.times and self.times[0] <= cutoff:
            self.times.popleft()


class SlidingWindowRateLimiter:

    def __init__(
        self,
        *,
        max_per_email: int,
        max_per_ip: int,
        window: timedelta,
        sweep_interval: timedelta = timedelta(minutes=10),
        clock: Optional[Clock] = None,
    ) -> None:
        if max_per_email < 1 or max_per_ip < 1:
            raise ValueError("rate limit ceilings must be positive")
        self.max_per_email = max_per_email
        self.max_per_ip = max_per_ip
        self.window = window
        self.sweep_interval = sweep_interval
        self._clock = clock or _utcnow
        self._emails: Dict[str, _AttemptLog] = {}
        self._ips: Dict[str, _AttemptLog] = {}
        self._sweeper: Optional[asyncio.Task] = None

    @staticmethod
    def _email_key(email: str) -> str:
        return (email or "").strip().lower()

    @staticmethod
    def _ip_key(ip: str) -> str:
        return (ip or "").strip()

    def _count(self, table: Dict[str, _AttemptLog], key: str, cutoff: datetime) -> int:
        log = table.get(key)
        if log is None:
            return 0
        with log.lock:
            log.prune(cutoff)
            return len(log.times)

    def is_allowed(self, email: str, ip: str) -> bool:
        email_key, ip_key = self._email_key(email), self._ip_key(ip)
        if not email_key or not ip_key:
            return False
        cutoff = self._clock() - self.window
        if self._count(self._emails, email_key, cutoff) >= self.max_per_email:
            logger.warning("rate_limit_email_blocked", email=email_key)
            return False
        if self._count(self._ips, ip_key, cutoff) >= self.max_per_ip:
            logger.warning("rate_limit_ip_blocked", ip=ip_key)
            return False
        return True

    def _append(self, table: Dict[str, _AttemptLog], key: str, at: datetime) -> None:
        while True:
            log = table.setdefault(key, _AttemptLog())
            with log.lock:
                if log.retired:
                    # swept between lookup and lock; retry against the fresh entry
                    continue
                log.times.append(at)
                return

    def record_attempt(self, email: str, ip: str) -> None:
        email_key, ip_key = self._email_key(email), self._ip_key(ip)
        now = self._clock()
        if email_key:
            self._append(self._emails, email_key, now)
        if ip_key:
            self._append(self._ips, ip_key, now)

    def attempts(self, email: str = "", ip: str = "") -> tuple[int, int]:
        """Current (email, ip) counts within the window."""
        cutoff = self._clock() - self.window
        return (
            self._count(self._emails, self._email_key(email), cutoff),
            self._count(self._ips, self._ip_key(ip), cutoff),
        )

    def _sweep_table(self, table: Dict[str, _AttemptLog], cutoff: datetime) -> int:
        removed = 0
        for key in list(table.keys()):
            log = table.get(key)
            if log is None:
                continue
            with log.lock:
                log.prune(cutoff)
                if log.times:
                    continue
                log.retired = True
                if table.get(key) is log:
                    del table[key]
                    removed += 1
        return removed

    def sweep(self) -> int:
        """Prune expired timestamps and drop empty keys. Returns the number of keys dropped."""
        cutoff = self._clock() - self.window
        removed = self._sweep_table(self._emails, cutoff) + self._sweep_table(self._ips, cutoff)
        logger.debug(
            "rate_limit_sweep",
            removed=removed,
            email_keys=len(self._emails),
            ip_keys=len(self._ips),
        )
        return removed

    def __len__(self) -> int:
        return len(self._emails) + len(self._ips)

    # Background sweep

    async def _run_sweeper(self) -> None:
        interval = self.sweep_interval.total_seconds()
        while True:
            await asyncio.sleep(interval)
            try:
                self.sweep()
            except Exception:
                logger.exception("rate_limit_sweep_failed")

    def start(self) -> None:
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.get_running_loop().create_task(self._run_sweeper())
            logger.info("rate_limit_sweeper_started", interval_seconds=self.sweep_interval.total_seconds())

    async def stop(self) -> None:
        task, self._sweeper = self._sweeper, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("rate_limit_sweeper_stopped")
