"""Login attempt throttling keyed by client network address."""

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)


class ThrottleDecision(str, Enum):
    ALLOWED = "allowed"
    BLOCKED = "blocked"


@dataclass
class LoginAttemptRecord:
    count: int
    first_attempt: float


class LoginThrottle:
    """
    Blocks a client after too many failed logins within a fixed window.

    The window is anchored to the first failed attempt and resets wholesale once
    it has elapsed; individual attempts are not evicted one by one. Expired
    records are dropped lazily on access and by ``sweep_expired``.
    """

    def __init__(
        self,
        max_attempts: int = 5,
        window_seconds: float = 15 * 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the throttle.

        Args:
            max_attempts: Failed attempts allowed within one window
            window_seconds: Window length measured from the first failed attempt
            clock: Monotonic time source in seconds
        """
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self._clock = clock
        self._records: Dict[str, LoginAttemptRecord] = {}
        # Request handlers may run on worker threads; every read-modify-write holds this.
        self._lock = threading.Lock()

    def _expired(self, record: LoginAttemptRecord, now: float) -> bool:
        return now - record.first_attempt > self.window_seconds

    def check(self, client_key: str) -> ThrottleDecision:
        """
        Decide whether a login attempt from ``client_key`` may proceed.

        Called before credentials are verified, so a blocked client is refused
        whether or not its credentials are correct.
        """
        now = self._clock()
        with self._lock:
            record = self._records.get(client_key)
            if record is None:
                return ThrottleDecision.ALLOWED
            if self._expired(record, now):
                del self._records[client_key]
                return ThrottleDecision.ALLOWED
            if record.count >= self.max_attempts:
                logger.warning(f"Login attempts blocked for {client_key} ({record.count} failures)")
                return ThrottleDecision.BLOCKED
            return ThrottleDecision.ALLOWED

    def record_failure(self, client_key: str) -> int:
        """
        Count a failed attempt.

        Returns:
            The failure count in the current window
        """
        now = self._clock()
        with self._lock:
            record = self._records.get(client_key)
            if record is None or self._expired(record, now):
                record = LoginAttemptRecord(count=0, first_attempt=now)
                self._records[client_key] = record
            record.count += 1
            return record.count

    def record_success(self, client_key: str) -> None:
        with self._lock:
            self._records.pop(client_key, None)

    def attempts(self, client_key: str) -> int:
        """Failures currently counted against ``client_key``."""
        now = self._clock()
        with self._lock:
            record = self._records.get(client_key)
            if record is None or self._expired(record, now):
                return 0
            return record.count

    def sweep_expired(self) -> int:
        """
        Drop every record whose window has elapsed.

        Returns:
            Number of records removed
        """
        now = self._clock()
        with self._lock:
            stale = [key for key, record in list(self._records.items()) if self._expired(record, now)]
            for key in stale:
                del self._records[key]
        if stale:
            logger.debug(f"Swept {len(stale)} expired login attempt records")
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


class ThrottleSweeper:
    """Periodic housekeeping task owned by the application lifespan."""

    def __init__(self, throttle: LoginThrottle, interval_seconds: float = 5 * 60):
        self.throttle = throttle
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    async def _run(self) -> None:
        logger.info(f"Login throttle sweeper started. Interval: {self.interval_seconds}s")
        try:
            while True:
                await asyncio.sleep(self.interval_seconds)
                try:
                    self.throttle.sweep_expired()
                except Exception as e:
                    logger.error(f"Error sweeping login attempt records: {e}", exc_info=True)
        except asyncio.CancelledError:
            logger.info("Login throttle sweeper cancelled. Shutting down.")
            raise

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()
