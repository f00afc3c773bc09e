# app/core/system_mode.py - LIVE/OFFLINE detection based on database reachability
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from typing import Callable, Optional
import logging
import threading
import time

from app.core.config import settings
from app.core.db import db_manager

logger = logging.getLogger(__name__)

LIVE = "LIVE"
OFFLINE = "OFFLINE"


class SystemModeMonitor:
    """
    Tracks whether the database is reachable.

    check_database() runs a SELECT 1 bounded by a timeout, at most once per
    interval; calls inside the interval return the cached result. The mode is
    exposed on every response as the X-System-Mode header.
    """

    def __init__(
        self,
        probe: Optional[Callable[[], None]] = None,
        interval: float = settings.SYSTEM_CHECK_INTERVAL_SECONDS,
        timeout: float = settings.SYSTEM_CHECK_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._probe = probe or db_manager.ping
        self.interval = interval
        self.timeout = timeout
        self._clock = clock
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="db-probe")
        self._lock = threading.Lock()
        self._last_check: Optional[float] = None
        self.mode = LIVE

    @property
    def is_live(self) -> bool:
        return self.mode == LIVE

    @property
    def is_offline(self) -> bool:
        return self.mode == OFFLINE

    def check_database(self) -> bool:
        now = self._clock()
        with self._lock:
            if self._last_check is not None and now - self._last_check < self.interval:
                return self.is_live
            self._last_check = now

        start = time.monotonic()
        try:
            self._executor.submit(self._probe).result(timeout=self.timeout)
        except FutureTimeout:
            self._set_mode(OFFLINE, "database check timed out", start)
            return False
        except Exception as e:
            self._set_mode(OFFLINE, str(e), start)
            return False

        self._set_mode(LIVE, None, start)
        return True

    def _set_mode(self, mode: str, reason: Optional[str], started: float):
        elapsed_ms = (time.monotonic() - started) * 1000
        if mode != self.mode:
            if mode == OFFLINE:
                logger.warning(
                    f"Database disconnected, switching to OFFLINE demo mode "
                    f"(reason: {reason}, check took {elapsed_ms:.0f}ms)"
                )
            else:
                logger.info(f"Database reconnected, switching to LIVE mode (check took {elapsed_ms:.0f}ms)")
        self.mode = mode

    def force(self, mode: str):
        """Pin the mode until the next due check"""
        self.mode = mode
        self._last_check = self._clock()

    def reset(self):
        self._last_check = None
        self.mode = LIVE


system_mode = SystemModeMonitor()


__all__ = ["SystemModeMonitor", "system_mode", "LIVE", "OFFLINE"]
