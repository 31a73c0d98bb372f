"""
Periodic snapshot refresh.
"""

import logging
import threading
from datetime import datetime

from lumens import REFRESH_INTERVAL_SECONDS
from lumens.cache import SnapshotCell
from lumens.supply import SupplyAggregator
from lumens.utils import utc_now

logger = logging.getLogger(__name__)

IDLE = "idle"
RUNNING = "running"


class Refresher:
    """
    Recomputes the supply snapshot on a fixed interval.

    A failed run is logged and leaves the previously published
    snapshot in place. Overlapping runs are skipped, not queued.
    """

    def __init__(
        self,
        aggregator: SupplyAggregator,
        cell: SnapshotCell,
        interval: float = REFRESH_INTERVAL_SECONDS,
    ):
        self.aggregator = aggregator
        self.cell = cell
        self.interval = interval
        self.runs = 0
        self.last_success: datetime | None = None
        self.last_error: str | None = None
        self._run_lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def state(self) -> str:
        return RUNNING if self._run_lock.locked() else IDLE

    def refresh_once(self) -> bool:
        """Run one aggregation. Returns True if a snapshot was published."""
        if not self._run_lock.acquire(blocking=False):
            logger.warning("Refresh already in progress, skipping")
            return False
        try:
            self.runs += 1
            snapshot = self.aggregator.snapshot()
            self.cell.publish(snapshot)
        except Exception as e:
            self.last_error = f"{type(e).__name__}: {e}"
            logger.exception(f"Supply refresh failed, keeping previous snapshot: {e}")
            return False
        finally:
            self._run_lock.release()

        self.last_success = snapshot.updated_at
        self.last_error = None
        logger.info("/api/lumens data saved!")
        return True

    def _loop(self):
        self.refresh_once()
        while not self._stop.wait(self.interval):
            self.refresh_once()

    def start(self):
        """Refresh now, then every interval, on a daemon thread."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="supply-refresh", daemon=True)
        self._thread.start()
        logger.info(f"Refresher started (interval={self.interval}s)")

    def stop(self, timeout: float | None = None):
        """Signal the refresh thread and wait for it."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def status(self) -> dict:
        return {
            "state": self.state,
            "runs": self.runs,
            "lastSuccess": self.last_success.isoformat() if self.last_success else None,
            "lastError": self.last_error,
            "checkedAt": utc_now().isoformat(),
        }
