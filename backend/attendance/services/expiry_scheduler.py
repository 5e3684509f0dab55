# Overview: Periodic sweep that force-closes attendance sessions left open past the cap.

"""
Expiry Scheduler

WHY: Employees forget to clock out. Any session open for max_session_seconds
or longer is closed as AUTO_EXPIRED with clock_out pinned to
clock_in + max_session_seconds, so a forgotten session never counts for more
than the cap no matter how late the sweep runs.

CONCURRENCY:
- Each transition is a compare-and-swap (EntryStore.close_if_open). If the
  employee clocks out between the sweep's read and its write, the CAS fails
  and the entry keeps its COMPLETED status. Either terminal state is valid.
- Overlapping ticks within one process are skipped via a non-blocking lock.
  Sweeps running in separate processes are safe because of the CAS.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta
from typing import Callable

from ..models import EntryStatus
from . import audit_service
from .entry_store import EntryStore
from .policy import AttendancePolicy
from attendance.time_utils import utcnow

logger = logging.getLogger(__name__)


class ExpiryScheduler:
    def __init__(
        self,
        store_factory: Callable[[], EntryStore],
        policy: AttendancePolicy,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._store_factory = store_factory
        self._policy = policy
        self._clock = clock
        self._tick_lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def tick(self) -> int:
        """Run one sweep. Returns the number of entries this tick expired."""
        if not self._tick_lock.acquire(blocking=False):
            logger.debug("Expiry sweep already running; skipping tick")
            return 0
        try:
            return self._sweep()
        finally:
            self._tick_lock.release()

    def _sweep(self) -> int:
        store = self._store_factory()
        now = self._clock()
        cap = timedelta(seconds=self._policy.max_session_seconds)

        expired = 0
        try:
            for entry in store.list_open():
                if now - entry.clock_in < cap:
                    continue

                clock_out = entry.clock_in + cap
                won = store.close_if_open(
                    entry.id,
                    entry.version_id,
                    clock_out=clock_out,
                    duration_minutes=self._policy.max_session_minutes,
                    status=EntryStatus.AUTO_EXPIRED,
                )
                if not won:
                    logger.debug("Entry %s closed concurrently; expiry skipped", entry.id)
                    continue

                audit_service.append_audit_event(
                    store,
                    entry_id=entry.id,
                    event_type=audit_service.AUTO_EXPIRED,
                    occurred_at=now,
                    note=f"Session exceeded {self._policy.max_session_minutes} minutes",
                )
                expired += 1

            store.commit()
        except Exception:
            store.rollback()
            raise

        if expired:
            logger.info("Expiry sweep closed %d session(s)", expired)
        return expired

    # ------------------------------------------------------------------
    # Background loop
    # ------------------------------------------------------------------

    def run_forever(self, app, *, interval: float | None = None, stop_event: threading.Event | None = None) -> None:
        """
        Tick immediately, then every `interval` seconds until stop_event is set.

        Each tick runs in a fresh app context so it gets its own DB session.
        A failing tick is logged and the loop keeps going.
        """
        interval = interval or self._policy.sweep_interval_seconds
        stop_event = stop_event or self._stop
        while True:
            with app.app_context():
                try:
                    self.tick()
                except Exception:
                    logger.exception("Expiry sweep failed")
            if stop_event.wait(interval):
                break

    def start(self, app) -> None:
        """Start the sweep on a daemon thread (one per app)."""
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self.run_forever,
            args=(app,),
            name="attendance-expiry-sweep",
            daemon=True,
        )
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout)
            self._thread = None
