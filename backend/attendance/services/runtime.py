# Overview: Per-application wiring of the attendance engines.

"""
Each Flask app owns one AttendanceRuntime (app.extensions["attendance"]):
the resolved policy, the clock, and the expiry scheduler. Engines themselves
are cheap and are built per request around the request's DB session.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from flask import current_app

from ..extensions import db
from .aggregation_service import AggregationEngine
from .clock_engine import ClockEngine
from .directory_service import SqlEmployeeDirectory
from .entry_store import EntryStore
from .expiry_scheduler import ExpiryScheduler
from .override_service import OverrideService
from .policy import AttendancePolicy
from attendance.time_utils import utcnow

EXTENSION_KEY = "attendance"


@dataclass
class AttendanceRuntime:
    policy: AttendancePolicy
    clock: Callable[[], datetime] = utcnow
    scheduler: ExpiryScheduler = field(init=False)

    def __post_init__(self):
        # Look the clock up on every call so tests can swap it after startup
        self.scheduler = ExpiryScheduler(
            lambda: EntryStore(db.session),
            self.policy,
            clock=lambda: self.clock(),
        )

    def now(self) -> datetime:
        return self.clock()


def init_app(app) -> AttendanceRuntime:
    runtime = AttendanceRuntime(policy=AttendancePolicy.from_config(app.config))
    app.extensions[EXTENSION_KEY] = runtime
    return runtime


def get_runtime() -> AttendanceRuntime:
    return current_app.extensions[EXTENSION_KEY]


@dataclass
class Engines:
    store: EntryStore
    directory: SqlEmployeeDirectory
    clock: ClockEngine
    overrides: OverrideService
    aggregation: AggregationEngine


def build_engines(session=None, runtime: AttendanceRuntime | None = None) -> Engines:
    session = session or db.session
    runtime = runtime or get_runtime()
    store = EntryStore(session)
    directory = SqlEmployeeDirectory(session)
    return Engines(
        store=store,
        directory=directory,
        clock=ClockEngine(store, runtime.policy, clock=runtime.now),
        overrides=OverrideService(store, directory, clock=runtime.now),
        aggregation=AggregationEngine(store, directory, runtime.policy, clock=runtime.now),
    )
