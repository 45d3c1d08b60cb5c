"""
scheduler/ — Tick-driven event scheduling.

    from delayline.scheduler import Scheduler, Reroute
"""

from delayline.scheduler.driver import TickDriver
from delayline.scheduler.event import ScheduledEvent
from delayline.scheduler.scheduler import Scheduler
from delayline.scheduler.types import (
    EventResult,
    EventSnapshot,
    Reroute,
    RerouteKind,
    Tick,
)

__all__ = [
    "EventResult",
    "EventSnapshot",
    "Reroute",
    "RerouteKind",
    "ScheduledEvent",
    "Scheduler",
    "Tick",
    "TickDriver",
]
