"""
delayline — tick-driven event scheduling.

Named, delayed callbacks with interval callbacks, category/type grouping,
run-after chaining, cancellation with rerouting and cooperative pause/resume,
advanced by caller-supplied time deltas.

    from delayline import Scheduler
    scheduler = Scheduler()
    scheduler.schedule("blink", 0.5, lambda alias, data: ...)
    scheduler.update(dt)
"""

from delayline.scheduler import (
    EventResult,
    EventSnapshot,
    Reroute,
    RerouteKind,
    ScheduledEvent,
    Scheduler,
    TickDriver,
)

__version__ = "1.0.0"

__all__ = [
    "EventResult",
    "EventSnapshot",
    "Reroute",
    "RerouteKind",
    "ScheduledEvent",
    "Scheduler",
    "TickDriver",
    "__version__",
]
