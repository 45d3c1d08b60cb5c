"""
scheduler/types.py — Value types shared by ScheduledEvent and Scheduler.

  Reroute        instruction returned from an on_canceled handler
  EventSnapshot  frozen, callback-free view of an event (peek_* results)
  EventResult    outcome of ScheduledEvent.create() — ok(event) or fail(error)
  Tick           what became due during one ScheduledEvent.advance(dt)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Iterable, Optional, Union

from delayline.exceptions import ScheduleError

if TYPE_CHECKING:
    from delayline.scheduler.event import ScheduledEvent


# ─────────────────────────────────────────────────────────────────────────────
# Callback signatures
# ─────────────────────────────────────────────────────────────────────────────

MainCallback = Callable[[str, Any], None]
IntervalCallback = Callable[[str, int, Any], None]
CancelCallback = Callable[
    [str, frozenset, Any],
    Union["Reroute", Iterable["Reroute"], None],
]


# ─────────────────────────────────────────────────────────────────────────────
# Reroute
# ─────────────────────────────────────────────────────────────────────────────

class RerouteKind(str, Enum):
    MOVE_TO = "move_to"     # wait on a different active parent
    PROMOTE = "promote"     # become active immediately


@dataclass(frozen=True)
class Reroute:
    """
    Redirects one dependent of a canceled event.

    A MOVE_TO whose new parent is not active when the reroute is applied
    falls back to PROMOTE, so a dependent is never left waiting on nothing.
    """
    waiting_alias: str
    kind: RerouteKind
    new_parent: Optional[str] = None

    @classmethod
    def move_to(cls, waiting_alias: str, new_parent: str) -> "Reroute":
        return cls(waiting_alias=waiting_alias, kind=RerouteKind.MOVE_TO, new_parent=new_parent)

    @classmethod
    def promote(cls, waiting_alias: str) -> "Reroute":
        return cls(waiting_alias=waiting_alias, kind=RerouteKind.PROMOTE)


# ─────────────────────────────────────────────────────────────────────────────
# Snapshots
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class EventSnapshot:
    """Read-only metadata of a scheduled event. Excludes callbacks and data."""
    alias: str
    category: Optional[str]
    type: Optional[str]
    delay: float
    interval: float
    max_intervals: Optional[int]
    time_scale: float
    time_since_last_interval: float
    time_since_scheduled: float
    intervals_invoked: int
    is_paused: bool

    @property
    def remaining(self) -> float:
        """Unscaled seconds of accumulated time still needed before firing."""
        return max(self.delay - self.time_since_scheduled, 0.0)


# ─────────────────────────────────────────────────────────────────────────────
# Construction result
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class EventResult:
    """
    Outcome of ScheduledEvent.create().

    Rules:
      - success=True  → event is set, error is None.
      - success=False → event is None, error describes why.
      - create() never raises for bad input; it returns fail() instead.
    """
    success: bool
    event: Optional["ScheduledEvent"] = None
    error: Optional[ScheduleError] = None

    @classmethod
    def ok(cls, event: "ScheduledEvent") -> "EventResult":
        return cls(success=True, event=event)

    @classmethod
    def fail(cls, error: ScheduleError) -> "EventResult":
        return cls(success=False, error=error)

    @property
    def error_type(self) -> Optional[str]:
        return type(self.error).__name__ if self.error is not None else None


# ─────────────────────────────────────────────────────────────────────────────
# Tick
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class Tick:
    """What one advance(dt) made due. The Scheduler acts on it in this order:
    main callback first (if expired), then one on_interval per count."""
    expired: bool = False
    interval_counts: list[int] = field(default_factory=list)

    @property
    def idle(self) -> bool:
        return not self.expired and not self.interval_counts
