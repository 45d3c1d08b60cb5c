"""
scheduler/event.py — ScheduledEvent

One named, delayed callback with optional interval callbacks. Holds its own
timing state and advances it when asked; it never invokes callbacks itself
and knows nothing about other events. The Scheduler turns each Tick into
callback invocations.

Construction goes through ScheduledEvent.create(), which validates input and
returns an EventResult instead of raising.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Optional

from delayline.exceptions import (
    InvalidAliasError,
    InvalidCallbackError,
    InvalidDelayError,
)
from delayline.observability.logger import get_logger
from delayline.scheduler.types import (
    CancelCallback,
    EventResult,
    EventSnapshot,
    IntervalCallback,
    MainCallback,
    Tick,
)

log = get_logger(__name__)

DEFAULT_INTERVAL = 1.0
DEFAULT_TIME_SCALE = 1.0


def is_number(value: Any) -> bool:
    """True for finite real ints/floats (bools, NaN and ±inf excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def is_valid_name(value: Any) -> bool:
    """True for a non-empty, non-blank string (aliases, categories, types)."""
    return isinstance(value, str) and value.strip() != ""


@dataclass(eq=False)
class ScheduledEvent:
    """
    alias                 Unique identity; the key in every Scheduler index.
    delay                 Seconds of scaled time before main_callback fires.
    main_callback         (alias, data) — fires at most once.
    on_interval           (alias, count, data) — fires every `interval` until expiry.
    interval              Seconds between on_interval calls.
    max_intervals         Interval processing stops once the count exceeds this.
    invoke_last_interval  Allow an interval call on the tick that fires the event.
    on_canceled           (alias, waiting_aliases, data) -> Reroute(s) | None.
    time_scale            Multiplier on every dt; 0 freezes the event.
    """
    alias: str
    delay: float
    main_callback: MainCallback = field(repr=False)
    on_interval: Optional[IntervalCallback] = field(default=None, repr=False)
    interval: float = DEFAULT_INTERVAL
    max_intervals: Optional[int] = None
    invoke_last_interval: bool = True
    on_canceled: Optional[CancelCallback] = field(default=None, repr=False)
    data: Any = field(default=None, repr=False)
    category: Optional[str] = None
    event_type: Optional[str] = None
    time_scale: float = DEFAULT_TIME_SCALE

    intervals_invoked: int = field(default=0, init=False)
    time_since_last_interval: float = field(default=0.0, init=False)
    time_since_scheduled: float = field(default=0.0, init=False)
    is_paused: bool = field(default=False, init=False)

    # ── Construction ──────────────────────────────────────────────────────────

    @classmethod
    def create(
        cls,
        alias: Any,
        delay: Any,
        callback: Any,
        *,
        on_interval: Optional[IntervalCallback] = None,
        interval: Any = DEFAULT_INTERVAL,
        max_intervals: Any = None,
        invoke_last_interval: bool = True,
        on_canceled: Optional[CancelCallback] = None,
        event_data: Any = None,
        category: Any = None,
        event_type: Any = None,
        time_scale: Any = DEFAULT_TIME_SCALE,
    ) -> EventResult:
        """
        Validate the arguments and build an event.

        alias, delay and callback are required to be valid; a problem with any
        of them yields EventResult.fail(). Optional settings degrade instead:
        a bad time_scale becomes 1, a bad interval disables interval callbacks,
        a bad max_intervals means "no limit", a bad category/type is dropped.
        """
        if not is_valid_name(alias):
            return EventResult.fail(InvalidAliasError(alias))
        if not is_number(delay) or delay < 0:
            return EventResult.fail(InvalidDelayError(alias, delay))
        if not callable(callback):
            return EventResult.fail(InvalidCallbackError(alias))

        if on_interval is not None and not callable(on_interval):
            log.warning("event.on_interval.invalid", alias=alias)
            on_interval = None
        if on_canceled is not None and not callable(on_canceled):
            log.warning("event.on_canceled.invalid", alias=alias)
            on_canceled = None

        if interval is None:
            interval = DEFAULT_INTERVAL
        if not is_number(interval) or interval <= 0:
            if on_interval is not None:
                log.warning("event.interval.invalid", alias=alias, interval=interval)
            on_interval = None
            interval = DEFAULT_INTERVAL

        if max_intervals is not None and (
            isinstance(max_intervals, bool) or not isinstance(max_intervals, int) or max_intervals < 0
        ):
            log.warning("event.max_intervals.invalid", alias=alias, max_intervals=max_intervals)
            max_intervals = None

        if time_scale is None or not is_number(time_scale) or time_scale < 0:
            if time_scale is not None:
                log.warning("event.time_scale.invalid", alias=alias, time_scale=time_scale)
            time_scale = DEFAULT_TIME_SCALE

        if category is not None and not is_valid_name(category):
            log.warning("event.category.invalid", alias=alias, category=category)
            category = None
        if event_type is not None and not is_valid_name(event_type):
            log.warning("event.type.invalid", alias=alias, event_type=event_type)
            event_type = None

        return EventResult.ok(cls(
            alias=alias,
            delay=delay,
            main_callback=callback,
            on_interval=on_interval,
            interval=interval,
            max_intervals=max_intervals,
            invoke_last_interval=bool(invoke_last_interval),
            on_canceled=on_canceled,
            data=event_data,
            category=category,
            event_type=event_type,
            time_scale=time_scale,
        ))

    # ── State machine ─────────────────────────────────────────────────────────

    @property
    def has_intervals(self) -> bool:
        return self.on_interval is not None

    @property
    def max_intervals_exceeded(self) -> bool:
        return self.max_intervals is not None and self.intervals_invoked > self.max_intervals

    def advance(self, dt: float) -> Tick:
        """
        Attribute dt (scaled) to this event and report what became due.

        Expiry is checked before interval processing so the final tick can
        still produce one interval call, unless invoke_last_interval is off.
        """
        tick = Tick()
        if self.is_paused:
            return tick

        scaled = dt * self.time_scale
        self.time_since_scheduled += scaled
        if self.time_since_scheduled > self.delay:
            tick.expired = True
            if not self.invoke_last_interval:
                return tick

        if not self.has_intervals or self.max_intervals_exceeded:
            return tick

        self.time_since_last_interval += scaled
        while self.time_since_last_interval >= self.interval:
            self.intervals_invoked += 1
            tick.interval_counts.append(self.intervals_invoked)
            self.time_since_last_interval -= self.interval
            if self.max_intervals_exceeded:
                break
        return tick

    def pause(self) -> None:
        self.is_paused = True

    def resume(self) -> None:
        self.is_paused = False

    def reset_timers(self) -> None:
        """Start the clock over. Called once, when a waiting event becomes active."""
        self.time_since_scheduled = 0.0
        self.time_since_last_interval = 0.0

    def snapshot(self) -> EventSnapshot:
        return EventSnapshot(
            alias=self.alias,
            category=self.category,
            type=self.event_type,
            delay=self.delay,
            interval=self.interval,
            max_intervals=self.max_intervals,
            time_scale=self.time_scale,
            time_since_last_interval=self.time_since_last_interval,
            time_since_scheduled=self.time_since_scheduled,
            intervals_invoked=self.intervals_invoked,
            is_paused=self.is_paused,
        )
