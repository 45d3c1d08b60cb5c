"""
scheduler/scheduler.py — Scheduler

Registry of named, delayed callbacks driven by caller-supplied time deltas.
The caller invokes update(dt) once per tick (a frame, a TickDriver wake-up,
a simulation step); nothing here reads a clock.

Design
------
* Explicit instance — no global state; independent schedulers can coexist.
* Four indices, all owned and mutated only here:
    active       alias → event with delay > 0 (insertion-ordered)
    zero_delay   alias → event with delay == 0 (fired on the next update)
    categories / types   TagIndex, empty tags pruned automatically
    waiting      WaitingIndex, parent alias → dependents ("run after X")
* One removal routine (_remove_everywhere) for every terminal transition,
  so an alias never lingers in a category/type set after it fires or is
  canceled.
* Re-entrancy: callbacks may schedule, cancel or trigger anything. Every
  loop iterates a snapshot of keys and rechecks existence per alias.
* Fail-safe: invalid arguments and unknown aliases are logged and reported
  as False; callback exceptions are logged and never abort a tick.

Usage::

    scheduler = Scheduler()
    scheduler.schedule("fade_out", 0.5, on_fade_out, category="hud")
    scheduler.schedule_after("fade_out", "remove_panel", 0, on_remove)
    ...
    scheduler.update(dt)   # once per frame
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, Optional

from delayline.observability.logger import get_logger
from delayline.scheduler.event import ScheduledEvent, is_number, is_valid_name
from delayline.scheduler.indices import TagIndex, WaitingIndex
from delayline.scheduler.types import (
    CancelCallback,
    EventResult,
    EventSnapshot,
    IntervalCallback,
    Reroute,
    RerouteKind,
)


class Scheduler:
    """
    Tick-driven event scheduler.

    Lifecycle of an event:
        schedule()/schedule_many()  → active (or zero-delay)
        schedule_after()            → waiting on a parent alias
        parent fires / trigger      → waiting dependents become active, timers reset
        delay exceeded / trigger    → fired (terminal)
        cancel()                    → canceled (terminal)
    """

    def __init__(self, name: str = "default", start_paused: bool = False) -> None:
        self.name = name
        self._active: dict[str, ScheduledEvent] = {}
        self._zero_delay: dict[str, ScheduledEvent] = {}
        self._categories = TagIndex("category")
        self._types = TagIndex("type")
        self._waiting = WaitingIndex()
        self._paused = start_paused
        self._firing: set[str] = set()
        self._canceling: set[str] = set()
        self._updating = False
        self._log = get_logger(__name__, scheduler=name)

    @classmethod
    def from_settings(cls, settings, name: str = "default") -> "Scheduler":
        """Create a Scheduler from delayline Settings."""
        return cls(name=name, start_paused=settings.scheduler.start_paused)

    # ── Introspection ─────────────────────────────────────────────────────────

    @property
    def size(self) -> int:
        """Number of active plus zero-delay events (waiting events excluded)."""
        return len(self._active) + len(self._zero_delay)

    @property
    def waiting_count(self) -> int:
        return len(self._waiting)

    @property
    def paused(self) -> bool:
        return self._paused

    def __len__(self) -> int:
        return self.size

    def __contains__(self, alias: object) -> bool:
        return alias in self._active or alias in self._zero_delay

    # ── Registration ──────────────────────────────────────────────────────────

    def schedule(
        self,
        alias: str,
        delay: float,
        callback: Callable[[str, Any], None],
        *,
        on_interval: Optional[IntervalCallback] = None,
        interval: float = 1.0,
        max_intervals: Optional[int] = None,
        invoke_last_interval: bool = True,
        on_canceled: Optional[CancelCallback] = None,
        event_data: Any = None,
        category: Optional[str] = None,
        event_type: Optional[str] = None,
        time_scale: float = 1.0,
    ) -> bool:
        """
        Schedule callback(alias, event_data) to run once `delay` seconds of
        scaled time have passed (strictly more than delay).

        Args:
            alias:                Unique name. Scheduling an existing alias replaces it.
            delay:                Seconds >= 0. 0 means "on the next update()".
            callback:             Main callback, invoked at most once.
            on_interval:          (alias, count, data), every `interval` seconds until firing.
            max_intervals:        Stop interval calls once the count exceeds this.
            invoke_last_interval: Allow an interval call on the tick that fires the event.
            on_canceled:          (alias, waiting_aliases, data) -> Reroute(s) | None.
            category, event_type: Tags for the bulk *_category / *_type operations.
            time_scale:           Multiplier on dt for this event.

        Returns:
            True if the event was registered, False if validation failed.
        """
        result = ScheduledEvent.create(
            alias, delay, callback,
            on_interval=on_interval,
            interval=interval,
            max_intervals=max_intervals,
            invoke_last_interval=invoke_last_interval,
            on_canceled=on_canceled,
            event_data=event_data,
            category=category,
            event_type=event_type,
            time_scale=time_scale,
        )
        if not self._accept(result, "schedule"):
            return False

        event = result.event
        if self._lookup(alias) is not None:
            if self._busy(alias):
                self._log.debug("scheduler.schedule.rescheduled_from_own_callback", alias=alias)
            else:
                self._log.warning("scheduler.schedule.overwrite", alias=alias)
            self._remove_everywhere(alias)
        if alias in self._waiting:
            # Left as two independent registrations; promotion of the waiting
            # one later replaces this entry through the overwrite path.
            self._log.warning("scheduler.schedule.alias_also_waiting", alias=alias)

        self._register(event)
        self._log.debug(
            "scheduler.event.scheduled",
            alias=alias, delay=delay, category=event.category, event_type=event.event_type,
        )
        return True

    def schedule_many(
        self,
        event_type: str,
        delay: float,
        count: int,
        callback: Callable[[str, Any], None],
        *,
        interval: float = 0.0,
        time_scale: float = 1.0,
        event_data: Any = None,
    ) -> bool:
        """
        Schedule `count` independent events aliased "<event_type>#1".."#count".

        Event i fires after delay + interval * i (interval 0 = all at once).
        Every event is tagged with `event_type`, so the batch can be paused,
        canceled or triggered with the *_type operations.

        Returns True only if every event was scheduled.
        """
        if not is_valid_name(event_type):
            self._log.error("scheduler.schedule_many.invalid_type", event_type=event_type)
            return False
        if not is_number(delay) or delay < 0:
            self._log.error("scheduler.schedule_many.invalid_delay", event_type=event_type, delay=delay)
            return False
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            self._log.error("scheduler.schedule_many.invalid_count", event_type=event_type, count=count)
            return False
        if not callable(callback):
            self._log.error("scheduler.schedule_many.invalid_callback", event_type=event_type)
            return False
        if interval is None or not is_number(interval) or interval < 0:
            self._log.warning("scheduler.schedule_many.invalid_interval", interval=interval)
            interval = 0.0

        all_scheduled = True
        for i in range(count):
            scheduled = self.schedule(
                f"{event_type}#{i + 1}",
                delay + interval * i,
                callback,
                event_type=event_type,
                time_scale=time_scale,
                event_data=event_data,
            )
            if not scheduled:
                all_scheduled = False
        return all_scheduled

    def schedule_after(
        self,
        parent_alias: str,
        alias: str,
        delay: float,
        callback: Callable[[str, Any], None],
        *,
        on_interval: Optional[IntervalCallback] = None,
        interval: float = 1.0,
        max_intervals: Optional[int] = None,
        invoke_last_interval: bool = True,
        on_canceled: Optional[CancelCallback] = None,
        event_data: Any = None,
        category: Optional[str] = None,
        event_type: Optional[str] = None,
        time_scale: float = 1.0,
    ) -> bool:
        """
        Register an event that starts its own delay only once `parent_alias`
        fires. The parent must currently be active (delay > 0).

        Registering the same (parent_alias, alias) pair twice is a no-op that
        returns True. The waiting event joins its category/type sets when it
        is promoted, not before.
        """
        if not is_valid_name(parent_alias):
            self._log.error("scheduler.schedule_after.invalid_parent", parent=parent_alias)
            return False
        if parent_alias not in self._active:
            self._log.error(
                "scheduler.schedule_after.parent_not_active", parent=parent_alias, alias=alias,
            )
            return False

        result = ScheduledEvent.create(
            alias, delay, callback,
            on_interval=on_interval,
            interval=interval,
            max_intervals=max_intervals,
            invoke_last_interval=invoke_last_interval,
            on_canceled=on_canceled,
            event_data=event_data,
            category=category,
            event_type=event_type,
            time_scale=time_scale,
        )
        if not self._accept(result, "schedule_after"):
            return False

        if not self._waiting.add(parent_alias, result.event):
            self._log.info("scheduler.schedule_after.already_waiting", parent=parent_alias, alias=alias)
            return True
        self._log.debug("scheduler.event.waiting", parent=parent_alias, alias=alias, delay=delay)
        return True

    # ── Tick ──────────────────────────────────────────────────────────────────

    def update(self, dt: float) -> None:
        """
        Advance every active event by dt seconds and fire whatever is due.

        Delay-based events are processed first, in insertion order; each
        fires its main callback before any interval callbacks of the same
        tick. Zero-delay events (including dependents promoted during this
        pass) fire afterwards, unconditionally.
        """
        if not is_number(dt) or dt < 0:
            self._log.error("scheduler.update.invalid_dt", dt=dt)
            return
        if self._paused or self.size == 0:
            return
        if self._updating:
            self._log.warning("scheduler.update.reentrant_call_ignored")
            return

        self._updating = True
        try:
            for alias, event in tuple(self._active.items()):
                # entries replaced during this pass start on the next update
                if self._active.get(alias) is not event or self._busy(alias):
                    continue
                tick = event.advance(dt)
                if tick.expired:
                    self._fire(alias, event)
                for count in tick.interval_counts:
                    if not tick.expired and self._active.get(alias) is not event:
                        break  # canceled by one of its own interval callbacks
                    self._invoke(alias, "on_interval", event.on_interval, alias, count, event.data)

            for alias, event in tuple(self._zero_delay.items()):
                if self._zero_delay.get(alias) is not event or self._busy(alias):
                    continue
                self._fire(alias, event)
        finally:
            self._updating = False

    # ── Trigger ───────────────────────────────────────────────────────────────

    def trigger(self, alias: str) -> bool:
        """
        Fire an active event now, bypassing its remaining delay.

        Same path as natural expiry: dependents are promoted and the alias is
        removed. Zero-delay dependents promoted here run before this returns.
        """
        if not is_valid_name(alias):
            self._log.error("scheduler.trigger.invalid_alias", alias=alias)
            return False
        event = self._lookup(alias)
        if event is None:
            self._log.warning("scheduler.trigger.unknown", alias=alias)
            return False
        if alias in self._firing:
            self._log.warning("scheduler.trigger.already_firing", alias=alias)
            return False
        if alias in self._canceling:
            self._log.warning("scheduler.trigger.being_canceled", alias=alias)
            return False

        self._run_chained(self._fire(alias, event))
        return True

    def trigger_category(self, category: str) -> bool:
        return self._for_each_tagged(self._categories, category, "trigger", self.trigger)

    def trigger_type(self, event_type: str) -> bool:
        return self._for_each_tagged(self._types, event_type, "trigger", self.trigger)

    def trigger_all_active(self) -> bool:
        """Trigger every active and zero-delay event. True if all fired."""
        if self.size == 0:
            self._log.info("scheduler.trigger_all.nothing_scheduled")
            return True
        all_triggered = True
        for alias in tuple(self._active) + tuple(self._zero_delay):
            if self._lookup(alias) is None:
                continue
            if not self.trigger(alias):
                all_triggered = False
        return all_triggered

    # ── Cancel ────────────────────────────────────────────────────────────────

    def cancel(self, alias: str, call_waiting_on_canceled: bool = False) -> bool:
        """
        Cancel an active or waiting event.

        Active: every dependent waiting on it is notified through its own
        on_canceled and dropped, then the event's on_canceled runs and may
        return Reroute instructions that rescue some of those dependents.

        Waiting: removed from its parent; its on_canceled runs only when
        call_waiting_on_canceled is True.
        """
        if not is_valid_name(alias):
            self._log.error("scheduler.cancel.invalid_alias", alias=alias)
            return False
        if alias in self._firing:
            self._log.warning("scheduler.cancel.already_firing", alias=alias)
            return False
        if alias in self._canceling:
            self._log.warning("scheduler.cancel.already_canceling", alias=alias)
            return False

        event = self._lookup(alias)
        if event is not None:
            return self._cancel_active(alias, event)
        return self._cancel_waiting(alias, call_waiting_on_canceled)

    def cancel_category(self, category: str) -> bool:
        return self._for_each_tagged(self._categories, category, "cancel", self.cancel)

    def cancel_type(self, event_type: str) -> bool:
        return self._for_each_tagged(self._types, event_type, "cancel", self.cancel)

    def cancel_all(self) -> bool:
        """
        Cancel every active and zero-delay event (handlers run as for
        cancel()). Anything registered by those handlers during the sweep is
        then cleared without further callbacks.
        """
        if self.size == 0 and len(self._waiting) == 0:
            self._log.info("scheduler.cancel_all.nothing_scheduled")
            return True

        self._log.info("scheduler.cancel_all", count=self.size)
        for alias in tuple(self._active) + tuple(self._zero_delay):
            if self._lookup(alias) is not None and not self._busy(alias):
                self.cancel(alias)

        leftover = self.size + len(self._waiting)
        if leftover:
            self._log.warning("scheduler.cancel_all.cleared_leftovers", count=leftover)
            self._active.clear()
            self._zero_delay.clear()
            self._categories.clear()
            self._types.clear()
            self._waiting.clear()
        return True

    def _cancel_active(self, alias: str, event: ScheduledEvent) -> bool:
        # Handlers below may call back into the scheduler; until removal the
        # alias can be neither canceled again, triggered nor advanced.
        self._canceling.add(alias)
        try:
            dependents = self._waiting.pop_parent(alias)
            for dependent_alias, dependent in dependents.items():
                if dependent.on_canceled is not None:
                    self._invoke_on_canceled(dependent_alias, dependent)

            reroutes: list[Reroute] = []
            if event.on_canceled is not None:
                reroutes = self._invoke_on_canceled(alias, event, frozenset(dependents))
        finally:
            self._canceling.discard(alias)
            self._remove_everywhere(alias, expected=event)
        self._apply_reroutes(alias, dependents, reroutes)
        self._log.info(
            "scheduler.event.canceled", alias=alias,
            dependents=len(dependents), rerouted=len(reroutes),
        )
        return True

    def _cancel_waiting(self, alias: str, call_on_canceled: bool) -> bool:
        found = self._waiting.find(alias)
        if found is None:
            self._log.warning("scheduler.cancel.unknown", alias=alias)
            return False

        parent, event = found
        self._waiting.remove(parent, alias)
        if call_on_canceled and event.on_canceled is not None:
            self._invoke_on_canceled(alias, event)
        self._log.info("scheduler.waiting_event.canceled", alias=alias, parent=parent)
        return True

    def _apply_reroutes(
        self,
        canceled_alias: str,
        dependents: dict[str, ScheduledEvent],
        reroutes: list[Reroute],
    ) -> None:
        remaining = dict(dependents)
        for reroute in reroutes:
            dependent = remaining.pop(reroute.waiting_alias, None)
            if dependent is None:
                self._log.warning(
                    "scheduler.reroute.not_waiting",
                    canceled=canceled_alias, waiting_alias=reroute.waiting_alias,
                )
                continue

            new_parent = reroute.new_parent
            if reroute.kind is RerouteKind.MOVE_TO and new_parent in self._active:
                if not self._waiting.add(new_parent, dependent):
                    self._log.info(
                        "scheduler.reroute.already_waiting",
                        waiting_alias=dependent.alias, parent=new_parent,
                    )
                    continue
                self._log.info(
                    "scheduler.reroute.moved",
                    waiting_alias=dependent.alias, old_parent=canceled_alias, new_parent=new_parent,
                )
            else:
                self._promote(dependent, canceled_alias)

    # ── Pause / resume / time scale ───────────────────────────────────────────

    def pause(self, alias: Optional[str] = None) -> bool:
        """Pause one event's timer, or the whole scheduler when alias is None."""
        if alias is None:
            self._paused = True
            self._log.info("scheduler.paused")
            return True
        event = self._require(alias, "pause")
        if event is None:
            return False
        event.pause()
        self._log.debug("scheduler.event.paused", alias=alias)
        return True

    def resume(self, alias: Optional[str] = None) -> bool:
        """Resume one event's timer, or the whole scheduler when alias is None."""
        if alias is None:
            self._paused = False
            self._log.info("scheduler.resumed")
            return True
        event = self._require(alias, "resume")
        if event is None:
            return False
        event.resume()
        self._log.debug("scheduler.event.resumed", alias=alias)
        return True

    def pause_category(self, category: str) -> bool:
        return self._for_each_tagged(self._categories, category, "pause", self.pause)

    def pause_type(self, event_type: str) -> bool:
        return self._for_each_tagged(self._types, event_type, "pause", self.pause)

    def resume_category(self, category: str) -> bool:
        return self._for_each_tagged(self._categories, category, "resume", self.resume)

    def resume_type(self, event_type: str) -> bool:
        return self._for_each_tagged(self._types, event_type, "resume", self.resume)

    def set_time_scale(self, alias: str, time_scale: float) -> bool:
        if not is_number(time_scale) or time_scale < 0:
            self._log.error("scheduler.set_time_scale.invalid_scale", alias=alias, time_scale=time_scale)
            return False
        event = self._require(alias, "set_time_scale")
        if event is None:
            return False
        event.time_scale = time_scale
        return True

    def set_category_time_scale(self, category: str, time_scale: float) -> bool:
        if not is_number(time_scale) or time_scale < 0:
            self._log.error("scheduler.set_time_scale.invalid_scale", category=category, time_scale=time_scale)
            return False
        return self._for_each_tagged(
            self._categories, category, "set_time_scale",
            lambda alias: self.set_time_scale(alias, time_scale),
        )

    def set_type_time_scale(self, event_type: str, time_scale: float) -> bool:
        if not is_number(time_scale) or time_scale < 0:
            self._log.error("scheduler.set_time_scale.invalid_scale", event_type=event_type, time_scale=time_scale)
            return False
        return self._for_each_tagged(
            self._types, event_type, "set_time_scale",
            lambda alias: self.set_time_scale(alias, time_scale),
        )

    # ── Queries ───────────────────────────────────────────────────────────────

    def is_scheduled(self, alias: str) -> bool:
        """True while alias is active or zero-delay (not merely waiting)."""
        if not is_valid_name(alias):
            self._log.error("scheduler.is_scheduled.invalid_alias", alias=alias)
            return False
        return alias in self

    def is_waiting(self, alias: str) -> bool:
        return is_valid_name(alias) and alias in self._waiting

    def is_category_scheduled(self, category: str) -> bool:
        if not is_valid_name(category):
            self._log.error("scheduler.is_category_scheduled.invalid_category", category=category)
            return False
        return category in self._categories

    def is_type_scheduled(self, event_type: str) -> bool:
        if not is_valid_name(event_type):
            self._log.error("scheduler.is_type_scheduled.invalid_type", event_type=event_type)
            return False
        return event_type in self._types

    def waiting_on(self, parent_alias: str) -> frozenset[str]:
        """Aliases currently waiting for parent_alias to fire."""
        return self._waiting.aliases(parent_alias)

    def peek_at(self, alias: str) -> Optional[EventSnapshot]:
        """Frozen snapshot of an active or zero-delay event, or None."""
        event = self._require(alias, "peek_at")
        return event.snapshot() if event is not None else None

    def peek_at_category(self, category: str) -> dict[str, EventSnapshot]:
        return self._peek_tagged(self._categories, category)

    def peek_at_type(self, event_type: str) -> dict[str, EventSnapshot]:
        return self._peek_tagged(self._types, event_type)

    def peek_all(self) -> dict[str, EventSnapshot]:
        return {
            alias: event.snapshot()
            for alias, event in (*self._active.items(), *self._zero_delay.items())
        }

    def _peek_tagged(self, index: TagIndex, tag: str) -> dict[str, EventSnapshot]:
        if not is_valid_name(tag):
            self._log.error(f"scheduler.peek.invalid_{index.label}", tag=tag)
            return {}
        if tag not in index:
            self._log.warning(f"scheduler.peek.unknown_{index.label}", tag=tag)
            return {}
        snapshots: dict[str, EventSnapshot] = {}
        for alias in index.members(tag):
            event = self._lookup(alias)
            if event is not None:
                snapshots[alias] = event.snapshot()
        return snapshots

    # ── Internals ─────────────────────────────────────────────────────────────

    def _accept(self, result: EventResult, operation: str) -> bool:
        if result.success:
            return True
        self._log.error(
            f"scheduler.{operation}.invalid_event",
            error=str(result.error), error_type=result.error_type,
        )
        return False

    def _busy(self, alias: str) -> bool:
        """True while alias's own callbacks or cancel handlers are running."""
        return alias in self._firing or alias in self._canceling

    def _lookup(self, alias: str) -> Optional[ScheduledEvent]:
        event = self._active.get(alias)
        if event is None:
            event = self._zero_delay.get(alias)
        return event

    def _require(self, alias: Any, operation: str) -> Optional[ScheduledEvent]:
        """Look up a scheduled event, logging why when there is none."""
        if not is_valid_name(alias):
            self._log.error(f"scheduler.{operation}.invalid_alias", alias=alias)
            return None
        event = self._lookup(alias)
        if event is None:
            self._log.warning(f"scheduler.{operation}.unknown", alias=alias)
        return event

    def _register(self, event: ScheduledEvent) -> None:
        if event.delay > 0:
            self._active[event.alias] = event
        else:
            self._zero_delay[event.alias] = event
        if event.category is not None:
            self._categories.add(event.category, event.alias)
        if event.event_type is not None:
            self._types.add(event.event_type, event.alias)

    def _remove_everywhere(
        self, alias: str, expected: Optional[ScheduledEvent] = None,
    ) -> Optional[ScheduledEvent]:
        """
        Remove alias from its owning index and its category/type sets.

        With `expected`, only that exact event is removed: if the alias was
        re-scheduled in the meantime the replacement is left untouched.
        """
        event = self._lookup(alias)
        if event is None or (expected is not None and event is not expected):
            return None
        if event.delay > 0:
            self._active.pop(alias, None)
        else:
            self._zero_delay.pop(alias, None)
        self._categories.discard(event.category, alias)
        self._types.discard(event.event_type, alias)
        return event

    def _fire(self, alias: str, event: ScheduledEvent) -> list[str]:
        """
        Invoke the main callback, then promote dependents and remove the
        event. Returns the zero-delay dependents promoted by this firing.
        """
        self._firing.add(alias)
        try:
            self._invoke(alias, "main", event.main_callback, alias, event.data)
            self._log.debug("scheduler.event.fired", alias=alias)
        finally:
            self._firing.discard(alias)
            promoted = self._promote_dependents(alias)
            self._remove_everywhere(alias, expected=event)
        return promoted

    def _run_chained(self, aliases: Iterable[str]) -> None:
        """Fire zero-delay dependents (and their own chains) right away."""
        pending = list(aliases)
        while pending:
            alias = pending.pop(0)
            event = self._zero_delay.get(alias)
            if event is None or self._busy(alias):
                continue
            pending.extend(self._fire(alias, event))

    def _promote_dependents(self, parent_alias: str) -> list[str]:
        zero_delay: list[str] = []
        for alias, event in self._waiting.pop_parent(parent_alias).items():
            self._promote(event, parent_alias)
            if event.delay <= 0:
                zero_delay.append(alias)
        return zero_delay

    def _promote(self, event: ScheduledEvent, parent_alias: str) -> None:
        """Move a waiting event into the active/zero-delay index, timers reset."""
        event.reset_timers()
        if self._lookup(event.alias) is not None:
            self._log.warning("scheduler.promote.overwrite", alias=event.alias)
            self._remove_everywhere(event.alias)
        self._register(event)
        self._log.debug("scheduler.event.promoted", alias=event.alias, parent=parent_alias)

    def _for_each_tagged(
        self,
        index: TagIndex,
        tag: str,
        operation: str,
        action: Callable[[str], bool],
    ) -> bool:
        """Apply action to a snapshot of tag's aliases; conjunction of results."""
        if not is_valid_name(tag):
            self._log.error(f"scheduler.{operation}.invalid_{index.label}", tag=tag)
            return False
        if tag not in index:
            self._log.warning(f"scheduler.{operation}.unknown_{index.label}", tag=tag)
            return False

        all_ok = True
        for alias in index.members(tag):
            if self._lookup(alias) is None:
                continue  # removed by an earlier callback in this sweep
            if not action(alias):
                all_ok = False
        return all_ok

    def _invoke(self, alias: str, kind: str, fn: Optional[Callable[..., Any]], *args: Any) -> Any:
        if fn is None:
            return None
        try:
            return fn(*args)
        except Exception as exc:
            self._log.error(
                "scheduler.callback.error",
                alias=alias, callback=kind, error=str(exc), error_type=type(exc).__name__,
            )
            return None

    def _invoke_on_canceled(
        self,
        alias: str,
        event: ScheduledEvent,
        waiting_aliases: frozenset[str] = frozenset(),
    ) -> list[Reroute]:
        result = self._invoke(alias, "on_canceled", event.on_canceled, alias, waiting_aliases, event.data)
        if result is None:
            return []
        if isinstance(result, Reroute):
            return [result]
        try:
            items = list(result)
        except TypeError:
            self._log.warning("scheduler.on_canceled.invalid_return", alias=alias, result=repr(result))
            return []

        reroutes = [item for item in items if isinstance(item, Reroute)]
        if len(reroutes) != len(items):
            self._log.warning(
                "scheduler.on_canceled.ignored_items", alias=alias, ignored=len(items) - len(reroutes),
            )
        return reroutes
