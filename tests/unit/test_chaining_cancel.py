"""
tests/unit/test_chaining_cancel.py — run-after chaining and cancellation

Covers:
  - schedule_after(): parent must be active, duplicate pairs are idempotent
  - dependents are promoted with fresh timers when the parent fires
  - zero-delay dependents run in the same update / inside trigger()
  - trigger(): same path as natural expiry
  - cancel() of an active event: dependents notified and dropped
  - cancel() of a waiting event: call_waiting_on_canceled flag
  - Reroute.move_to / Reroute.promote and the promote fallback
  - cancel/trigger of an alias that is currently firing
"""

from __future__ import annotations

import pytest

from delayline.scheduler import Reroute, RerouteKind


# ─────────────────────────────────────────────────────────────────────────────
# schedule_after()
# ─────────────────────────────────────────────────────────────────────────────

class TestScheduleAfter:
    def test_requires_active_parent(self, scheduler, recorder):
        assert scheduler.schedule_after("ghost", "child", 1.0, recorder.main("child")) is False
        scheduler.schedule("zero", 0, recorder.main("zero"))
        assert scheduler.schedule_after("zero", "child", 1.0, recorder.main("child")) is False
        assert scheduler.waiting_count == 0

    def test_waiting_is_not_scheduled(self, scheduler, recorder):
        scheduler.schedule("p", 1.0, recorder.main("p"))
        assert scheduler.schedule_after("p", "c", 1.0, recorder.main("c"), category="kids")
        assert scheduler.is_waiting("c")
        assert not scheduler.is_scheduled("c")
        assert not scheduler.is_category_scheduled("kids")
        assert scheduler.waiting_on("p") == frozenset({"c"})

    def test_duplicate_pair_is_idempotent(self, scheduler, recorder):
        scheduler.schedule("p", 1.0, recorder.main("p"))
        assert scheduler.schedule_after("p", "c", 1.0, recorder.main("c"))
        assert scheduler.schedule_after("p", "c", 1.0, recorder.main("c"))
        assert scheduler.waiting_count == 1

    def test_invalid_child_rejected(self, scheduler, recorder):
        scheduler.schedule("p", 1.0, recorder.main("p"))
        assert scheduler.schedule_after("p", "c", -1, recorder.main("c")) is False
        assert scheduler.schedule_after("", "c", 1.0, recorder.main("c")) is False


# ─────────────────────────────────────────────────────────────────────────────
# Promotion
# ─────────────────────────────────────────────────────────────────────────────

class TestChaining:
    def test_dependent_starts_timer_when_parent_fires(self, scheduler, recorder):
        scheduler.schedule("p", 1.0, recorder.main("p"))
        scheduler.schedule_after("p", "c", 1.0, recorder.main("c"), category="kids")
        scheduler.update(1.5)
        assert recorder.names() == ["p"]
        assert scheduler.is_scheduled("c")
        assert scheduler.is_category_scheduled("kids")
        assert scheduler.peek_at("c").time_since_scheduled == 0
        scheduler.update(0.9)
        assert recorder.names() == ["p"]
        scheduler.update(0.2)
        assert recorder.names() == ["p", "c"]

    def test_zero_delay_dependent_fires_same_update(self, scheduler, recorder):
        scheduler.schedule("p", 0.5, recorder.main("p"))
        scheduler.schedule_after("p", "c", 0, recorder.main("c"))
        scheduler.update(1.0)
        assert recorder.names() == ["p", "c"]
        assert scheduler.size == 0

    def test_trigger_runs_parent_and_zero_delay_chain(self, scheduler, recorder):
        scheduler.schedule("p", 10.0, recorder.main("p"))
        scheduler.schedule_after("p", "c", 0, recorder.main("c"))
        scheduler.schedule_after("p", "later", 1.0, recorder.main("later"))
        assert scheduler.trigger("p")
        assert recorder.names() == ["p", "c"]
        assert scheduler.is_scheduled("later")
        assert not scheduler.is_scheduled("p")
        assert scheduler.waiting_count == 0

    def test_trigger_promoted_dependents_have_fresh_counters(self, scheduler, recorder):
        scheduler.schedule("p", 10.0, recorder.main("p"))
        scheduler.schedule_after(
            "p", "c", 5.0, recorder.main("c"),
            on_interval=recorder.interval("c"), interval=1.0,
        )
        scheduler.update(3.0)
        scheduler.trigger("p")
        snap = scheduler.peek_at("c")
        assert snap.time_since_scheduled == 0
        assert snap.time_since_last_interval == 0
        assert snap.intervals_invoked == 0

    def test_multi_level_chain(self, scheduler, recorder):
        scheduler.schedule("a", 1.0, recorder.main("a"))
        scheduler.schedule_after("a", "b", 1.0, recorder.main("b"))
        scheduler.update(1.5)
        scheduler.schedule_after("b", "c", 0, recorder.main("c"))
        scheduler.update(1.5)
        assert recorder.names() == ["a", "b", "c"]

    def test_rescheduled_parent_keeps_dependents(self, scheduler, recorder):
        scheduler.schedule("p", 1.0, recorder.main("p-old"))
        scheduler.schedule_after("p", "c", 0, recorder.main("c"))
        scheduler.schedule("p", 2.0, recorder.main("p-new"))
        assert scheduler.waiting_on("p") == frozenset({"c"})
        scheduler.update(2.5)
        assert recorder.names() == ["p-new", "c"]

    def test_waiting_alias_also_scheduled(self, scheduler, recorder):
        scheduler.schedule("p", 1.0, recorder.main("p"))
        scheduler.schedule_after("p", "c", 5.0, recorder.main("c-waiting"))
        scheduler.schedule("c", 10.0, recorder.main("c-direct"))
        assert scheduler.is_scheduled("c")
        assert scheduler.is_waiting("c")

        # promotion replaces the directly scheduled entry
        scheduler.update(1.5)
        assert not scheduler.is_waiting("c")
        assert scheduler.peek_at("c").delay == 5.0
        assert scheduler.peek_at("c").time_since_scheduled == 0
        scheduler.update(5.5)
        assert recorder.names() == ["p", "c-waiting"]

    def test_trigger_unknown(self, scheduler):
        assert scheduler.trigger("ghost") is False
        assert scheduler.trigger("") is False

    def test_trigger_self_from_callback_refused(self, scheduler, recorder):
        results = []

        def cb(alias, data):
            results.append(scheduler.trigger(alias))
            results.append(scheduler.cancel(alias))

        scheduler.schedule("a", 0.1, cb)
        scheduler.update(1.0)
        assert results == [False, False]
        assert not scheduler.is_scheduled("a")


# ─────────────────────────────────────────────────────────────────────────────
# cancel()
# ─────────────────────────────────────────────────────────────────────────────

class TestCancel:
    def test_cancel_active(self, scheduler, recorder):
        scheduler.schedule(
            "a", 1.0, recorder.main("a"),
            category="c", event_type="t", on_canceled=recorder.canceled("a"),
        )
        assert scheduler.cancel("a")
        scheduler.update(2.0)
        assert recorder.calls == [("canceled", "a", "a", frozenset())]
        assert not scheduler.is_category_scheduled("c")
        assert not scheduler.is_type_scheduled("t")

    def test_cancel_unknown(self, scheduler):
        assert scheduler.cancel("ghost") is False
        assert scheduler.cancel(None) is False

    def test_cancel_zero_delay(self, scheduler, recorder):
        scheduler.schedule("z", 0, recorder.main("z"))
        assert scheduler.cancel("z")
        scheduler.update(1.0)
        assert recorder.calls == []

    def test_cancel_propagates_to_dependents(self, scheduler, recorder):
        scheduler.schedule("p", 1.0, recorder.main("p"), on_canceled=recorder.canceled("p"))
        scheduler.schedule_after("p", "c1", 0, recorder.main("c1"), on_canceled=recorder.canceled("c1"))
        scheduler.schedule_after("p", "c2", 0, recorder.main("c2"))
        scheduler.cancel("p")
        assert recorder.calls == [
            ("canceled", "c1", "c1", frozenset()),
            ("canceled", "p", "p", frozenset({"c1", "c2"})),
        ]
        assert scheduler.waiting_count == 0
        scheduler.update(2.0)
        assert recorder.names("main") == []

    def test_cancel_waiting_without_flag(self, scheduler, recorder):
        scheduler.schedule("p", 1.0, recorder.main("p"))
        scheduler.schedule_after("p", "c", 0, recorder.main("c"), on_canceled=recorder.canceled("c"))
        assert scheduler.cancel("c")
        assert recorder.calls == []
        assert not scheduler.is_waiting("c")
        scheduler.update(2.0)
        assert recorder.names() == ["p"]

    def test_cancel_waiting_with_flag(self, scheduler, recorder):
        scheduler.schedule("p", 1.0, recorder.main("p"))
        scheduler.schedule_after("p", "c", 0, recorder.main("c"), on_canceled=recorder.canceled("c"))
        assert scheduler.cancel("c", call_waiting_on_canceled=True)
        assert recorder.calls == [("canceled", "c", "c", frozenset())]

    def test_on_canceled_error_still_cancels(self, scheduler):
        def boom(alias, waiting, data):
            raise ValueError("boom")

        scheduler.schedule("a", 1.0, lambda a, d: None, on_canceled=boom)
        assert scheduler.cancel("a")
        assert not scheduler.is_scheduled("a")


# ─────────────────────────────────────────────────────────────────────────────
# Reroute
# ─────────────────────────────────────────────────────────────────────────────

class TestReroute:
    def test_constructors(self):
        move = Reroute.move_to("c", "q")
        assert move.kind is RerouteKind.MOVE_TO
        assert move.new_parent == "q"
        assert Reroute.promote("c").kind is RerouteKind.PROMOTE

    def test_move_to_other_parent(self, scheduler, recorder):
        scheduler.schedule("p", 1.0, recorder.main("p"), on_canceled=lambda a, w, d: Reroute.move_to("c", "q"))
        scheduler.schedule("q", 2.0, recorder.main("q"))
        scheduler.schedule_after("p", "c", 0, recorder.main("c"))
        scheduler.cancel("p")
        assert scheduler.waiting_on("q") == frozenset({"c"})
        scheduler.update(2.5)
        assert recorder.names() == ["q", "c"]

    def test_promote(self, scheduler, recorder):
        scheduler.schedule("p", 1.0, recorder.main("p"), on_canceled=lambda a, w, d: [Reroute.promote("c")])
        scheduler.schedule_after("p", "c", 0.5, recorder.main("c"))
        scheduler.cancel("p")
        assert scheduler.is_scheduled("c")
        assert not scheduler.is_waiting("c")
        scheduler.update(0.6)
        assert recorder.names() == ["c"]

    def test_move_to_missing_parent_falls_back_to_promote(self, scheduler, recorder):
        scheduler.schedule("p", 1.0, recorder.main("p"), on_canceled=lambda a, w, d: Reroute.move_to("c", "ghost"))
        scheduler.schedule_after("p", "c", 0.5, recorder.main("c"))
        scheduler.cancel("p")
        assert scheduler.is_scheduled("c")

    def test_move_to_self_falls_back_to_promote(self, scheduler, recorder):
        scheduler.schedule("p", 1.0, recorder.main("p"), on_canceled=lambda a, w, d: Reroute.move_to("c", "p"))
        scheduler.schedule_after("p", "c", 0.5, recorder.main("c"))
        scheduler.cancel("p")
        assert scheduler.is_scheduled("c")
        assert scheduler.waiting_count == 0

    def test_reroute_of_non_dependent_ignored(self, scheduler, recorder):
        scheduler.schedule("p", 1.0, recorder.main("p"), on_canceled=lambda a, w, d: Reroute.promote("stranger"))
        scheduler.schedule_after("p", "c", 0.5, recorder.main("c"))
        scheduler.cancel("p")
        assert not scheduler.is_scheduled("stranger")
        assert not scheduler.is_scheduled("c")

    def test_unrerouted_dependents_dropped(self, scheduler, recorder):
        def reroute(alias, waiting, data):
            assert waiting == frozenset({"keep", "drop"})
            return (Reroute.promote("keep"), "garbage")

        scheduler.schedule("p", 1.0, recorder.main("p"), on_canceled=reroute)
        scheduler.schedule_after("p", "keep", 1.0, recorder.main("keep"))
        scheduler.schedule_after("p", "drop", 1.0, recorder.main("drop"))
        scheduler.cancel("p")
        assert scheduler.is_scheduled("keep")
        assert not scheduler.is_scheduled("drop")
        assert not scheduler.is_waiting("drop")

    def test_zero_delay_promoted_dependent_fires_next_update(self, scheduler, recorder):
        scheduler.schedule("p", 1.0, recorder.main("p"), on_canceled=lambda a, w, d: Reroute.promote("c"))
        scheduler.schedule_after("p", "c", 0, recorder.main("c"))
        scheduler.cancel("p")
        assert recorder.calls == []
        scheduler.update(0)
        assert recorder.names() == ["c"]


# ─────────────────────────────────────────────────────────────────────────────
# Re-entrant cancel handlers
# ─────────────────────────────────────────────────────────────────────────────

class TestCancelHandlerReentrancy:
    def test_handler_canceling_own_category_runs_once(self, scheduler, recorder):
        results = []

        def on_canceled(alias, waiting, data):
            recorder.calls.append(("canceled", alias, alias, waiting))
            results.append(scheduler.cancel_category("hud"))

        scheduler.schedule("p", 1.0, recorder.main("p"), category="hud", on_canceled=on_canceled)
        assert scheduler.cancel("p")
        assert recorder.names("canceled") == ["p"]
        assert results == [False]
        assert not scheduler.is_scheduled("p")
        assert not scheduler.is_category_scheduled("hud")

    def test_handler_canceling_itself_is_refused(self, scheduler, recorder):
        results = []

        def on_canceled(alias, waiting, data):
            results.append(scheduler.cancel(alias))

        scheduler.schedule("p", 1.0, recorder.main("p"), event_type="t", on_canceled=on_canceled)
        assert scheduler.cancel("p")
        assert results == [False]
        assert scheduler.size == 0

    def test_handler_cannot_trigger_canceled_event(self, scheduler, recorder):
        results = []

        def on_canceled(alias, waiting, data):
            results.append(scheduler.trigger(alias))

        scheduler.schedule("p", 1.0, recorder.main("p"), on_canceled=on_canceled)
        assert scheduler.cancel("p")
        assert results == [False]
        scheduler.update(5.0)
        assert recorder.names("main") == []

    def test_dependent_handler_cannot_recancel_parent(self, scheduler, recorder):
        def child_canceled(alias, waiting, data):
            recorder.calls.append(("canceled", alias, alias, waiting))
            scheduler.cancel("p")
            scheduler.trigger("p")

        scheduler.schedule("p", 1.0, recorder.main("p"), on_canceled=recorder.canceled("p"))
        scheduler.schedule_after("p", "c", 0, recorder.main("c"), on_canceled=child_canceled)
        assert scheduler.cancel("p")
        assert recorder.names("canceled") == ["c", "p"]
        assert recorder.names("main") == []

    def test_handler_may_reschedule_same_alias(self, scheduler, recorder):
        def on_canceled(alias, waiting, data):
            scheduler.schedule(alias, 0.5, recorder.main("replacement"))

        scheduler.schedule("p", 1.0, recorder.main("p"), on_canceled=on_canceled)
        assert scheduler.cancel("p")
        assert scheduler.is_scheduled("p")
        scheduler.update(0.6)
        assert recorder.names("main") == ["replacement"]


@pytest.mark.parametrize("returns", [None, 5, "text", []])
def test_on_canceled_odd_returns_are_harmless(scheduler, recorder, returns):
    scheduler.schedule("p", 1.0, recorder.main("p"), on_canceled=lambda a, w, d: returns)
    scheduler.schedule_after("p", "c", 0, recorder.main("c"))
    assert scheduler.cancel("p")
    assert scheduler.size == 0
    assert scheduler.waiting_count == 0
