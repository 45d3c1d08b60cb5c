"""
exceptions.py — delayline Unified Error Hierarchy

All delayline-specific exceptions live here. Construction problems are
never raised out of the Scheduler: ScheduledEvent.create() returns them
inside an EventResult and the Scheduler logs them. Plan loading is the
only public path that raises.

Import from here, not from individual modules:
    from delayline.exceptions import InvalidDelayError, PlanError

Hierarchy:
    DelaylineError
    ├── ScheduleError
    │   ├── InvalidAliasError
    │   ├── InvalidDelayError
    │   └── InvalidCallbackError
    └── PlanError
"""

from __future__ import annotations

from typing import Any


# ─────────────────────────────────────────────────────────────────────────────
# Root
# ─────────────────────────────────────────────────────────────────────────────

class DelaylineError(Exception):
    """Base class for all delayline exceptions."""


# ─────────────────────────────────────────────────────────────────────────────
# Event construction
# ─────────────────────────────────────────────────────────────────────────────

class ScheduleError(DelaylineError):
    """Base for errors that prevent an event from being created."""


class InvalidAliasError(ScheduleError):
    """Alias is not a non-empty string."""

    def __init__(self, alias: Any, message: str = "") -> None:
        self.alias = alias
        super().__init__(
            message or f"Expected 'alias' to be a non-empty string, got {alias!r}."
        )


class InvalidDelayError(ScheduleError):
    """Delay is not a finite number greater than or equal to 0."""

    def __init__(self, alias: str, delay: Any, message: str = "") -> None:
        self.alias = alias
        self.delay = delay
        super().__init__(
            message
            or f"Expected 'delay' to be a finite number >= 0 for event '{alias}', got {delay!r}."
        )


class InvalidCallbackError(ScheduleError):
    """Main callback is not callable."""

    def __init__(self, alias: str, message: str = "") -> None:
        self.alias = alias
        super().__init__(message or f"Expected 'callback' to be callable for event '{alias}'.")


# ─────────────────────────────────────────────────────────────────────────────
# Plans
# ─────────────────────────────────────────────────────────────────────────────

class PlanError(DelaylineError):
    """A plan file could not be read or failed validation."""


__all__ = [
    "DelaylineError",
    "ScheduleError",
    "InvalidAliasError",
    "InvalidDelayError",
    "InvalidCallbackError",
    "PlanError",
]
