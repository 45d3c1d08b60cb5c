"""
plan.py — YAML plan files

A plan lists events to register on a Scheduler, in order:

    events:
      - alias: warmup
        delay: 2.0
        category: boot
        interval: 0.5
        message: "warming up"
      - alias: ready
        after: warmup          # starts its own delay once 'warmup' fires
        delay: 0
        type: status

Validation (pydantic) happens at load time; every problem surfaces as a
PlanError. An entry with `after` must name an earlier top-level entry whose
delay is > 0, because only active events can gain dependents.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from delayline.exceptions import PlanError
from delayline.observability.logger import get_logger
from delayline.scheduler.scheduler import Scheduler

log = get_logger(__name__)

FireHandler = Callable[[str, "PlanEntry"], None]
IntervalHandler = Callable[[str, int, "PlanEntry"], None]


class PlanEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid", allow_inf_nan=False)

    alias: str = Field(min_length=1)
    delay: float = Field(ge=0)
    after: Optional[str] = None
    category: Optional[str] = None
    event_type: Optional[str] = Field(default=None, alias="type")
    interval: Optional[float] = Field(default=None, gt=0)
    max_intervals: Optional[int] = Field(default=None, ge=0)
    time_scale: float = Field(default=1.0, ge=0)
    message: Optional[str] = None


class Plan(BaseModel):
    events: list[PlanEntry] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_aliases(self) -> "Plan":
        top_level: dict[str, PlanEntry] = {}
        seen: set[str] = set()
        for entry in self.events:
            if entry.alias in seen:
                raise ValueError(f"duplicate alias '{entry.alias}'")
            if entry.after is not None:
                parent = top_level.get(entry.after)
                if parent is None:
                    raise ValueError(
                        f"'{entry.alias}' runs after '{entry.after}', which is not an "
                        f"earlier entry without 'after'"
                    )
                if parent.delay <= 0:
                    raise ValueError(
                        f"'{entry.alias}' runs after '{entry.after}', which has delay 0; "
                        f"only events with a delay can be waited on"
                    )
            else:
                top_level[entry.alias] = entry
            seen.add(entry.alias)
        return self


def parse_plan(data: Any, source: str = "<plan>") -> Plan:
    """Validate already-loaded YAML/JSON data as a Plan."""
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise PlanError(f"{source}: expected a mapping with an 'events' list")
    try:
        return Plan.model_validate(data)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in e['loc']) or 'plan'}: {e['msg']}" for e in exc.errors()
        )
        raise PlanError(f"{source}: {problems}") from exc


def load_plan(path: str | Path) -> Plan:
    """Read and validate a plan file. Raises PlanError on any problem."""
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as exc:
        raise PlanError(f"Cannot read plan '{path}': {exc}") from exc
    except yaml.YAMLError as exc:
        raise PlanError(f"Plan '{path}' is not valid YAML: {exc}") from exc
    plan = parse_plan(data, source=str(path))
    log.info("plan.loaded", path=str(path), events=len(plan.events))
    return plan


def apply_plan(
    plan: Plan,
    scheduler: Scheduler,
    on_fire: FireHandler,
    on_interval: Optional[IntervalHandler] = None,
) -> list[str]:
    """
    Register every plan entry on the scheduler, in file order.

    on_fire(alias, entry) becomes each event's main callback; on_interval
    (alias, count, entry) is attached to entries that declare an interval.

    Returns the aliases the scheduler refused.
    """
    failed: list[str] = []
    for entry in plan.events:
        options: dict[str, Any] = dict(
            event_data=entry,
            category=entry.category,
            event_type=entry.event_type,
            time_scale=entry.time_scale,
            max_intervals=entry.max_intervals,
        )
        if entry.interval is not None and on_interval is not None:
            options["interval"] = entry.interval
            options["on_interval"] = on_interval

        if entry.after is None:
            ok = scheduler.schedule(entry.alias, entry.delay, on_fire, **options)
        else:
            ok = scheduler.schedule_after(entry.after, entry.alias, entry.delay, on_fire, **options)
        if not ok:
            failed.append(entry.alias)

    if failed:
        log.warning("plan.apply.failed", aliases=failed)
    return failed
