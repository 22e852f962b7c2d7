"""Cadence scheduling engine.

Manifesto:
    A cadence says *when* work should exist; an instance is that work.
    This package expands cadences into occurrence instants, persists each
    occurrence exactly once, and moves instances through a closed state
    machine as the clock and users act on them.

┌──────────────────────────────────────────────────────────────────────────────┐
│  CADENCE SCHEDULING                                                           │
│                                                                               │
│   SchedulerDriver.run_once(now)                                               │
│        │                                                                      │
│        ├──► RecurrenceExpander.expand   (pure: recurrence + zoneinfo)        │
│        │                                                                      │
│        └──► InstanceLifecycleManager                                          │
│               ├── materialize    insert_if_absent per occurrence             │
│               ├── advance_clock  compare_and_swap per row                     │
│               └── start / complete / skip                                     │
│                                    │                                          │
│                                    ▼                                          │
│                           InstanceStore (instances table)                     │
└──────────────────────────────────────────────────────────────────────────────┘

Tags:
    scheduling, cadence, recurrence, lifecycle
"""

from cadence.scheduling.describe import describe_schedule
from cadence.scheduling.driver import SchedulerDriver, TickResult
from cadence.scheduling.expander import RecurrenceExpander
from cadence.scheduling.lifecycle import (
    AdvanceReport,
    InstanceLifecycleManager,
    MaterializeReport,
)
from cadence.scheduling.models import (
    INSTANCE_VALID_TRANSITIONS,
    TERMINAL_STATUSES,
    Cadence,
    Instance,
    InstanceStatus,
    Schedule,
    SchedulePattern,
    validate_instance_transition,
)
from cadence.scheduling.predicates import (
    Urgency,
    group_my_work,
    is_due,
    is_overdue,
    is_up_next,
    time_remaining,
    urgency,
)
from cadence.scheduling.store import CadenceRepository, InstanceStore, SqlInstanceStore

__all__ = [
    "AdvanceReport",
    "Cadence",
    "CadenceRepository",
    "INSTANCE_VALID_TRANSITIONS",
    "Instance",
    "InstanceLifecycleManager",
    "InstanceStatus",
    "InstanceStore",
    "MaterializeReport",
    "RecurrenceExpander",
    "Schedule",
    "SchedulePattern",
    "SchedulerDriver",
    "SqlInstanceStore",
    "TERMINAL_STATUSES",
    "TickResult",
    "Urgency",
    "describe_schedule",
    "group_my_work",
    "is_due",
    "is_overdue",
    "is_up_next",
    "time_remaining",
    "urgency",
    "validate_instance_transition",
]
