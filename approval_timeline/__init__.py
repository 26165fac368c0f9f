"""Approval-timeline scheduling engine.

Pipeline: transform (optional) -> validate -> schedule -> simulate -> query.
Every stage is a pure function returning a new value.
"""

from approval_timeline.core.model import (
    ScheduledTask,
    SimulatedTimeline,
    Task,
    Timeline,
    TimelineSummary,
    ValidatedTaskSet,
)
from approval_timeline.core.query.query import compare_timelines, next_tasks
from approval_timeline.core.scenario.transform import Scenario, transform
from approval_timeline.core.schedule.schedule import schedule
from approval_timeline.core.simulate.simulate import simulate
from approval_timeline.core.validate.validate_tasks import validate_tasks as validate

__all__ = [
    "Scenario",
    "ScheduledTask",
    "SimulatedTimeline",
    "Task",
    "Timeline",
    "TimelineSummary",
    "ValidatedTaskSet",
    "compare_timelines",
    "next_tasks",
    "schedule",
    "simulate",
    "transform",
    "validate",
]
