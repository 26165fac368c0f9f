from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Literal, Optional


Priority = Literal["low", "medium", "high", "critical"]
TaskStatus = Literal["pending", "in_progress", "blocked", "completed"]

PRIORITY_RANK: dict[str, int] = {"low": 0, "medium": 1, "high": 2, "critical": 3}
ALLOWED_STATUSES: tuple[str, ...] = ("pending", "in_progress", "blocked", "completed")


@dataclass(frozen=True)
class Task:
    id: str
    name: str
    duration_days: int
    dependencies: tuple[str, ...] = ()

    authority: str = ""
    priority: Priority = "medium"


@dataclass(frozen=True)
class Catalog:
    schema_version: str
    tasks: tuple[Task, ...]
    reference_date: Optional[date] = None
    file: Optional[str] = None


@dataclass(frozen=True)
class ValidatedTaskSet:
    """Tasks that passed the graph validator.

    `tasks` keeps input order; `topological_order` lists ids with every
    dependency ahead of its dependents.
    """

    tasks: tuple[Task, ...]
    topological_order: tuple[str, ...]


@dataclass(frozen=True)
class ScheduledTask:
    task: Task
    start_day: int
    end_day: int
    latest_start: int
    latest_finish: int
    slack: int
    is_critical_path: bool
    can_run_in_parallel: bool

    status: Optional[TaskStatus] = None

    @property
    def id(self) -> str:
        return self.task.id

    @property
    def duration_days(self) -> int:
        return self.task.duration_days

    @property
    def dependencies(self) -> tuple[str, ...]:
        return self.task.dependencies

    @property
    def priority(self) -> Priority:
        return self.task.priority


@dataclass(frozen=True)
class Milestone:
    day: int
    task_ids: tuple[str, ...]


@dataclass(frozen=True)
class Timeline:
    tasks: tuple[ScheduledTask, ...]
    fastest_completion: int
    critical_path: tuple[str, ...]
    parallel_groups: tuple[tuple[str, ...], ...]
    milestones: tuple[Milestone, ...]

    reference_date: Optional[date] = None
    completion_date: Optional[date] = None

    def task(self, task_id: str) -> ScheduledTask:
        for t in self.tasks:
            if t.id == task_id:
                return t
        raise KeyError(task_id)


@dataclass(frozen=True)
class TimelineSummary:
    total_tasks: int
    completed: int
    in_progress: int
    pending: int
    blocked: int
    completion_percentage: float
    days_remaining: int
    parallel_group_count: int


@dataclass(frozen=True)
class SimulatedTimeline:
    timeline: Timeline
    current_day: int
    tasks: tuple[ScheduledTask, ...]
    completion_percentage: float
    days_remaining: int
    summary: TimelineSummary

    def task(self, task_id: str) -> ScheduledTask:
        for t in self.tasks:
            if t.id == task_id:
                return t
        raise KeyError(task_id)

    def status_of(self, task_id: str) -> TaskStatus:
        status = self.task(task_id).status
        assert status is not None
        return status
