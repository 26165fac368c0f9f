"""Plain-dict forms of computed timelines.

The dicts hold only JSON-native values (dates as ISO strings) so that
`json.dumps` / `json.loads` followed by the matching `*_from_dict` gives back
an equal value.
"""

from __future__ import annotations

from dataclasses import asdict
from datetime import date
from typing import Any, Optional, cast

from approval_timeline.core.model import (
    Milestone,
    Priority,
    ScheduledTask,
    SimulatedTimeline,
    Task,
    TaskStatus,
    Timeline,
    TimelineSummary,
)


def task_to_dict(t: Task) -> dict[str, Any]:
    return {
        "id": t.id,
        "name": t.name,
        "duration_days": t.duration_days,
        "dependencies": list(t.dependencies),
        "authority": t.authority,
        "priority": t.priority,
    }


def task_from_dict(d: dict[str, Any]) -> Task:
    return Task(
        id=d["id"],
        name=d["name"],
        duration_days=int(d["duration_days"]),
        dependencies=tuple(d.get("dependencies", ())),
        authority=d.get("authority", ""),
        priority=cast(Priority, d.get("priority", "medium")),
    )


def scheduled_task_to_dict(t: ScheduledTask) -> dict[str, Any]:
    out = task_to_dict(t.task)
    out.update(
        {
            "start_day": t.start_day,
            "end_day": t.end_day,
            "latest_start": t.latest_start,
            "latest_finish": t.latest_finish,
            "slack": t.slack,
            "is_critical_path": t.is_critical_path,
            "can_run_in_parallel": t.can_run_in_parallel,
            "status": t.status,
        }
    )
    return out


def scheduled_task_from_dict(d: dict[str, Any]) -> ScheduledTask:
    return ScheduledTask(
        task=task_from_dict(d),
        start_day=int(d["start_day"]),
        end_day=int(d["end_day"]),
        latest_start=int(d["latest_start"]),
        latest_finish=int(d["latest_finish"]),
        slack=int(d["slack"]),
        is_critical_path=bool(d["is_critical_path"]),
        can_run_in_parallel=bool(d["can_run_in_parallel"]),
        status=cast(Optional[TaskStatus], d.get("status")),
    )


def timeline_to_dict(timeline: Timeline) -> dict[str, Any]:
    return {
        "tasks": [scheduled_task_to_dict(t) for t in timeline.tasks],
        "fastest_completion": timeline.fastest_completion,
        "critical_path": list(timeline.critical_path),
        "parallel_groups": [list(g) for g in timeline.parallel_groups],
        "milestones": [{"day": m.day, "task_ids": list(m.task_ids)} for m in timeline.milestones],
        "reference_date": _date_out(timeline.reference_date),
        "completion_date": _date_out(timeline.completion_date),
    }


def timeline_from_dict(d: dict[str, Any]) -> Timeline:
    return Timeline(
        tasks=tuple(scheduled_task_from_dict(t) for t in d["tasks"]),
        fastest_completion=int(d["fastest_completion"]),
        critical_path=tuple(d["critical_path"]),
        parallel_groups=tuple(tuple(g) for g in d["parallel_groups"]),
        milestones=tuple(
            Milestone(day=int(m["day"]), task_ids=tuple(m["task_ids"])) for m in d.get("milestones", [])
        ),
        reference_date=_date_in(d.get("reference_date")),
        completion_date=_date_in(d.get("completion_date")),
    )


def simulated_to_dict(simulated: SimulatedTimeline) -> dict[str, Any]:
    return {
        "timeline": timeline_to_dict(simulated.timeline),
        "current_day": simulated.current_day,
        "tasks": [scheduled_task_to_dict(t) for t in simulated.tasks],
        "completion_percentage": simulated.completion_percentage,
        "days_remaining": simulated.days_remaining,
        "summary": asdict(simulated.summary),
    }


def simulated_from_dict(d: dict[str, Any]) -> SimulatedTimeline:
    return SimulatedTimeline(
        timeline=timeline_from_dict(d["timeline"]),
        current_day=int(d["current_day"]),
        tasks=tuple(scheduled_task_from_dict(t) for t in d["tasks"]),
        completion_percentage=float(d["completion_percentage"]),
        days_remaining=int(d["days_remaining"]),
        summary=TimelineSummary(**d["summary"]),
    )


def _date_out(v: Optional[date]) -> Optional[str]:
    return v.isoformat() if v is not None else None


def _date_in(v: Optional[str]) -> Optional[date]:
    return date.fromisoformat(v) if v else None
