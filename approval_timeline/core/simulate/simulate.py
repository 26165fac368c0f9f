from __future__ import annotations

from collections import Counter, deque
from dataclasses import replace

from approval_timeline.core.errors import invalid_simulation_day
from approval_timeline.core.model import (
    ScheduledTask,
    SimulatedTimeline,
    TaskStatus,
    Timeline,
    TimelineSummary,
)


def simulate(timeline: Timeline, current_day: int) -> SimulatedTimeline:
    """Annotate every task with its status as of `current_day`.

    Scheduled days and critical-path flags are carried over unchanged; the
    returned tasks are new values in the timeline's task order.
    """

    if isinstance(current_day, bool) or not isinstance(current_day, int) or current_day < 0:
        raise invalid_simulation_day(current_day)

    statuses: dict[str, TaskStatus] = {}
    for t in _dependency_order(timeline):
        statuses[t.id] = _status(t, current_day, statuses)

    tasks = tuple(replace(t, status=statuses[t.id]) for t in timeline.tasks)
    counts = Counter(statuses.values())
    total = len(tasks)
    completion_percentage = 100.0 * counts["completed"] / total if total else 100.0
    days_remaining = max(0, timeline.fastest_completion - current_day)

    return SimulatedTimeline(
        timeline=timeline,
        current_day=current_day,
        tasks=tasks,
        completion_percentage=completion_percentage,
        days_remaining=days_remaining,
        summary=TimelineSummary(
            total_tasks=total,
            completed=counts["completed"],
            in_progress=counts["in_progress"],
            pending=counts["pending"],
            blocked=counts["blocked"],
            completion_percentage=completion_percentage,
            days_remaining=days_remaining,
            parallel_group_count=len(timeline.parallel_groups),
        ),
    )


def _status(task: ScheduledTask, day: int, resolved: dict[str, TaskStatus]) -> TaskStatus:
    if day >= task.end_day:
        return "completed"
    if day >= task.start_day:
        if all(resolved.get(d) == "completed" for d in task.dependencies):
            return "in_progress"
        return "blocked"
    return "pending"


def _dependency_order(timeline: Timeline) -> list[ScheduledTask]:
    """Tasks with every dependency ahead of its dependents (Kahn's algorithm).

    Ties keep timeline order. Dependencies missing from the timeline count as
    unfinished; tasks caught in a cycle come last, in timeline order.
    """

    by_id = {t.id: t for t in timeline.tasks}
    waiting = {t.id: sum(1 for d in t.dependencies if d in by_id) for t in timeline.tasks}
    dependents: dict[str, list[str]] = {tid: [] for tid in by_id}
    for t in timeline.tasks:
        for d in t.dependencies:
            if d in by_id:
                dependents[d].append(t.id)

    ready: deque[str] = deque(t.id for t in timeline.tasks if waiting[t.id] == 0)
    out: list[ScheduledTask] = []
    while ready:
        tid = ready.popleft()
        out.append(by_id[tid])
        for nxt in dependents[tid]:
            waiting[nxt] -= 1
            if waiting[nxt] == 0:
                ready.append(nxt)
    if len(out) < len(by_id):
        placed = {t.id for t in out}
        out.extend(t for t in timeline.tasks if t.id not in placed)
    return out
