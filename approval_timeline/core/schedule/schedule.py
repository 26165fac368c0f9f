from __future__ import annotations

from collections import defaultdict
from datetime import date, timedelta
from typing import Optional, Sequence

from approval_timeline.core.model import (
    Milestone,
    ScheduledTask,
    Task,
    Timeline,
    ValidatedTaskSet,
)
from approval_timeline.core.validate.validate_tasks import require_valid


def schedule(
    tasks: ValidatedTaskSet | Sequence[Task],
    *,
    reference_date: Optional[date] = None,
) -> Timeline:
    """Schedule tasks with the Critical Path Method.

    Every task starts at its earliest feasible day. Plain task sequences are
    validated first and the first validation error is raised, so an
    inconsistent Timeline is never produced.

    `completion_date` is only filled when `reference_date` is given.
    """

    validated = require_valid(tasks)
    by_id: dict[str, Task] = {t.id: t for t in validated.tasks}
    order = validated.topological_order

    dependents: dict[str, list[str]] = defaultdict(list)
    for t in validated.tasks:
        for dep in t.dependencies:
            dependents[dep].append(t.id)

    # Forward pass.
    earliest_start: dict[str, int] = {}
    earliest_finish: dict[str, int] = {}
    for tid in order:
        t = by_id[tid]
        es = max((earliest_finish[d] for d in t.dependencies), default=0)
        earliest_start[tid] = es
        earliest_finish[tid] = es + t.duration_days

    fastest_completion = max(earliest_finish.values(), default=0)

    # Backward pass.
    latest_start: dict[str, int] = {}
    latest_finish: dict[str, int] = {}
    for tid in reversed(order):
        succ = dependents.get(tid, [])
        lf = min((latest_start[s] for s in succ), default=fastest_completion)
        latest_finish[tid] = lf
        latest_start[tid] = lf - by_id[tid].duration_days

    slack = {tid: latest_start[tid] - earliest_start[tid] for tid in order}

    ancestors = _ancestors(validated)
    windows = {tid: (earliest_start[tid], earliest_finish[tid]) for tid in order}
    partners = _concurrent_partners(validated, windows, ancestors)

    scheduled = tuple(
        ScheduledTask(
            task=t,
            start_day=earliest_start[t.id],
            end_day=earliest_finish[t.id],
            latest_start=latest_start[t.id],
            latest_finish=latest_finish[t.id],
            slack=slack[t.id],
            is_critical_path=slack[t.id] == 0,
            can_run_in_parallel=bool(partners[t.id]),
        )
        for t in validated.tasks
    )

    critical_path = _critical_path(by_id, dependents, earliest_finish, slack)
    groups = _parallel_groups(validated, windows, partners)

    completion_date = None
    if reference_date is not None:
        completion_date = reference_date + timedelta(days=fastest_completion)

    return Timeline(
        tasks=scheduled,
        fastest_completion=fastest_completion,
        critical_path=critical_path,
        parallel_groups=groups,
        milestones=_milestones(scheduled),
        reference_date=reference_date,
        completion_date=completion_date,
    )


def _critical_path(
    by_id: dict[str, Task],
    dependents: dict[str, list[str]],
    end_day: dict[str, int],
    slack: dict[str, int],
) -> tuple[str, ...]:
    sinks = [tid for tid in by_id if not dependents.get(tid) and slack[tid] == 0]
    if not sinks:
        return ()

    # largest end_day first, then smallest id
    def rank(tid: str) -> tuple[int, str]:
        return (-end_day[tid], tid)

    current: Optional[str] = min(sinks, key=rank)
    path: list[str] = []
    while current is not None:
        path.append(current)
        preds = [d for d in by_id[current].dependencies if slack[d] == 0]
        current = min(preds, key=rank) if preds else None

    path.reverse()
    return tuple(path)


def _ancestors(validated: ValidatedTaskSet) -> dict[str, frozenset[str]]:
    by_id = {t.id: t for t in validated.tasks}
    out: dict[str, frozenset[str]] = {}
    for tid in validated.topological_order:
        acc: set[str] = set()
        for dep in by_id[tid].dependencies:
            acc.add(dep)
            acc |= out[dep]
        out[tid] = frozenset(acc)
    return out


def _compatible(
    a: str,
    b: str,
    windows: dict[str, tuple[int, int]],
    ancestors: dict[str, frozenset[str]],
) -> bool:
    if a in ancestors[b] or b in ancestors[a]:
        return False
    a_start, a_end = windows[a]
    b_start, b_end = windows[b]
    return a_start < b_end and b_start < a_end


def _concurrent_partners(
    validated: ValidatedTaskSet,
    windows: dict[str, tuple[int, int]],
    ancestors: dict[str, frozenset[str]],
) -> dict[str, set[str]]:
    ids = [t.id for t in validated.tasks]
    partners: dict[str, set[str]] = {tid: set() for tid in ids}
    for i, a in enumerate(ids):
        for b in ids[i + 1:]:
            if _compatible(a, b, windows, ancestors):
                partners[a].add(b)
                partners[b].add(a)
    return partners


def _parallel_groups(
    validated: ValidatedTaskSet,
    windows: dict[str, tuple[int, int]],
    partners: dict[str, set[str]],
) -> tuple[tuple[str, ...], ...]:
    """Partition concurrent tasks into groups that are pairwise parallel.

    Tasks are visited by (start_day, input position); each joins the first
    group whose every member it can run alongside, otherwise it opens a new
    group. Singleton groups are dropped.
    """

    position = {t.id: i for i, t in enumerate(validated.tasks)}
    visit = sorted(
        (tid for tid in position if partners[tid]),
        key=lambda tid: (windows[tid][0], position[tid]),
    )

    groups: list[list[str]] = []
    for tid in visit:
        for group in groups:
            if all(member in partners[tid] for member in group):
                group.append(tid)
                break
        else:
            groups.append([tid])

    kept = [sorted(g, key=position.__getitem__) for g in groups if len(g) > 1]
    kept.sort(key=lambda g: position[g[0]])
    return tuple(tuple(g) for g in kept)


def _milestones(tasks: Sequence[ScheduledTask]) -> tuple[Milestone, ...]:
    by_day: dict[int, list[str]] = defaultdict(list)
    for t in tasks:
        by_day[t.end_day].append(t.id)
    return tuple(Milestone(day=day, task_ids=tuple(by_day[day])) for day in sorted(by_day))
