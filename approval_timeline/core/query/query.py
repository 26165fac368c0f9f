from __future__ import annotations

from dataclasses import dataclass

from approval_timeline.core.model import PRIORITY_RANK, ScheduledTask, SimulatedTimeline, Timeline


DEFAULT_NEXT_LIMIT = 5


def next_tasks(simulated: SimulatedTimeline, limit: int = DEFAULT_NEXT_LIMIT) -> list[str]:
    """Ids of up to `limit` unfinished tasks, most urgent first.

    Critical-path tasks lead, then higher priority, then earlier start; ties
    fall back to the task id.
    """
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 0:
        raise ValueError(f"limit must be a non-negative integer (got {limit!r})")

    open_tasks = [t for t in simulated.tasks if t.status != "completed"]
    open_tasks.sort(key=_urgency)
    return [t.id for t in open_tasks[:limit]]


def _urgency(t: ScheduledTask) -> tuple[int, int, int, str]:
    return (0 if t.is_critical_path else 1, -PRIORITY_RANK[t.priority], t.start_day, t.id)


@dataclass(frozen=True)
class DurationChange:
    task_id: str
    baseline_days: int
    candidate_days: int


@dataclass(frozen=True)
class TimelineComparison:
    baseline_completion: int
    candidate_completion: int
    days_saved: int
    percent_faster: float
    removed_task_ids: tuple[str, ...]
    duration_changes: tuple[DurationChange, ...]


def compare_timelines(baseline: Timeline, candidate: Timeline) -> TimelineComparison:
    """Compare a scenario timeline against its baseline.

    `days_saved` is negative when the candidate is slower.
    """
    candidate_by_id = {t.id: t for t in candidate.tasks}

    removed: list[str] = []
    changes: list[DurationChange] = []
    for t in baseline.tasks:
        other = candidate_by_id.get(t.id)
        if other is None:
            removed.append(t.id)
        elif other.duration_days != t.duration_days:
            changes.append(
                DurationChange(
                    task_id=t.id,
                    baseline_days=t.duration_days,
                    candidate_days=other.duration_days,
                )
            )

    saved = baseline.fastest_completion - candidate.fastest_completion
    percent = 100.0 * saved / baseline.fastest_completion if baseline.fastest_completion else 0.0
    return TimelineComparison(
        baseline_completion=baseline.fastest_completion,
        candidate_completion=candidate.fastest_completion,
        days_saved=saved,
        percent_faster=percent,
        removed_task_ids=tuple(removed),
        duration_changes=tuple(changes),
    )
