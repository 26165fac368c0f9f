from datetime import date
from pathlib import Path

import pytest

from approval_timeline.core.errors import CycleDetected
from approval_timeline.core.io.load_catalog import load_catalog
from approval_timeline.core.model import Task
from approval_timeline.core.schedule.schedule import schedule
from approval_timeline.core.validate.validate_tasks import validate_tasks

EXAMPLES = Path(__file__).resolve().parent.parent / "examples"


def _t(tid: str, dur: int, deps: list[str] | None = None, priority: str = "medium") -> Task:
    return Task(id=tid, name=tid, duration_days=dur, dependencies=tuple(deps or []), priority=priority)


def _basic() -> list[Task]:
    return [
        _t("A", 3),
        _t("B", 7, ["A"]),
        _t("C", 10, ["A"]),
        _t("D", 5, ["B"]),
        _t("E", 5, ["B", "C"]),
    ]


def _catalog(name: str) -> list[Task]:
    return list(load_catalog(str(EXAMPLES / name)).tasks)


def test_basic_scenario_schedule():
    validated, errors = validate_tasks(_basic())
    assert errors == []
    timeline = schedule(validated)

    windows = {t.id: (t.start_day, t.end_day) for t in timeline.tasks}
    assert windows == {"A": (0, 3), "B": (3, 10), "C": (3, 13), "D": (10, 15), "E": (13, 18)}
    assert timeline.fastest_completion == 18
    assert timeline.critical_path == ("A", "C", "E")
    assert ("B", "C") in timeline.parallel_groups


def test_slack_and_critical_flags():
    timeline = schedule(_basic())
    slack = {t.id: t.slack for t in timeline.tasks}
    assert slack == {"A": 0, "B": 3, "C": 0, "D": 3, "E": 0}
    for t in timeline.tasks:
        assert t.slack >= 0
        assert t.is_critical_path == (t.slack == 0)
        assert t.latest_start - t.start_day == t.slack
        assert t.latest_finish == t.latest_start + t.duration_days


def test_task_order_is_input_order():
    tasks = list(reversed(_basic()))
    timeline = schedule(tasks)
    assert [t.id for t in timeline.tasks] == ["E", "D", "C", "B", "A"]
    assert timeline.critical_path == ("A", "C", "E")


def test_earliest_start_invariant():
    timeline = schedule(_catalog("approval-catalog.yaml"))
    end = {t.id: t.end_day for t in timeline.tasks}
    for t in timeline.tasks:
        assert t.start_day == max((end[d] for d in t.dependencies), default=0)
        assert t.end_day == t.start_day + t.duration_days


def test_critical_path_sum_and_chain():
    timeline = schedule(_catalog("approval-catalog.yaml"))
    by_id = {t.id: t for t in timeline.tasks}
    assert timeline.fastest_completion == 36
    assert timeline.critical_path == (
        "registration",
        "land-allocation",
        "fire-safety",
        "construction-permit",
        "factory-license",
        "final-clearance",
    )
    assert sum(by_id[tid].duration_days for tid in timeline.critical_path) == timeline.fastest_completion
    assert not by_id[timeline.critical_path[0]].dependencies
    for prev, cur in zip(timeline.critical_path, timeline.critical_path[1:]):
        assert prev in by_id[cur].dependencies
        assert by_id[prev].end_day == by_id[cur].start_day


def test_critical_path_tie_break_prefers_smallest_id():
    tasks = [_t("root", 2), _t("z", 4, ["root"]), _t("m", 4, ["root"]), _t("y", 1, ["z", "m"])]
    timeline = schedule(tasks)
    assert timeline.critical_path == ("root", "m", "y")
    assert {t.id for t in timeline.tasks if t.is_critical_path} == {"root", "z", "m", "y"}


def test_critical_path_sink_tie_break():
    timeline = schedule([_t("b", 5), _t("a", 5)])
    assert timeline.critical_path == ("a",)
    assert timeline.parallel_groups == (("b", "a"),)


def test_removing_non_critical_task_keeps_completion():
    tasks = _catalog("approval-catalog.yaml")
    timeline = schedule(tasks)
    for tid in [t.id for t in timeline.tasks if t.id not in timeline.critical_path]:
        remaining = [
            Task(
                id=t.id,
                name=t.name,
                duration_days=t.duration_days,
                dependencies=tuple(d for d in t.dependencies if d != tid),
            )
            for t in tasks
            if t.id != tid
        ]
        assert schedule(remaining).fastest_completion == timeline.fastest_completion


def test_parallel_groups_are_pairwise_independent_and_overlapping():
    timeline = schedule(_catalog("approval-catalog.yaml"))
    by_id = {t.id: t for t in timeline.tasks}

    def ancestors(tid: str) -> set[str]:
        out: set[str] = set()
        todo = list(by_id[tid].dependencies)
        while todo:
            cur = todo.pop()
            if cur not in out:
                out.add(cur)
                todo.extend(by_id[cur].dependencies)
        return out

    assert timeline.parallel_groups
    for group in timeline.parallel_groups:
        assert len(group) > 1
        for i, a in enumerate(group):
            for b in group[i + 1:]:
                assert a not in ancestors(b) and b not in ancestors(a)
                assert by_id[a].start_day < by_id[b].end_day and by_id[b].start_day < by_id[a].end_day


def test_can_run_in_parallel_flag():
    timeline = schedule(_basic())
    flags = {t.id: t.can_run_in_parallel for t in timeline.tasks}
    assert flags == {"A": False, "B": True, "C": True, "D": True, "E": True}
    assert timeline.parallel_groups == (("B", "C"), ("D", "E"))


def test_linear_chain_has_no_parallel_groups():
    timeline = schedule([_t("a", 1), _t("b", 2, ["a"]), _t("c", 3, ["b"])])
    assert timeline.parallel_groups == ()
    assert timeline.critical_path == ("a", "b", "c")
    assert all(not t.can_run_in_parallel for t in timeline.tasks)


def test_completion_date_uses_reference_date():
    timeline = schedule(_basic(), reference_date=date(2026, 1, 5))
    assert timeline.reference_date == date(2026, 1, 5)
    assert timeline.completion_date == date(2026, 1, 23)
    assert schedule(_basic()).completion_date is None


def test_milestones_group_by_end_day():
    timeline = schedule([_t("a", 2), _t("b", 2), _t("c", 1, ["a"])])
    assert [(m.day, m.task_ids) for m in timeline.milestones] == [(2, ("a", "b")), (3, ("c",))]


def test_schedule_is_deterministic():
    first = schedule(_catalog("approval-catalog.yaml"), reference_date=date(2026, 1, 1))
    second = schedule(_catalog("approval-catalog.yaml"), reference_date=date(2026, 1, 1))
    assert first == second
    assert repr(first) == repr(second)


def test_schedule_rejects_invalid_input():
    with pytest.raises(CycleDetected):
        schedule([_t("a", 1, ["b"]), _t("b", 1, ["a"])])


def test_empty_task_set():
    timeline = schedule([])
    assert timeline.fastest_completion == 0
    assert timeline.critical_path == ()
    assert timeline.tasks == ()
