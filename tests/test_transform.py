import pytest

from approval_timeline.core.errors import InvalidDuration
from approval_timeline.core.model import Task
from approval_timeline.core.scenario.transform import Scenario, transform
from approval_timeline.core.schedule.schedule import schedule
from approval_timeline.core.validate.validate_tasks import validate_tasks


def _t(tid: str, dur: int, deps: list[str] | None = None) -> Task:
    return Task(id=tid, name=tid, duration_days=dur, dependencies=tuple(deps or []), authority="Agency")


def _basic() -> list[Task]:
    return [
        _t("A", 3),
        _t("B", 7, ["A"]),
        _t("C", 10, ["A"]),
        _t("D", 5, ["B"]),
        _t("E", 5, ["B", "C"]),
    ]


def test_identity_scenario_returns_equal_copy():
    baseline = _basic()
    out = transform(baseline, Scenario())
    assert out == baseline
    assert out is not baseline
    assert schedule(out) == schedule(baseline)


def test_baseline_is_not_mutated():
    baseline = _basic()
    snapshot = list(baseline)
    transform(baseline, Scenario(duration_factor=0.5, removed_ids=frozenset({"B"}), expedited_ids=frozenset({"C"})))
    assert baseline == snapshot


def test_scaling_rounds_up():
    out = transform(_basic(), Scenario(duration_factor=0.75))
    assert {t.id: t.duration_days for t in out} == {"A": 3, "B": 6, "C": 8, "D": 4, "E": 4}


def test_scaling_never_drops_below_one_day():
    out = transform([_t("A", 1), _t("B", 2, ["A"])], Scenario(duration_factor=0.01))
    assert [t.duration_days for t in out] == [1, 1]


def test_expedite_applies_after_scaling_with_single_rounding():
    out = transform(
        _basic(),
        Scenario(duration_factor=0.75, expedited_ids=frozenset({"C"})),
    )
    by_id = {t.id: t.duration_days for t in out}
    # 10 * 0.75 * 0.7 = 5.25
    assert by_id["C"] == 6
    assert by_id["B"] == 6


def test_expedite_avoids_float_artifacts():
    out = transform([_t("A", 10)], Scenario(expedited_ids=frozenset({"A"})))
    assert out[0].duration_days == 7


def test_removal_drops_dependency_references():
    out = transform(_basic(), Scenario(removed_ids=frozenset({"B"})))
    by_id = {t.id: t for t in out}
    assert "B" not in by_id
    assert by_id["D"].dependencies == ()
    assert by_id["E"].dependencies == ("C",)
    validated, errors = validate_tasks(out)
    assert errors == []
    assert schedule(validated).fastest_completion == 18


def test_removal_can_inherit_dependencies():
    out = transform(
        [_t("A", 3), _t("B", 2, ["A"]), _t("C", 4, ["B"]), _t("D", 1, ["C"])],
        Scenario(removed_ids=frozenset({"B", "C"}), inherit_dependencies=True),
    )
    by_id = {t.id: t for t in out}
    assert by_id["D"].dependencies == ("A",)
    assert schedule(out).fastest_completion == 4


def test_inheritance_through_long_removed_chain():
    ids = [f"T{i:04d}" for i in range(1502)]
    tasks = [_t(tid, 1, [ids[i + 1]] if i + 1 < len(ids) else []) for i, tid in enumerate(ids)]
    out = transform(tasks, Scenario(removed_ids=frozenset(ids[1:-1]), inherit_dependencies=True))
    assert {t.id: t.dependencies for t in out} == {"T0000": ("T1501",), "T1501": ()}


def test_removal_without_inheritance_detaches_dependents():
    out = transform(
        [_t("A", 3), _t("B", 2, ["A"]), _t("C", 4, ["B"])],
        Scenario(removed_ids=frozenset({"B"})),
    )
    assert {t.id: t.dependencies for t in out} == {"A": (), "C": ()}
    assert schedule(out).fastest_completion == 4


def test_unknown_scenario_ids_are_ignored():
    out = transform(_basic(), Scenario(removed_ids=frozenset({"ZZZ"}), expedited_ids=frozenset({"YYY"})))
    assert out == _basic()


@pytest.mark.parametrize("factor", [0, -0.5, float("nan")])
def test_non_positive_factor_is_invalid_duration(factor):
    with pytest.raises(InvalidDuration) as exc:
        transform(_basic(), Scenario(duration_factor=factor))
    assert exc.value.code == "E_INVALID_DURATION"
    assert exc.value.task == "A"


def test_non_positive_expedite_factor_is_invalid_duration():
    with pytest.raises(InvalidDuration):
        transform(_basic(), Scenario(expedited_ids=frozenset({"A"}), expedite_factor=0))


@pytest.mark.parametrize("factor", [0.5, 2, 3])
def test_linear_chain_scaling_law(factor):
    chain = [_t("a", 4), _t("b", 6, ["a"]), _t("c", 10, ["b"])]
    base = schedule(chain).fastest_completion
    scaled = schedule(transform(chain, Scenario(duration_factor=factor))).fastest_completion
    assert scaled == base * factor


def test_with_overrides_merges_ids():
    preset = Scenario(name="zone", duration_factor=0.75, removed_ids=frozenset({"B"}))
    s = preset.with_overrides(removed_ids=["C"], expedited_ids=["D"])
    assert s.name == "zone"
    assert s.duration_factor == 0.75
    assert s.removed_ids == frozenset({"B", "C"})
    assert s.expedited_ids == frozenset({"D"})
    assert preset.removed_ids == frozenset({"B"})
    assert preset.with_overrides(duration_factor=0.5).duration_factor == 0.5
