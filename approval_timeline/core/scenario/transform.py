from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from fractions import Fraction
from typing import Iterable, Iterator, Sequence

from approval_timeline.core.errors import invalid_duration
from approval_timeline.core.model import Task


DEFAULT_EXPEDITE_FACTOR = 0.7


@dataclass(frozen=True)
class Scenario:
    """A what-if pathway applied to a baseline task set.

    Removal runs first, then every remaining duration is multiplied by
    `duration_factor`, and expedited tasks additionally by `expedite_factor`.
    The product is rounded up once, never below one day.
    """

    name: str = "custom"
    duration_factor: float = 1.0
    expedited_ids: frozenset[str] = field(default_factory=frozenset)
    removed_ids: frozenset[str] = field(default_factory=frozenset)
    expedite_factor: float = DEFAULT_EXPEDITE_FACTOR
    inherit_dependencies: bool = False
    description: str = ""

    def with_overrides(
        self,
        *,
        duration_factor: float | None = None,
        expedited_ids: Iterable[str] = (),
        removed_ids: Iterable[str] = (),
        expedite_factor: float | None = None,
        inherit_dependencies: bool | None = None,
    ) -> "Scenario":
        return replace(
            self,
            duration_factor=self.duration_factor if duration_factor is None else duration_factor,
            expedited_ids=self.expedited_ids | frozenset(expedited_ids),
            removed_ids=self.removed_ids | frozenset(removed_ids),
            expedite_factor=self.expedite_factor if expedite_factor is None else expedite_factor,
            inherit_dependencies=(
                self.inherit_dependencies if inherit_dependencies is None else inherit_dependencies
            ),
        )


def transform(tasks: Sequence[Task], scenario: Scenario) -> list[Task]:
    """Derive a new task list from `tasks` under `scenario`.

    The baseline is never modified. Removed tasks disappear and references to
    them are dropped from the remaining tasks' dependencies (or replaced by the
    removed task's own dependencies when `inherit_dependencies` is set). Ids in
    the scenario that match no task are ignored.

    Raises InvalidDuration when a factor is not strictly positive.
    """

    scale = _factor(scenario.duration_factor)
    expedite = _factor(scenario.expedite_factor)
    if scale is None or expedite is None:
        bad = scenario.duration_factor if scale is None else scenario.expedite_factor
        first = next((t.id for t in tasks if t.id not in scenario.removed_ids), "")
        raise invalid_duration(first, bad)

    removed = scenario.removed_ids
    inherited = _inherited_dependencies(tasks, removed) if scenario.inherit_dependencies else {}

    out: list[Task] = []
    for t in tasks:
        if t.id in removed:
            continue

        deps: list[str] = []
        for dep in t.dependencies:
            replacement = inherited.get(dep, ()) if dep in removed else (dep,)
            for d in replacement:
                if d not in deps:
                    deps.append(d)

        factor = scale * expedite if t.id in scenario.expedited_ids else scale
        out.append(
            replace(
                t,
                duration_days=scaled_duration(t.duration_days, factor),
                dependencies=tuple(deps),
            )
        )
    return out


def scaled_duration(duration_days: int, factor: Fraction) -> int:
    return max(1, math.ceil(duration_days * factor))


def _factor(value: float) -> Fraction | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value) or value <= 0:
        return None
    # str() keeps 0.7 as 7/10 instead of its binary approximation
    return Fraction(str(value))


def _inherited_dependencies(tasks: Sequence[Task], removed: frozenset[str]) -> dict[str, tuple[str, ...]]:
    """Map each removed id to its nearest surviving ancestors."""

    by_id = {t.id: t for t in tasks}
    out: dict[str, tuple[str, ...]] = {}

    def merge(tid: str) -> tuple[str, ...]:
        acc: list[str] = []
        for dep in by_id[tid].dependencies:
            # removed deps still on the walk path (cycles) contribute nothing
            for c in out.get(dep, ()) if dep in removed else (dep,):
                if c not in acc:
                    acc.append(c)
        return tuple(acc)

    for root in (t.id for t in tasks if t.id in removed):
        if root in out:
            continue
        on_path = {root}
        frames: list[tuple[str, Iterator[str]]] = [(root, iter(by_id[root].dependencies))]
        while frames:
            tid, pending = frames[-1]
            dep = next(pending, None)
            if dep is None:
                frames.pop()
                on_path.discard(tid)
                out[tid] = merge(tid)
            elif dep in removed and dep in by_id and dep not in out and dep not in on_path:
                on_path.add(dep)
                frames.append((dep, iter(by_id[dep].dependencies)))
    return out
