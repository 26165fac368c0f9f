from __future__ import annotations

from datetime import date, datetime
from typing import Any, Iterable, Iterator, Optional, Sequence, cast

from approval_timeline.core.errors import (
    CatalogValidationError,
    TimelineError,
    cycle_detected,
    invalid_duration,
    sort_errors,
    unknown_dependency,
)
from approval_timeline.core.model import PRIORITY_RANK, Catalog, Priority, Task, ValidatedTaskSet


def _is_list_of_str(v: Any) -> bool:
    return isinstance(v, list) and all(isinstance(x, str) for x in v)


def _is_positive_int(v: Any) -> bool:
    return isinstance(v, int) and not isinstance(v, bool) and v > 0


def parse_catalog(
    catalog: dict[str, Any], *, file: Optional[str] = None
) -> tuple[Optional[Catalog], list[TimelineError]]:
    """Turn a raw catalog mapping into typed tasks.

    Returns (catalog, errors). Catalog is None when errors exist. `file` is
    stamped on the catalog and on every error. Graph-level checks (unknown
    dependencies, cycles) are left to validate_tasks.
    """

    errors: list[TimelineError] = []

    schema_version = catalog.get("schema_version")
    if not isinstance(schema_version, str) or not schema_version.strip():
        errors.append(
            CatalogValidationError(
                code="E_REQUIRED_FIELD",
                message="schema_version is required and must be a non-empty string",
                file=file,
                path="schema_version",
            )
        )

    reference_date: Optional[date] = None
    raw_date = catalog.get("reference_date")
    if isinstance(raw_date, datetime):
        reference_date = raw_date.date()
    elif isinstance(raw_date, date):
        reference_date = raw_date
    elif isinstance(raw_date, str):
        try:
            reference_date = date.fromisoformat(raw_date)
        except ValueError:
            errors.append(
                CatalogValidationError(
                    code="E_INVALID_TYPE",
                    message=f"reference_date must be an ISO date (YYYY-MM-DD), got {raw_date!r}",
                    file=file,
                    path="reference_date",
                )
            )
    elif raw_date is not None:
        errors.append(
            CatalogValidationError(
                code="E_INVALID_TYPE",
                message="reference_date must be an ISO date string",
                file=file,
                path="reference_date",
            )
        )

    raw_tasks = catalog.get("tasks")
    if not isinstance(raw_tasks, list):
        errors.append(
            CatalogValidationError(
                code="E_REQUIRED_FIELD",
                message="tasks is required and must be an array",
                file=file,
                path="tasks",
            )
        )
        return None, sort_errors(errors)

    tasks: list[Task] = []
    seen: set[str] = set()

    for i, raw in enumerate(raw_tasks):
        task_path = f"tasks[{i}]"
        if not isinstance(raw, dict):
            errors.append(
                CatalogValidationError(
                    code="E_INVALID_TYPE",
                    message="task must be an object",
                    file=file,
                    path=task_path,
                )
            )
            continue

        tid = raw.get("id")
        if not isinstance(tid, str) or not tid.strip():
            errors.append(
                CatalogValidationError(
                    code="E_REQUIRED_FIELD",
                    message="id is required and must be a non-empty string",
                    file=file,
                    path=f"{task_path}.id",
                )
            )
            continue

        if tid in seen:
            errors.append(
                CatalogValidationError(
                    code="E_DUPLICATE_ID",
                    message=f"duplicate task id: {tid}",
                    file=file,
                    path=f"{task_path}.id",
                )
            )
            continue

        name = raw.get("name", tid)
        if not isinstance(name, str) or not name.strip():
            errors.append(
                CatalogValidationError(
                    code="E_INVALID_TYPE",
                    message="name must be a non-empty string",
                    file=file,
                    path=f"{task_path}.name",
                )
            )
            continue

        duration = raw.get("duration_days")
        if not _is_positive_int(duration):
            errors.append(invalid_duration(tid, duration, file=file))
            continue

        deps = raw.get("dependencies", [])
        if deps is None:
            deps = []
        if not _is_list_of_str(deps):
            errors.append(
                CatalogValidationError(
                    code="E_INVALID_TYPE",
                    message="dependencies must be an array of strings",
                    file=file,
                    path=f"{task_path}.dependencies",
                )
            )
            continue

        authority = raw.get("authority", "")
        if authority is None:
            authority = ""
        if not isinstance(authority, str):
            errors.append(
                CatalogValidationError(
                    code="E_INVALID_TYPE",
                    message="authority must be a string",
                    file=file,
                    path=f"{task_path}.authority",
                )
            )
            continue

        priority = raw.get("priority", "medium")
        if not isinstance(priority, str) or priority not in PRIORITY_RANK:
            errors.append(
                CatalogValidationError(
                    code="E_INVALID_ENUM",
                    message=f"priority must be one of {list(PRIORITY_RANK)}",
                    file=file,
                    path=f"{task_path}.priority",
                )
            )
            continue

        seen.add(tid)
        tasks.append(
            Task(
                id=tid,
                name=name,
                duration_days=cast(int, duration),
                dependencies=tuple(cast(list[str], deps)),
                authority=authority,
                priority=cast(Priority, priority),
            )
        )

    if errors:
        return None, sort_errors(errors)

    return (
        Catalog(
            schema_version=cast(str, schema_version),
            tasks=tuple(tasks),
            reference_date=reference_date,
            file=file,
        ),
        [],
    )


def validate_tasks(
    tasks: Iterable[Task], *, file: Optional[str] = None
) -> tuple[Optional[ValidatedTaskSet], list[TimelineError]]:
    """Check that tasks form a schedulable DAG.

    Every dependency must resolve, durations must be positive integers and
    the dependency relation must be acyclic. Returns (validated, errors);
    validated is None when errors exist.
    """

    task_list = list(tasks)
    errors: list[TimelineError] = []

    by_id: dict[str, Task] = {}
    for i, t in enumerate(task_list):
        if t.id in by_id:
            errors.append(
                CatalogValidationError(
                    code="E_DUPLICATE_ID",
                    message=f"duplicate task id: {t.id}",
                    file=file,
                    path=f"tasks[{i}].id",
                )
            )
            continue
        by_id[t.id] = t

    for t in by_id.values():
        if not _is_positive_int(t.duration_days):
            errors.append(invalid_duration(t.id, t.duration_days, file=file))
        for dep in t.dependencies:
            if dep not in by_id:
                errors.append(unknown_dependency(t.id, dep, file=file))

    deps_by_id = {tid: [d for d in t.dependencies if d in by_id] for tid, t in by_id.items()}
    order, cycles = _topological_order(deps_by_id)
    for cycle in cycles:
        errors.append(cycle_detected(cycle, file=file))

    if errors:
        return None, sort_errors(errors)

    return ValidatedTaskSet(tasks=tuple(task_list), topological_order=tuple(order)), []


def require_valid(tasks: Sequence[Task] | ValidatedTaskSet) -> ValidatedTaskSet:
    """Return a validated set, raising the first error for invalid input."""
    if isinstance(tasks, ValidatedTaskSet):
        return tasks
    validated, errors = validate_tasks(tasks)
    if errors:
        raise errors[0]
    assert validated is not None
    return validated


def _topological_order(deps_by_id: dict[str, list[str]]) -> tuple[list[str], list[list[str]]]:
    """Iterative DFS with white/gray/black marking.

    Returns (order, cycles). `order` lists dependencies before dependents and
    is only meaningful when no cycles were found. Each cycle is reported once,
    starting and ending with the same id.
    """

    WHITE, GRAY, BLACK = 0, 1, 2
    state: dict[str, int] = {tid: WHITE for tid in deps_by_id}
    stack: list[str] = []
    order: list[str] = []
    cycles: list[list[str]] = []
    emitted: set[frozenset[str]] = set()

    for root in deps_by_id:
        if state[root] != WHITE:
            continue
        state[root] = GRAY
        stack.append(root)
        frames: list[tuple[str, Iterator[str]]] = [(root, iter(deps_by_id[root]))]
        while frames:
            u, pending = frames[-1]
            v = next(pending, None)
            if v is None:
                frames.pop()
                stack.pop()
                state[u] = BLACK
                order.append(u)
            elif state[v] == GRAY:
                # back-edge: u ... -> v closes a loop through v
                cycle = stack[stack.index(v):] + [v]
                key = frozenset(cycle)
                if key not in emitted:
                    emitted.add(key)
                    cycles.append(cycle)
            elif state[v] == WHITE:
                state[v] = GRAY
                stack.append(v)
                frames.append((v, iter(deps_by_id[v])))

    return order, cycles
