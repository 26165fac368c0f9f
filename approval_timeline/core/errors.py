from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class TimelineError(Exception):
    """Base error envelope. Validators return these; loaders and the engine raise them."""

    code: str
    message: str
    file: Optional[str] = None
    path: Optional[str] = None

    def __str__(self) -> str:
        parts: list[str] = []
        if self.file:
            parts.append(self.file)
        if self.path:
            parts.append(self.path)
        loc = ":".join(parts) if parts else "<catalog>"
        return f"{loc}: {self.code}: {self.message}"


class CatalogLoadError(TimelineError):
    pass


class CatalogValidationError(TimelineError):
    pass


@dataclass(frozen=True)
class CatalogRejected(TimelineError):
    """A catalog file that decoded but failed shape checks; `errors` lists every problem."""

    errors: tuple[TimelineError, ...] = ()


class GraphError(TimelineError):
    pass


@dataclass(frozen=True)
class CycleDetected(GraphError):
    cycle: tuple[str, ...] = ()


@dataclass(frozen=True)
class UnknownDependency(GraphError):
    task: str = ""
    missing: str = ""


@dataclass(frozen=True)
class InvalidDuration(GraphError):
    task: str = ""


@dataclass(frozen=True)
class InvalidSimulationDay(TimelineError):
    day: int = 0


def cycle_detected(cycle: list[str], file: Optional[str] = None) -> CycleDetected:
    return CycleDetected(
        code="E_CYCLE_DETECTED",
        message="dependency cycle detected: " + " -> ".join(cycle),
        file=file,
        path=f"tasks[{cycle[0]}].dependencies",
        cycle=tuple(cycle),
    )


def unknown_dependency(task: str, missing: str, file: Optional[str] = None) -> UnknownDependency:
    return UnknownDependency(
        code="E_UNKNOWN_DEPENDENCY",
        message=f"dependencies references unknown id: {missing}",
        file=file,
        path=f"tasks[{task}].dependencies",
        task=task,
        missing=missing,
    )


def invalid_duration(task: str, value: object, file: Optional[str] = None) -> InvalidDuration:
    return InvalidDuration(
        code="E_INVALID_DURATION",
        message=f"duration_days must be a positive integer (got {value!r})",
        file=file,
        path=f"tasks[{task}].duration_days",
        task=task,
    )


def catalog_rejected(errors: list[TimelineError], file: Optional[str] = None) -> CatalogRejected:
    return CatalogRejected(
        code="E_CATALOG_REJECTED",
        message=f"catalog has {len(errors)} error(s)",
        file=file,
        errors=tuple(errors),
    )


def invalid_simulation_day(day: int) -> InvalidSimulationDay:
    return InvalidSimulationDay(
        code="E_INVALID_SIMULATION_DAY",
        message=f"current_day must be a non-negative integer (got {day!r})",
        path="current_day",
        day=day,
    )


def sort_errors(errors: list[TimelineError]) -> list[TimelineError]:
    return sorted(errors, key=lambda e: (e.file or "", e.path or "", e.code))
