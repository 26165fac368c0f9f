from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from approval_timeline.core.scenario.transform import DEFAULT_EXPEDITE_FACTOR, Scenario


DEFAULT_SCENARIOS: dict[str, Scenario] = {
    # Baseline pathway: every step at its catalog duration.
    "standard": Scenario(
        name="standard",
        duration_factor=1.0,
        description="Full regulatory process with all approvals",
    ),
    "economic-zone": Scenario(
        name="economic-zone",
        duration_factor=0.75,
        description="Streamlined one-stop-service process, 25% faster",
    ),
    "export-zone": Scenario(
        name="export-zone",
        duration_factor=0.6,
        description="Export-oriented fast track, 40% faster",
    ),
}

_ALLOWED_KEYS = {
    "duration_factor",
    "expedite_factor",
    "expedited_ids",
    "removed_ids",
    "inherit_dependencies",
    "description",
}


class ScenarioConfigError(ValueError):
    pass


def load_scenario_file(path: str | Path) -> dict[str, Scenario]:
    """Load scenario presets from a YAML file.

    Format:
      <name>:
        duration_factor: 0.75
        expedite_factor: 0.7        # optional
        removed_ids: [step-a]       # optional
        expedited_ids: [step-b]     # optional
        inherit_dependencies: false # optional
        description: "..."          # optional
    """
    p = Path(path)
    raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ScenarioConfigError("scenario file must be a mapping of name -> scenario")

    out: dict[str, Scenario] = {}
    for k, v in raw.items():
        if not isinstance(k, str) or not k.strip():
            raise ScenarioConfigError("scenario names must be non-empty strings")
        name = k.strip()
        if v is None:
            v = {}
        if not isinstance(v, dict):
            raise ScenarioConfigError(f"scenario '{name}' must be a mapping")
        unknown = sorted(set(v) - _ALLOWED_KEYS)
        if unknown:
            raise ScenarioConfigError(f"scenario '{name}' has unknown keys: {', '.join(map(str, unknown))}")
        out[name] = Scenario(
            name=name,
            duration_factor=_positive_number(name, "duration_factor", v.get("duration_factor", 1.0)),
            expedite_factor=_positive_number(
                name, "expedite_factor", v.get("expedite_factor", DEFAULT_EXPEDITE_FACTOR)
            ),
            expedited_ids=_id_set(name, "expedited_ids", v.get("expedited_ids")),
            removed_ids=_id_set(name, "removed_ids", v.get("removed_ids")),
            inherit_dependencies=_bool(name, "inherit_dependencies", v.get("inherit_dependencies", False)),
            description=_text(name, "description", v.get("description", "")),
        )
    return out


def merged_scenarios(overrides: dict[str, Scenario] | None = None) -> dict[str, Scenario]:
    """Return DEFAULT_SCENARIOS merged with optional overrides.

    Overrides replace scenarios of the same name, and may add new ones.
    """
    merged = dict(DEFAULT_SCENARIOS)
    if overrides:
        merged.update(overrides)
    return merged


def load_and_merge(scenario_file: str | None) -> dict[str, Scenario]:
    if not scenario_file:
        return merged_scenarios()
    return merged_scenarios(load_scenario_file(scenario_file))


def _positive_number(name: str, key: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ScenarioConfigError(f"scenario '{name}' {key} must be a positive number")
    return float(value)


def _id_set(name: str, key: str, value: Any) -> frozenset[str]:
    if value is None:
        return frozenset()
    if not isinstance(value, list) or not all(isinstance(x, str) and x.strip() for x in value):
        raise ScenarioConfigError(f"scenario '{name}' {key} must be a list of task ids")
    return frozenset(x.strip() for x in value)


def _bool(name: str, key: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ScenarioConfigError(f"scenario '{name}' {key} must be true or false")
    return value


def _text(name: str, key: str, value: Any) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ScenarioConfigError(f"scenario '{name}' {key} must be a string")
    return value.strip()
