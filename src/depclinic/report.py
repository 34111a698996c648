"""
依赖报告 - the persisted result of a dependency analysis.

The YAML layout is stable and diffable::

    allDependencies:
    - com.google.guava:guava
    apiDependencies: []
    implicitDependencies: []
    unusedDependencies:
    - org.slf4j:slf4j-api
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Tuple

import yaml

from .errors import ReportReadError, ReportWriteError
from .models import DependencySets

ALL_KEY = "allDependencies"
API_KEY = "apiDependencies"
IMPLICIT_KEY = "implicitDependencies"
UNUSED_KEY = "unusedDependencies"
# older reports call the full list "requiredDeps"
_ALIASES = {"requiredDeps": ALL_KEY}


def _sorted(names: Iterable[str]) -> Tuple[str, ...]:
    return tuple(sorted(set(names)))


@dataclass(frozen=True)
class ReportContent:
    all_dependencies: Tuple[str, ...] = ()
    api_dependencies: Tuple[str, ...] = ()
    implicit_dependencies: Tuple[str, ...] = ()
    unused_dependencies: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        # always sorted and de-duplicated, whatever the caller passed
        for name in ("all_dependencies", "api_dependencies", "implicit_dependencies", "unused_dependencies"):
            object.__setattr__(self, name, _sorted(getattr(self, name)))

    @classmethod
    def from_sets(cls, sets: DependencySets) -> "ReportContent":
        return cls(
            all_dependencies=tuple(sets.required),
            api_dependencies=tuple(sets.api_required),
            implicit_dependencies=tuple(sets.implicit),
            unused_dependencies=tuple(sets.unused),
        )

    def to_sets(self) -> DependencySets:
        return DependencySets(
            required=frozenset(self.all_dependencies),
            api_required=frozenset(self.api_dependencies),
            implicit=frozenset(self.implicit_dependencies),
            unused=frozenset(self.unused_dependencies),
        )

    def to_dict(self) -> Dict[str, List[str]]:
        return {
            ALL_KEY: list(self.all_dependencies),
            API_KEY: list(self.api_dependencies),
            IMPLICIT_KEY: list(self.implicit_dependencies),
            UNUSED_KEY: list(self.unused_dependencies),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReportContent":
        normalized: Dict[str, List[str]] = {}
        for key, value in (data or {}).items():
            key = _ALIASES.get(str(key), str(key))
            if value is None:
                value = []
            if not isinstance(value, list):
                raise ValueError(f"'{key}' must be a list, got {type(value).__name__}")
            normalized[key] = [str(v) for v in value]
        return cls(
            all_dependencies=tuple(normalized.get(ALL_KEY, [])),
            api_dependencies=tuple(normalized.get(API_KEY, [])),
            implicit_dependencies=tuple(normalized.get(IMPLICIT_KEY, [])),
            unused_dependencies=tuple(normalized.get(UNUSED_KEY, [])),
        )


def dump_report(content: ReportContent) -> str:
    return yaml.safe_dump(content.to_dict(), sort_keys=False, default_flow_style=False)


def write_report(path: str | Path, content: ReportContent) -> Path:
    """Write the report; the parent directory must already exist."""
    p = Path(path)
    try:
        p.write_text(dump_report(content), encoding="utf-8")
    except OSError as e:
        raise ReportWriteError(p, e.strerror or str(e)) from e
    return p


def load_report(path: str | Path) -> ReportContent:
    p = Path(path)
    try:
        data = yaml.safe_load(p.read_text(encoding="utf-8"))
    except OSError as e:
        raise ReportReadError(p, e.strerror or str(e)) from e
    except yaml.YAMLError as e:
        raise ReportReadError(p, f"invalid YAML: {e}") from e
    if data is None:
        return ReportContent()
    if not isinstance(data, dict):
        raise ReportReadError(p, "top level must be a mapping")
    try:
        return ReportContent.from_dict(data)
    except ValueError as e:
        raise ReportReadError(p, str(e)) from e
