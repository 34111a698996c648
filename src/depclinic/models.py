"""
依赖数据模型 - artifacts, resolved dependencies, configurations and the
classification result.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, Iterator, List, Optional, Set, Tuple

from .errors import BuildModelError

PROJECT_PREFIX = "project :"


@dataclass(frozen=True)
class Artifact:
    """A resolved binary unit (jar or classes directory).

    Two artifacts are equal when group/name/version/project/classifier match;
    the file location is not part of the identity.
    """

    group: str
    name: str
    version: str = ""
    project: Optional[str] = None
    classifier: str = ""
    file: Optional[Path] = field(default=None, compare=False)

    @property
    def is_project(self) -> bool:
        return self.project is not None

    @property
    def extension(self) -> str:
        """'jar' for jars, '' for directories and suffix-less files."""
        if self.file is None:
            return ""
        p = Path(self.file)
        if p.is_dir():
            return ""
        return p.suffix[1:] if p.suffix else ""

    @property
    def dependency_name(self) -> str:
        """Name as it appears in reports and build files."""
        if self.is_project:
            return f"{PROJECT_PREFIX}{self.project}"
        return f"{self.group}:{self.name}"

    @property
    def coordinates(self) -> str:
        if self.is_project:
            return self.dependency_name
        parts = [self.group, self.name]
        if self.version:
            parts.append(self.version)
        if self.classifier:
            parts.append(self.classifier)
        return ":".join(parts)

    def __str__(self) -> str:
        return self.coordinates


@dataclass(frozen=True)
class ResolvedDependency:
    """A module in the resolved graph, with its own artifacts and children."""

    group: str
    name: str
    version: str = ""
    project: Optional[str] = None
    module_artifacts: Tuple[Artifact, ...] = ()
    children: Tuple["ResolvedDependency", ...] = ()

    @property
    def dependency_name(self) -> str:
        if self.project is not None:
            return f"{PROJECT_PREFIX}{self.project}"
        return f"{self.group}:{self.name}"

    def all_module_artifacts(self) -> List[Artifact]:
        """Artifacts of this module and every transitive child, each once."""
        out: List[Artifact] = []
        seen_deps: Set[int] = set()
        seen_artifacts: Set[Artifact] = set()
        stack = [self]
        while stack:
            dep = stack.pop()
            if id(dep) in seen_deps:
                continue
            seen_deps.add(id(dep))
            for a in dep.module_artifacts:
                if a not in seen_artifacts:
                    seen_artifacts.add(a)
                    out.append(a)
            stack.extend(reversed(dep.children))
        return out

    def walk(self) -> Iterator["ResolvedDependency"]:
        """This dependency and all transitive children (depth first, once each)."""
        seen: Set[str] = set()
        stack = [self]
        while stack:
            dep = stack.pop()
            key = f"{dep.dependency_name}:{dep.version}"
            if key in seen:
                continue
            seen.add(key)
            yield dep
            stack.extend(reversed(dep.children))


@dataclass(frozen=True)
class Configuration:
    """A dependency scope (compileClasspath, implementation, testImplementation, ...)."""

    name: str
    dependencies: Tuple[str, ...] = ()  # declared directly in this scope
    extends_from: Tuple[str, ...] = ()
    resolved: Tuple[ResolvedDependency, ...] = ()  # first-level resolved modules

    def resolved_artifacts(self) -> List[Artifact]:
        """All artifacts of the resolved graph, including transitives, each once."""
        out: List[Artifact] = []
        seen: Set[Artifact] = set()
        for dep in self.resolved:
            for a in dep.all_module_artifacts():
                if a not in seen:
                    seen.add(a)
                    out.append(a)
        return out


@dataclass
class BuildModel:
    """The resolved dependency graph of one build module."""

    project: str
    configurations: Dict[str, Configuration] = field(default_factory=dict)
    source: Optional[Path] = None

    def configuration(self, name: str) -> Configuration:
        try:
            return self.configurations[name]
        except KeyError:
            known = ", ".join(sorted(self.configurations)) or "<none>"
            raise BuildModelError(
                self.source or "<build model>", f"unknown configuration '{name}' (known: {known})"
            ) from None

    def hierarchy(self, name: str) -> List[Configuration]:
        """The configuration followed by every ancestor it extends from."""
        out: List[Configuration] = []
        seen: Set[str] = set()
        stack = [name]
        while stack:
            cur = stack.pop(0)
            if cur in seen:
                continue
            seen.add(cur)
            conf = self.configuration(cur)
            out.append(conf)
            stack.extend(conf.extends_from)
        return out

    def direct_dependency_names(self, name: str) -> Set[str]:
        """Names declared in exactly this configuration, not inherited ones."""
        return set(self.configuration(name).dependencies)

    def first_level_dependencies(self, name: str) -> List[ResolvedDependency]:
        return list(self.configuration(name).resolved)

    def dependency_names(self, name: str, include_parents: bool = True) -> Set[str]:
        if not include_parents:
            return self.direct_dependency_names(name)
        names: Set[str] = set()
        for conf in self.hierarchy(name):
            names |= self.direct_dependency_names(conf.name)
        return names

    def is_self(self, dependency_name: str) -> bool:
        return dependency_name == f"{PROJECT_PREFIX}{self.project}"


@dataclass(frozen=True)
class DependencySets:
    """Classification result.

    Invariants: implicit ⊆ required, api_required ⊆ required,
    unused ∩ required = ∅.
    """

    required: FrozenSet[str] = frozenset()
    api_required: FrozenSet[str] = frozenset()
    implicit: FrozenSet[str] = frozenset()
    unused: FrozenSet[str] = frozenset()
