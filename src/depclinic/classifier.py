"""
依赖分类器 - cross-references used classes against the class index and the
declared dependencies.

Groups dependencies into:
 * required - owning artifacts of every class the compiled code references
 * api - those used in the API of the given classes (public/protected
   members, superclasses, interfaces)
 * implicit - used but not declared in the given configurations.  Dependencies
   declared in a parent configuration count as declared: a project that lists
   a dependency in implementation and also uses it in test classes does not
   have to repeat it in testImplementation.
 * unused - declared but not used.  Only dependencies declared directly in the
   analyzed configurations are reported, the mirror image of the implicit rule:
   a dependency declared for main sources is not unused just because test
   sources don't touch it.

The project's own artifact never shows up in any group.  Ignore entries and
source-only configurations (compileOnly, annotationProcessor) exempt
dependencies from implicit/unused but never from required.
"""

from __future__ import annotations

import fnmatch
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Collection, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .artifact_index import ArtifactContentsCache, ClassIndex, populate_index
from .classfile import BytecodeAnalyzer
from .models import PROJECT_PREFIX, BuildModel, DependencySets, ResolvedDependency
from .references import extract, extract_api, referenced_classes_in_directory
from .report import ReportContent

logger = logging.getLogger(__name__)

API_DOT_SUBDIR = "api"


def matches_any(name: str, patterns: Iterable[str]) -> bool:
    """``group:artifact`` match against exact names or fnmatch patterns (``org.slf4j:*``)."""
    for pat in patterns:
        if name == pat or fnmatch.fnmatchcase(name, pat):
            return True
    return False


def referenced_dependencies(index: ClassIndex, classes: Iterable[str]) -> Set[str]:
    """Dependency names owning the given classes; unindexed classes are dropped."""
    names: Set[str] = set()
    for clazz in classes:
        artifact = index.class_to_dependency(clazz)
        if artifact is not None:
            names.add(artifact.dependency_name)
    return names


def classify_references(
    index: ClassIndex,
    used_classes: Iterable[str],
    api_classes: Iterable[str],
    declared: Collection[str],
    direct: Collection[str],
    self_names: Collection[str] = (),
    ignore_implicit: Sequence[str] = (),
    ignore_unused: Sequence[str] = (),
    source_only: Collection[str] = (),
) -> DependencySets:
    """The classification itself, free of any build-model plumbing."""
    api_required = referenced_dependencies(index, api_classes) - set(self_names)
    # API usage is usage
    required = (referenced_dependencies(index, used_classes) | api_required) - set(self_names)

    implicit = {
        d
        for d in required - set(declared)
        if d not in source_only and not matches_any(d, ignore_implicit)
    }
    # Only care about unused dependencies that are directly listed in the given
    # configurations, not ones that come from parent configurations.
    unused = {
        d
        for d in (set(declared) - required) & set(direct)
        if d not in self_names and d not in source_only and not matches_any(d, ignore_unused)
    }
    return DependencySets(
        required=frozenset(required),
        api_required=frozenset(api_required),
        implicit=frozenset(implicit),
        unused=frozenset(unused),
    )


@dataclass(frozen=True)
class UnusedDependency:
    name: str
    # transitive dependencies of `name` that are actually used
    did_you_mean: Tuple[str, ...] = ()


class DependencyClassifier:
    """Classifies the dependencies of one build module."""

    def __init__(
        self,
        model: BuildModel,
        configurations: Sequence[str],
        classpath_configuration: Optional[str] = None,
        ignore: Sequence[str] = (),
        ignore_implicit: Sequence[str] = (),
        ignore_unused: Sequence[str] = (),
        source_only_configurations: Sequence[str] = (),
        analyzer: Optional[BytecodeAnalyzer] = None,
        workers: Optional[int] = None,
        cache: Optional[ArtifactContentsCache] = None,
    ):
        if not configurations:
            raise ValueError("at least one configuration must be analyzed")
        self.model = model
        self.configurations = list(configurations)
        self.classpath_configuration = classpath_configuration or self.configurations[0]
        self.source_only_configurations = []
        for name in source_only_configurations:
            if name in model.configurations:
                self.source_only_configurations.append(name)
            else:
                logger.warning("Source-only configuration '%s' not in build model, skipping", name)
        for name in [*self.configurations, self.classpath_configuration]:
            model.configuration(name)
        self.ignore_implicit = [*ignore, *ignore_implicit]
        self.ignore_unused = [*ignore, *ignore_unused]
        self.analyzer = analyzer or BytecodeAnalyzer()
        self.workers = workers
        self.cache = cache

    # ---- declared sets ----
    def declared_names(self) -> Set[str]:
        """Declared in the analyzed configurations, including parent configurations."""
        names: Set[str] = set()
        for conf in self.configurations:
            names |= self.model.dependency_names(conf, include_parents=True)
        return names

    def direct_names(self) -> Set[str]:
        """Declared in exactly the analyzed configurations."""
        names: Set[str] = set()
        for conf in self.configurations:
            names |= self.model.direct_dependency_names(conf)
        return names

    def source_only_names(self) -> Set[str]:
        """Declared in source-only configurations, plus their first-level resolved modules.

        Transitives of e.g. an annotation processor are not exempt: guava pulled in
        by org.immutables:value is still implicit when main code uses it.
        """
        names: Set[str] = set()
        for conf in self.source_only_configurations:
            names |= self.model.dependency_names(conf, include_parents=True)
            names |= {d.dependency_name for d in self.model.first_level_dependencies(conf)}
        return names

    def self_names(self) -> Set[str]:
        return {f"{PROJECT_PREFIX}{self.model.project}"}

    # ---- index ----
    def build_index(self) -> ClassIndex:
        conf = self.model.configuration(self.classpath_configuration)
        return populate_index(
            conf.resolved_artifacts(),
            analyzer=self.analyzer,
            workers=self.workers,
            cache=self.cache,
            dependencies=conf.resolved,
        )

    # ---- classification ----
    def classify(
        self,
        used_classes: Iterable[str],
        api_classes: Iterable[str] = (),
        index: Optional[ClassIndex] = None,
    ) -> DependencySets:
        """Classify already extracted class references.

        An index built here is reset before returning; a caller-supplied one is
        left alone.
        """
        owned = index is None
        idx = self.build_index() if index is None else index
        try:
            sets = classify_references(
                idx,
                used_classes,
                api_classes,
                declared=self.declared_names(),
                direct=self.direct_names(),
                self_names=self.self_names(),
                ignore_implicit=self.ignore_implicit,
                ignore_unused=self.ignore_unused,
                source_only=self.source_only_names(),
            )
        finally:
            if owned:
                # clear the memory from the massive dependency map
                idx.reset()
        logger.info(
            "%s: %d required, %d api, %d implicit, %d unused",
            self.model.project,
            len(sets.required),
            len(sets.api_required),
            len(sets.implicit),
            len(sets.unused),
        )
        return sets

    def classify_classes(self, source_classes: str | Path, index: Optional[ClassIndex] = None) -> DependencySets:
        """Classify by analyzing compiled classes directly."""
        used = extract(source_classes, self.analyzer)
        api = extract_api(source_classes, self.analyzer)
        return self.classify(used, api, index=index)

    def classify_reference_graphs(self, dot_dir: str | Path, index: Optional[ClassIndex] = None) -> DependencySets:
        """Classify from DOT reference graphs: ``<dot_dir>/*.dot`` and ``<dot_dir>/api/*.dot``."""
        d = Path(dot_dir)
        used = referenced_classes_in_directory(d)
        api = referenced_classes_in_directory(d / API_DOT_SUBDIR)
        return self.classify(used, api, index=index)

    # ---- checks ----
    def find_unused(self, source_classes: str | Path) -> List[UnusedDependency]:
        """Unused declared dependencies, with used transitives suggested as replacements."""
        index = self.build_index()
        try:
            sets = self.classify_classes(source_classes, index=index)
            first_level: Dict[str, ResolvedDependency] = {}
            for dep in self.model.first_level_dependencies(self.classpath_configuration):
                first_level.setdefault(dep.dependency_name, dep)
        finally:
            index.reset()

        results: List[UnusedDependency] = []
        for name in sorted(sets.unused):
            dep = first_level.get(name)
            suggestions: Set[str] = set()
            if dep is not None:
                for artifact in dep.all_module_artifacts():
                    candidate = artifact.dependency_name
                    if candidate != name and candidate in sets.required:
                        suggestions.add(candidate)
            results.append(UnusedDependency(name, tuple(sorted(suggestions))))
        return results

    def find_implicit(self, source_classes: str | Path) -> List[str]:
        return sorted(self.classify_classes(source_classes).implicit)


def classify(
    model: BuildModel,
    configurations: Sequence[str],
    classpath_configuration: Optional[str] = None,
    source_classes: Optional[str | Path] = None,
    used_classes: Optional[Iterable[str]] = None,
    api_classes: Optional[Iterable[str]] = None,
    ignore: Sequence[str] = (),
    source_only: Sequence[str] = (),
    index: Optional[ClassIndex] = None,
    **kwargs,
) -> DependencySets:
    """Classify either compiled classes or already extracted class sets."""
    classifier = DependencyClassifier(
        model,
        configurations,
        classpath_configuration,
        ignore=ignore,
        source_only_configurations=source_only,
        **kwargs,
    )
    if source_classes is not None:
        return classifier.classify_classes(source_classes, index=index)
    return classifier.classify(used_classes or (), api_classes or (), index=index)


def analyze_report(classifier: DependencyClassifier, dot_dir: str | Path) -> ReportContent:
    """Report-task variant: reference graphs in, sorted report content out."""
    return ReportContent.from_sets(classifier.classify_reference_graphs(dot_dir))


# ---- suggestions ----


def is_project_dependency_name(name: str) -> bool:
    """We have a few different string representations of project dependency names."""
    return (
        name.startswith(PROJECT_PREFIX)
        or name.startswith("project (")
        # a colon in the name (when it doesn't start with "project") means group:name
        or ":" not in name
    )


def suggestion_string(name: str) -> str:
    """Turn a dependency name into a line for a gradle dependencies block."""
    if name.startswith(PROJECT_PREFIX):
        return f"implementation project(':{name[len(PROJECT_PREFIX):]}')"
    if is_project_dependency_name(name):
        return f"implementation project(':{name.lstrip(':')}')"
    return f"implementation '{name}'"


def format_unused_failure(unused: Sequence[UnusedDependency], configuration: str) -> str:
    lines = [
        f"Found {len(unused)} dependencies unused during compilation, please delete them from "
        f"'{configuration}' or choose one of the suggested alternatives:"
    ]
    for item in unused:
        lines.append(f"\t{item.name}")
        if item.did_you_mean:
            lines.append("\t\tDid you mean:")
            for alt in item.did_you_mean:
                lines.append(f"\t\t\t{suggestion_string(alt)}")
    return "\n".join(lines)


def format_implicit_failure(implicit: Sequence[str], configuration: str) -> str:
    block = "\n".join(f"        {suggestion_string(n)}" for n in sorted(implicit))
    return (
        f"Found {len(implicit)} implicit dependencies - consider adding the following explicit "
        f"dependencies to '{configuration}', or avoid using classes from these jars:\n"
        f"    dependencies {{\n{block}\n    }}"
    )
