"""Class <-> artifact index built from the resolved artifacts of a configuration."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from .classfile import BytecodeAnalyzer
from .errors import ClassFileError, UnresolvableArtifactError
from .models import Artifact, BuildModel, ResolvedDependency

logger = logging.getLogger(__name__)

# jars, plus "" for project class directories
VALID_ARTIFACT_EXTENSIONS = frozenset({"jar", ""})


class ArtifactContentsCache:
    """Caller-owned cache of artifact contents, shared across analysis runs.

    Jars are keyed by (path, size, mtime); directories are never cached since
    their contents change without touching the directory itself.
    """

    def __init__(self) -> None:
        self._entries: Dict[Tuple[str, int, int], FrozenSet[str]] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _key(path: Path) -> Optional[Tuple[str, int, int]]:
        try:
            if not path.is_file():
                return None
            st = path.stat()
        except OSError:
            return None
        return (str(path.resolve()), st.st_size, st.st_mtime_ns)

    def get(self, path: Path) -> Optional[FrozenSet[str]]:
        key = self._key(path)
        if key is None:
            return None
        with self._lock:
            return self._entries.get(key)

    def put(self, path: Path, classes: FrozenSet[str]) -> None:
        key = self._key(path)
        if key is None:
            return
        with self._lock:
            self._entries[key] = classes

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class ClassIndex:
    """Reverse (class -> artifact) and forward (artifact -> classes) maps.

    Populated once and read many times. When two artifacts provide the same
    class the one added last wins; this approximates classpath order and is
    not a model of real class loading.
    """

    def __init__(self) -> None:
        self.class_to_artifact: Dict[str, Artifact] = {}
        self.artifact_to_classes: Dict[Artifact, FrozenSet[str]] = {}
        self.artifact_to_dependency: Dict[Artifact, ResolvedDependency] = {}

    def add(self, artifact: Artifact, classes: Iterable[str]) -> None:
        contents = frozenset(classes)
        self.artifact_to_classes[artifact] = contents
        for clazz in contents:
            previous = self.class_to_artifact.get(clazz)
            if previous is not None and previous != artifact:
                logger.debug("Class %s provided by %s and %s, using the latter", clazz, previous, artifact)
            self.class_to_artifact[clazz] = artifact

    def register_dependencies(self, dependencies: Iterable[ResolvedDependency]) -> None:
        """Remember which resolved module each artifact came from."""
        for first_level in dependencies:
            for dep in first_level.walk():
                for artifact in dep.module_artifacts:
                    self.artifact_to_dependency.setdefault(artifact, dep)

    def class_to_dependency(self, clazz: str) -> Optional[Artifact]:
        """Given a class, returns the artifact that brought it in if known."""
        return self.class_to_artifact.get(clazz)

    def classes_from_artifact(self, artifact: Artifact) -> FrozenSet[str]:
        try:
            return self.artifact_to_classes[artifact]
        except KeyError:
            raise KeyError(f"Unable to find resolved artifact {artifact}") from None

    def dependency_of(self, artifact: Artifact) -> ResolvedDependency:
        try:
            return self.artifact_to_dependency[artifact]
        except KeyError:
            raise KeyError(f"Unable to find resolved dependency for artifact {artifact}") from None

    @property
    def artifacts(self) -> List[Artifact]:
        return list(self.artifact_to_classes)

    def reset(self) -> None:
        """Release the (potentially very large) maps."""
        self.class_to_artifact.clear()
        self.artifact_to_classes.clear()
        self.artifact_to_dependency.clear()

    def __len__(self) -> int:
        return len(self.class_to_artifact)

    def __contains__(self, clazz: object) -> bool:
        return clazz in self.class_to_artifact


def _analyze_artifact(
    artifact: Artifact, analyzer: BytecodeAnalyzer, cache: Optional[ArtifactContentsCache]
) -> FrozenSet[str]:
    if artifact.file is None:
        raise UnresolvableArtifactError(artifact.coordinates, None, "artifact has no file")
    path = Path(artifact.file)
    if cache is not None:
        hit = cache.get(path)
        if hit is not None:
            return hit
    try:
        classes = frozenset(analyzer.contained_classes(path))
    except (ClassFileError, OSError) as e:
        raise UnresolvableArtifactError(artifact.coordinates, path, str(e)) from e
    if cache is not None:
        cache.put(path, classes)
    logger.debug("Indexed %d classes from %s", len(classes), artifact)
    return classes


def populate_index(
    artifacts: Iterable[Artifact],
    analyzer: Optional[BytecodeAnalyzer] = None,
    workers: Optional[int] = None,
    cache: Optional[ArtifactContentsCache] = None,
    dependencies: Iterable[ResolvedDependency] = (),
    index: Optional[ClassIndex] = None,
) -> ClassIndex:
    """Analyze each artifact once and build the class index.

    Artifacts are analyzed concurrently and merged on the calling thread in
    input order, so the collision winner does not depend on thread timing.
    The first artifact that cannot be read aborts the whole run with
    UnresolvableArtifactError.
    """
    analyzer = analyzer or BytecodeAnalyzer()
    index = index if index is not None else ClassIndex()

    candidates: List[Artifact] = []
    seen = set()
    for artifact in artifacts:
        if artifact in seen:
            continue
        seen.add(artifact)
        if artifact.extension not in VALID_ARTIFACT_EXTENSIONS:
            logger.debug("Skipping %s: unsupported extension '%s'", artifact, artifact.extension)
            continue
        candidates.append(artifact)

    def analyze(artifact: Artifact) -> FrozenSet[str]:
        return _analyze_artifact(artifact, analyzer, cache)

    if workers == 1 or len(candidates) <= 1:
        for artifact in candidates:
            index.add(artifact, analyze(artifact))
    else:
        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="depclinic-index")
        try:
            for artifact, classes in zip(candidates, executor.map(analyze, candidates)):
                index.add(artifact, classes)
        finally:
            executor.shutdown(wait=True, cancel_futures=True)

    index.register_dependencies(dependencies)
    logger.info("Indexed %d classes from %d artifacts", len(index), len(candidates))
    return index


def index_configuration(
    model: BuildModel,
    configuration: str,
    analyzer: Optional[BytecodeAnalyzer] = None,
    workers: Optional[int] = None,
    cache: Optional[ArtifactContentsCache] = None,
) -> ClassIndex:
    """Index every artifact (including transitives) resolved by a configuration."""
    conf = model.configuration(configuration)
    return populate_index(
        conf.resolved_artifacts(),
        analyzer=analyzer,
        workers=workers,
        cache=cache,
        dependencies=conf.resolved,
    )
