"""
Loader for the resolved dependency graph exported by the build tool.

The file is YAML (or JSON)::

    project: my-service
    configurations:
      implementation:
        dependencies: [com.google.guava:guava]
      compileClasspath:
        extendsFrom: [implementation]
        resolved:
          - module: com.google.guava:guava:28.0-jre
            files: [libs/guava-28.0-jre.jar]
            dependencies:
              - module: com.google.guava:failureaccess:1.0.1
                files: [libs/failureaccess-1.0.1.jar]
          - project: other-lib
            files: [../other-lib/build/libs/other-lib.jar]

Relative file paths are resolved against the directory of the model file.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple

import yaml

from .errors import BuildModelError
from .models import PROJECT_PREFIX, Artifact, BuildModel, Configuration, ResolvedDependency

_PROJECT_CALL = re.compile(r"^project\s*\(\s*['\"]:?([^'\"]+)['\"]\s*\)$")


def normalize_dependency_name(name: str) -> str:
    """Bring the different spellings of a dependency to the report form.

    ``project(':foo')``, ``project :foo`` and ``:foo`` all become
    ``project :foo``; ``group:name:version`` is cut down to ``group:name``.
    """
    s = str(name).strip()
    m = _PROJECT_CALL.match(s)
    if m:
        return f"{PROJECT_PREFIX}{m.group(1)}"
    if s.startswith(PROJECT_PREFIX):
        return f"{PROJECT_PREFIX}{s[len(PROJECT_PREFIX):].lstrip(':')}"
    if s.startswith(":"):
        return f"{PROJECT_PREFIX}{s[1:]}"
    parts = s.split(":")
    if len(parts) >= 2:
        return f"{parts[0]}:{parts[1]}"
    return s


def load_build_model(path: str | Path) -> BuildModel:
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise BuildModelError(p, str(e)) from e
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise BuildModelError(p, f"not valid YAML/JSON: {e}") from e
    if not isinstance(data, dict):
        raise BuildModelError(p, "top level must be a mapping")
    return parse_build_model(data, base_dir=p.parent, source=p)


def parse_build_model(
    data: Dict[str, Any], base_dir: Optional[Path] = None, source: Optional[Path] = None
) -> BuildModel:
    where = source or Path("<build model>")
    base = base_dir or Path(".")

    project = data.get("project")
    if not isinstance(project, str) or not project.strip():
        raise BuildModelError(where, "'project' must be a non-empty string")

    raw_confs = data.get("configurations") or {}
    if not isinstance(raw_confs, dict):
        raise BuildModelError(where, "'configurations' must be a mapping")

    configurations: Dict[str, Configuration] = {}
    for conf_name, raw in raw_confs.items():
        raw = raw or {}
        if not isinstance(raw, dict):
            raise BuildModelError(where, f"configuration '{conf_name}' must be a mapping")
        declared = raw.get("dependencies") or []
        extends = raw.get("extendsFrom") or raw.get("extends_from") or []
        resolved = raw.get("resolved") or []
        if not isinstance(declared, list) or not isinstance(extends, list) or not isinstance(resolved, list):
            raise BuildModelError(
                where, f"configuration '{conf_name}': dependencies/extendsFrom/resolved must be lists"
            )
        configurations[str(conf_name)] = Configuration(
            name=str(conf_name),
            dependencies=tuple(normalize_dependency_name(d) for d in declared),
            extends_from=tuple(str(e) for e in extends),
            resolved=tuple(
                _parse_resolved(r, base, where, f"{conf_name}.resolved[{i}]", set())
                for i, r in enumerate(resolved)
            ),
        )

    # 校验 extendsFrom 指向已知配置
    for conf in configurations.values():
        for parent in conf.extends_from:
            if parent not in configurations:
                raise BuildModelError(where, f"configuration '{conf.name}' extends unknown '{parent}'")

    return BuildModel(project=project.strip(), configurations=configurations, source=source)


def _parse_module(coords: str) -> Tuple[str, str, str]:
    parts = coords.split(":")
    if len(parts) < 2 or not parts[0] or not parts[1]:
        raise ValueError(f"module '{coords}' is not group:name[:version]")
    version = parts[2] if len(parts) > 2 else ""
    return parts[0], parts[1], version


def _parse_resolved(
    raw: Any, base: Path, where: Path, ctx: str, active: Set[int]
) -> ResolvedDependency:
    if not isinstance(raw, dict):
        raise BuildModelError(where, f"{ctx}: expected a mapping")
    if id(raw) in active:
        raise BuildModelError(where, f"{ctx}: dependency cycle")
    active = active | {id(raw)}

    project = raw.get("project")
    if project is not None:
        name = str(project).strip().lstrip(":")
        if not name:
            raise BuildModelError(where, f"{ctx}: empty project name")
        group, version, project = "", "", name
    else:
        module = raw.get("module")
        if not isinstance(module, str):
            raise BuildModelError(where, f"{ctx}: needs 'module' or 'project'")
        try:
            group, name, version = _parse_module(module)
        except ValueError as e:
            raise BuildModelError(where, f"{ctx}: {e}") from e

    files = raw.get("files") or []
    if isinstance(files, str):
        files = [files]
    artifacts: List[Artifact] = []
    seen: Set[Artifact] = set()
    for f in files:
        if isinstance(f, dict):
            file_value, classifier = f.get("path"), str(f.get("classifier") or "")
        else:
            file_value, classifier = f, ""
        if not file_value:
            raise BuildModelError(where, f"{ctx}: empty file entry")
        fp = Path(str(file_value))
        if not fp.is_absolute():
            fp = base / fp
        art = Artifact(group=group, name=name, version=version, project=project, classifier=classifier, file=fp)
        if art in seen:
            raise BuildModelError(
                where, f"{ctx}: duplicate artifact {art}; give additional files a 'classifier'"
            )
        seen.add(art)
        artifacts.append(art)

    children = raw.get("dependencies") or []
    if not isinstance(children, list):
        raise BuildModelError(where, f"{ctx}: 'dependencies' must be a list")

    return ResolvedDependency(
        group=group,
        name=name,
        version=version,
        project=project,
        module_artifacts=tuple(artifacts),
        children=tuple(
            _parse_resolved(c, base, where, f"{ctx}.dependencies[{i}]", active) for i, c in enumerate(children)
        ),
    )
