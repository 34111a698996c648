"""
Reference graph writer.

Produces jdeps-style DOT output for compiled classes::

    <out>/<archive>.dot   one edge per (class, referenced class)
    <out>/summary.dot     archive -> artifact edges (only when an index is given)

Targets that resolve through a ClassIndex are decorated with the artifact
file name, e.g. ``"com.google.common.base.Strings (guava-28.0-jre.jar)"``;
readers strip the decoration again (see references.clean_node_name).
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Set, Tuple

from graphviz import Digraph

from .artifact_index import ClassIndex
from .classfile import BytecodeAnalyzer, ClassFileInfo
from .errors import ReportWriteError
from .references import SUMMARY_DOT

logger = logging.getLogger(__name__)


def _artifact_file_name(clazz: str, index: Optional[ClassIndex]) -> Optional[str]:
    if index is None:
        return None
    artifact = index.class_to_dependency(clazz)
    if artifact is None or artifact.file is None:
        return None
    return Path(artifact.file).name


def build_reference_graphs(
    classes: str | Path,
    api_only: bool = False,
    index: Optional[ClassIndex] = None,
    analyzer: Optional[BytecodeAnalyzer] = None,
) -> Tuple[Digraph, Digraph]:
    """Return (detailed, summary) graphs for the compiled classes at ``classes``."""
    analyzer = analyzer or BytecodeAnalyzer()
    archive = Path(classes).name or "classes"
    if f"{archive}.dot" == SUMMARY_DOT:
        archive = f"{archive}-classes"
    infos: List[ClassFileInfo] = sorted(analyzer.class_infos(classes), key=lambda i: i.name)

    detailed = Digraph(archive, comment=f"Path: {classes}")
    used_files: Set[str] = set()
    for info in infos:
        refs = info.api_references if api_only else info.references
        for ref in sorted(refs):
            file_name = _artifact_file_name(ref, index)
            if file_name:
                used_files.add(file_name)
                detailed.edge(info.name, f"{ref} ({file_name})")
            else:
                detailed.edge(info.name, ref)

    summary = Digraph("summary")
    for file_name in sorted(used_files):
        summary.edge(archive, file_name)
    return detailed, summary


def write_reference_graph(
    classes: str | Path,
    output_dir: str | Path,
    api_only: bool = False,
    index: Optional[ClassIndex] = None,
    analyzer: Optional[BytecodeAnalyzer] = None,
) -> Path:
    """Write the detailed graph and summary.dot under output_dir; returns the detailed file."""
    out = Path(output_dir)
    detailed, summary = build_reference_graphs(classes, api_only=api_only, index=index, analyzer=analyzer)
    target = out / f"{detailed.name}.dot"
    try:
        out.mkdir(parents=True, exist_ok=True)
        target.write_text(detailed.source, encoding="utf-8")
        (out / SUMMARY_DOT).write_text(summary.source, encoding="utf-8")
    except OSError as e:
        raise ReportWriteError(target, str(e)) from e
    logger.info("Wrote reference graph %s", target)
    return target
