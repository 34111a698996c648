"""
Reference extraction - which classes does compiled code use?

Two sources are supported:
  - compiled classes (file, directory or jar), analyzed directly
  - a reference graph previously written in DOT notation (jdeps ``-dotoutput``
    or ``depclinic find``), where ``"A" -> "B"`` means A references B
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterator, List, Optional, Set, Tuple

import pydot
from pyparsing import ParseBaseException

from .classfile import BytecodeAnalyzer
from .errors import MalformedReferenceGraphError

logger = logging.getLogger(__name__)

SUMMARY_DOT = "summary.dot"

_DECORATION = re.compile(r" \([^)]*\)")


def extract(path: str | Path, analyzer: Optional[BytecodeAnalyzer] = None) -> Set[str]:
    """All classes referenced by the compiled unit at ``path``."""
    return (analyzer or BytecodeAnalyzer()).referenced_classes(path)


def extract_api(path: str | Path, analyzer: Optional[BytecodeAnalyzer] = None) -> Set[str]:
    """Classes referenced from the externally visible surface of ``path``."""
    return (analyzer or BytecodeAnalyzer()).api_referenced_classes(path)


def clean_node_name(name: str) -> str:
    """Strip the decoration jdeps writes: ``"a.B (lib.jar)"`` -> ``a.B``."""
    return _DECORATION.sub("", name).replace('"', "")


def _unquote(node_id: str) -> str:
    if len(node_id) >= 2 and node_id[0] == node_id[-1] == '"':
        return node_id[1:-1].replace('\\"', '"')
    return node_id


def _graph_edges(graph: pydot.Graph) -> Iterator[Tuple[str, str]]:
    # subgraph bodies hold edges too
    for edge in graph.get_edge_list():
        yield _unquote(str(edge.get_source())), _unquote(str(edge.get_destination()))
    for sub in graph.get_subgraph_list():
        yield from _graph_edges(sub)


def parse_reference_graph(path: str | Path) -> List[Tuple[str, str]]:
    """Parse a DOT reference graph into (source, target) pairs, raw node ids."""
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise MalformedReferenceGraphError(p, None, str(e)) from e

    try:
        graphs = pydot.graph_from_dot_data(text)
    except ParseBaseException as e:
        raise MalformedReferenceGraphError(p, e.lineno, e.msg) from e
    if not graphs:
        raise MalformedReferenceGraphError(p, None, "no graph found")

    edges: List[Tuple[str, str]] = []
    for graph in graphs:
        edges.extend(_graph_edges(graph))
    return edges


def find_referenced_classes(path: str | Path) -> Set[str]:
    """All classes referenced (edge targets) in the given reference graph."""
    return {clean_node_name(target) for _, target in parse_reference_graph(path)}


def find_detailed_dot_reports(directory: str | Path) -> List[Path]:
    """Detailed reference graphs in a jdeps-style output directory.

    ``summary.dot`` only has archive-level edges and is ignored.
    """
    d = Path(directory)
    if not d.is_dir():
        logger.debug("No reference graph directory at %s", d)
        return []
    return sorted(f for f in d.glob("*.dot") if f.is_file() and f.name != SUMMARY_DOT)


def referenced_classes_in_directory(directory: str | Path) -> Set[str]:
    out: Set[str] = set()
    for dot_file in find_detailed_dot_reports(directory):
        out |= find_referenced_classes(dot_file)
    return out
