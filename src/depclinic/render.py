from __future__ import annotations

from typing import Tuple

from graphviz import Digraph, ExecutableNotFound

from .report import ReportContent

_COLORS = {
    "api": "#4CAF50",  # green
    "required": "#A5D6A7",  # light green
    "implicit": "#FFC107",  # amber
    "unused": "#F44336",  # red
}


def _category(name: str, content: ReportContent) -> str:
    if name in content.implicit_dependencies:
        return "implicit"
    if name in content.unused_dependencies:
        return "unused"
    if name in content.api_dependencies:
        return "api"
    return "required"


def render_report(
    content: ReportContent,
    project: str,
    output_base: str,
    fmt: str = "svg",
) -> Tuple[str, str]:
    """
    渲染依赖报告：项目 -> 依赖，颜色区分 api / required / implicit / unused。

    Returns (dot_path, rendered_path); rendered_path is "" when the Graphviz
    executable is not installed.
    """
    dot = Digraph(
        "dependencies",
        graph_attr={
            "rankdir": "LR",
            "splines": "spline",
            "label": f"Dependencies of {project}",
            "labelloc": "t",
        },
        node_attr={"shape": "box", "style": "rounded,filled", "fontname": "Helvetica"},
        edge_attr={"arrowhead": "vee"},
    )
    dot.node(project, label=project, fillcolor="#E3F2FD")

    names = sorted(set(content.all_dependencies) | set(content.unused_dependencies))
    for name in names:
        category = _category(name, content)
        # graphviz treats ':' in edge endpoints as a port separator
        node_id = name.replace(":", "/")
        dot.node(node_id, label=f"{name}\\n{category}", fillcolor=_COLORS[category])
        if category == "unused":
            dot.edge(project, node_id, color="#F44336", style="dashed")
        elif category == "implicit":
            dot.edge(project, node_id, color="#FF8F00", style="dotted")
        else:
            dot.edge(project, node_id, color="black", style="bold" if category == "api" else "solid")

    dot_path = f"{output_base}.dot"
    out_path = f"{output_base}.{fmt}"
    dot.save(dot_path)

    try:
        dot.render(output_base, format=fmt, cleanup=True)
    except ExecutableNotFound:
        # Only DOT written; caller should inform user
        out_path = ""
    return dot_path, out_path
