"""Graphviz DOT export for dependency graphs."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Tuple

from .dependency_graph import DependencyGraph, DependencyPath


def to_dot(graph: DependencyGraph, focus: str = "") -> str:
    nodes, edges = _collect(_focused_paths(graph, focus))
    conflicting = {path.leaf.key for path in graph.find_conflicts()}

    lines = ["digraph Dependencies {"]
    lines.append("  rankdir=LR;")
    for node_id, key in nodes.items():
        style = ' color="red"' if key in conflicting else ""
        lines.append(f'  "{_esc(node_id)}" [label="{_esc(node_id)}"{style}];')
    for src, dst in edges:
        lines.append(f'  "{_esc(src)}" -> "{_esc(dst)}";')
    lines.append("}")
    return "\n".join(lines)


def export_dot(graph: DependencyGraph, output_file: Path, focus: str = "") -> None:
    output_file.write_text(to_dot(graph, focus) + "\n", encoding="utf-8")


def _focused_paths(graph: DependencyGraph, focus: str) -> List[DependencyPath]:
    """Paths that pass through an artifact matching ``focus``; all paths when nothing matches."""
    if not focus:
        return graph.list()
    selected = [path for path in graph if any(focus in str(artifact) for artifact in path)]
    return selected or graph.list()


def _collect(paths: List[DependencyPath]) -> Tuple[Dict[str, str], List[Tuple[str, str]]]:
    nodes: Dict[str, str] = {}
    edges: Dict[Tuple[str, str], None] = {}
    for path in paths:
        previous = None
        for artifact in path:
            node_id = str(artifact)
            nodes.setdefault(node_id, artifact.key)
            if previous is not None:
                edges.setdefault((previous, node_id), None)
            previous = node_id
    return nodes, list(edges)


def _esc(text: str) -> str:
    return text.replace('"', '\\"')
