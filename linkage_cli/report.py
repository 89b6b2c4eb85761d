"""Plain-text renderings of linkage results and dependency graphs."""

from __future__ import annotations

from typing import List, Sequence

from .dependency_graph import DependencyGraph
from .models import DependencyNode, FullyQualifiedMethodSignature

NO_UNRESOLVED_HEADER = "There were no unresolved method references from the jar file(s) :"
UNRESOLVED_HEADER = "There were unresolved method references from the jar file(s):"


def format_method_reference(reference: FullyQualifiedMethodSignature) -> str:
    return (
        f"Class: '{reference.class_name}', method: '{reference.method_name}' "
        f"with descriptor {reference.descriptor}"
    )


def format_linkage_report(
    unresolved: Sequence[FullyQualifiedMethodSignature],
    archive_names: Sequence[str],
) -> str:
    """Report in the tool's stable text format (snapshot tests depend on it)."""
    if not unresolved:
        return NO_UNRESOLVED_HEADER + "[" + ", ".join(archive_names) + "]"
    lines = [UNRESOLVED_HEADER]
    lines.extend(format_method_reference(reference) for reference in unresolved)
    return "\n".join(lines) + "\n"


def format_dependency_graph(graph: DependencyGraph) -> str:
    return "\n".join(str(path) for path in graph)


def format_dependency_tree(root: DependencyNode, indent: str = "  ") -> str:
    lines: List[str] = []

    def visit(node: DependencyNode, level: int) -> None:
        if node.dependency is not None:
            label = str(node.dependency.artifact)
            if node.dependency.scope != "compile":
                label += f" [{node.dependency.scope}]"
            if node.dependency.optional:
                label += " (optional)"
            lines.append(indent * level + label)
            level += 1
        for child in node.children:
            visit(child, level)

    visit(root, 0)
    return "\n".join(lines)


def format_conflicts(graph: DependencyGraph) -> str:
    """Group conflicting paths under their ``group:artifact`` and versions."""
    versions = graph.get_versions()
    conflicting = graph.find_conflicts()
    if not conflicting:
        return "No version conflicts found."
    lines: List[str] = []
    for key in dict.fromkeys(path.leaf.key for path in conflicting):
        lines.append(f"{key}: {', '.join(versions[key])}")
        for path in graph.get_paths(key):
            lines.append(f"  {path}")
    return "\n".join(lines)
