"""Build dependency graphs for Maven coordinates.

Two policies are offered:

* :meth:`DependencyGraphBuilder.get_transitive_dependencies` applies
  nearest-wins mediation, so each ``group:artifact`` appears once, as the
  build tool would put it on the classpath;
* :meth:`DependencyGraphBuilder.get_complete_dependencies` keeps every path
  to every occurrence, exposing the versions mediation hid.

Both list paths breadth first: all roots, then every root's direct
dependencies in root order, then the next level, and so on.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Deque, Iterable, List, Optional, Union

from .dependency_graph import DependencyGraph, DependencyPath
from .models import Artifact, Dependency, DependencyNode
from .resolver import COMPILE_SCOPES, RUNTIME_SCOPES, DependencyResolver

logger = logging.getLogger(__name__)

ArtifactLike = Union[Artifact, str]


def _to_artifact(artifact: ArtifactLike) -> Artifact:
    if isinstance(artifact, Artifact):
        return artifact
    return Artifact.from_coordinates(artifact)


def _to_artifacts(artifacts: Union[ArtifactLike, Iterable[ArtifactLike]]) -> List[Artifact]:
    if isinstance(artifacts, (Artifact, str)):
        return [_to_artifact(artifacts)]
    return [_to_artifact(a) for a in artifacts]


def level_order(root: DependencyNode, graph: Optional[DependencyGraph] = None) -> DependencyGraph:
    """Record the path to every node of the tree, breadth first.

    A root without an artifact contributes no path of its own.
    """
    graph = graph if graph is not None else DependencyGraph()
    queue: Deque[DependencyNode] = deque([root] if root.artifact is not None else root.children)
    while queue:
        node = queue.popleft()
        graph.add_path(DependencyPath(node.path()))
        queue.extend(node.children)
    return graph


class DependencyGraphBuilder:
    """Entry point for direct, mediated and complete dependency listings."""

    def __init__(self, resolver: Optional[DependencyResolver] = None) -> None:
        self.resolver = resolver or DependencyResolver()

    def resolve_compile_time_root_dependencies(self, artifact: ArtifactLike) -> DependencyNode:
        """Compile-scope dependency tree of ``artifact`` with every archive resolved.

        Raises:
            ResolutionError: when any POM or archive in the tree is missing, a
                version range cannot be satisfied or a repository is unreachable.
        """
        root = self.resolver.collect(root=_to_artifact(artifact), scopes=COMPILE_SCOPES, strict=True)
        return self.resolver.resolve_artifacts(root)

    def get_direct_dependencies(self, artifact: ArtifactLike) -> List[Artifact]:
        """Compile-scope dependencies declared by ``artifact``, in declaration order."""
        root = self.resolver.collect(
            root=_to_artifact(artifact), scopes=COMPILE_SCOPES, max_depth=1, strict=True
        )
        return [child.artifact for child in root.children]

    def get_transitive_dependencies(self, artifacts: Union[ArtifactLike, Iterable[ArtifactLike]]) -> DependencyGraph:
        """Mediated graph: one path per ``group:artifact``, nearest occurrence first."""
        return self._build_graph(_to_artifacts(artifacts), mediate=True)

    def get_complete_dependencies(self, artifacts: Union[ArtifactLike, Iterable[ArtifactLike]]) -> DependencyGraph:
        """Unmediated graph: every path to every occurrence, no duplicate paths."""
        return self._build_graph(_to_artifacts(artifacts), mediate=False)

    def _build_graph(self, artifacts: List[Artifact], mediate: bool) -> DependencyGraph:
        roots = [Dependency(artifact) for artifact in artifacts]
        tree = self.resolver.collect(dependencies=roots, mediate=mediate, scopes=RUNTIME_SCOPES)
        graph = level_order(tree)
        logger.info(
            "%s graph for %s: %d paths",
            "Mediated" if mediate else "Complete",
            ", ".join(str(a) for a in artifacts),
            len(graph),
        )
        return graph
