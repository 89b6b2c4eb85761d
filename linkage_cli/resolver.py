"""Dependency collection: turn root coordinates into a dependency tree.

Collection walks POM dependencies breadth first.  With mediation on, the
first occurrence of a ``group:artifact`` in breadth-first order wins (Maven's
"nearest wins"; declaration order breaks ties) and later occurrences are
dropped together with their subtrees.  With mediation off, every occurrence
is kept and expanded; only cycles are cut.

Rules applied while walking:

- a node's exclusions prune its whole subtree;
- dependency management declared by the root and by depth-1 nodes overrides
  versions and scopes from depth 2 on, the shallower declaration winning;
- ``runtime`` propagates down over ``compile``;
- only dependencies whose scope is in the requested set are kept;
- optional dependencies are followed unless ``follow_optional`` is off;
- a missing POM below the roots is logged and the node becomes a leaf,
  unless collection is strict.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, FrozenSet, List, Optional, Sequence, Tuple

from .errors import ArtifactNotFoundError, InvalidPomError, VersionConflictError
from .models import Artifact, Dependency, DependencyNode
from .pom import ModelBuilder, PomDependency
from .repository import RepositorySystem
from .versions import VersionRange, is_range

logger = logging.getLogger(__name__)

RUNTIME_SCOPES: FrozenSet[str] = frozenset({"compile", "runtime"})
COMPILE_SCOPES: FrozenSet[str] = frozenset({"compile"})


@dataclass(frozen=True)
class ArtifactDescriptor:
    """What an artifact's effective POM says about its dependencies."""

    artifact: Artifact
    dependencies: List[Dependency]
    managed: Dict[str, PomDependency] = field(default_factory=dict)


@dataclass
class _Pending:
    node: DependencyNode
    depth: int
    excluders: Tuple[Dependency, ...]
    management: Dict[str, PomDependency]
    declared: Optional[List[Dependency]] = None


def _derive_scope(parent_scope: Optional[str], scope: str) -> str:
    if parent_scope == "runtime" and scope == "compile":
        return "runtime"
    return scope


def _manage(dependency: Dependency, management: Dict[str, PomDependency]) -> Dependency:
    entry = management.get(dependency.key)
    if entry is None:
        return dependency
    artifact = dependency.artifact
    if entry.version and entry.version != artifact.version:
        logger.debug("Managed %s from %s to %s", dependency.key, artifact.version, entry.version)
        artifact = artifact.with_version(entry.version)
    exclusions = dependency.exclusions | frozenset(f"{g}:{a}" for g, a in entry.exclusions)
    return Dependency(artifact, entry.scope or dependency.scope, dependency.optional, exclusions)


class DependencyResolver:
    """Collects dependency trees and resolves their archives.

    Effective POM models are cached for the lifetime of the resolver.
    """

    def __init__(
        self,
        repository_system: Optional[RepositorySystem] = None,
        follow_optional: bool = True,
    ) -> None:
        self.repository_system = repository_system or RepositorySystem()
        self.follow_optional = follow_optional
        self.models = ModelBuilder(self.repository_system.read_pom)

    # ------------------------------------------------------------------
    # Descriptors and versions
    # ------------------------------------------------------------------

    def read_descriptor(self, artifact: Artifact) -> ArtifactDescriptor:
        model = self.models.build(artifact.group_id, artifact.artifact_id, artifact.version)
        managed: Dict[str, PomDependency] = {}
        for entry in model.dependency_management:
            if entry.version:
                managed.setdefault(f"{entry.group_id}:{entry.artifact_id}", entry)
        return ArtifactDescriptor(
            artifact=artifact,
            dependencies=[dep.to_dependency() for dep in model.dependencies],
            managed=managed,
        )

    def resolve_version(self, artifact: Artifact) -> Artifact:
        """Pin a version range to the highest published version inside it."""
        if not is_range(artifact.version):
            return artifact
        try:
            version_range = VersionRange.parse(artifact.version)
        except ValueError as exc:
            raise InvalidPomError(f"{artifact.key}: {exc}") from exc
        exact = version_range.exact_version
        if exact is not None:
            return artifact.with_version(exact)
        available = self.repository_system.list_versions(artifact.group_id, artifact.artifact_id)
        chosen = version_range.highest_match(available)
        if chosen is None:
            raise VersionConflictError(
                f"No versions available for {artifact.key} within range {artifact.version}"
            )
        logger.debug("Resolved %s %s to %s", artifact.key, artifact.version, chosen)
        return artifact.with_version(chosen)

    def _descriptor_or_empty(self, artifact: Artifact, strict: bool) -> ArtifactDescriptor:
        try:
            return self.read_descriptor(artifact)
        except (ArtifactNotFoundError, InvalidPomError) as exc:
            if strict:
                raise
            logger.warning("No dependency information available for %s: %s", artifact, exc)
            return ArtifactDescriptor(artifact, [])

    # ------------------------------------------------------------------
    # Collection
    # ------------------------------------------------------------------

    def collect(
        self,
        root: Optional[Artifact] = None,
        dependencies: Sequence[Dependency] = (),
        *,
        mediate: bool = True,
        scopes: FrozenSet[str] = RUNTIME_SCOPES,
        max_depth: Optional[int] = None,
        strict: bool = False,
    ) -> DependencyNode:
        """Collect a dependency tree breadth first.

        Args:
            root: Artifact whose own POM supplies the first level.  When
                omitted, ``dependencies`` become the first level under a root
                node without an artifact.
            dependencies: First-level dependencies for a root-less collection.
            mediate: Apply nearest-wins mediation.
            scopes: Scopes to keep.
            max_depth: Stop after this many levels below the root.
            strict: Raise on any missing or invalid POM instead of only for
                the roots.

        Raises:
            ResolutionError: when a root cannot be read, a version range has
                no match, or a repository cannot be reached.
        """
        queue: Deque[_Pending] = deque()
        seen: set = set()
        if root is not None:
            root = self.resolve_version(root)
            root_node = DependencyNode(Dependency(root))
            seen.add(root.key)
            queue.append(_Pending(root_node, 0, (), {}))
        else:
            root_node = DependencyNode(None)
            queue.append(_Pending(root_node, 0, (), {}, declared=list(dependencies)))

        while queue:
            item = queue.popleft()
            node = item.node
            child_depth = item.depth + 1
            if max_depth is not None and child_depth > max_depth:
                continue

            management = item.management
            declared = item.declared
            if declared is None:
                # user-supplied artifacts must have a readable POM
                is_root = item.depth == 0 or (root is None and item.depth == 1)
                descriptor = self._descriptor_or_empty(node.artifact, strict or is_root)
                declared = descriptor.dependencies
                if item.depth <= 1:
                    management = {**descriptor.managed, **management}

            parent_scope = node.dependency.scope if node.dependency else None

            for dependency in declared:
                if any(excluder.excludes(dependency.artifact) for excluder in item.excluders):
                    continue
                if child_depth >= 2:
                    dependency = _manage(dependency, management)
                    scope = _derive_scope(parent_scope, dependency.scope)
                else:
                    scope = dependency.scope
                if scope not in scopes:
                    continue
                if dependency.optional and child_depth >= 2 and not self.follow_optional:
                    continue
                if mediate:
                    if dependency.key in seen:
                        logger.debug("%s omitted for conflict (nearer occurrence wins)", dependency.artifact)
                        continue
                elif dependency.key in node.ancestor_keys():
                    logger.debug("%s omitted for cycle", dependency.artifact)
                    continue

                artifact = self.resolve_version(dependency.artifact)
                child_dependency = Dependency(artifact, scope, dependency.optional, dependency.exclusions)
                if mediate:
                    seen.add(child_dependency.key)
                child = DependencyNode(child_dependency, parent=node)
                node.children.append(child)
                queue.append(
                    _Pending(child, child_depth, item.excluders + (child_dependency,), management)
                )

        return root_node

    # ------------------------------------------------------------------
    # Artifact resolution
    # ------------------------------------------------------------------

    def resolve_artifacts(self, root: DependencyNode) -> DependencyNode:
        """Attach the archive file of every node in the tree.

        Raises:
            ArtifactNotFoundError: when any archive is missing.
        """
        for node in root.walk():
            if node.dependency is None:
                continue
            artifact = node.dependency.artifact
            if artifact.extension == "pom":
                continue
            resolved = self.repository_system.resolve_artifact(artifact)
            node.dependency = Dependency(
                resolved, node.dependency.scope, node.dependency.optional, node.dependency.exclusions
            )
        return root
