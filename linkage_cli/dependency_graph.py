"""Dependency paths and graphs produced by the graph builder."""

from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, Tuple

from .models import Artifact


def _identity(artifact: Artifact) -> Tuple[str, str, str, str, str]:
    return (artifact.group_id, artifact.artifact_id, artifact.extension, artifact.classifier, artifact.version)


class DependencyPath:
    """Artifacts from a root (first) to a resolved dependency (last, the leaf).

    Two paths are equal when they hold the same coordinates in the same order.
    """

    __slots__ = ("_artifacts", "_identity")

    def __init__(self, artifacts: Iterable[Artifact] = ()) -> None:
        self._artifacts: Tuple[Artifact, ...] = tuple(artifacts)
        self._identity = tuple(_identity(a) for a in self._artifacts)

    @property
    def artifacts(self) -> Tuple[Artifact, ...]:
        return self._artifacts

    @property
    def leaf(self) -> Artifact:
        if not self._artifacts:
            raise IndexError("Empty dependency path has no leaf")
        return self._artifacts[-1]

    @property
    def root(self) -> Artifact:
        if not self._artifacts:
            raise IndexError("Empty dependency path has no root")
        return self._artifacts[0]

    def size(self) -> int:
        return len(self._artifacts)

    def __len__(self) -> int:
        return len(self._artifacts)

    def __iter__(self) -> Iterator[Artifact]:
        return iter(self._artifacts)

    def __getitem__(self, index: int) -> Artifact:
        return self._artifacts[index]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DependencyPath):
            return NotImplemented
        return self._identity == other._identity

    def __hash__(self) -> int:
        return hash(self._identity)

    def __str__(self) -> str:
        return " / ".join(str(artifact) for artifact in self._artifacts)

    def __repr__(self) -> str:
        return f"DependencyPath({self})"


class DependencyGraph:
    """Dependency paths in discovery order, without duplicate paths."""

    def __init__(self, paths: Iterable[DependencyPath] = ()) -> None:
        self._paths: List[DependencyPath] = []
        self._seen: set = set()
        for path in paths:
            self.add_path(path)

    def add_path(self, path: DependencyPath) -> bool:
        """Record ``path`` unless an equal path is already present."""
        if path in self._seen:
            return False
        self._seen.add(path)
        self._paths.append(path)
        return True

    def list(self) -> List[DependencyPath]:
        return list(self._paths)

    def __len__(self) -> int:
        return len(self._paths)

    def __iter__(self) -> Iterator[DependencyPath]:
        return iter(self._paths)

    def __contains__(self, path: object) -> bool:
        return path in self._seen

    def get_paths(self, key: str) -> List[DependencyPath]:
        """Paths whose leaf is ``group:artifact`` (any version)."""
        return [path for path in self._paths if path.leaf.key == key]

    def get_versions(self) -> Dict[str, List[str]]:
        """Versions seen for each ``group:artifact``, in discovery order."""
        versions: Dict[str, List[str]] = {}
        for path in self._paths:
            seen = versions.setdefault(path.leaf.key, [])
            if path.leaf.version not in seen:
                seen.append(path.leaf.version)
        return versions

    def find_conflicts(self) -> List[DependencyPath]:
        """Paths to every artifact that appears in the graph at more than one version."""
        conflicting = {key for key, versions in self.get_versions().items() if len(versions) > 1}
        return [path for path in self._paths if path.leaf.key in conflicting]

    def __repr__(self) -> str:
        return f"DependencyGraph(paths={len(self._paths)})"
