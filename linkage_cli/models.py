"""Core value types shared by the linkage checker and the dependency graph builder."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import FrozenSet, List, Optional


# ===================================================================
# Method signatures
# ===================================================================

@dataclass(frozen=True)
class MethodSignature:
    """A method name plus its raw JVM descriptor, e.g. ``("add", "(II)I")``."""

    method_name: str
    descriptor: str

    def __str__(self) -> str:
        return f"{self.method_name}{self.descriptor}"


@dataclass(frozen=True)
class FullyQualifiedMethodSignature:
    """A method signature bound to the binary name of the class declaring it."""

    class_name: str
    method_signature: MethodSignature

    @classmethod
    def of(cls, class_name: str, method_name: str, descriptor: str) -> "FullyQualifiedMethodSignature":
        return cls(class_name, MethodSignature(method_name, descriptor))

    @property
    def method_name(self) -> str:
        return self.method_signature.method_name

    @property
    def descriptor(self) -> str:
        return self.method_signature.descriptor

    def __str__(self) -> str:
        return f"{self.class_name}.{self.method_signature}"


# ===================================================================
# Maven coordinates
# ===================================================================

@dataclass(frozen=True)
class Artifact:
    """A Maven coordinate. ``file`` is set once the archive has been resolved."""

    group_id: str
    artifact_id: str
    version: str
    extension: str = "jar"
    classifier: str = ""
    file: Optional[Path] = field(default=None, compare=False, hash=False)

    @classmethod
    def from_coordinates(cls, coordinates: str) -> "Artifact":
        """Parse ``group:artifact[:extension[:classifier]]:version``."""
        parts = coordinates.strip().split(":")
        if len(parts) == 3:
            group_id, artifact_id, version = parts
            extension, classifier = "jar", ""
        elif len(parts) == 4:
            group_id, artifact_id, extension, version = parts
            classifier = ""
        elif len(parts) == 5:
            group_id, artifact_id, extension, classifier, version = parts
        else:
            raise ValueError(
                f"Bad artifact coordinates {coordinates!r}, expected "
                "<groupId>:<artifactId>[:<extension>[:<classifier>]]:<version>"
            )
        if not (group_id and artifact_id and version and extension):
            raise ValueError(f"Bad artifact coordinates {coordinates!r}: empty component")
        return cls(group_id, artifact_id, version, extension, classifier)

    @property
    def key(self) -> str:
        """Version-less identity used for mediation: ``group:artifact``."""
        return f"{self.group_id}:{self.artifact_id}"

    def with_version(self, version: str) -> "Artifact":
        return Artifact(self.group_id, self.artifact_id, version, self.extension, self.classifier, self.file)

    def with_file(self, file: Path) -> "Artifact":
        return Artifact(self.group_id, self.artifact_id, self.version, self.extension, self.classifier, file)

    def __str__(self) -> str:
        if self.classifier:
            return f"{self.group_id}:{self.artifact_id}:{self.extension}:{self.classifier}:{self.version}"
        return f"{self.group_id}:{self.artifact_id}:{self.extension}:{self.version}"


@dataclass(frozen=True)
class Dependency:
    """An artifact as declared by a POM: scope, optional flag and exclusions."""

    artifact: Artifact
    scope: str = "compile"
    optional: bool = False
    exclusions: FrozenSet[str] = frozenset()

    @property
    def key(self) -> str:
        return self.artifact.key

    def excludes(self, artifact: Artifact) -> bool:
        """Exclusion keys may use ``*`` for either half, as Maven allows."""
        for pattern in self.exclusions:
            group_id, _, artifact_id = pattern.partition(":")
            if group_id in ("*", artifact.group_id) and artifact_id in ("*", artifact.artifact_id):
                return True
        return False


@dataclass(eq=False)
class DependencyNode:
    """One artifact occurrence in a collected dependency tree.

    The root of a multi-root collection has no dependency of its own.
    """

    dependency: Optional[Dependency]
    parent: Optional["DependencyNode"] = None
    children: List["DependencyNode"] = field(default_factory=list)

    @property
    def artifact(self) -> Optional[Artifact]:
        return self.dependency.artifact if self.dependency else None

    @property
    def depth(self) -> int:
        depth, node = 0, self.parent
        while node is not None:
            depth += 1
            node = node.parent
        return depth

    def path(self) -> List[Artifact]:
        """Artifacts from the outermost real ancestor down to this node."""
        artifacts: List[Artifact] = []
        node: Optional[DependencyNode] = self
        while node is not None:
            if node.artifact is not None:
                artifacts.append(node.artifact)
            node = node.parent
        artifacts.reverse()
        return artifacts

    def ancestor_keys(self) -> FrozenSet[str]:
        return frozenset(artifact.key for artifact in self.path())

    def walk(self):
        """Pre-order iteration over this node and its descendants."""
        yield self
        for child in self.children:
            yield from child.walk()

    def __repr__(self) -> str:
        label = str(self.artifact) if self.artifact else "<root>"
        return f"DependencyNode({label}, children={len(self.children)})"
