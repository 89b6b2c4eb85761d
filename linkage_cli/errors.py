"""Typed failures raised by the linkage checker and the dependency resolver."""

from __future__ import annotations


class UnreadableInputError(OSError):
    """An input archive is missing or cannot be read."""

    def __init__(self, path) -> None:
        super().__init__(f"The file is not readable: {path}")
        self.path = path


class ClassFormatError(ValueError):
    """Raised when bytes cannot be decoded as a JVM class file."""


# ===================================================================
# Dependency resolution
# ===================================================================

class ResolutionError(Exception):
    """Base class for failures while collecting or resolving dependencies."""


class ArtifactNotFoundError(ResolutionError):
    """No configured repository holds the requested file."""

    def __init__(self, coordinates: str, path: str = "") -> None:
        message = f"Could not find artifact {coordinates}"
        if path:
            message += f" ({path})"
        super().__init__(message)
        self.coordinates = coordinates


class RepositoryUnreachableError(ResolutionError):
    """Every repository that might hold a file failed to answer."""


class VersionConflictError(ResolutionError):
    """A version constraint cannot be satisfied by any published version."""


class InvalidPomError(ResolutionError):
    """A POM could not be parsed or its model could not be built."""
