"""Ordered classpath over jar archives with first-match class lookup.

A :class:`Classpath` mirrors classloader precedence: entries are searched in
order and the first archive holding a class wins, so an earlier jar shadows a
later one.  Lookups return :class:`ClassFound` or :class:`ClassNotFound`
instead of raising for the expected "absent" case.
"""

from __future__ import annotations

import logging
import os
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, Iterator, List, Optional, Sequence, Union

from .classfile import JavaClass, binary_to_entry_name, parse_class

logger = logging.getLogger(__name__)

CLASS_SUFFIX = ".class"
_SKIPPED_CLASS_NAMES = {"module-info", "package-info"}


@dataclass(frozen=True)
class ClasspathEntry:
    """One archive on the classpath."""

    path: Path

    @classmethod
    def of(cls, location: Union[str, os.PathLike, "ClasspathEntry"]) -> "ClasspathEntry":
        if isinstance(location, ClasspathEntry):
            return location
        return cls(Path(location))

    def __str__(self) -> str:
        return str(self.path)


def entry_to_class_name(entry_name: str) -> Optional[str]:
    """Binary class name for an archive entry, or None for non-class entries.

    Multi-release overlays under ``META-INF/versions`` and the module/package
    descriptors are not classes a caller can link against by name.
    """
    if not entry_name.endswith(CLASS_SUFFIX) or entry_name.startswith("META-INF/"):
        return None
    stem = entry_name[: -len(CLASS_SUFFIX)]
    if stem.rsplit("/", 1)[-1] in _SKIPPED_CLASS_NAMES:
        return None
    return stem.replace("/", ".")


def is_top_level(class_name: str) -> bool:
    return "$" not in class_name.rsplit(".", 1)[-1]


class ArchiveClassNames:
    """Lazy, restartable sequence of the top-level class names stored in one archive.

    Only the archive's central directory is read; nothing is decoded.  Each
    iteration reopens the archive, so the sequence can be walked any number
    of times.
    """

    def __init__(self, archive: Union[str, os.PathLike]) -> None:
        self.archive = Path(archive)

    def __iter__(self) -> Iterator[str]:
        with zipfile.ZipFile(self.archive) as jar:
            for entry_name in jar.namelist():
                class_name = entry_to_class_name(entry_name)
                if class_name is None:
                    continue
                if not is_top_level(class_name):
                    continue
                yield class_name


def list_top_level_class_names(archive: Union[str, os.PathLike]) -> ArchiveClassNames:
    return ArchiveClassNames(archive)


# ===================================================================
# Lookup results
# ===================================================================

@dataclass(frozen=True)
class ClassFound:
    java_class: JavaClass
    entry: ClasspathEntry


@dataclass(frozen=True)
class ClassNotFound:
    class_name: str


ClassLookup = Union[ClassFound, ClassNotFound]


# ===================================================================
# Classpath
# ===================================================================

class Classpath:
    """Explicit ordered list of archives plus a first-match resolution function.

    Archives are opened lazily and kept open until :meth:`close`; use the
    classpath as a context manager.  Each archive's entry names are indexed
    once, so a miss never costs a decode.
    """

    def __init__(self, entries: Iterable[Union[str, os.PathLike, ClasspathEntry]]) -> None:
        self.entries: List[ClasspathEntry] = [ClasspathEntry.of(e) for e in entries]
        self._archives: Dict[ClasspathEntry, zipfile.ZipFile] = {}
        self._entry_names: Dict[ClasspathEntry, FrozenSet[str]] = {}

    def __enter__(self) -> "Classpath":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        for archive in self._archives.values():
            archive.close()
        self._archives.clear()
        self._entry_names.clear()

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[ClasspathEntry]:
        return iter(self.entries)

    def _open(self, entry: ClasspathEntry) -> zipfile.ZipFile:
        archive = self._archives.get(entry)
        if archive is None:
            archive = zipfile.ZipFile(entry.path)
            self._archives[entry] = archive
            self._entry_names[entry] = frozenset(archive.namelist())
        return archive

    def locate(self, class_name: str) -> Optional[ClasspathEntry]:
        """First entry holding ``class_name``, without decoding it."""
        entry_name = binary_to_entry_name(class_name)
        for entry in self.entries:
            self._open(entry)
            if entry_name in self._entry_names[entry]:
                return entry
        return None

    def find_class(self, class_name: str) -> ClassLookup:
        """Decode ``class_name`` from the first archive that holds it.

        Raises:
            ClassFormatError: when the winning archive's copy is corrupt;
                the linkage checker treats that class as absent.
        """
        entry = self.locate(class_name)
        if entry is None:
            logger.debug("Class %s not found on classpath", class_name)
            return ClassNotFound(class_name)
        entry_name = binary_to_entry_name(class_name)
        data = self._archives[entry].read(entry_name)
        return ClassFound(parse_class(data, source=f"{entry.path}!{entry_name}"), entry)


def read_class(archive: zipfile.ZipFile, class_name: str, source: str = "") -> JavaClass:
    """Decode one class from an open archive; corrupt data raises ClassFormatError."""
    entry_name = binary_to_entry_name(class_name)
    return parse_class(archive.read(entry_name), source=f"{source}!{entry_name}" if source else entry_name)


def as_classpath(entries: Union[Classpath, Sequence[Union[str, os.PathLike, ClasspathEntry]]]) -> Classpath:
    if isinstance(entries, Classpath):
        return entries
    return Classpath(entries)
