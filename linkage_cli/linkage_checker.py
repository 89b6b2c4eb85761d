"""Static linkage check over a set of jar files.

The checker collects every method a jar calls on classes outside itself and
then looks each of those methods up on a classpath made of the same jars, in
order.  References that no jar declares are reported as unresolved; at
runtime they would fail with ``NoSuchMethodError`` or
``NoClassDefFoundError``.

Only method references are checked.  Field and class references are not.
"""

from __future__ import annotations

import logging
import os
import threading
import zipfile
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Set, Union

from .class_dumper import declared_method_references, inner_class_names, method_references
from .classpath import (
    ClassFound,
    ClassNotFound,
    Classpath,
    ClasspathEntry,
    as_classpath,
    entry_to_class_name,
    list_top_level_class_names,
    read_class,
)
from .errors import ClassFormatError, UnreadableInputError
from .models import FullyQualifiedMethodSignature

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]


# ===================================================================
# Reference extraction
# ===================================================================

def list_external_method_references(archive_path: PathLike) -> List[FullyQualifiedMethodSignature]:
    """Methods called from classes in the archive on classes defined elsewhere.

    Top-level classes are found from the archive listing.  Each one is decoded
    together with its family of nested classes (found through the
    ``InnerClasses`` attribute); every family member's name becomes internal.
    Nested classes no family claims are scanned on their own afterwards.

    Raises:
        ClassFormatError: when a class in the archive cannot be decoded.
    """
    archive_path = Path(archive_path)
    internal_names: Set[str] = set()
    references: Dict[FullyQualifiedMethodSignature, None] = {}
    decoded: Set[str] = set()

    with zipfile.ZipFile(archive_path) as jar:
        available = {
            class_name
            for class_name in (entry_to_class_name(name) for name in jar.namelist())
            if class_name is not None
        }

        def scan_family(top_level_name: str) -> None:
            pending = [top_level_name]
            while pending:
                class_name = pending.pop()
                if class_name in decoded:
                    continue
                java_class = read_class(jar, class_name, source=str(archive_path))
                decoded.add(class_name)
                internal_names.add(java_class.class_name)
                nested = inner_class_names(java_class)
                internal_names.update(nested)
                for reference in method_references(java_class):
                    references.setdefault(reference, None)
                pending.extend(sorted(name for name in nested if name in available and name not in decoded))

        for class_name in list_top_level_class_names(archive_path):
            scan_family(class_name)
        for class_name in sorted(available - decoded):
            scan_family(class_name)

    external = [ref for ref in references if ref.class_name not in internal_names]
    logger.info(
        "%s: %d classes, %d method references, %d external",
        archive_path.name, len(decoded), len(references), len(external),
    )
    return external


# ===================================================================
# Resolution
# ===================================================================

class ResolutionContext:
    """Caches shared by one resolution pass.

    ``classes_not_found`` holds class names proven absent from the classpath;
    ``available_methods`` holds every method declared by classes that were
    found.  Writers take the lock, so a context may be shared by threads that
    resolve disjoint slices of the references.
    """

    def __init__(self) -> None:
        self.classes_not_found: Set[str] = set()
        self.available_methods: Set[FullyQualifiedMethodSignature] = set()
        self._lock = threading.Lock()

    def is_class_missing(self, class_name: str) -> bool:
        with self._lock:
            return class_name in self.classes_not_found

    def is_available(self, reference: FullyQualifiedMethodSignature) -> bool:
        with self._lock:
            return reference in self.available_methods

    def mark_class_missing(self, class_name: str) -> None:
        with self._lock:
            self.classes_not_found.add(class_name)

    def add_available(self, methods: Iterable[FullyQualifiedMethodSignature]) -> None:
        with self._lock:
            self.available_methods.update(methods)


def find_unresolved_references(
    classpath: Union[Classpath, Sequence[Union[PathLike, ClasspathEntry]]],
    references: Iterable[FullyQualifiedMethodSignature],
    context: Optional[ResolutionContext] = None,
) -> List[FullyQualifiedMethodSignature]:
    """Check each reference against the classpath and return those that do not resolve.

    A class whose bytes cannot be decoded counts as absent.

    Args:
        classpath: Archives in precedence order, or an open :class:`Classpath`.
        references: Method references to look up.
        context: Caches to reuse; a fresh one is used when omitted.

    Returns:
        Unresolved references, each at most once, in input order.
    """
    context = context or ResolutionContext()
    owned = not isinstance(classpath, Classpath)
    resolved_classpath = as_classpath(classpath)
    unresolved: Dict[FullyQualifiedMethodSignature, None] = {}

    try:
        for reference in references:
            class_name = reference.class_name

            # Case 1: the class is already known to be absent
            if context.is_class_missing(class_name):
                unresolved.setdefault(reference, None)
                continue
            # Case 2: the class was loaded before and declares the method
            if context.is_available(reference):
                continue

            # Case 3: look the class up through the classpath
            try:
                lookup = resolved_classpath.find_class(class_name)
            except ClassFormatError as exc:
                logger.debug("Treating undecodable class %s as missing: %s", class_name, exc)
                lookup = ClassNotFound(class_name)
            if isinstance(lookup, ClassFound):
                declared = declared_method_references(lookup.java_class)
                context.add_available(declared)
                if reference not in declared:
                    unresolved.setdefault(reference, None)
            else:
                unresolved.setdefault(reference, None)
                context.mark_class_missing(class_name)
    finally:
        if owned:
            resolved_classpath.close()

    return list(unresolved)


def _check_readable(path: Path) -> None:
    if not path.is_file() or not os.access(path, os.R_OK) or not zipfile.is_zipfile(path):
        raise UnreadableInputError(path)


def generate_static_linkage_report(
    archive_paths: Sequence[PathLike],
    workers: int = 1,
    boot_classpath: Sequence[PathLike] = (),
) -> List[FullyQualifiedMethodSignature]:
    """Run the static linkage check over ``archive_paths``.

    The archives are checked against each other: references are resolved on a
    classpath made of the same archives in the given order.  Archives in
    ``boot_classpath`` (a JDK ``rt.jar``, for example) are appended to the
    resolution classpath but are not scanned themselves.

    Raises:
        UnreadableInputError: when any archive is missing, unreadable or not a
            zip archive; no archive is scanned in that case.
    """
    paths = [Path(p) for p in archive_paths]
    boot_paths = [Path(p) for p in boot_classpath]
    for path in paths + boot_paths:
        _check_readable(path)

    if workers > 1 and len(paths) > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            per_archive = list(pool.map(list_external_method_references, paths))
    else:
        per_archive = [list_external_method_references(path) for path in paths]

    # two archives may call the same external method
    external: Dict[FullyQualifiedMethodSignature, None] = {}
    for references in per_archive:
        for reference in references:
            external.setdefault(reference, None)

    unresolved = find_unresolved_references(paths + boot_paths, list(external))
    logger.info(
        "Checked %d external references from %d archives: %d unresolved",
        len(external), len(paths), len(unresolved),
    )
    return unresolved
