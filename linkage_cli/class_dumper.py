"""Extract declared methods, method references and inner classes from decoded classes."""

from __future__ import annotations

import logging
from typing import List, Set

from .classfile import (
    INVOKE_OPCODES,
    JavaClass,
    internal_to_binary_name,
    iter_instructions,
)
from .models import FullyQualifiedMethodSignature, MethodSignature

logger = logging.getLogger(__name__)


def declared_methods(java_class: JavaClass) -> List[MethodSignature]:
    """Methods the class itself defines, constructors and static initializers included."""
    return [MethodSignature(method.name, method.descriptor) for method in java_class.methods]


def declared_method_references(java_class: JavaClass) -> List[FullyQualifiedMethodSignature]:
    """The declared methods of ``java_class`` bound to its own name."""
    return [
        FullyQualifiedMethodSignature(java_class.class_name, signature)
        for signature in declared_methods(java_class)
    ]


def method_references(java_class: JavaClass) -> List[FullyQualifiedMethodSignature]:
    """Every method called by an invoke instruction in any method of the class.

    Synthetic and bridge methods are scanned like any other.  The result is
    de-duplicated and keeps the order of first occurrence.  Calls on array
    types (``[I.clone()``) are dropped since no archive declares arrays.
    """
    pool = java_class.constant_pool
    references: List[FullyQualifiedMethodSignature] = []
    seen: Set[FullyQualifiedMethodSignature] = set()

    for method in java_class.methods:
        if method.code is None:
            continue
        for instruction in iter_instructions(method.code.code):
            if instruction.opcode not in INVOKE_OPCODES:
                continue
            owner, name, descriptor = pool.get_member_ref(instruction.u2())
            if owner.startswith("["):
                continue
            reference = FullyQualifiedMethodSignature.of(internal_to_binary_name(owner), name, descriptor)
            if reference not in seen:
                seen.add(reference)
                references.append(reference)

    logger.debug("%s references %d methods", java_class.class_name, len(references))
    return references


def inner_class_names(java_class: JavaClass) -> Set[str]:
    """Names from the ``InnerClasses`` attribute that belong to this class.

    An entry is kept when it has no outer class (local and anonymous classes)
    or when its outer class is ``java_class`` itself.  Entries naming another
    class's members only appear because this class refers to them.
    """
    pool = java_class.constant_pool
    names: Set[str] = set()
    for entry in java_class.inner_classes:
        if entry.outer_class_index > 0:
            outer_name = internal_to_binary_name(pool.get_class_name(entry.outer_class_index))
            if outer_name != java_class.class_name:
                continue
        names.add(internal_to_binary_name(pool.get_class_name(entry.inner_class_index)))
    return names
