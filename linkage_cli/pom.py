"""POM parsing and effective-model building.

The effective model of an artifact is assembled the way Maven assembles it,
restricted to what dependency collection needs:

1. the raw POM and its parent chain are fetched;
2. properties, dependencies and dependency management are inherited, the
   child's declarations winning over its parents';
3. ``${...}`` placeholders are interpolated from properties and
   ``project.*`` values;
4. ``import``-scoped BOMs are merged into dependency management;
5. dependency management fills in missing versions and scopes.

Profiles and relative parent paths are not evaluated.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Optional, Set, Tuple
from xml.etree.ElementTree import Element

import defusedxml.ElementTree as ET
from defusedxml import DefusedXmlException

from .errors import InvalidPomError
from .models import Artifact, Dependency

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\$\{([^}]+)\}")
_MAX_INTERPOLATION_PASSES = 10

# POM dependency types whose archive is a plain jar
_JAR_TYPES = {"jar", "bundle", "maven-plugin", "ejb", "ejb-client", "java-source", "javadoc"}

PomFetcher = Callable[[str, str, str], bytes]


@dataclass
class PomDependency:
    """A ``<dependency>`` element before it becomes a :class:`Dependency`."""

    group_id: str
    artifact_id: str
    version: Optional[str] = None
    type: str = "jar"
    classifier: str = ""
    scope: Optional[str] = None
    optional: bool = False
    exclusions: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def management_key(self) -> str:
        return f"{self.group_id}:{self.artifact_id}:{self.type}:{self.classifier}"

    def to_dependency(self) -> Dependency:
        extension, classifier = self.type, self.classifier
        if self.type == "test-jar":
            extension, classifier = "jar", classifier or "tests"
        elif self.type in _JAR_TYPES:
            extension = "jar"
        artifact = Artifact(self.group_id, self.artifact_id, self.version or "", extension, classifier)
        return Dependency(
            artifact,
            scope=self.scope or "compile",
            optional=self.optional,
            exclusions=frozenset(f"{g}:{a}" for g, a in self.exclusions),
        )


@dataclass
class ParentRef:
    group_id: str
    artifact_id: str
    version: str


@dataclass
class Pom:
    """A raw POM: values as written, placeholders not yet interpolated."""

    artifact_id: str
    group_id: Optional[str] = None
    version: Optional[str] = None
    packaging: str = "jar"
    parent: Optional[ParentRef] = None
    properties: Dict[str, str] = field(default_factory=dict)
    dependencies: List[PomDependency] = field(default_factory=list)
    dependency_management: List[PomDependency] = field(default_factory=list)


@dataclass
class EffectiveModel:
    group_id: str
    artifact_id: str
    version: str
    packaging: str
    properties: Dict[str, str]
    dependencies: List[PomDependency]
    dependency_management: List[PomDependency]


# ===================================================================
# Parsing
# ===================================================================

def _strip_namespaces(root: Element) -> Element:
    for element in root.iter():
        if isinstance(element.tag, str) and "}" in element.tag:
            element.tag = element.tag.split("}", 1)[1]
    return root


def _text(element: Optional[Element], path: str) -> Optional[str]:
    if element is None:
        return None
    child = element.find(path)
    if child is None or child.text is None:
        return None
    return child.text.strip()


def _parse_dependency(element: Element) -> Optional[PomDependency]:
    group_id = _text(element, "groupId")
    artifact_id = _text(element, "artifactId")
    if not group_id or not artifact_id:
        return None
    exclusions = []
    for exclusion in element.findall("exclusions/exclusion"):
        excluded_group = _text(exclusion, "groupId") or "*"
        excluded_artifact = _text(exclusion, "artifactId") or "*"
        exclusions.append((excluded_group, excluded_artifact))
    return PomDependency(
        group_id=group_id,
        artifact_id=artifact_id,
        version=_text(element, "version"),
        type=_text(element, "type") or "jar",
        classifier=_text(element, "classifier") or "",
        scope=_text(element, "scope"),
        optional=(_text(element, "optional") or "false").lower() == "true",
        exclusions=exclusions,
    )


def parse_pom(data: bytes, source: str = "") -> Pom:
    """Parse POM bytes into a raw :class:`Pom`.

    Raises:
        InvalidPomError: when the bytes are not XML or lack ``artifactId``.
    """
    try:
        root = _strip_namespaces(ET.fromstring(data))
    except (ET.ParseError, DefusedXmlException) as exc:
        raise InvalidPomError(f"Malformed POM {source}: {exc}") from exc
    if root.tag != "project":
        raise InvalidPomError(f"Malformed POM {source}: root element is <{root.tag}>")

    artifact_id = _text(root, "artifactId")
    if not artifact_id:
        raise InvalidPomError(f"Malformed POM {source}: missing artifactId")

    parent = None
    parent_element = root.find("parent")
    if parent_element is not None:
        parent_group = _text(parent_element, "groupId")
        parent_artifact = _text(parent_element, "artifactId")
        parent_version = _text(parent_element, "version")
        if not (parent_group and parent_artifact and parent_version):
            raise InvalidPomError(f"Malformed POM {source}: incomplete <parent>")
        parent = ParentRef(parent_group, parent_artifact, parent_version)

    properties = {}
    properties_element = root.find("properties")
    if properties_element is not None:
        for prop in properties_element:
            if isinstance(prop.tag, str):
                properties[prop.tag] = (prop.text or "").strip()

    dependencies = [
        dep for dep in (_parse_dependency(e) for e in root.findall("dependencies/dependency")) if dep
    ]
    managed = [
        dep
        for dep in (_parse_dependency(e) for e in root.findall("dependencyManagement/dependencies/dependency"))
        if dep
    ]

    return Pom(
        artifact_id=artifact_id,
        group_id=_text(root, "groupId"),
        version=_text(root, "version"),
        packaging=_text(root, "packaging") or "jar",
        parent=parent,
        properties=properties,
        dependencies=dependencies,
        dependency_management=managed,
    )


# ===================================================================
# Interpolation
# ===================================================================

def interpolate(value: Optional[str], context: Dict[str, str]) -> Optional[str]:
    """Replace ``${name}`` placeholders; unknown names are left untouched."""
    if value is None or "${" not in value:
        return value
    for _ in range(_MAX_INTERPOLATION_PASSES):
        expanded = _PLACEHOLDER.sub(lambda m: context.get(m.group(1), m.group(0)), value)
        if expanded == value:
            break
        value = expanded
    return value


def _interpolate_dependency(dep: PomDependency, context: Dict[str, str]) -> PomDependency:
    return replace(
        dep,
        group_id=interpolate(dep.group_id, context) or dep.group_id,
        artifact_id=interpolate(dep.artifact_id, context) or dep.artifact_id,
        version=interpolate(dep.version, context),
        type=interpolate(dep.type, context) or "jar",
        classifier=interpolate(dep.classifier, context) or "",
        scope=interpolate(dep.scope, context),
        exclusions=[
            (interpolate(g, context) or g, interpolate(a, context) or a) for g, a in dep.exclusions
        ],
    )


# ===================================================================
# Model building
# ===================================================================

class ModelBuilder:
    """Build and cache effective models using ``fetch_pom(group, artifact, version)``."""

    def __init__(self, fetch_pom: PomFetcher) -> None:
        self._fetch_pom = fetch_pom
        self._raw_cache: Dict[Tuple[str, str, str], Pom] = {}
        self._model_cache: Dict[Tuple[str, str, str], EffectiveModel] = {}
        self._in_progress: Set[Tuple[str, str, str]] = set()

    def raw(self, group_id: str, artifact_id: str, version: str) -> Pom:
        key = (group_id, artifact_id, version)
        pom = self._raw_cache.get(key)
        if pom is None:
            data = self._fetch_pom(group_id, artifact_id, version)
            pom = parse_pom(data, source=":".join(key))
            self._raw_cache[key] = pom
        return pom

    def _lineage(self, group_id: str, artifact_id: str, version: str) -> List[Pom]:
        """The POM followed by its ancestors, nearest first."""
        lineage = [self.raw(group_id, artifact_id, version)]
        visited = {(group_id, artifact_id, version)}
        while lineage[-1].parent is not None:
            parent = lineage[-1].parent
            key = (parent.group_id, parent.artifact_id, parent.version)
            if key in visited:
                raise InvalidPomError(f"Cycle in parent chain of {group_id}:{artifact_id}:{version}")
            visited.add(key)
            lineage.append(self.raw(*key))
        return lineage

    def build(self, group_id: str, artifact_id: str, version: str) -> EffectiveModel:
        key = (group_id, artifact_id, version)
        cached = self._model_cache.get(key)
        if cached is not None:
            return cached
        if key in self._in_progress:
            raise InvalidPomError(f"Cycle while importing {':'.join(key)}")
        self._in_progress.add(key)
        try:
            model = self._build(group_id, artifact_id, version)
        finally:
            self._in_progress.discard(key)
        self._model_cache[key] = model
        return model

    def _build(self, group_id: str, artifact_id: str, version: str) -> EffectiveModel:
        lineage = self._lineage(group_id, artifact_id, version)
        pom = lineage[0]

        properties: Dict[str, str] = {}
        dependencies: Dict[str, PomDependency] = {}
        managed: Dict[str, PomDependency] = {}
        for ancestor in lineage:
            for name, value in ancestor.properties.items():
                properties.setdefault(name, value)
            for dep in ancestor.dependencies:
                dependencies.setdefault(dep.management_key, dep)
            for dep in ancestor.dependency_management:
                managed.setdefault(dep.management_key, dep)

        project_group = pom.group_id or (pom.parent.group_id if pom.parent else group_id)
        project_version = pom.version or (pom.parent.version if pom.parent else version)
        context = dict(properties)
        builtins = {
            "groupId": project_group,
            "artifactId": pom.artifact_id,
            "version": project_version,
            "packaging": pom.packaging,
        }
        for name, value in builtins.items():
            context[f"project.{name}"] = value
            context[f"pom.{name}"] = value
            context.setdefault(name, value)
        if pom.parent is not None:
            context["project.parent.groupId"] = pom.parent.group_id
            context["project.parent.artifactId"] = pom.parent.artifact_id
            context["project.parent.version"] = pom.parent.version
        for name in list(properties):
            context[name] = interpolate(properties[name], context) or ""

        managed_list = [_interpolate_dependency(dep, context) for dep in managed.values()]
        management = self._import_boms(managed_list, f"{group_id}:{artifact_id}:{version}")

        resolved_dependencies = []
        for dep in dependencies.values():
            dep = _interpolate_dependency(dep, context)
            entry = management.get(dep.management_key)
            if entry is not None:
                dep = replace(
                    dep,
                    version=dep.version or entry.version,
                    scope=dep.scope or entry.scope,
                    exclusions=dep.exclusions + [e for e in entry.exclusions if e not in dep.exclusions],
                )
            if not dep.version:
                raise InvalidPomError(
                    f"{group_id}:{artifact_id}:{version}: "
                    f"dependencies.dependency.version for {dep.management_key} is missing"
                )
            resolved_dependencies.append(replace(dep, scope=dep.scope or "compile"))

        return EffectiveModel(
            group_id=project_group,
            artifact_id=pom.artifact_id,
            version=project_version,
            packaging=pom.packaging,
            properties=context,
            dependencies=resolved_dependencies,
            dependency_management=list(management.values()),
        )

    def _import_boms(self, managed: List[PomDependency], owner: str) -> Dict[str, PomDependency]:
        """Own management entries first, then those of imported BOMs in declaration order."""
        management: Dict[str, PomDependency] = {}
        imports: List[PomDependency] = []
        for dep in managed:
            if dep.scope == "import" and dep.type == "pom":
                imports.append(dep)
            else:
                management.setdefault(dep.management_key, dep)
        for bom in imports:
            if not bom.version:
                raise InvalidPomError(f"{owner}: imported BOM {bom.group_id}:{bom.artifact_id} has no version")
            logger.debug("%s imports BOM %s:%s:%s", owner, bom.group_id, bom.artifact_id, bom.version)
            imported = self.build(bom.group_id, bom.artifact_id, bom.version)
            for dep in imported.dependency_management:
                management.setdefault(dep.management_key, dep)
        return management
