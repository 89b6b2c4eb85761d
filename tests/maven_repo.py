"""File-system Maven repositories for resolver tests."""

from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from jar_builder import write_jar


def dep(
    coordinates: str,
    scope: Optional[str] = None,
    optional: bool = False,
    exclusions: Sequence[str] = (),
    type: Optional[str] = None,
    classifier: Optional[str] = None,
) -> str:
    """XML for one ``<dependency>``; ``coordinates`` is ``g:a`` or ``g:a:v``."""
    parts = coordinates.split(":")
    xml = f"<dependency><groupId>{parts[0]}</groupId><artifactId>{parts[1]}</artifactId>"
    if len(parts) > 2:
        xml += f"<version>{parts[2]}</version>"
    if type:
        xml += f"<type>{type}</type>"
    if classifier:
        xml += f"<classifier>{classifier}</classifier>"
    if scope:
        xml += f"<scope>{scope}</scope>"
    if optional:
        xml += "<optional>true</optional>"
    if exclusions:
        xml += "<exclusions>"
        for exclusion in exclusions:
            group_id, artifact_id = exclusion.split(":")
            xml += f"<exclusion><groupId>{group_id}</groupId><artifactId>{artifact_id}</artifactId></exclusion>"
        xml += "</exclusions>"
    return xml + "</dependency>"


class MavenRepo:
    """A file-system repository in Maven layout."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.versions: Dict[Tuple[str, str], List[str]] = {}

    @property
    def url(self) -> str:
        return self.root.as_uri()

    def directory(self, group_id: str, artifact_id: str) -> Path:
        return self.root / group_id.replace(".", "/") / artifact_id

    def add(
        self,
        coordinates: str,
        dependencies: Iterable[str] = (),
        managed: Iterable[str] = (),
        parent: Optional[str] = None,
        properties: Optional[Dict[str, str]] = None,
        packaging: str = "jar",
        jar: bool = True,
        raw_pom: Optional[str] = None,
    ) -> Path:
        """Publish a POM (and an empty jar) for ``g:a:v``; returns the POM path."""
        group_id, artifact_id, version = coordinates.split(":")
        directory = self.directory(group_id, artifact_id) / version
        directory.mkdir(parents=True, exist_ok=True)
        pom_path = directory / f"{artifact_id}-{version}.pom"
        if raw_pom is None:
            raw_pom = self.pom_xml(
                group_id, artifact_id, version, dependencies, managed, parent, properties, packaging
            )
        pom_path.write_text(raw_pom, encoding="utf-8")
        if jar and packaging == "jar":
            write_jar(directory / f"{artifact_id}-{version}.jar")
        self._publish_version(group_id, artifact_id, version)
        return pom_path

    @staticmethod
    def pom_xml(
        group_id: str,
        artifact_id: str,
        version: str,
        dependencies: Iterable[str] = (),
        managed: Iterable[str] = (),
        parent: Optional[str] = None,
        properties: Optional[Dict[str, str]] = None,
        packaging: str = "jar",
    ) -> str:
        body = ""
        if parent:
            p_group, p_artifact, p_version = parent.split(":")
            body += (
                f"<parent><groupId>{p_group}</groupId><artifactId>{p_artifact}</artifactId>"
                f"<version>{p_version}</version></parent>"
            )
        body += f"<groupId>{group_id}</groupId><artifactId>{artifact_id}</artifactId><version>{version}</version>"
        body += f"<packaging>{packaging}</packaging>"
        if properties:
            body += "<properties>" + "".join(f"<{k}>{v}</{k}>" for k, v in properties.items()) + "</properties>"
        managed = list(managed)
        if managed:
            body += "<dependencyManagement><dependencies>" + "".join(managed) + "</dependencies></dependencyManagement>"
        dependencies = list(dependencies)
        if dependencies:
            body += "<dependencies>" + "".join(dependencies) + "</dependencies>"
        return (
            '<?xml version="1.0" encoding="UTF-8"?>\n'
            '<project xmlns="http://maven.apache.org/POM/4.0.0">'
            "<modelVersion>4.0.0</modelVersion>" + body + "</project>"
        )

    def _publish_version(self, group_id: str, artifact_id: str, version: str) -> None:
        versions = self.versions.setdefault((group_id, artifact_id), [])
        if version not in versions:
            versions.append(version)
        listing = "".join(f"<version>{v}</version>" for v in versions)
        metadata = (
            "<metadata><groupId>{}</groupId><artifactId>{}</artifactId>"
            "<versioning><versions>{}</versions></versioning></metadata>"
        ).format(group_id, artifact_id, listing)
        (self.directory(group_id, artifact_id) / "maven-metadata.xml").write_text(metadata, encoding="utf-8")
