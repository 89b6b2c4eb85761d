"""Access to Maven-layout repositories.

Remote repositories are reached over HTTP(S) with ``requests``; ``file://``
URLs and bare directories are read straight from disk.  POMs and archives
fetched from a remote are stored in the local repository (``~/.m2/repository``
by default) and read from there afterwards.  ``maven-metadata.xml`` is never
stored locally, so version lists are always current.
"""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence
from urllib.parse import urlparse
from urllib.request import url2pathname

import defusedxml.ElementTree as ET
import requests
from defusedxml import DefusedXmlException

from . import config
from .errors import ArtifactNotFoundError, RepositoryUnreachableError
from .models import Artifact

logger = logging.getLogger(__name__)

USER_AGENT = "linkage-cli"


@dataclass(frozen=True)
class RemoteRepository:
    id: str
    url: str

    @property
    def is_http(self) -> bool:
        return self.url.startswith(("http://", "https://"))

    def location(self, relative_path: str) -> str:
        return self.url.rstrip("/") + "/" + relative_path

    def local_directory(self) -> Path:
        parsed = urlparse(self.url)
        if parsed.scheme == "file":
            return Path(url2pathname(parsed.path))
        return Path(self.url)


MAVEN_CENTRAL = RemoteRepository("central", "https://repo1.maven.org/maven2/")


def repository_from_url(url: str, repo_id: Optional[str] = None) -> RemoteRepository:
    if repo_id is None:
        parsed = urlparse(url)
        repo_id = parsed.netloc or Path(parsed.path or url).name or "local"
    return RemoteRepository(repo_id, url)


def artifact_path(group_id: str, artifact_id: str, version: str, extension: str, classifier: str = "") -> str:
    """Relative path of a file in Maven repository layout."""
    suffix = f"-{classifier}" if classifier else ""
    return f"{group_id.replace('.', '/')}/{artifact_id}/{version}/{artifact_id}-{version}{suffix}.{extension}"


def metadata_path(group_id: str, artifact_id: str) -> str:
    return f"{group_id.replace('.', '/')}/{artifact_id}/maven-metadata.xml"


def parse_metadata_versions(data: bytes) -> List[str]:
    try:
        root = ET.fromstring(data)
    except (ET.ParseError, DefusedXmlException) as exc:
        logger.warning("Ignoring malformed maven-metadata.xml: %s", exc)
        return []
    versions = []
    for element in root.iter():
        tag = element.tag.split("}", 1)[-1] if isinstance(element.tag, str) else ""
        if tag == "version" and element.text and element.text.strip():
            versions.append(element.text.strip())
    return versions


class RepositorySystem:
    """Reads POMs, archives and version lists from an ordered list of repositories."""

    def __init__(
        self,
        repositories: Optional[Sequence[RemoteRepository]] = None,
        local_repository: Optional[Path] = None,
        timeout: float = config.DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.repositories: List[RemoteRepository] = list(repositories or [MAVEN_CENTRAL])
        self.local_repository = Path(local_repository or config.DEFAULT_LOCAL_REPOSITORY).expanduser()
        self.timeout = timeout
        self._session = session

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            self._session = requests.Session()
            self._session.headers["User-Agent"] = USER_AGENT
        return self._session

    def close(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def read_pom(self, group_id: str, artifact_id: str, version: str) -> bytes:
        relative = artifact_path(group_id, artifact_id, version, "pom")
        return self._fetch(relative, f"{group_id}:{artifact_id}:pom:{version}")

    def resolve_artifact(self, artifact: Artifact) -> Artifact:
        """Locate the artifact's archive on disk and attach its path.

        Archives in on-disk repositories are referenced in place; remote ones
        are downloaded into the local repository first.
        """
        relative = artifact_path(
            artifact.group_id, artifact.artifact_id, artifact.version, artifact.extension, artifact.classifier
        )
        cached = self.local_repository / relative
        if cached.is_file():
            return artifact.with_file(cached)

        for repository in self.repositories:
            if not repository.is_http:
                candidate = repository.local_directory() / relative
                if candidate.is_file():
                    return artifact.with_file(candidate)

        if not any(r.is_http for r in self.repositories):
            raise ArtifactNotFoundError(str(artifact), relative)
        self._fetch(relative, str(artifact))
        return artifact.with_file(cached)

    def list_versions(self, group_id: str, artifact_id: str) -> List[str]:
        """Versions published for ``group:artifact`` across all repositories, deduplicated."""
        relative = metadata_path(group_id, artifact_id)
        versions: List[str] = []
        failures = []
        for repository in self.repositories:
            try:
                data = self._get(repository, relative)
            except (requests.RequestException, OSError) as exc:
                failures.append(f"{repository.id}: {exc}")
                continue
            if data is None:
                continue
            for version in parse_metadata_versions(data):
                if version not in versions:
                    versions.append(version)
        if not versions and failures:
            raise RepositoryUnreachableError(
                f"Could not read versions of {group_id}:{artifact_id}: " + "; ".join(failures)
            )
        return versions

    # ------------------------------------------------------------------
    # Transfer
    # ------------------------------------------------------------------

    def _fetch(self, relative_path: str, coordinates: str) -> bytes:
        cached = self.local_repository / relative_path
        if cached.is_file():
            return cached.read_bytes()

        failures = []
        for repository in self.repositories:
            try:
                data = self._get(repository, relative_path)
            except (requests.RequestException, OSError) as exc:
                logger.warning("Could not transfer %s from %s: %s", coordinates, repository.id, exc)
                failures.append(f"{repository.id}: {exc}")
                continue
            if data is None:
                logger.debug("%s not found in %s", relative_path, repository.id)
                continue
            if repository.is_http:
                self._store(relative_path, data)
            return data

        if failures:
            raise RepositoryUnreachableError(f"Could not transfer {coordinates}: " + "; ".join(failures))
        raise ArtifactNotFoundError(coordinates, relative_path)

    def _get(self, repository: RemoteRepository, relative_path: str) -> Optional[bytes]:
        """Bytes of the file, or None when the repository does not have it."""
        if not repository.is_http:
            path = repository.local_directory() / relative_path
            return path.read_bytes() if path.is_file() else None

        url = repository.location(relative_path)
        logger.debug("GET %s", url)
        response = self.session.get(url, timeout=self.timeout)
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return response.content

    def _store(self, relative_path: str, data: bytes) -> None:
        target = self.local_repository / relative_path
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_name = tempfile.mkstemp(dir=target.parent, prefix=".part-")
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
            os.replace(temp_name, target)
        except OSError:
            if os.path.exists(temp_name):
                os.unlink(temp_name)
            raise
