"""Tests for repository access over HTTP and from disk."""

from unittest.mock import MagicMock

import pytest
import requests

from linkage_cli.errors import ArtifactNotFoundError, RepositoryUnreachableError
from linkage_cli.models import Artifact
from linkage_cli.repository import (
    RemoteRepository,
    RepositorySystem,
    artifact_path,
    metadata_path,
    parse_metadata_versions,
    repository_from_url,
)

REMOTE = RemoteRepository("remote", "https://repo.example.com/maven2")
POM = b"<project><artifactId>x</artifactId></project>"


def _response(status_code=200, content=b""):
    response = MagicMock(status_code=status_code, content=content)
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status_code} error")
    return response


def _system(temp_dir, *responses, repositories=(REMOTE,)):
    session = MagicMock()
    session.get.side_effect = list(responses)
    return RepositorySystem(list(repositories), local_repository=temp_dir / "m2", timeout=7, session=session)


def test_layout_paths():
    assert artifact_path("com.google.guava", "guava", "20.0", "jar") == "com/google/guava/guava/20.0/guava-20.0.jar"
    assert artifact_path("g.h", "a", "1", "jar", "tests") == "g/h/a/1/a-1-tests.jar"
    assert metadata_path("com.google.guava", "guava") == "com/google/guava/guava/maven-metadata.xml"


def test_repository_ids():
    assert repository_from_url("https://repo.example.com/maven2/").id == "repo.example.com"
    assert repository_from_url("file:///srv/maven").id == "maven"
    assert repository_from_url("https://x/", "custom").id == "custom"


def test_parse_metadata_versions():
    data = (
        b'<metadata xmlns="http://maven.apache.org/METADATA/1.1.0"><versioning><versions>'
        b"<version>1.0</version><version> 1.1 </version></versions></versioning></metadata>"
    )

    assert parse_metadata_versions(data) == ["1.0", "1.1"]
    assert parse_metadata_versions(b"<metadata>") == []
    assert parse_metadata_versions(b"<!DOCTYPE m [<!ENTITY v \"1.0\">]><metadata><version>&v;</version></metadata>") == []


def test_pom_is_downloaded_once_and_cached(temp_dir):
    system = _system(temp_dir, _response(content=POM))

    assert system.read_pom("g.h", "x", "1.0") == POM
    assert system.read_pom("g.h", "x", "1.0") == POM

    system.session.get.assert_called_once_with(
        "https://repo.example.com/maven2/g/h/x/1.0/x-1.0.pom", timeout=7
    )
    assert (temp_dir / "m2" / "g/h/x/1.0/x-1.0.pom").read_bytes() == POM


def test_repositories_tried_in_order(temp_dir):
    second = RemoteRepository("second", "https://mirror.example.com/")
    system = _system(temp_dir, _response(404), _response(content=POM), repositories=(REMOTE, second))

    assert system.read_pom("g", "x", "1") == POM
    assert system.session.get.call_count == 2


def test_not_found_everywhere(temp_dir):
    system = _system(temp_dir, _response(404))

    with pytest.raises(ArtifactNotFoundError, match="g:x:pom:1"):
        system.read_pom("g", "x", "1")


def test_unreachable_repository(temp_dir):
    system = _system(temp_dir, requests.ConnectionError("refused"))

    with pytest.raises(RepositoryUnreachableError, match="remote"):
        system.read_pom("g", "x", "1")


def test_server_error_is_unreachable(temp_dir):
    system = _system(temp_dir, _response(500))

    with pytest.raises(RepositoryUnreachableError):
        system.read_pom("g", "x", "1")


def test_list_versions_merges_repositories(temp_dir):
    second = RemoteRepository("second", "https://mirror.example.com/")
    system = _system(
        temp_dir,
        _response(content=b"<metadata><versions><version>1.0</version><version>2.0</version></versions></metadata>"),
        _response(content=b"<metadata><versions><version>2.0</version><version>3.0</version></versions></metadata>"),
        repositories=(REMOTE, second),
    )

    assert system.list_versions("g", "x") == ["1.0", "2.0", "3.0"]


def test_list_versions_unreachable(temp_dir):
    system = _system(temp_dir, requests.Timeout("slow"))

    with pytest.raises(RepositoryUnreachableError):
        system.list_versions("g", "x")


def test_resolve_artifact_downloads_into_local_repository(temp_dir):
    system = _system(temp_dir, _response(content=b"PK"))

    resolved = system.resolve_artifact(Artifact("g", "x", "1"))

    assert resolved.file == temp_dir / "m2" / "g/x/1/x-1.jar"
    assert resolved.file.read_bytes() == b"PK"


def test_resolve_artifact_defaults_to_configured_local_repository(temp_dir, monkeypatch):
    monkeypatch.setattr("linkage_cli.config.DEFAULT_LOCAL_REPOSITORY", temp_dir / "default-m2")
    session = MagicMock()
    session.get.return_value = _response(content=b"PK")
    system = RepositorySystem([REMOTE], session=session)

    resolved = system.resolve_artifact(Artifact("g", "a", "1.0"))

    session.get.assert_called_once_with("https://repo.example.com/maven2/g/a/1.0/a-1.0.jar", timeout=30.0)
    assert resolved.file == temp_dir / "default-m2" / "g/a/1.0/a-1.0.jar"
    assert resolved.file.read_bytes() == b"PK"


def test_resolve_artifact_from_disk_repository(temp_dir):
    jar = temp_dir / "repo" / "g/x/1/x-1.jar"
    jar.parent.mkdir(parents=True)
    jar.write_bytes(b"PK")
    system = RepositorySystem([RemoteRepository("disk", str(temp_dir / "repo"))], local_repository=temp_dir / "m2")

    assert system.resolve_artifact(Artifact("g", "x", "1")).file == jar
    with pytest.raises(ArtifactNotFoundError):
        system.resolve_artifact(Artifact("g", "y", "1"))


def test_close_drops_session(temp_dir):
    system = _system(temp_dir)
    session = system.session

    system.close()

    session.close.assert_called_once_with()
    assert system._session is None
