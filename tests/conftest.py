"""Pytest configuration and fixtures for linkage-cli tests."""

import shutil
import tempfile
from pathlib import Path
from typing import Generator

import pytest

from jar_builder import ClassFileBuilder, write_jar
from maven_repo import MavenRepo
from linkage_cli import config_manager
from linkage_cli.graph_builder import DependencyGraphBuilder
from linkage_cli.repository import RemoteRepository, RepositorySystem
from linkage_cli.resolver import DependencyResolver


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def make_jar(temp_dir: Path):
    """Factory writing a jar of ``ClassFileBuilder`` classes into the temp dir."""

    def _make(name: str, *classes: ClassFileBuilder, extra_entries=None) -> Path:
        return write_jar(temp_dir / name, classes, extra_entries)

    return _make


@pytest.fixture
def maven_repo(temp_dir: Path) -> MavenRepo:
    root = temp_dir / "repo"
    root.mkdir()
    return MavenRepo(root)


@pytest.fixture
def repository_system(maven_repo: MavenRepo, temp_dir: Path) -> RepositorySystem:
    return RepositorySystem(
        repositories=[RemoteRepository("test", maven_repo.url)],
        local_repository=temp_dir / "m2",
    )


@pytest.fixture
def resolver(repository_system: RepositorySystem) -> DependencyResolver:
    return DependencyResolver(repository_system)


@pytest.fixture
def graph_builder(resolver: DependencyResolver) -> DependencyGraphBuilder:
    return DependencyGraphBuilder(resolver)


@pytest.fixture(autouse=True)
def isolated_config(temp_dir: Path, monkeypatch) -> Path:
    """Point the config manager at a throwaway config file."""
    config_file = temp_dir / "home" / "config.toml"
    monkeypatch.setattr(config_manager, "CONFIG_FILE", config_file)
    return config_file
