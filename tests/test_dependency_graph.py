"""Tests for dependency paths, graphs and coordinates."""

import pytest

from linkage_cli.dependency_graph import DependencyGraph, DependencyPath
from linkage_cli.models import Artifact, Dependency, DependencyNode


def a(coordinates: str) -> Artifact:
    return Artifact.from_coordinates(coordinates)


class TestArtifact:
    def test_parse_three_part_coordinates(self):
        artifact = a("com.google.guava:guava:20.0")

        assert (artifact.group_id, artifact.artifact_id, artifact.version) == ("com.google.guava", "guava", "20.0")
        assert artifact.extension == "jar"
        assert artifact.key == "com.google.guava:guava"
        assert str(artifact) == "com.google.guava:guava:jar:20.0"

    def test_parse_extension_and_classifier(self):
        artifact = a("io.grpc:grpc-core:jar:tests:1.2.0")

        assert artifact.classifier == "tests"
        assert str(artifact) == "io.grpc:grpc-core:jar:tests:1.2.0"

    @pytest.mark.parametrize("bad", ["guava", "a:b", "a:b:c:d:e:f", "a::1.0"])
    def test_invalid_coordinates(self, bad):
        with pytest.raises(ValueError):
            a(bad)

    def test_file_does_not_affect_identity(self, temp_dir):
        plain = a("g:x:1.0")

        assert plain.with_file(temp_dir / "x.jar") == plain
        assert hash(plain.with_file(temp_dir / "x.jar")) == hash(plain)


class TestDependency:
    def test_exclusion_wildcards(self):
        dependency = Dependency(a("g:x:1"), exclusions=frozenset({"org.slf4j:*", "*:junit"}))

        assert dependency.excludes(a("org.slf4j:slf4j-api:1.7"))
        assert dependency.excludes(a("any.group:junit:4.12"))
        assert not dependency.excludes(a("org.other:lib:1"))


def test_dependency_node_path():
    root = DependencyNode(None)
    top = DependencyNode(Dependency(a("g:top:1")), parent=root)
    leaf = DependencyNode(Dependency(a("g:leaf:2")), parent=top)
    root.children.append(top)
    top.children.append(leaf)

    assert leaf.path() == [a("g:top:1"), a("g:leaf:2")]
    assert leaf.depth == 2
    assert leaf.ancestor_keys() == {"g:top", "g:leaf"}
    assert list(root.walk()) == [root, top, leaf]


class TestDependencyPath:
    def test_leaf_root_and_string(self):
        path = DependencyPath([a("g:root:1"), a("g:mid:2"), a("g:leaf:3")])

        assert path.root == a("g:root:1")
        assert path.leaf == a("g:leaf:3")
        assert path.size() == 3
        assert str(path) == "g:root:jar:1 / g:mid:jar:2 / g:leaf:jar:3"

    def test_equality_is_by_coordinates_in_order(self):
        first = DependencyPath([a("g:root:1"), a("g:leaf:3")])

        assert first == DependencyPath([a("g:root:1"), a("g:leaf:3")])
        assert first != DependencyPath([a("g:leaf:3"), a("g:root:1")])
        assert first != DependencyPath([a("g:root:1"), a("g:leaf:4")])

    def test_empty_path_has_no_leaf(self):
        with pytest.raises(IndexError):
            DependencyPath().leaf


class TestDependencyGraph:
    def test_duplicate_paths_are_dropped(self):
        graph = DependencyGraph()

        assert graph.add_path(DependencyPath([a("g:root:1")]))
        assert not graph.add_path(DependencyPath([a("g:root:1")]))
        assert len(graph) == 1

    def test_conflicts_only_for_multiple_versions(self):
        graph = DependencyGraph([
            DependencyPath([a("g:root:1")]),
            DependencyPath([a("g:root:1"), a("g:left:1")]),
            DependencyPath([a("g:root:1"), a("g:right:1")]),
            DependencyPath([a("g:root:1"), a("g:left:1"), a("g:shared:1.0")]),
            DependencyPath([a("g:root:1"), a("g:right:1"), a("g:shared:2.0")]),
            DependencyPath([a("g:root:1"), a("g:right:1"), a("g:left:1")]),
        ])

        assert graph.get_versions()["g:shared"] == ["1.0", "2.0"]
        assert graph.get_versions()["g:left"] == ["1"]
        assert [str(p.leaf) for p in graph.find_conflicts()] == ["g:shared:jar:1.0", "g:shared:jar:2.0"]
        assert len(graph.get_paths("g:left")) == 2
