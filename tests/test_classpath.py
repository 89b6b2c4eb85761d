"""Tests for archive listing and ordered classpath lookup."""

from jar_builder import ClassFileBuilder
from linkage_cli.classpath import (
    ClassFound,
    ClassNotFound,
    Classpath,
    ClasspathEntry,
    entry_to_class_name,
    is_top_level,
    list_top_level_class_names,
)


def test_entry_to_class_name():
    assert entry_to_class_name("com/example/Foo.class") == "com.example.Foo"
    assert entry_to_class_name("com/example/Foo$Bar.class") == "com.example.Foo$Bar"
    assert entry_to_class_name("com/example/module-info.class") is None
    assert entry_to_class_name("module-info.class") is None
    assert entry_to_class_name("com/example/package-info.class") is None
    assert entry_to_class_name("META-INF/versions/9/com/example/Foo.class") is None
    assert entry_to_class_name("com/example/messages.properties") is None


def test_is_top_level():
    assert is_top_level("com.example.Foo")
    assert not is_top_level("com.example.Foo$Bar")
    assert is_top_level("com.ex$ample.Foo")


def test_list_top_level_class_names_is_restartable(make_jar):
    jar = make_jar(
        "lib.jar",
        ClassFileBuilder("com/example/Foo"),
        ClassFileBuilder("com/example/Foo$Inner"),
        ClassFileBuilder("com/example/Bar"),
        extra_entries={"com/example/data.txt": "hello"},
    )

    names = list_top_level_class_names(jar)

    assert sorted(names) == ["com.example.Bar", "com.example.Foo"]
    assert sorted(names) == ["com.example.Bar", "com.example.Foo"]


def test_first_entry_wins(make_jar):
    """An earlier archive shadows a later one holding the same class."""
    first = make_jar("first.jar", ClassFileBuilder("com/example/Foo").add_method("one"))
    second = make_jar("second.jar", ClassFileBuilder("com/example/Foo").add_method("two"))

    with Classpath([first, second]) as classpath:
        lookup = classpath.find_class("com.example.Foo")

    assert isinstance(lookup, ClassFound)
    assert lookup.entry == ClasspathEntry.of(first)
    assert [m.name for m in lookup.java_class.methods] == ["one"]


def test_later_entry_used_when_earlier_lacks_class(make_jar):
    first = make_jar("first.jar", ClassFileBuilder("com/example/Foo"))
    second = make_jar("second.jar", ClassFileBuilder("com/example/Bar"))

    with Classpath([first, second]) as classpath:
        assert classpath.locate("com.example.Bar") == ClasspathEntry.of(second)
        assert classpath.locate("com.example.Missing") is None


def test_missing_class_is_a_value(make_jar):
    jar = make_jar("lib.jar", ClassFileBuilder("com/example/Foo"))

    with Classpath([jar]) as classpath:
        lookup = classpath.find_class("com.example.Missing")

    assert lookup == ClassNotFound("com.example.Missing")


def test_close_releases_archives(make_jar):
    jar = make_jar("lib.jar", ClassFileBuilder("com/example/Foo"))
    classpath = Classpath([jar])
    classpath.find_class("com.example.Foo")

    classpath.close()

    assert classpath._archives == {}
    assert isinstance(classpath.find_class("com.example.Foo"), ClassFound)
    classpath.close()
