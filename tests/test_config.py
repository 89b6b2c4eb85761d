"""Tests for the TOML configuration manager."""

from unittest.mock import MagicMock, patch

import requests
import toml

from linkage_cli import config, config_manager


def test_defaults_without_file(isolated_config):
    settings = config_manager.load_config()

    assert not isolated_config.exists()
    assert settings["repositories"]["urls"] == config.DEFAULT_REPOSITORY_URLS
    assert settings["resolver"]["timeout"] == config.DEFAULT_TIMEOUT
    assert settings["linkage"]["workers"] == 1


def test_file_overrides_defaults(isolated_config):
    isolated_config.parent.mkdir(parents=True)
    isolated_config.write_text('[resolver]\ntimeout = 5.0\n[linkage]\nworkers = 4\n', encoding="utf-8")

    settings = config_manager.load_config()

    assert settings["resolver"]["timeout"] == 5.0
    assert settings["resolver"]["local_repository"] == str(config.DEFAULT_LOCAL_REPOSITORY)
    assert settings["linkage"]["workers"] == 4


def test_malformed_file_falls_back_to_defaults(isolated_config, caplog):
    isolated_config.parent.mkdir(parents=True)
    isolated_config.write_text("[resolver\ntimeout = ", encoding="utf-8")

    assert config_manager.load_config() == config_manager.DEFAULT_CONFIG
    assert "Ignoring unreadable config" in caplog.text


def test_add_repository_keeps_order(isolated_config):
    assert config_manager.add_repository("https://repo.example.com/maven2/")
    assert config_manager.add_repository("https://repo.example.com/maven2/")

    saved = toml.load(isolated_config)
    assert saved["repositories"]["urls"] == [
        "https://repo1.maven.org/maven2/",
        "https://repo.example.com/maven2/",
    ]


def test_set_local_repository_and_reset(isolated_config, temp_dir):
    assert config_manager.set_local_repository(temp_dir / "m2")
    assert config_manager.load_config()["resolver"]["local_repository"] == str(temp_dir / "m2")

    assert config_manager.reset_config()
    assert not isolated_config.exists()
    assert config_manager.reset_config()


def test_configured_repositories_have_unique_ids(temp_dir):
    settings = {"repositories": {"urls": [
        "https://repo1.maven.org/maven2/",
        "https://mirror.example.com/a/",
        "https://mirror.example.com/b/",
        str(temp_dir),
    ]}}

    repositories = config_manager.configured_repositories(settings)

    assert [r.id for r in repositories][:2] == ["central", "mirror.example.com"]
    assert len({r.id for r in repositories}) == 4
    assert not repositories[3].is_http


def test_repository_system_from_config(temp_dir):
    settings = config_manager.load_config()
    settings["resolver"]["local_repository"] = str(temp_dir / "m2")
    settings["resolver"]["timeout"] = 3

    system = config_manager.repository_system_from_config(settings)

    assert system.local_repository == temp_dir / "m2"
    assert system.timeout == 3.0
    assert system.repositories[0].id == "central"


def test_validate_on_disk_repository(temp_dir):
    assert config_manager.validate_repository(str(temp_dir))
    assert config_manager.validate_repository(temp_dir.as_uri())
    assert not config_manager.validate_repository(str(temp_dir / "missing"))


def test_validate_remote_repository():
    ok = MagicMock(status_code=200)
    with patch("linkage_cli.config_manager.requests.head", return_value=ok) as head:
        assert config_manager.validate_repository("https://repo.example.com/maven2/")
    head.assert_called_once_with("https://repo.example.com/maven2/", timeout=5.0, allow_redirects=True)

    with patch("linkage_cli.config_manager.requests.head", return_value=MagicMock(status_code=503)):
        assert not config_manager.validate_repository("https://repo.example.com/maven2/")

    with patch(
        "linkage_cli.config_manager.requests.head", side_effect=requests.ConnectionError("refused")
    ):
        assert not config_manager.validate_repository("https://repo.example.com/maven2/")
