"""Configuration manager for linkage-cli using a TOML file.

Layout of ``config.toml``::

    [repositories]
    urls = ["https://repo1.maven.org/maven2/"]

    [resolver]
    local_repository = "~/.m2/repository"
    timeout = 30.0

    [linkage]
    workers = 1
"""

from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any, Dict, List

import requests
import toml

from . import config
from .repository import RemoteRepository, RepositorySystem, repository_from_url

logger = logging.getLogger(__name__)

CONFIG_FILE = config.CONFIG_FILE

DEFAULT_CONFIG: Dict[str, Dict[str, Any]] = {
    "repositories": {"urls": list(config.DEFAULT_REPOSITORY_URLS)},
    "resolver": {
        "local_repository": str(config.DEFAULT_LOCAL_REPOSITORY),
        "timeout": config.DEFAULT_TIMEOUT,
    },
    "linkage": {"workers": config.DEFAULT_WORKERS},
}


def load_full_config() -> Dict[str, Any]:
    """Load the TOML file as written, or an empty dict when it is absent or unreadable."""
    if not CONFIG_FILE.exists():
        return {}
    try:
        with open(CONFIG_FILE, "r", encoding="utf-8") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        logger.warning("Ignoring unreadable config %s: %s", CONFIG_FILE, exc)
        return {}


def load_config() -> Dict[str, Any]:
    """Defaults overlaid with every section of the TOML file.

    Returns:
        Configuration dictionary with ``repositories``, ``resolver`` and
        ``linkage`` sections always present.
    """
    merged = copy.deepcopy(DEFAULT_CONFIG)
    for section, values in load_full_config().items():
        if isinstance(values, dict):
            merged.setdefault(section, {}).update(values)
    return merged


def _save_full_config(settings: Dict[str, Any]) -> bool:
    """Write the entire config dict to the TOML file."""
    try:
        CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
        with open(CONFIG_FILE, "w", encoding="utf-8") as f:
            toml.dump(settings, f)
        return True
    except OSError as exc:
        logger.error("Could not write %s: %s", CONFIG_FILE, exc)
        return False


def add_repository(url: str) -> bool:
    """Append a repository URL, keeping the configured ones ahead of it.

    Returns:
        True if saved successfully (also when the URL was already present).
    """
    settings = load_full_config()
    urls = settings.setdefault("repositories", {}).get("urls") or list(config.DEFAULT_REPOSITORY_URLS)
    if url not in urls:
        urls.append(url)
    settings["repositories"]["urls"] = urls
    return _save_full_config(settings)


def set_local_repository(path: Path) -> bool:
    settings = load_full_config()
    settings.setdefault("resolver", {})["local_repository"] = str(path)
    return _save_full_config(settings)


def reset_config() -> bool:
    """Delete the config file so defaults apply again."""
    try:
        CONFIG_FILE.unlink()
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.error("Could not remove %s: %s", CONFIG_FILE, exc)
        return False
    return True


def configured_repositories(settings: Dict[str, Any]) -> List[RemoteRepository]:
    urls = settings.get("repositories", {}).get("urls") or config.DEFAULT_REPOSITORY_URLS
    repositories = []
    for index, url in enumerate(urls):
        repo_id = "central" if url.rstrip("/") == config.DEFAULT_REPOSITORY_URLS[0].rstrip("/") else None
        repository = repository_from_url(url, repo_id)
        if any(existing.id == repository.id for existing in repositories):
            repository = RemoteRepository(f"{repository.id}-{index}", url)
        repositories.append(repository)
    return repositories


def repository_system_from_config(settings: Dict[str, Any]) -> RepositorySystem:
    resolver_settings = settings.get("resolver", {})
    local = resolver_settings.get("local_repository")
    return RepositorySystem(
        repositories=configured_repositories(settings),
        local_repository=Path(local).expanduser() if local else None,
        timeout=float(resolver_settings.get("timeout", config.DEFAULT_TIMEOUT)),
    )


def validate_repository(url: str, timeout: float = 5.0) -> bool:
    """Check that a repository answers at all.

    On-disk repositories must be existing directories; remote ones must
    answer a HEAD request with anything but a server error.
    """
    repository = repository_from_url(url)
    if not repository.is_http:
        return repository.local_directory().is_dir()
    try:
        response = requests.head(url, timeout=timeout, allow_redirects=True)
    except requests.RequestException as exc:
        logger.debug("Repository %s unreachable: %s", url, exc)
        return False
    return response.status_code < 500
