"""Runtime configuration for the resolver.

Precedence, lowest first: ``Constants`` defaults, the YAML config file
(``resolver:`` and ``repositories:`` sections), then environment overrides.
The resulting ``ResolverConfig`` is passed explicitly to the resolver; no
module-level state is mutated.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml

from .constants import Constants, _load_yaml_config
from .errors import ConfigError

logger = logging.getLogger(__name__)

_ENV_OVERRIDES = {
    "DEPFETCH_REQUEST_TIMEOUT": "read_timeout",
    "DEPFETCH_CONNECT_TIMEOUT": "connect_timeout",
    "DEPFETCH_MAX_CONCURRENCY": "max_concurrency",
    "DEPFETCH_MAX_DOWNLOADS": "max_concurrent_downloads",
}


@dataclass(frozen=True)
class RepositorySpec:
    """A repository entry from configuration."""

    name: str
    url: str
    kind: str = "generic"


@dataclass(frozen=True)
class ResolverConfig:
    """Tunables consumed by the resolver, HTTP client and download manager."""

    connect_timeout: float = Constants.CONNECT_TIMEOUT
    read_timeout: float = Constants.READ_TIMEOUT
    retry_max: int = Constants.HTTP_RETRY_MAX
    max_concurrency: int = Constants.MAX_CONCURRENCY
    max_concurrent_downloads: int = Constants.MAX_CONCURRENT_DOWNLOADS
    max_parent_depth: int = Constants.MAX_PARENT_DEPTH
    excluded_scopes: Tuple[str, ...] = Constants.EXCLUDED_SCOPES
    include_optional: bool = False
    user_agent: str = Constants.USER_AGENT
    repositories: Tuple[RepositorySpec, ...] = field(default_factory=tuple)

    @classmethod
    def load(cls, path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> "ResolverConfig":
        """Build a config from the YAML file and environment.

        Args:
            path: Explicit config path; default locations are searched when omitted.
            environ: Environment mapping, ``os.environ`` by default.

        Raises:
            ConfigError: when a value has the wrong type or the file is unreadable.
        """
        try:
            data = _load_yaml_config(path)
        except OSError as exc:
            raise ConfigError(f"Cannot read config {path}: {exc}") from exc
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid config {path}: {exc}") from exc
        config = cls.from_mapping(data)
        return config.with_env(os.environ if environ is None else environ)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ResolverConfig":
        """Build a config from a parsed YAML/JSON mapping."""
        section = data.get("resolver") or {}
        if not isinstance(section, dict):
            raise ConfigError("'resolver' must be a mapping")

        values: Dict[str, Any] = {}
        for name in ("connect_timeout", "read_timeout"):
            if name in section:
                values[name] = _as_number(name, section[name])
        for name in ("retry_max", "max_concurrency", "max_concurrent_downloads", "max_parent_depth"):
            if name in section:
                values[name] = _as_positive_int(name, section[name])
        if "excluded_scopes" in section:
            scopes = section["excluded_scopes"]
            if not isinstance(scopes, list) or not all(isinstance(s, str) for s in scopes):
                raise ConfigError("'excluded_scopes' must be a list of strings")
            values["excluded_scopes"] = tuple(s.strip().lower() for s in scopes)
        if "include_optional" in section:
            values["include_optional"] = bool(section["include_optional"])
        if "user_agent" in section:
            values["user_agent"] = str(section["user_agent"])

        repositories = data.get("repositories")
        if repositories is not None:
            values["repositories"] = tuple(_parse_repositories(repositories))

        return cls(**values)

    def with_env(self, environ: Mapping[str, str]) -> "ResolverConfig":
        """Return a copy with ``DEPFETCH_*`` environment overrides applied."""
        overrides: Dict[str, Any] = {}
        for env_name, attr in _ENV_OVERRIDES.items():
            raw = environ.get(env_name)
            if raw is None or not raw.strip():
                continue
            if attr.endswith("timeout"):
                overrides[attr] = _as_number(env_name, raw)
            else:
                overrides[attr] = _as_positive_int(env_name, raw)
        if overrides:
            logger.debug("Applied environment overrides: %s", sorted(overrides))
            return replace(self, **overrides)
        return self


def _as_number(name: str, value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"'{name}' must be a number, got {value!r}") from exc
    if number <= 0:
        raise ConfigError(f"'{name}' must be positive, got {value!r}")
    return number


def _as_positive_int(name: str, value: Any) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"'{name}' must be an integer, got {value!r}") from exc
    if number < 1:
        raise ConfigError(f"'{name}' must be at least 1, got {value!r}")
    return number


def _parse_repositories(raw: Any) -> List[RepositorySpec]:
    if not isinstance(raw, list):
        raise ConfigError("'repositories' must be a list")
    specs = []
    for item in raw:
        if not isinstance(item, dict) or not item.get("url"):
            raise ConfigError(f"Repository entry needs a 'url': {item!r}")
        url = str(item["url"]).rstrip("/")
        name = str(item.get("name") or url)
        kind = str(item.get("kind") or "generic").lower()
        specs.append(RepositorySpec(name=name, url=url, kind=kind))
    return specs
