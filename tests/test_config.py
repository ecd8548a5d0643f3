"""Tests for configuration loading and precedence."""

import pytest

from depfetch.config import RepositorySpec, ResolverConfig
from depfetch.constants import Constants
from depfetch.errors import ConfigError


class TestResolverConfigDefaults:
    """Tests for built-in defaults."""

    def test_defaults_match_constants(self):
        """Ensure an empty config uses the constant defaults."""
        config = ResolverConfig()
        assert config.connect_timeout == Constants.CONNECT_TIMEOUT
        assert config.read_timeout == Constants.READ_TIMEOUT
        assert config.retry_max == 2
        assert config.excluded_scopes == ("test", "provided")
        assert config.include_optional is False
        assert config.repositories == ()


class TestResolverConfigLoad:
    """Tests for YAML and environment layering."""

    def test_yaml_file(self, tmp_path):
        """Ensure the resolver and repositories sections are read."""
        path = tmp_path / "depfetch.yml"
        path.write_text(
            "resolver:\n"
            "  read_timeout: 7.5\n"
            "  max_concurrency: 4\n"
            "  excluded_scopes: [Test]\n"
            "  include_optional: true\n"
            "repositories:\n"
            "  - name: internal\n"
            "    url: https://nexus.example/repo/\n"
            "  - url: https://repo1.maven.org/maven2\n"
            "    kind: central\n",
            encoding="utf-8",
        )

        config = ResolverConfig.load(str(path), environ={})

        assert config.read_timeout == 7.5
        assert config.max_concurrency == 4
        assert config.excluded_scopes == ("test",)
        assert config.include_optional is True
        assert config.repositories == (
            RepositorySpec("internal", "https://nexus.example/repo", "generic"),
            RepositorySpec("https://repo1.maven.org/maven2", "https://repo1.maven.org/maven2", "central"),
        )

    def test_environment_overrides_yaml(self, tmp_path):
        """Ensure DEPFETCH_* variables win over the file."""
        path = tmp_path / "depfetch.yml"
        path.write_text("resolver:\n  read_timeout: 7\n  max_concurrency: 4\n", encoding="utf-8")

        config = ResolverConfig.load(str(path), environ={
            "DEPFETCH_REQUEST_TIMEOUT": "3",
            "DEPFETCH_MAX_CONCURRENCY": "9",
            "DEPFETCH_MAX_DOWNLOADS": " ",
        })

        assert config.read_timeout == 3.0
        assert config.max_concurrency == 9
        assert config.max_concurrent_downloads == Constants.MAX_CONCURRENT_DOWNLOADS

    def test_config_env_path(self, tmp_path, monkeypatch):
        """Ensure DEPFETCH_CONFIG points at the file when no path is given."""
        path = tmp_path / "custom.yml"
        path.write_text("resolver:\n  retry_max: 5\n", encoding="utf-8")
        monkeypatch.setenv("DEPFETCH_CONFIG", str(path))
        monkeypatch.chdir(tmp_path)

        assert ResolverConfig.load(environ={}).retry_max == 5

    def test_missing_file_uses_defaults(self, tmp_path, monkeypatch):
        """Ensure no config file at all yields the defaults."""
        monkeypatch.delenv("DEPFETCH_CONFIG", raising=False)
        monkeypatch.setenv("HOME", str(tmp_path))
        monkeypatch.chdir(tmp_path)

        assert ResolverConfig.load(environ={}) == ResolverConfig()

    def test_invalid_yaml(self, tmp_path):
        """Ensure a YAML syntax error surfaces as ConfigError."""
        path = tmp_path / "bad.yml"
        path.write_text("resolver: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            ResolverConfig.load(str(path), environ={})

    def test_non_mapping_top_level_ignored(self, tmp_path):
        """Ensure a list at the top level is ignored."""
        path = tmp_path / "list.yml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        assert ResolverConfig.load(str(path), environ={}) == ResolverConfig()


class TestResolverConfigValidation:
    """Tests for value validation."""

    @pytest.mark.parametrize("data", [
        {"resolver": {"read_timeout": "soon"}},
        {"resolver": {"read_timeout": -1}},
        {"resolver": {"max_concurrency": 0}},
        {"resolver": {"excluded_scopes": "test"}},
        {"resolver": ["not", "a", "mapping"]},
        {"repositories": {"url": "x"}},
        {"repositories": [{"name": "no-url"}]},
    ])
    def test_invalid_values(self, data):
        """Ensure malformed values raise ConfigError."""
        with pytest.raises(ConfigError):
            ResolverConfig.from_mapping(data)

    def test_invalid_environment_value(self):
        """Ensure a non-numeric override raises ConfigError."""
        with pytest.raises(ConfigError):
            ResolverConfig().with_env({"DEPFETCH_MAX_CONCURRENCY": "many"})
