"""Tests for configuration module."""

import json
import os
from pathlib import Path
from unittest.mock import patch

from localbuild.config import Settings, get_settings, print_settings_json


class TestSettings:
    """Test Settings class."""

    def test_default_settings(self) -> None:
        """Settings should have sensible defaults."""
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(_env_file=None)

        assert settings.kubeconfig is None
        assert settings.kube_context is None
        assert settings.local_cluster is None
        assert settings.push is None
        assert settings.use_docker_cli is False
        assert settings.use_buildkit is False
        assert settings.prune is True
        assert settings.docker_binary == "docker"
        assert "sqlite" in settings.db_url
        assert settings.log_level == "INFO"
        assert settings.build_timeout is None

    def test_settings_from_env(self) -> None:
        """Settings should be loadable from environment variables."""
        with patch.dict(
            os.environ,
            {
                "LOCALBUILD_PUSH": "false",
                "LOCALBUILD_USE_BUILDKIT": "true",
                "LOCALBUILD_LOG_LEVEL": "DEBUG",
                "LOCALBUILD_KUBE_CONTEXT": "kind-dev",
            },
        ):
            settings = Settings(_env_file=None)
            assert settings.push is False
            assert settings.use_buildkit is True
            assert settings.log_level == "DEBUG"
            assert settings.kube_context == "kind-dev"

    def test_settings_kubeconfig_from_env(self) -> None:
        """Kubeconfig path should be configurable via env."""
        with patch.dict(os.environ, {"LOCALBUILD_KUBECONFIG": "/tmp/kubeconfig"}):
            settings = Settings(_env_file=None)
            assert settings.kubeconfig == Path("/tmp/kubeconfig")


class TestLocalBuildProperties:
    """Test Settings.local_build_properties."""

    def test_push_omitted_when_unset(self) -> None:
        """An unset push preference must not appear in the properties."""
        settings = Settings(_env_file=None, push=None)
        properties = settings.local_build_properties()
        assert "push" not in properties
        assert properties["useDockerCLI"] is False
        assert properties["useBuildkit"] is False

    def test_push_included_when_set(self) -> None:
        """An explicit push preference is carried over."""
        settings = Settings(_env_file=None, push=True, use_docker_cli=True)
        properties = settings.local_build_properties()
        assert properties["push"] is True
        assert properties["useDockerCLI"] is True


class TestGetSettings:
    """Test get_settings function."""

    def test_get_settings_returns_settings(self) -> None:
        """get_settings should return a Settings instance."""
        settings = get_settings()
        assert isinstance(settings, Settings)


class TestPrintSettingsJson:
    """Test print_settings_json function."""

    def test_print_settings_json(self) -> None:
        """print_settings_json should return valid JSON."""
        settings = Settings(_env_file=None)
        json_str = print_settings_json(settings)

        parsed = json.loads(json_str)

        assert "kube_context" in parsed
        assert "push" in parsed
        assert "db_url" in parsed
        assert "use_buildkit" in parsed

    def test_print_settings_json_default(self) -> None:
        """print_settings_json without args should use default settings."""
        json_str = print_settings_json()
        parsed = json.loads(json_str)
        assert "db_url" in parsed
