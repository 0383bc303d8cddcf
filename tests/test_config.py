"""
config.py 단위 테스트

environ 을 명시적으로 넘겨 프로세스 환경변수와 격리한다.
"""
from __future__ import annotations

from datetime import datetime, timezone
from unittest import mock

import pytest

from conftest import make_oauth_config
from glean_mcp.auth.oauth_cache import save_oauth_metadata
from glean_mcp.config import (
    BasicConfig,
    ConfigError,
    OAuthConfig,
    TokenConfig,
    build_base_url,
    collect_settings,
    resolve_config,
    sanitize_config,
)


class TestBuildBaseUrl:
    def test_from_instance(self):
        assert build_base_url(instance="acme") == "https://acme-be.glean.com/"

    def test_url_wins(self):
        assert build_base_url(instance="acme", url="http://localhost:8080") == "http://localhost:8080/"

    def test_nothing_raises(self):
        with pytest.raises(ConfigError, match="GLEAN_INSTANCE"):
            build_base_url()


class TestPrecedence:
    def test_flag_beats_env_file_beats_environ(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("GLEAN_INSTANCE=from-file\nGLEAN_API_TOKEN=file-token\n")
        settings = collect_settings(
            flags={"GLEAN_INSTANCE": "from-flag"},
            env_file=env_file,
            environ={"GLEAN_INSTANCE": "from-env", "GLEAN_API_TOKEN": "env-token", "GLEAN_ACT_AS": "me"},
        )
        assert settings["GLEAN_INSTANCE"] == "from-flag"
        assert settings["GLEAN_API_TOKEN"] == "file-token"
        assert settings["GLEAN_ACT_AS"] == "me"

    def test_empty_flag_falls_through(self):
        settings = collect_settings(flags={"GLEAN_INSTANCE": None}, environ={"GLEAN_INSTANCE": "env"})
        assert settings["GLEAN_INSTANCE"] == "env"

    def test_missing_env_file_raises(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            collect_settings(env_file=tmp_path / "missing.env", environ={})


class TestResolveConfig:
    def test_token_config(self, state_dir):
        config = resolve_config(environ={"GLEAN_INSTANCE": "acme", "GLEAN_API_TOKEN": "t", "GLEAN_ACT_AS": "a@b.c"})
        assert config == TokenConfig(base_url="https://acme-be.glean.com/", token="t", act_as="a@b.c")
        assert config.auth_type == "token"

    def test_subdomain_alias(self, state_dir):
        config = resolve_config(environ={"GLEAN_SUBDOMAIN": "acme"})
        assert config.base_url == "https://acme-be.glean.com/"

    def test_base_url_alias(self, state_dir):
        config = resolve_config(environ={"GLEAN_BASE_URL": "https://acme-be.glean.com/rest/api/v1/"})
        assert config.base_url == "https://acme-be.glean.com/rest/api/v1/"

    def test_token_and_oauth_conflict(self, state_dir):
        with pytest.raises(ConfigError, match="but not both"):
            resolve_config(environ={"GLEAN_INSTANCE": "acme", "GLEAN_API_TOKEN": "t", "GLEAN_OAUTH_ISSUER": "i"})

    def test_basic_config_without_cache(self, state_dir):
        config = resolve_config(environ={"GLEAN_INSTANCE": "acme", "GLEAN_OAUTH_CLIENT_ID": "cid"})
        assert isinstance(config, BasicConfig)
        assert config.auth_type == "unknown"
        assert config.client_id == "cid"
        assert config.issuer is None

    def test_fresh_cache_produces_oauth_config(self, state_dir):
        save_oauth_metadata(make_oauth_config(), state_dir)
        config = resolve_config(environ={"GLEAN_INSTANCE": "acme"})
        assert isinstance(config, OAuthConfig)
        assert config.token_endpoint == "https://auth.example.com/oauth/token"

    def test_explicit_values_override_cache(self, state_dir):
        save_oauth_metadata(make_oauth_config(), state_dir)
        config = resolve_config(
            environ={"GLEAN_INSTANCE": "acme", "GLEAN_OAUTH_TOKEN_ENDPOINT": "https://other/token"}
        )
        assert config.token_endpoint == "https://other/token"
        assert config.client_id == "client-123"

    def test_stale_cache_is_ignored(self, state_dir):
        with mock.patch(
            "glean_mcp.auth.oauth_cache._now",
            return_value=datetime(2000, 1, 1, tzinfo=timezone.utc),
        ):
            save_oauth_metadata(make_oauth_config(), state_dir)
        config = resolve_config(environ={"GLEAN_INSTANCE": "acme"})
        assert isinstance(config, BasicConfig)

    def test_missing_instance(self, state_dir):
        with pytest.raises(ConfigError):
            resolve_config(environ={})


class TestSanitize:
    def test_redacts_token(self):
        data = sanitize_config(TokenConfig(base_url="https://x/", token="secret"))
        assert data["token"] == "<redacted>"
        assert data["base_url"] == "https://x/"
