"""
auth/oauth_cache.py 단위 테스트
"""
from __future__ import annotations

import json
import os
import stat
from datetime import datetime, timedelta, timezone
from unittest import mock

import pytest

from conftest import make_oauth_config
from glean_mcp.auth.oauth_cache import load_oauth_metadata, oauth_cache_path, save_oauth_metadata

SAVED_AT = datetime(2025, 1, 1, 0, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def saved(state_dir):
    with mock.patch("glean_mcp.auth.oauth_cache._now", return_value=SAVED_AT):
        save_oauth_metadata(make_oauth_config(client_secret="shh"), state_dir)
    return oauth_cache_path(state_dir)


def _load_at(state_dir, when):
    with mock.patch("glean_mcp.auth.oauth_cache._now", return_value=when):
        return load_oauth_metadata(state_dir)


class TestSave:
    def test_file_contents(self, saved):
        data = json.loads(saved.read_text())
        assert data["baseUrl"] == "https://acme-be.glean.com/"
        assert data["issuer"] == "https://auth.example.com"
        assert data["clientId"] == "client-123"
        assert data["clientSecret"] == "shh"
        assert data["authorizationEndpoint"] == "https://auth.example.com/oauth/device"
        assert data["tokenEndpoint"] == "https://auth.example.com/oauth/token"
        assert data["timestamp"] == "2025-01-01T00:00:00.000Z"

    @pytest.mark.skipif(os.name == "nt", reason="POSIX 권한")
    def test_file_is_private(self, saved):
        assert stat.S_IMODE(saved.stat().st_mode) == 0o600

    @pytest.mark.skipif(os.name == "nt", reason="POSIX 권한")
    def test_existing_world_readable_file_is_tightened(self, state_dir):
        path = oauth_cache_path(state_dir)
        path.parent.mkdir(parents=True)
        path.write_text("{}")
        path.chmod(0o644)

        save_oauth_metadata(make_oauth_config(client_secret="shh"), state_dir)

        assert stat.S_IMODE(path.stat().st_mode) == 0o600


class TestLoad:
    def test_fresh_cache(self, saved, state_dir):
        config = _load_at(state_dir, SAVED_AT + timedelta(hours=5, minutes=59))
        assert config == make_oauth_config(client_secret="shh")

    def test_exactly_six_hours_is_stale(self, saved, state_dir):
        assert _load_at(state_dir, SAVED_AT + timedelta(hours=6)) is None

    def test_older_is_stale(self, saved, state_dir):
        assert _load_at(state_dir, SAVED_AT + timedelta(days=1)) is None

    def test_missing_file(self, state_dir):
        assert load_oauth_metadata(state_dir) is None

    def test_malformed_json(self, state_dir):
        state_dir.mkdir(parents=True)
        oauth_cache_path(state_dir).write_text("{not json")
        assert load_oauth_metadata(state_dir) is None

    def test_missing_required_key(self, saved, state_dir):
        data = json.loads(saved.read_text())
        del data["tokenEndpoint"]
        saved.write_text(json.dumps(data))
        assert _load_at(state_dir, SAVED_AT) is None
