"""
oauth_cache.py - OAuth 메타데이터 캐시

발견(discovery)한 OAuth 설정을 <state>/glean/oauth.json 에 저장해
6시간 동안 네트워크 요청 없이 재사용한다.
"""
from __future__ import annotations

import json
import logging
import os
from datetime import timedelta
from pathlib import Path

from ..config import OAuthConfig
from ..xdg import get_state_dir
from .tokens import _now, format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)

OAUTH_CACHE_FILE_NAME = "oauth.json"
CACHE_TTL = timedelta(hours=6)

_REQUIRED_KEYS = (
    "baseUrl",
    "issuer",
    "clientId",
    "authorizationEndpoint",
    "tokenEndpoint",
    "timestamp",
)


def oauth_cache_path(state_dir: Path | None = None) -> Path:
    return (state_dir or get_state_dir()) / OAUTH_CACHE_FILE_NAME


def save_oauth_metadata(config: OAuthConfig, state_dir: Path | None = None) -> Path:
    """OAuth 설정을 현재 시각과 함께 저장한다. clientSecret 이 들어가므로 0600 권한으로 쓴다."""
    data = {
        "baseUrl": config.base_url,
        "issuer": config.issuer,
        "clientId": config.client_id,
        "authorizationEndpoint": config.authorization_endpoint,
        "tokenEndpoint": config.token_endpoint,
        "authType": "oauth",
        "timestamp": format_timestamp(_now()),
    }
    if config.client_secret:
        data["clientSecret"] = config.client_secret

    path = oauth_cache_path(state_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = json.dumps(data, ensure_ascii=False, indent=2) + "\n"
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(payload)
    # 이전에 umask 권한으로 만들어진 파일도 좁힌다
    os.chmod(path, 0o600)
    logger.debug("OAuth 메타데이터 캐시 저장: %s", path)
    return path


def load_oauth_metadata(state_dir: Path | None = None) -> OAuthConfig | None:
    """6시간 이내에 저장된 캐시가 있으면 OAuthConfig로, 아니면 None."""
    path = oauth_cache_path(state_dir)
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError("JSON 객체가 아님")
        missing = [key for key in _REQUIRED_KEYS if not isinstance(data.get(key), str)]
        if missing:
            raise ValueError(f"필수 키 누락: {', '.join(missing)}")
        saved_at = parse_timestamp(data["timestamp"])
    except (OSError, ValueError) as e:
        logger.warning("OAuth 메타데이터 캐시를 읽을 수 없음 %s: %s", path, e)
        return None

    if _now() - saved_at >= CACHE_TTL:
        logger.debug("OAuth 메타데이터 캐시 만료 (저장 시각 %s)", data["timestamp"])
        return None

    return OAuthConfig(
        base_url=data["baseUrl"],
        issuer=data["issuer"],
        client_id=data["clientId"],
        authorization_endpoint=data["authorizationEndpoint"],
        token_endpoint=data["tokenEndpoint"],
        client_secret=data.get("clientSecret") or None,
    )
