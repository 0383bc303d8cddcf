"""
tokens.py - OAuth 토큰 저장소

<state>/glean/tokens.json 에 토큰을 저장하고 읽는다.

파일 형식:
    {"accessToken": "...", "refreshToken": "...", "expiresAt": "2025-01-01T00:00:00.000Z"}

없는 필드는 null 대신 아예 생략한다.
읽기 실패(파일 없음, 깨진 JSON, 필수 필드 누락)는 예외 없이 None으로 처리한다.
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path

from ..xdg import get_state_dir

logger = logging.getLogger(__name__)

TOKENS_FILE_NAME = "tokens.json"

# 만료 직전 토큰은 요청 도중 만료될 수 있으므로 미리 만료로 취급한다.
EXPIRY_BUFFER = timedelta(seconds=60)


def _now() -> datetime:
    """현재 UTC 시각. 테스트에서 패치 가능."""
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """UTC ISO-8601 문자열 (밀리초, Z 접미사)."""
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def parse_timestamp(value: str) -> datetime:
    """format_timestamp의 역. 형식이 틀리면 ValueError."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class Tokens:
    access_token: str
    refresh_token: str | None = None
    expires_at: datetime | None = None

    @classmethod
    def from_token_response(cls, payload: dict) -> "Tokens":
        """토큰 엔드포인트 응답으로 Tokens를 만든다. expires_in은 지금부터의 초."""
        expires_at = None
        expires_in = payload.get("expires_in")
        if isinstance(expires_in, (int, float)) and not isinstance(expires_in, bool):
            expires_at = _now() + timedelta(seconds=expires_in)
        return cls(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token") or None,
            expires_at=expires_at,
        )

    def is_expired(self) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at <= _now() + EXPIRY_BUFFER

    def to_dict(self) -> dict:
        data: dict = {"accessToken": self.access_token}
        if self.refresh_token:
            data["refreshToken"] = self.refresh_token
        if self.expires_at is not None:
            data["expiresAt"] = format_timestamp(self.expires_at)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Tokens":
        """저장된 dict에서 복원한다. 형식이 틀리면 ValueError."""
        access_token = data.get("accessToken")
        if not isinstance(access_token, str) or not access_token:
            raise ValueError("accessToken 누락")
        refresh_token = data.get("refreshToken")
        if refresh_token is not None and not isinstance(refresh_token, str):
            raise ValueError("refreshToken 형식 오류")
        expires_at = None
        raw_expires = data.get("expiresAt")
        if raw_expires is not None:
            if not isinstance(raw_expires, str):
                raise ValueError("expiresAt 형식 오류")
            expires_at = parse_timestamp(raw_expires)
        return cls(access_token=access_token, refresh_token=refresh_token, expires_at=expires_at)


# --- 파일 입출력 ---

def tokens_path(state_dir: Path | None = None) -> Path:
    return (state_dir or get_state_dir()) / TOKENS_FILE_NAME


def load_tokens(state_dir: Path | None = None) -> Tokens | None:
    """저장된 토큰을 읽는다. 어떤 이유로든 읽을 수 없으면 None."""
    path = tokens_path(state_dir)
    if not path.exists():
        logger.debug("토큰 파일 없음: %s", path)
        return None
    try:
        text = path.read_text(encoding="utf-8")
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError("JSON 객체가 아님")
        return Tokens.from_dict(data)
    except (OSError, ValueError) as e:
        # json.JSONDecodeError 는 ValueError의 하위 클래스
        logger.warning("토큰 파일을 읽을 수 없음 %s: %s", path, e)
        return None


def save_tokens(tokens: Tokens, state_dir: Path | None = None) -> Path:
    """토큰을 0600 권한 파일로 저장한다. 기존 파일은 덮어쓴다."""
    path = tokens_path(state_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = json.dumps(tokens.to_dict(), ensure_ascii=False, indent=2) + "\n"
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(payload)
    logger.debug("토큰 저장: %s", path)
    return path
