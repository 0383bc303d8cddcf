"""
config.py - Glean 접속 설정 해석 모듈

설정 값은 세 곳에서 온다. 우선순위는 키 단위로 적용된다:
    CLI 플래그 > --env 로 지정한 .env 파일 > 프로세스 환경변수

결과는 세 가지 중 하나이다:
    - TokenConfig: GLEAN_API_TOKEN 이 있을 때. OAuth 흐름에 절대 쓰이지 않는다.
    - OAuthConfig: 최근(6시간 이내) 캐시된 OAuth 메타데이터가 있을 때.
    - BasicConfig: 그 외. discover_oauth_config 로 OAuthConfig 로 승격해야 한다.
"""
from __future__ import annotations

import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Mapping, Union

from dotenv import dotenv_values


class ConfigError(Exception):
    pass


# --- 환경변수 이름 ---

ENV_INSTANCE = "GLEAN_INSTANCE"
ENV_SUBDOMAIN = "GLEAN_SUBDOMAIN"
ENV_URL = "GLEAN_URL"
ENV_BASE_URL = "GLEAN_BASE_URL"
ENV_API_TOKEN = "GLEAN_API_TOKEN"
ENV_ACT_AS = "GLEAN_ACT_AS"
ENV_OAUTH_ISSUER = "GLEAN_OAUTH_ISSUER"
ENV_OAUTH_CLIENT_ID = "GLEAN_OAUTH_CLIENT_ID"
ENV_OAUTH_CLIENT_SECRET = "GLEAN_OAUTH_CLIENT_SECRET"
ENV_OAUTH_AUTHORIZATION_ENDPOINT = "GLEAN_OAUTH_AUTHORIZATION_ENDPOINT"
ENV_OAUTH_TOKEN_ENDPOINT = "GLEAN_OAUTH_TOKEN_ENDPOINT"

_KNOWN_KEYS = (
    ENV_INSTANCE,
    ENV_SUBDOMAIN,
    ENV_URL,
    ENV_BASE_URL,
    ENV_API_TOKEN,
    ENV_ACT_AS,
    ENV_OAUTH_ISSUER,
    ENV_OAUTH_CLIENT_ID,
    ENV_OAUTH_CLIENT_SECRET,
    ENV_OAUTH_AUTHORIZATION_ENDPOINT,
    ENV_OAUTH_TOKEN_ENDPOINT,
)


# --- 설정 타입 ---

@dataclass
class TokenConfig:
    base_url: str
    token: str
    act_as: str | None = None
    auth_type: str = field(default="token", init=False)


@dataclass
class OAuthConfig:
    base_url: str
    issuer: str
    client_id: str
    authorization_endpoint: str
    token_endpoint: str
    client_secret: str | None = None
    code_verifier: str | None = None
    code_challenge: str | None = None
    code_challenge_method: str | None = None
    auth_type: str = field(default="oauth", init=False)


@dataclass
class BasicConfig:
    base_url: str
    issuer: str | None = None
    client_id: str | None = None
    client_secret: str | None = None
    authorization_endpoint: str | None = None
    token_endpoint: str | None = None
    auth_type: str = field(default="unknown", init=False)


GleanConfig = Union[TokenConfig, OAuthConfig, BasicConfig]


def is_token_config(config: GleanConfig) -> bool:
    return config.auth_type == "token"


def is_oauth_config(config: GleanConfig) -> bool:
    return config.auth_type == "oauth"


def is_basic_config(config: GleanConfig) -> bool:
    return config.auth_type == "unknown"


# --- 값 수집 ---

def load_env_file(env_file: str | Path) -> dict[str, str]:
    """.env 파일을 읽어 dict로 반환한다. 파일이 없으면 ConfigError."""
    path = Path(env_file).expanduser()
    if not path.exists():
        raise ConfigError(f"Environment file not found: {path}")
    return {k: v for k, v in dotenv_values(path).items() if v is not None}


def collect_settings(
    flags: Mapping[str, str | None] | None = None,
    env_file: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """알려진 키마다 플래그 > .env 파일 > 환경변수 순으로 첫 번째 비어있지 않은 값을 고른다."""
    sources: list[Mapping[str, str | None]] = [flags or {}]
    if env_file:
        sources.append(load_env_file(env_file))
    sources.append(os.environ if environ is None else environ)

    settings: dict[str, str] = {}
    for key in _KNOWN_KEYS:
        for source in sources:
            value = source.get(key)
            if value:
                settings[key] = value
                break
    return settings


def build_base_url(instance: str | None = None, url: str | None = None) -> str:
    """명시적 URL이 우선이고, 없으면 인스턴스 이름으로 만든다. 항상 '/'로 끝난다."""
    if url:
        return url if url.endswith("/") else url + "/"
    if not instance:
        raise ConfigError(f"{ENV_INSTANCE} environment variable is required")
    return f"https://{instance}-be.glean.com/"


# --- 설정 해석 ---

def resolve_config(
    flags: Mapping[str, str | None] | None = None,
    env_file: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
    state_dir: Path | None = None,
) -> GleanConfig:
    """현재 입력으로부터 GleanConfig 하나를 결정한다."""
    settings = collect_settings(flags, env_file, environ)

    token = settings.get(ENV_API_TOKEN)
    issuer = settings.get(ENV_OAUTH_ISSUER)
    client_id = settings.get(ENV_OAUTH_CLIENT_ID)

    if token and (issuer or client_id):
        raise ConfigError(
            f"Specify either {ENV_OAUTH_ISSUER} and {ENV_OAUTH_CLIENT_ID} "
            f"or {ENV_API_TOKEN}, but not both."
        )

    base_url = build_base_url(
        instance=settings.get(ENV_INSTANCE) or settings.get(ENV_SUBDOMAIN),
        url=settings.get(ENV_URL) or settings.get(ENV_BASE_URL),
    )

    if token:
        return TokenConfig(base_url=base_url, token=token, act_as=settings.get(ENV_ACT_AS))

    explicit = {
        "issuer": issuer,
        "client_id": client_id,
        "client_secret": settings.get(ENV_OAUTH_CLIENT_SECRET),
        "authorization_endpoint": settings.get(ENV_OAUTH_AUTHORIZATION_ENDPOINT),
        "token_endpoint": settings.get(ENV_OAUTH_TOKEN_ENDPOINT),
    }

    # auth 패키지가 이 모듈의 타입을 import 하므로 순환을 피해 여기서 가져온다
    from .auth.oauth_cache import load_oauth_metadata

    cached = load_oauth_metadata(state_dir)
    if cached is not None:
        # 캐시된 메타데이터 위에 명시적으로 준 값만 덮어쓴다 (디버깅용)
        merged = {k: v for k, v in asdict(cached).items() if k != "auth_type"}
        merged.update({k: v for k, v in explicit.items() if v})
        merged["base_url"] = base_url
        return OAuthConfig(**merged)

    return BasicConfig(base_url=base_url, **explicit)


def sanitize_config(config: GleanConfig) -> dict:
    """로그에 남겨도 되는 형태로 변환한다. 토큰과 시크릿은 가린다."""
    data = asdict(config)
    for secret_key in ("token", "client_secret", "code_verifier"):
        if data.get(secret_key):
            data[secret_key] = "<redacted>"
    return data
