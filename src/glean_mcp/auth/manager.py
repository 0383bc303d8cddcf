"""
manager.py - 인증 진입점

CLI 명령과 도구 구현이 호출하는 함수들:
    force_authorize            장치 인증 흐름을 실행하고 토큰을 저장
    force_refresh_tokens       만료 여부와 무관하게 토큰 갱신
    ensure_auth_token_presence 저장된 토큰이 쓸 수 있는 상태인지 확인 (필요하면 갱신)
    discover_oauth_config      BasicConfig 를 OAuthConfig 로 승격
"""
from __future__ import annotations

import dataclasses
import logging
from typing import TYPE_CHECKING

from ..config import (
    GleanConfig,
    OAuthConfig,
    TokenConfig,
    is_basic_config,
    is_oauth_config,
    is_token_config,
    sanitize_config,
)
from .device_flow import DeviceFlow
from .errors import AuthError, AuthErrorCode
from .metadata import fetch_authorization_server_metadata, fetch_protected_resource_metadata
from .oauth_cache import save_oauth_metadata
from .pkce import generate_pkce_pair, issuer_requires_pkce
from .refresh import fetch_token_via_refresh
from .tokens import Tokens, load_tokens, save_tokens

if TYPE_CHECKING:
    from ..context import AppContext

logger = logging.getLogger(__name__)

_TOKEN_CONFIG_HINT = (
    "Specify GLEAN_OAUTH_ISSUER and GLEAN_OAUTH_CLIENT_ID and not GLEAN_API_TOKEN to use OAuth."
)


async def discover_oauth_config(ctx: AppContext) -> OAuthConfig:
    """현재 설정에 빠진 OAuth 값을 well-known 메타데이터로 채운다.

    발급자와 client id 가 이미 있으면 보호 리소스 메타데이터를 건너뛰고,
    두 엔드포인트까지 있으면 네트워크 요청 없이 바로 반환한다.
    """
    config = ctx.config
    if is_token_config(config):
        raise AuthError(
            "[internal error] attempting OAuth flow with a Glean-issued non-OAuth token",
            AuthErrorCode.INVALID_CONFIG,
        )
    if is_oauth_config(config):
        return config

    logger.debug("OAuth 설정 발견 시작: %s", config.base_url)
    issuer, client_id, client_secret = config.issuer, config.client_id, config.client_secret
    if not (issuer and client_id):
        resource = await fetch_protected_resource_metadata(ctx.http, config.base_url)
        issuer, client_id = resource.issuer, resource.client_id
        client_secret = client_secret or resource.client_secret
    else:
        logger.debug("환경변수의 issuer/client id 사용")

    authorization_endpoint = config.authorization_endpoint
    token_endpoint = config.token_endpoint
    if not (authorization_endpoint and token_endpoint):
        server = await fetch_authorization_server_metadata(ctx.http, issuer)
        authorization_endpoint = authorization_endpoint or server.device_authorization_endpoint
        token_endpoint = token_endpoint or server.token_endpoint

    oauth_config = OAuthConfig(
        base_url=config.base_url,
        issuer=issuer,
        client_id=client_id,
        client_secret=client_secret,
        authorization_endpoint=authorization_endpoint,
        token_endpoint=token_endpoint,
    )
    logger.debug("OAuth 설정: %s", sanitize_config(oauth_config))
    return oauth_config


async def upgrade_to_oauth(ctx: AppContext) -> TokenConfig | OAuthConfig:
    """BasicConfig 이면 발견 결과를 캐시에 저장하고 ctx.config 를 교체한다."""
    if is_basic_config(ctx.config):
        oauth_config = await discover_oauth_config(ctx)
        save_oauth_metadata(oauth_config, ctx.state_dir)
        ctx.config = oauth_config
    return ctx.config


async def force_authorize(ctx: AppContext, config: OAuthConfig | None = None) -> Tokens:
    """장치 인증 흐름을 처음부터 실행한다. 터미널 검사가 모든 네트워크 요청보다 먼저다."""
    if not ctx.terminal.is_interactive():
        raise AuthError(
            "OAuth device authorization flow requires an interactive terminal.",
            AuthErrorCode.NOT_INTERACTIVE,
        )

    resolved: GleanConfig = config if config is not None else await upgrade_to_oauth(ctx)
    if is_token_config(resolved):
        raise AuthError(
            f"Cannot get OAuth access token when using glean-token configuration.  {_TOKEN_CONFIG_HINT}",
            AuthErrorCode.TOKEN_CONFIG_FOR_AUTHORIZE,
        )

    if issuer_requires_pkce(resolved.issuer) and not resolved.code_verifier:
        pair = generate_pkce_pair()
        resolved = dataclasses.replace(
            resolved,
            code_verifier=pair.code_verifier,
            code_challenge=pair.code_challenge,
            code_challenge_method=pair.method,
        )

    tokens = await DeviceFlow(ctx.http, resolved, ctx.terminal).run()
    save_tokens(tokens, ctx.state_dir)
    logger.info("장치 인증 완료, 토큰 저장")
    return tokens


async def force_refresh_tokens(ctx: AppContext) -> Tokens:
    """저장된 refresh token 으로 만료 여부와 무관하게 토큰을 갱신한다."""
    config = await upgrade_to_oauth(ctx)
    if is_token_config(config):
        raise AuthError(
            f"Cannot refresh OAuth access token when using glean-token configuration.  {_TOKEN_CONFIG_HINT}",
            AuthErrorCode.TOKEN_CONFIG_FOR_REFRESH,
        )

    tokens = load_tokens(ctx.state_dir)
    if tokens is None:
        raise AuthError(
            "Cannot refresh: unable to locate refresh token.",
            AuthErrorCode.REFRESH_TOKENS_NOT_FOUND,
        )

    tokens = await fetch_token_via_refresh(ctx.http, tokens, config)
    save_tokens(tokens, ctx.state_dir)
    logger.info("토큰 갱신 완료")
    return tokens


async def ensure_auth_token_presence(ctx: AppContext) -> bool:
    """사용 가능한 토큰이 저장되어 있으면 True. 만료되었으면 갱신 후 True.

    토큰이 아예 없으면 False 를 반환하고 장치 인증 실행 여부는 호출자가 정한다.
    """
    tokens = load_tokens(ctx.state_dir)
    if tokens is None:
        logger.debug("저장된 토큰 없음")
        return False

    if not tokens.is_expired():
        return True

    logger.debug("액세스 토큰 만료, 갱신 시도")
    if not tokens.refresh_token:
        raise AuthError(
            "Cannot refresh: no refresh token provided.",
            AuthErrorCode.REFRESH_TOKEN_MISSING,
        )
    if is_token_config(ctx.config):
        raise AuthError(
            f"Cannot refresh OAuth access token when using glean-token configuration.  {_TOKEN_CONFIG_HINT}",
            AuthErrorCode.TOKEN_CONFIG_FOR_REFRESH,
        )

    config = await upgrade_to_oauth(ctx)
    refreshed = await fetch_token_via_refresh(ctx.http, tokens, config)
    save_tokens(refreshed, ctx.state_dir)
    return True
