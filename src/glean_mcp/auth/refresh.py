"""
refresh.py - refresh_token 그랜트 (RFC 6749 section 6)
"""
from __future__ import annotations

import logging

import httpx

from ..config import OAuthConfig
from .device_flow import is_token_success
from .errors import AuthError, AuthErrorCode
from .tokens import Tokens

logger = logging.getLogger(__name__)


async def fetch_token_via_refresh(
    http: httpx.AsyncClient, tokens: Tokens, config: OAuthConfig
) -> Tokens:
    """refresh token 으로 새 토큰을 받는다. 서버가 새 refresh token 을 주지 않으면 기존 것을 유지한다."""
    if not tokens.refresh_token:
        raise AuthError(
            "Cannot refresh: no refresh token provided.",
            AuthErrorCode.REFRESH_TOKEN_MISSING,
        )

    params = {"client_id": config.client_id}
    if config.client_secret:
        params["client_secret"] = config.client_secret
    params["grant_type"] = "refresh_token"
    params["refresh_token"] = tokens.refresh_token

    url = config.token_endpoint
    logger.debug("POST %s grant_type=refresh_token", url)
    try:
        response = await http.post(
            url,
            data=params,
            headers={
                "Accept": "application/json",
                "Content-Type": "application/x-www-form-urlencoded",
            },
        )
        payload = response.json()
    except (httpx.HTTPError, ValueError) as e:
        raise AuthError(
            "Unexpected response fetching access token.",
            AuthErrorCode.UNEXPECTED_TOKEN_RESPONSE,
            e,
        ) from e

    if not is_token_success(payload):
        error = payload.get("error") if isinstance(payload, dict) else None
        description = payload.get("error_description") if isinstance(payload, dict) else None
        message = f"Unable to fetch token.  Server responded {response.status_code}: {error}"
        if description:
            message += f" ({description})"
        raise AuthError(message, AuthErrorCode.TOKEN_SERVER_ERROR, payload)

    refreshed = Tokens.from_token_response(payload)
    if not refreshed.refresh_token:
        refreshed.refresh_token = tokens.refresh_token
    return refreshed
