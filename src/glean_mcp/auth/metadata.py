"""
metadata.py - OAuth 메타데이터 발견(discovery)

1. 보호 리소스 메타데이터 (Glean 인스턴스가 제공)
       GET <origin>/.well-known/oauth-protected-resource
   -> 발급자(issuer), 장치 흐름 client id, (선택) client secret
2. 인가 서버 메타데이터 (발급자가 제공)
       GET <issuer>/.well-known/openid-configuration
       실패하면 GET <issuer>/.well-known/oauth-authorization-server
   -> device_authorization_endpoint, token_endpoint
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from urllib.parse import urlparse

import httpx

from .errors import AuthError, AuthErrorCode

logger = logging.getLogger(__name__)

_ADMIN_HINT = (
    "please contact your Glean administrator and ensure device flow "
    "authorization is configured correctly."
)


@dataclass(frozen=True)
class ProtectedResourceMetadata:
    issuer: str
    client_id: str
    client_secret: str | None = None


@dataclass(frozen=True)
class AuthorizationServerMetadata:
    device_authorization_endpoint: str
    token_endpoint: str


def origin_of(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}"


# --- 보호 리소스 메타데이터 ---

async def fetch_protected_resource_metadata(
    http: httpx.AsyncClient, base_url: str
) -> ProtectedResourceMetadata:
    url = f"{origin_of(base_url)}/.well-known/oauth-protected-resource"
    try:
        response = await http.get(url)
    except httpx.HTTPError as e:
        logger.error("GET %s 실패: %s", url, e)
        raise AuthError(
            f"Unable to fetch OAuth protected resource metadata: {_ADMIN_HINT}",
            AuthErrorCode.PROTECTED_RESOURCE_FETCH,
            e,
        ) from e
    logger.debug("GET %s %s", url, response.status_code)

    if not response.is_success:
        raise AuthError(
            f"Unable to fetch OAuth protected resource metadata: {_ADMIN_HINT}",
            AuthErrorCode.PROTECTED_RESOURCE_NOT_OK,
        )

    try:
        data = response.json()
    except ValueError as e:
        raise AuthError(
            f"Unexpected OAuth protected resource metadata: {_ADMIN_HINT}",
            AuthErrorCode.PROTECTED_RESOURCE_PARSE,
            e,
        ) from e
    if not isinstance(data, dict):
        raise AuthError(
            f"Unexpected OAuth protected resource metadata: {_ADMIN_HINT}",
            AuthErrorCode.PROTECTED_RESOURCE_PARSE,
        )

    auth_servers = data.get("authorization_servers")
    issuer = auth_servers[0] if isinstance(auth_servers, list) and auth_servers else None
    if not isinstance(issuer, str) or not issuer:
        raise AuthError(
            f"OAuth protected resource metadata did not include any authorization servers: {_ADMIN_HINT}",
            AuthErrorCode.PROTECTED_RESOURCE_MISSING_AUTH_SERVERS,
        )

    client_id = data.get("glean_device_flow_client_id")
    if not isinstance(client_id, str) or not client_id:
        raise AuthError(
            f"OAuth protected resource metadata did not include a device flow client id: {_ADMIN_HINT}",
            AuthErrorCode.PROTECTED_RESOURCE_MISSING_CLIENT_ID,
        )

    client_secret = data.get("glean_device_flow_client_sec")
    return ProtectedResourceMetadata(
        issuer=issuer,
        client_id=client_id,
        client_secret=client_secret if isinstance(client_secret, str) else None,
    )


# --- 인가 서버 메타데이터 ---

async def _get_metadata_document(http: httpx.AsyncClient, url: str) -> httpx.Response | None:
    """전송 실패나 2xx가 아닌 응답이면 None."""
    try:
        response = await http.get(url)
    except httpx.HTTPError as e:
        logger.debug("GET %s 실패: %s", url, e)
        return None
    logger.debug("GET %s %s", url, response.status_code)
    if not response.is_success:
        return None
    return response


async def fetch_authorization_server_metadata(
    http: httpx.AsyncClient, issuer: str
) -> AuthorizationServerMetadata:
    issuer = issuer.rstrip("/")
    primary_url = f"{issuer}/.well-known/openid-configuration"
    fallback_url = f"{issuer}/.well-known/oauth-authorization-server"

    response = await _get_metadata_document(http, primary_url)
    source_url = primary_url
    if response is None:
        logger.debug("%s 로 대체 시도", fallback_url)
        response = await _get_metadata_document(http, fallback_url)
        source_url = fallback_url
    if response is None:
        raise AuthError(
            f"Unable to fetch OAuth authorization server metadata: {_ADMIN_HINT}",
            AuthErrorCode.AUTH_SERVER_METADATA_FETCH,
        )

    try:
        data = response.json()
    except ValueError as e:
        raise AuthError(
            f"Unable to fetch OAuth authorization server metadata: {_ADMIN_HINT}",
            AuthErrorCode.AUTH_SERVER_METADATA_PARSE,
            {"url": source_url},
        ) from e
    if not isinstance(data, dict):
        raise AuthError(
            f"Unable to fetch OAuth authorization server metadata: {_ADMIN_HINT}",
            AuthErrorCode.AUTH_SERVER_METADATA_PARSE,
            {"url": source_url},
        )

    token_endpoint = data.get("token_endpoint")
    if not isinstance(token_endpoint, str):
        raise AuthError(
            f"OAuth authorization server metadata did not include a token endpoint: {_ADMIN_HINT}",
            AuthErrorCode.AUTH_SERVER_MISSING_TOKEN_ENDPOINT,
        )

    device_endpoint = data.get("device_authorization_endpoint")
    if not isinstance(device_endpoint, str):
        raise AuthError(
            "OAuth authorization server metadata did not include a device "
            f"authorization endpoint: {_ADMIN_HINT}",
            AuthErrorCode.AUTH_SERVER_MISSING_DEVICE_ENDPOINT,
        )

    return AuthorizationServerMetadata(
        device_authorization_endpoint=device_endpoint,
        token_endpoint=token_endpoint,
    )
