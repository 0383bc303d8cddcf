"""
client.py - Glean REST API 클라이언트

요청/응답 본문은 dict 그대로 전달한다. 인증 헤더만 설정에 따라 붙인다.
    - TokenConfig: Authorization: Bearer <token> (+ X-Glean-Act-As)
    - OAuthConfig: Authorization: Bearer <access token> + X-Glean-Auth-Type: OAUTH
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from urllib.parse import urljoin

import httpx

from .auth.errors import AuthError, AuthErrorCode
from .auth.manager import ensure_auth_token_presence, upgrade_to_oauth
from .auth.tokens import load_tokens
from .config import TokenConfig

if TYPE_CHECKING:
    from .context import AppContext

logger = logging.getLogger(__name__)

API_PATH = "rest/api/v1/"


class GleanAPIError(Exception):
    def __init__(self, status_code: int, body: str, endpoint: str):
        super().__init__(f"Glean API request to {endpoint} failed: {status_code} {body}")
        self.status_code = status_code
        self.body = body
        self.endpoint = endpoint


def api_base_url(base_url: str) -> str:
    """base_url 이 이미 /rest/api/v1/ 로 끝나면 그대로, 아니면 덧붙인다."""
    if not base_url.endswith("/"):
        base_url += "/"
    if base_url.endswith(API_PATH):
        return base_url
    return urljoin(base_url, API_PATH)


class GleanClient:
    def __init__(self, http: httpx.AsyncClient, base_url: str, headers: dict[str, str]):
        self.http = http
        self.api_url = api_base_url(base_url)
        self.headers = headers

    async def _post(self, endpoint: str, body: dict) -> dict:
        url = self.api_url + endpoint
        logger.debug("POST %s", url)
        response = await self.http.post(url, json=body, headers=self.headers)
        if not response.is_success:
            logger.error("POST %s -> %s", url, response.status_code)
            raise GleanAPIError(response.status_code, response.text, endpoint)
        return response.json()

    async def search(self, body: dict) -> dict:
        return await self._post("search", body)

    async def chat(self, body: dict) -> dict:
        return await self._post("chat", body)

    async def list_entities(self, body: dict) -> dict:
        return await self._post("listentities", body)

    async def get_documents(self, body: dict) -> dict:
        return await self._post("getdocuments", body)


async def build_client(ctx: AppContext) -> GleanClient:
    """현재 설정으로 인증 헤더를 만든 클라이언트를 반환한다.

    OAuth 이면 저장된 토큰이 있어야 하며, 만료된 경우 여기서 갱신된다.
    """
    headers = {"Content-Type": "application/json"}
    config = ctx.config

    if isinstance(config, TokenConfig):
        headers["Authorization"] = f"Bearer {config.token}"
        if config.act_as:
            headers["X-Glean-Act-As"] = config.act_as
        return GleanClient(ctx.http, config.base_url, headers)

    config = await upgrade_to_oauth(ctx)
    if not await ensure_auth_token_presence(ctx):
        raise AuthError(
            "No OAuth tokens found. Please run `glean-mcp auth` to authenticate.",
            AuthErrorCode.INVALID_CONFIG,
        )
    tokens = load_tokens(ctx.state_dir)
    if tokens is None:
        raise AuthError("Unable to load OAuth tokens.", AuthErrorCode.INVALID_CONFIG)

    headers["Authorization"] = f"Bearer {tokens.access_token}"
    headers["X-Glean-Auth-Type"] = "OAUTH"
    return GleanClient(ctx.http, config.base_url, headers)
