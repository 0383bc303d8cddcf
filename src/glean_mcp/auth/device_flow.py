"""
device_flow.py - OAuth 2.0 Device Authorization Grant (RFC 8628)

흐름:
    1. 장치 인증 엔드포인트에 POST -> device_code, user_code, verification_uri
    2. 사용자 코드를 출력하고, 두 작업을 동시에 실행한다
       - Enter 대기: 입력이 오면 브라우저로 verification_uri 를 연다
       - 토큰 폴링: interval 초마다 토큰 엔드포인트에 POST
    3. 폴링이 끝나면(성공이든 실패든) 취소 이벤트를 설정해 Enter 대기를 정리한다

Enter를 눌러도 폴링은 멈추지 않는다. 폴링이 먼저 끝나면 브라우저는 열리지 않는다.
"""
from __future__ import annotations

import asyncio
import enum
import logging
import time
from dataclasses import dataclass

import httpx

from ..config import OAuthConfig
from .errors import AuthError, AuthErrorCode
from .pkce import get_oauth_scopes
from .terminal import Terminal
from .tokens import Tokens

logger = logging.getLogger(__name__)

DEVICE_CODE_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:device_code"
POLL_TIMEOUT_SECONDS = 10 * 60
DEFAULT_INTERVAL_SECONDS = 5
MIN_INTERVAL_SECONDS = 1
SLOW_DOWN_INCREMENT_SECONDS = 5
DEFAULT_EXPIRES_IN_SECONDS = 600

_FORM_HEADERS = {
    "Accept": "application/json",
    "Content-Type": "application/x-www-form-urlencoded",
}

# 테스트에서 가짜 시계로 교체한다
_clock = time.monotonic
_sleep = asyncio.sleep


class DeviceFlowState(enum.Enum):
    IDLE = "idle"
    AWAITING_DEVICE_CODE = "awaiting_device_code"
    AWAITING_USER_ACTION = "awaiting_user_action"
    POLLING = "polling"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class DeviceAuthorization:
    device_code: str
    user_code: str
    verification_uri: str
    expires_in: int = DEFAULT_EXPIRES_IN_SECONDS
    interval: int = DEFAULT_INTERVAL_SECONDS

    @classmethod
    def from_response(cls, payload: object) -> "DeviceAuthorization":
        """장치 인증 응답을 정규화한다. verification_url 도 verification_uri 로 받는다."""
        if not isinstance(payload, dict):
            raise _unexpected_device_response(payload)
        uri = payload.get("verification_uri") or payload.get("verification_url")
        device_code = payload.get("device_code")
        user_code = payload.get("user_code")
        if not all(isinstance(v, str) and v for v in (uri, device_code, user_code)):
            raise _unexpected_device_response(payload)

        interval = payload.get("interval")
        if not isinstance(interval, (int, float)) or isinstance(interval, bool):
            interval = DEFAULT_INTERVAL_SECONDS
        expires_in = payload.get("expires_in")
        if not isinstance(expires_in, (int, float)) or isinstance(expires_in, bool):
            expires_in = DEFAULT_EXPIRES_IN_SECONDS

        return cls(
            device_code=device_code,
            user_code=user_code,
            verification_uri=uri,
            expires_in=int(expires_in),
            interval=max(MIN_INTERVAL_SECONDS, int(interval)),
        )


def _unexpected_device_response(payload: object) -> AuthError:
    return AuthError(
        "Unexpected auth grant response",
        AuthErrorCode.UNEXPECTED_DEVICE_AUTH_RESPONSE,
        payload,
    )


def is_token_success(payload: object) -> bool:
    return (
        isinstance(payload, dict)
        and str(payload.get("token_type", "")).lower() == "bearer"
        and isinstance(payload.get("access_token"), str)
    )


class DeviceFlow:
    """장치 인증 흐름 한 번을 실행한다. 인스턴스는 재사용하지 않는다."""

    def __init__(self, http: httpx.AsyncClient, config: OAuthConfig, terminal: Terminal):
        self.http = http
        self.config = config
        self.terminal = terminal
        self.state = DeviceFlowState.IDLE

    async def run(self) -> Tokens:
        if not self.terminal.is_interactive():
            self.state = DeviceFlowState.FAILED
            raise AuthError(
                "OAuth device authorization flow requires an interactive terminal.",
                AuthErrorCode.NOT_INTERACTIVE,
            )

        try:
            self.state = DeviceFlowState.AWAITING_DEVICE_CODE
            authorization = await self.request_device_authorization()

            self.state = DeviceFlowState.AWAITING_USER_ACTION
            self._prompt(authorization)

            payload = await self._race_prompt_and_poll(authorization)
            tokens = self._tokens_from(payload)
        except AuthError as e:
            if self.state is not DeviceFlowState.TIMED_OUT:
                self.state = DeviceFlowState.FAILED
            logger.error("장치 인증 실패: %s", e)
            raise

        self.state = DeviceFlowState.SUCCEEDED
        return tokens

    # --- 1. 장치 인증 요청 ---

    async def request_device_authorization(self) -> DeviceAuthorization:
        params = {
            "client_id": self.config.client_id,
            "scope": get_oauth_scopes(self.config.issuer),
        }
        if self.config.code_challenge:
            params["code_challenge"] = self.config.code_challenge
            params["code_challenge_method"] = self.config.code_challenge_method or "S256"

        url = self.config.authorization_endpoint
        logger.debug("POST %s scope=%s", url, params["scope"])
        try:
            response = await self.http.post(url, data=params, headers=_FORM_HEADERS)
        except httpx.HTTPError as e:
            raise AuthError(
                "Error obtaining auth grant",
                AuthErrorCode.DEVICE_AUTH_REQUEST_FAILED,
                e,
            ) from e

        if not response.is_success:
            raise AuthError(
                "Error obtaining auth grant",
                AuthErrorCode.DEVICE_AUTH_REQUEST_FAILED,
                {"status": response.status_code, "body": response.text},
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise _unexpected_device_response(response.text) from e
        return DeviceAuthorization.from_response(payload)

    # --- 2. 사용자 안내 + 폴링 ---

    def _prompt(self, authorization: DeviceAuthorization) -> None:
        self.terminal.write(
            "\n"
            "Authorizing Glean MCP-server.  Please log in to Glean.\n"
            "\n"
            f"! First copy your one-time code: {authorization.user_code}\n"
            "\n"
            f"Press Enter to open {authorization.verification_uri} in your browser.\n"
            "\n"
        )

    async def _open_on_enter(self, authorization: DeviceAuthorization, cancel: asyncio.Event) -> None:
        pressed = await self.terminal.wait_for_enter(cancel)
        if pressed and not cancel.is_set():
            self.terminal.open_browser(authorization.verification_uri)

    async def _race_prompt_and_poll(self, authorization: DeviceAuthorization) -> dict:
        cancel = asyncio.Event()
        prompt_task = asyncio.ensure_future(self._open_on_enter(authorization, cancel))
        try:
            return await self.poll_for_token(authorization)
        finally:
            cancel.set()
            prompt_task.cancel()
            results = await asyncio.gather(prompt_task, return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    logger.warning("Enter 대기 작업 오류: %s", result)

    async def poll_for_token(self, authorization: DeviceAuthorization) -> dict:
        self.state = DeviceFlowState.POLLING
        interval = authorization.interval
        started = _clock()

        while True:
            if _clock() - started >= POLL_TIMEOUT_SECONDS:
                self.state = DeviceFlowState.TIMED_OUT
                raise AuthError(
                    "OAuth device flow timed out after 10 minutes. Please try again.",
                    AuthErrorCode.DEVICE_FLOW_TIMEOUT,
                )

            payload = await self._request_token(authorization)
            if is_token_success(payload):
                return payload

            error = payload.get("error") if isinstance(payload, dict) else None
            if error == "authorization_pending":
                pass
            elif error == "slow_down":
                interval += SLOW_DOWN_INCREMENT_SECONDS
                logger.debug("slow_down 수신, 폴링 간격 %s초", interval)
            else:
                logger.error("토큰 폴링 오류 응답: %s", payload)
                raise AuthError(
                    "Unexpected error requesting authorization grant",
                    AuthErrorCode.UNEXPECTED_AUTH_GRANT_ERROR,
                    payload,
                )

            await _sleep(interval)

    async def _request_token(self, authorization: DeviceAuthorization) -> object:
        params = {"client_id": self.config.client_id}
        if self.config.client_secret:
            params["client_secret"] = self.config.client_secret
        params["grant_type"] = DEVICE_CODE_GRANT_TYPE
        params["device_code"] = authorization.device_code
        if self.config.code_verifier:
            params["code_verifier"] = self.config.code_verifier

        try:
            response = await self.http.post(
                self.config.token_endpoint, data=params, headers=_FORM_HEADERS
            )
            logger.debug("POST %s %s", self.config.token_endpoint, response.status_code)
            return response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise AuthError(
                "Unexpected error requesting authorization grant",
                AuthErrorCode.UNEXPECTED_AUTH_GRANT_ERROR,
                e,
            ) from e

    # --- 3. 결과 ---

    def _tokens_from(self, payload: dict) -> Tokens:
        tokens = Tokens.from_token_response(payload)
        if not tokens.refresh_token:
            raise AuthError(
                "Your OAuth Authorization Server issued an access token but not a "
                "refresh token.  Please configure your OAuth application with id: "
                f"{self.config.client_id} to issue refresh tokens.",
                AuthErrorCode.NO_REFRESH_TOKEN_ISSUED,
            )
        return tokens
