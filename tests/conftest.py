"""
공용 fixture

- state_dir: XDG_STATE_HOME 을 tmp_path 로 돌려 토큰/캐시/로그 파일을 격리한다
- http_mock: respx 라우터 (호출되지 않은 라우트가 있어도 실패하지 않음)
- terminal: 실제 stdin 없이 Enter 입력과 브라우저 열기를 흉내 낸다
- fake_clock: 장치 인증 폴링의 시계와 sleep 을 가짜로 바꾼다
"""
from __future__ import annotations

import asyncio
import io

import httpx
import pytest
import respx

from glean_mcp.auth.terminal import Terminal
from glean_mcp.config import BasicConfig, OAuthConfig, TokenConfig
from glean_mcp.context import AppContext

BASE_URL = "https://acme-be.glean.com/"
ISSUER = "https://auth.example.com"
DEVICE_ENDPOINT = "https://auth.example.com/oauth/device"
TOKEN_ENDPOINT = "https://auth.example.com/oauth/token"
CLIENT_ID = "client-123"


class FakeTerminal(Terminal):
    def __init__(self, interactive: bool = True):
        super().__init__(stdin=io.StringIO(), stdout=io.StringIO(), open_browser=self._record_open)
        self.interactive = interactive
        self.enter = asyncio.Event()
        self.opened: list[str] = []
        self.waiting = False
        self.released = False

    def _record_open(self, url: str) -> bool:
        self.opened.append(url)
        return True

    def is_interactive(self) -> bool:
        return self.interactive

    @property
    def output(self) -> str:
        return self.stdout.getvalue()

    async def wait_for_enter(self, cancel: asyncio.Event) -> bool:
        self.waiting = True
        enter_wait = asyncio.ensure_future(self.enter.wait())
        cancel_wait = asyncio.ensure_future(cancel.wait())
        try:
            done, _ = await asyncio.wait({enter_wait, cancel_wait}, return_when=asyncio.FIRST_COMPLETED)
            return enter_wait in done and not cancel.is_set()
        finally:
            enter_wait.cancel()
            cancel_wait.cancel()
            self.released = True


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        # 다른 작업(Enter 대기)이 진행될 기회를 준다
        for _ in range(10):
            await asyncio.sleep(0)


def make_oauth_config(**overrides) -> OAuthConfig:
    values = dict(
        base_url=BASE_URL,
        issuer=ISSUER,
        client_id=CLIENT_ID,
        authorization_endpoint=DEVICE_ENDPOINT,
        token_endpoint=TOKEN_ENDPOINT,
    )
    values.update(overrides)
    return OAuthConfig(**values)


@pytest.fixture
def state_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path / "state"))
    return tmp_path / "state" / "glean"


@pytest.fixture
def http_mock():
    with respx.mock(assert_all_called=False) as router:
        yield router


@pytest.fixture
async def http():
    async with httpx.AsyncClient() as client:
        yield client


@pytest.fixture
def terminal():
    return FakeTerminal()


@pytest.fixture
def fake_clock(monkeypatch):
    clock = FakeClock()
    monkeypatch.setattr("glean_mcp.auth.device_flow._clock", clock)
    monkeypatch.setattr("glean_mcp.auth.device_flow._sleep", clock.sleep)
    return clock


@pytest.fixture
def make_ctx(http, state_dir, terminal):
    def _make(config=None) -> AppContext:
        return AppContext(
            config=config if config is not None else make_oauth_config(),
            state_dir=state_dir,
            http=http,
            terminal=terminal,
            owns_http=False,
        )

    return _make


@pytest.fixture
def oauth_config():
    return make_oauth_config()


@pytest.fixture
def token_config():
    return TokenConfig(base_url=BASE_URL, token="glean-token")


@pytest.fixture
def basic_config():
    return BasicConfig(base_url=BASE_URL)
