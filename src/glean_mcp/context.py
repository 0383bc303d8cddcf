"""
context.py - 프로세스 단위 실행 컨텍스트

설정, 상태 디렉토리, HTTP 클라이언트, 터미널을 한 객체에 묶는다.
CLI 명령과 MCP 서버는 시작할 때 하나를 열고 끝날 때 닫는다.

    async with AppContext.open(flags={"GLEAN_INSTANCE": "acme"}) as ctx:
        await force_authorize(ctx)
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

import httpx

from . import __version__
from .auth.terminal import Terminal
from .config import GleanConfig, resolve_config
from .log import setup_logging, teardown_logging
from .xdg import get_state_dir

USER_AGENT = f"glean-mcp/{__version__}"
DEFAULT_TIMEOUT = 30.0


@dataclass
class AppContext:
    config: GleanConfig
    state_dir: Path
    http: httpx.AsyncClient
    terminal: Terminal = field(default_factory=Terminal)
    owns_http: bool = True
    owns_logging: bool = False

    @classmethod
    def open(
        cls,
        flags: Mapping[str, str | None] | None = None,
        env_file: str | Path | None = None,
        environ: Mapping[str, str] | None = None,
        state_dir: Path | None = None,
        http: httpx.AsyncClient | None = None,
        terminal: Terminal | None = None,
        config: GleanConfig | None = None,
        trace: bool = False,
        logging_enabled: bool = True,
    ) -> "AppContext":
        """설정을 해석하고 컨텍스트를 만든다. ConfigError 는 그대로 전파한다."""
        state_dir = state_dir or get_state_dir()
        if logging_enabled:
            setup_logging(state_dir, trace=trace)
        try:
            if config is None:
                config = resolve_config(flags, env_file, environ, state_dir)
        except Exception:
            if logging_enabled:
                teardown_logging()
            raise

        owns_http = http is None
        if http is None:
            http = httpx.AsyncClient(timeout=DEFAULT_TIMEOUT, headers={"User-Agent": USER_AGENT})
        return cls(
            config=config,
            state_dir=state_dir,
            http=http,
            terminal=terminal or Terminal(),
            owns_http=owns_http,
            owns_logging=logging_enabled,
        )

    async def aclose(self) -> None:
        if self.owns_http:
            await self.http.aclose()
        if self.owns_logging:
            teardown_logging()

    async def __aenter__(self) -> "AppContext":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
