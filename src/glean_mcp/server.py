"""
server.py - Glean MCP 서버 메인 모듈

stdio 전송으로 동작한다. MCP 클라이언트(Claude Desktop, Cursor 등)가 이 프로세스를
직접 실행하고 stdin/stdout 으로 MCP 메시지를 주고받는다.
그래서 stdout 에는 아무것도 출력하지 않고, 안내 메시지는 stderr, 로그는 파일로 보낸다.

설정은 환경변수로 받는다 (configure 명령이 클라이언트 설정 파일에 넣어준다).
    GLEAN_INSTANCE 또는 GLEAN_URL, 그리고 GLEAN_API_TOKEN (없으면 OAuth)
"""
from __future__ import annotations

import asyncio
import logging
import sys
from typing import Optional

import typer
from mcp.server.fastmcp import FastMCP

from . import __version__
from .config import ENV_API_TOKEN, ENV_INSTANCE, ENV_URL, ConfigError, sanitize_config
from .context import AppContext
from .tools import register_tools

logger = logging.getLogger(__name__)

SERVER_NAME = "Glean Tools MCP"

_INSTRUCTIONS = (
    "Use these tools to find information inside the user's company. "
    "company_search finds documents across connected data sources, "
    "chat asks Glean Assistant for a synthesized answer, "
    "people_profile_search looks up colleagues, "
    "and read_documents returns the full text of documents found by search."
)


def build_server(ctx: AppContext) -> FastMCP:
    mcp = FastMCP(SERVER_NAME, instructions=_INSTRUCTIONS)
    register_tools(mcp, ctx)
    return mcp


async def serve(flags: dict[str, str | None] | None = None, trace: bool = False) -> None:
    async with AppContext.open(flags=flags, trace=trace) as ctx:
        logger.info("서버 시작 v%s: %s", __version__, sanitize_config(ctx.config))
        await build_server(ctx).run_stdio_async()


def _run(
    instance: Optional[str] = typer.Option(None, "--instance", "-i", help="Glean instance name"),
    url: Optional[str] = typer.Option(None, "--url", "-u", help="Glean base URL"),
    token: Optional[str] = typer.Option(None, "--token", "-t", help="Glean API token"),
    trace: bool = typer.Option(False, "--trace", help="Enable debug logging"),
) -> None:
    flags = {ENV_INSTANCE: instance, ENV_URL: url, ENV_API_TOKEN: token}
    try:
        asyncio.run(serve(flags, trace=trace))
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        raise typer.Exit(1)


# 서버 엔트리포인트
def main():
    typer.run(_run)


if __name__ == "__main__":
    main()
