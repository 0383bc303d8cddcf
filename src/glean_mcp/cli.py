"""
cli.py - glean-mcp 명령줄 진입점

    glean-mcp configure --client cursor --instance acme
    glean-mcp clients
    glean-mcp --instance acme auth            장치 인증 실행
    glean-mcp --instance acme auth-discover   OAuth 메타데이터 발견만 수행
    glean-mcp --instance acme auth-refresh    토큰 강제 갱신
    glean-mcp --instance acme auth-test       토큰으로 chat 요청을 보내 확인

실패는 stderr 한 줄 + 종료 코드 1 로 끝난다. CLI 계층에서는 재시도하지 않는다.
"""
from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

import typer

from .auth.errors import AuthError
from .auth.manager import discover_oauth_config, force_authorize, force_refresh_tokens
from .client import GleanAPIError, build_client
from .config import ENV_API_TOKEN, ENV_INSTANCE, ENV_URL, ConfigError, sanitize_config
from .configure import ConfigureError, ConfigureOptions, configure, supported_clients_text, validate_flags
from .context import AppContext
from .formatters import format_chat_response
from .log import setup_logging, teardown_logging
from .tools import build_chat_request

logger = logging.getLogger(__name__)

T = TypeVar("T")

app = typer.Typer(
    name="glean-mcp",
    help="Configure MCP clients for Glean and manage Glean OAuth credentials.",
    add_completion=False,
    no_args_is_help=True,
)


@dataclass
class GlobalOptions:
    instance: Optional[str] = None
    url: Optional[str] = None
    token: Optional[str] = None
    env: Optional[str] = None
    trace: bool = False

    def flags(self) -> dict[str, Optional[str]]:
        return {ENV_INSTANCE: self.instance, ENV_URL: self.url, ENV_API_TOKEN: self.token}


@app.callback()
def main_callback(
    ctx: typer.Context,
    instance: Optional[str] = typer.Option(None, "--instance", "-i", help="Glean instance name"),
    url: Optional[str] = typer.Option(None, "--url", "-u", help="Glean base URL"),
    token: Optional[str] = typer.Option(None, "--token", "-t", help="Glean API token"),
    env: Optional[str] = typer.Option(None, "--env", "-e", help="Path to a .env file"),
    trace: bool = typer.Option(False, "--trace", help="Enable debug logging"),
):
    ctx.obj = GlobalOptions(instance=instance, url=url, token=token, env=env, trace=trace)


def _fail(prefix: str, error: Exception) -> None:
    typer.echo(f"{prefix}: {error}", err=True)
    raise typer.Exit(1)


def _run_with_context(
    options: GlobalOptions,
    action: Callable[[AppContext], Awaitable[T]],
    failure_prefix: str,
) -> T:
    """컨텍스트를 열고 action 을 실행한 뒤 닫는다. 어떤 오류든 한 줄로 출력하고 종료한다."""

    async def _run() -> T:
        async with AppContext.open(
            flags=options.flags(), env_file=options.env, trace=options.trace
        ) as app_ctx:
            try:
                return await action(app_ctx)
            except (AuthError, ConfigError, GleanAPIError):
                raise
            except Exception:
                # 로그 핸들러가 살아 있는 동안 traceback 을 파일에 남긴다
                logger.exception("%s", failure_prefix)
                raise

    try:
        return asyncio.run(_run())
    except Exception as e:
        _fail(failure_prefix, e)


# --- configure ---

@app.command(name="configure")
def configure_command(
    ctx: typer.Context,
    client: Optional[str] = typer.Option(None, "--client", "-c", help="MCP client to configure"),
    token: Optional[str] = typer.Option(None, "--token", "-t", help="Glean API token"),
    instance: Optional[str] = typer.Option(None, "--instance", "-i", help="Glean instance name"),
    url: Optional[str] = typer.Option(None, "--url", "-u", help="Glean base URL"),
    env: Optional[str] = typer.Option(None, "--env", "-e", help="Path to a .env file with credentials"),
    workspace: bool = typer.Option(False, "--workspace", help="Write VS Code workspace config"),
    remote: bool = typer.Option(False, "--remote", help="Configure the remote Glean MCP server"),
    agents: bool = typer.Option(False, "--agents", help="Configure the remote Glean agents server"),
):
    """Configure an MCP client to use Glean."""
    if not validate_flags(client, token, instance, url, env):
        raise typer.Exit(1)

    options = ConfigureOptions(
        token=token,
        instance=instance,
        url=url,
        env_path=env,
        remote=remote or agents,
        agents=agents,
        workspace=workspace,
    )
    setup_logging(trace=ctx.obj.trace)
    try:
        asyncio.run(configure(client, options))
    except (ConfigureError, AuthError, ConfigError) as e:
        _fail("Configuration failed", e)
    except Exception as e:
        logger.exception("configure 실패")
        _fail("Configuration failed", e)
    finally:
        teardown_logging()


@app.command(name="clients")
def clients_command():
    """List supported MCP clients."""
    typer.echo(supported_clients_text())


# --- auth ---

@app.command(name="auth")
def auth_command(ctx: typer.Context):
    """Run the OAuth device authorization flow and save tokens."""
    _run_with_context(ctx.obj, force_authorize, "Authorization failed")
    typer.echo("Authorized successfully.")


@app.command(name="auth-discover")
def auth_discover_command(ctx: typer.Context):
    """Discover OAuth metadata for the Glean instance."""
    config = _run_with_context(ctx.obj, discover_oauth_config, "Authorization discovery failed")
    typer.echo(json.dumps(sanitize_config(config), indent=2))


@app.command(name="auth-refresh")
def auth_refresh_command(ctx: typer.Context):
    """Refresh the saved OAuth access token."""
    _run_with_context(ctx.obj, force_refresh_tokens, "Refreshing access token failed")
    typer.echo("Refreshed authorization token.")


async def _auth_test(app_ctx: AppContext) -> str:
    client = await build_client(app_ctx)
    response = await client.chat(build_chat_request("Who am I?"))
    return format_chat_response(response)


@app.command(name="auth-test")
def auth_test_command(ctx: typer.Context):
    """Validate the saved access token against the Glean server."""
    _run_with_context(ctx.obj, _auth_test, "Failed to validate access token with server")
    typer.echo("Access token accepted.")


def main():
    app()


if __name__ == "__main__":
    main()
