"""
command.py - configure 명령 구현

자격 증명 우선순위: 플래그 > --env 파일 > 프로세스 환경변수
토큰과 인스턴스가 모두 있으면 토큰 인증으로, 아니면 OAuth 장치 인증을 거친 뒤 설정 파일을 쓴다.
"""
from __future__ import annotations

import logging
import os
from typing import Callable, Mapping

import httpx
import typer

from .. import __version__
from ..auth.manager import ensure_auth_token_presence, force_authorize
from ..config import ENV_INSTANCE, ENV_URL, ConfigError, load_env_file
from ..context import AppContext
from ..preflight import validate_instance
from .clients import CLIENTS, ConfigureOptions, get_client, is_url
from .writer import WriteResult, write_config

logger = logging.getLogger(__name__)

_INSTANCE_KEYS = ("GLEAN_INSTANCE", "GLEAN_SUBDOMAIN", "GLEAN_URL", "GLEAN_BASE_URL")


class ConfigureError(Exception):
    pass


def _first(source: Mapping[str, str | None], keys) -> str | None:
    for key in keys:
        if source.get(key):
            return source[key]
    return None


def load_credentials(
    options: ConfigureOptions, environ: Mapping[str, str] | None = None
) -> tuple[str | None, str | None]:
    """(instance_or_url, api_token) 를 플래그 > .env 파일 > 환경변수 순으로 고른다."""
    environ = os.environ if environ is None else environ

    file_values: dict[str, str] = {}
    if options.env_path:
        try:
            file_values = load_env_file(options.env_path)
        except ConfigError as e:
            typer.echo(f"Warning: {e}", err=True)

    instance_or_url = (
        options.url
        or options.instance
        or _first(file_values, _INSTANCE_KEYS)
        or _first(environ, _INSTANCE_KEYS)
    )
    api_token = options.token or file_values.get("GLEAN_API_TOKEN") or environ.get("GLEAN_API_TOKEN")
    return instance_or_url or None, api_token or None


def validate_flags(
    client: str | None,
    token: str | None,
    instance: str | None,
    url: str | None,
    env: str | None,
    environ: Mapping[str, str] | None = None,
) -> bool:
    """configure 플래그 조합을 검사한다. 문제는 stderr 로 출력하고 계속 진행 가능 여부를 반환한다."""
    environ = os.environ if environ is None else environ

    if not client:
        typer.echo("Error: --client parameter is required", err=True)
        typer.echo("Run with --help for usage information", err=True)
        typer.echo(supported_clients_text(), err=True)
        return False

    has_any_instance = bool(instance or url or _first(environ, _INSTANCE_KEYS))
    has_any_token = bool(token or environ.get("GLEAN_API_TOKEN"))

    if has_any_token and not has_any_instance:
        typer.echo(
            "Warning: Configuring without complete credentials.\n"
            "You must provide either:\n"
            "  1. Both --token and --instance, or\n"
            "  2. --env pointing to a .env file containing GLEAN_API_TOKEN and GLEAN_INSTANCE\n"
            "\n"
            "Continuing with configuration, but you will need to set credentials manually later.",
            err=True,
        )
        return True

    if instance and url:
        typer.echo(
            "Error: Specify your Glean instance with either --url or --instance but not both.",
            err=True,
        )
        typer.echo("Run with --help for usage information", err=True)
        return False

    if not has_any_token and not has_any_instance and not env:
        typer.echo(
            "Error: You must provide either:\n"
            "  1. Both --token and --instance for authentication, or\n"
            "  2. --env pointing to a .env file containing GLEAN_INSTANCE and GLEAN_API_TOKEN",
            err=True,
        )
        typer.echo("Run with --help for usage information", err=True)
        return False

    return True


def supported_clients_text() -> str:
    width = max(len(name) for name in CLIENTS) + 2
    lines = ["", "Supported MCP clients:", "====================="]
    lines += [f"  {name.ljust(width)} {client.display_name}" for name, client in CLIENTS.items()]
    lines += [
        "",
        "Usage:",
        "  glean-mcp configure --client <client> [--token <token>] [--instance <instance>]",
        "  glean-mcp configure --client <client> --env <path-to-env-file>",
        "",
        f"Version: v{__version__}",
    ]
    return "\n".join(lines)


def _report(result: WriteResult, display_name: str) -> None:
    if result.action == "unchanged":
        typer.echo(f"Glean MCP configuration already exists in {display_name}.")
        typer.echo(f"Configuration file: {result.path}")
    elif result.action == "replaced":
        typer.echo(f"Error parsing existing configuration file: {result.parse_error}", err=True)
        typer.echo(f"Backup created at: {result.backup_path}")
        typer.echo(f"New configuration file created at: {result.path}")
    elif result.action == "updated":
        typer.echo(f"Updated configuration file at: {result.path}")
    else:
        typer.echo(f"Created new configuration file at: {result.path}")


async def _preflight(instance: str, http: httpx.AsyncClient | None) -> bool:
    if http is not None:
        return await validate_instance(http, instance)
    async with httpx.AsyncClient(timeout=10.0) as client:
        return await validate_instance(client, instance)


async def configure(
    client_name: str,
    options: ConfigureOptions,
    environ: Mapping[str, str] | None = None,
    http: httpx.AsyncClient | None = None,
    open_context: Callable[..., AppContext] = AppContext.open,
) -> WriteResult:
    client = get_client(client_name)
    if client is None:
        raise ConfigureError(
            f"Unsupported MCP client: {client_name}. Supported clients: {', '.join(CLIENTS)}"
        )
    if options.workspace and client.name != "vscode":
        raise ConfigureError("--workspace flag is only supported for VS Code")

    typer.echo(f"Configuring Glean MCP for {client.display_name}...")
    config_path = client.config_path(options)

    skip_preflight = (os.environ if environ is None else environ).get("_SKIP_INSTANCE_PREFLIGHT") == "true"
    if options.instance and not skip_preflight:
        if not await _preflight(options.instance, http):
            raise ConfigureError(
                f"Unable to establish a connection to Glean instance: {options.instance}. "
                'Check that the instance name is spelled correctly (e.g. "acme" for acme-be.glean.com).'
            )

    instance_or_url, api_token = load_credentials(options, environ)

    if api_token and instance_or_url:
        logger.debug("토큰 인증으로 설정")
    else:
        if not instance_or_url:
            raise ConfigureError("Instance or URL is required for OAuth configuration")
        flags = {ENV_URL if is_url(instance_or_url) else ENV_INSTANCE: instance_or_url}
        # 로깅은 호출한 CLI 가 이미 설정했다
        async with open_context(flags=flags, environ=environ, http=http, logging_enabled=False) as ctx:
            if not await ensure_auth_token_presence(ctx):
                await force_authorize(ctx)
        api_token = None

    new_config = client.config_template(instance_or_url, api_token, options)
    result = write_config(config_path, new_config, client, options)
    _report(result, client.display_name)
    if result.action != "unchanged":
        typer.echo(client.success_message(config_path, options))
    return result
