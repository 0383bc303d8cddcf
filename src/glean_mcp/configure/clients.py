"""
clients.py - MCP 클라이언트별 설정 파일 형식

클라이언트마다 설정 파일 위치와 Glean 서버 항목을 넣는 위치가 다르다.
    claude, cursor, windsurf, claude-code : {"mcpServers": {...}}
    vscode (전역)                          : settings.json 의 {"mcp": {"servers": {...}}}
    vscode (--workspace)                   : .vscode/mcp.json 의 {"servers": {...}}
    goose                                  : config.yaml 의 extensions

GLEAN_MCP_CONFIG_DIR 이 설정되어 있으면 홈 디렉토리 대신 그 아래에서 경로를 계산한다.
"""
from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable
from urllib.parse import urlparse

# 이 이름들만 덮어쓰고 나머지 서버 항목은 그대로 둔다
GLEAN_SERVER_NAMES = ("glean", "glean_local", "glean_agents")

LOCAL_SERVER_COMMAND = "glean-mcp-server"
REMOTE_CONNECT_PACKAGE = "@gleanwork/connect-mcp-server"
GOOSE_TIMEOUT = 300


@dataclass
class ConfigureOptions:
    token: str | None = None
    instance: str | None = None
    url: str | None = None
    env_path: str | None = None
    remote: bool = False
    agents: bool = False
    workspace: bool = False


# --- 서버 항목 ---

def is_url(value: str) -> bool:
    return value.startswith("http://") or value.startswith("https://")


def build_mcp_url(instance_or_url: str, agents: bool = False) -> str:
    target = "agents" if agents else "default"
    if is_url(instance_or_url):
        parsed = urlparse(instance_or_url)
        base = f"{parsed.scheme}://{parsed.netloc}/mcp"
    else:
        base = f"https://{instance_or_url}-be.glean.com/mcp"
    return f"{base}/{target}/sse"


def build_mcp_servers(
    instance_or_url: str = "<glean instance name>",
    api_token: str | None = None,
    options: ConfigureOptions | None = None,
) -> dict[str, dict]:
    """클라이언트 설정에 넣을 서버 항목들. 키는 glean_local, glean, glean_agents 중 하나."""
    options = options or ConfigureOptions()
    env: dict[str, str] = {}

    if not options.remote:
        if is_url(instance_or_url):
            env["GLEAN_URL"] = instance_or_url
        else:
            env["GLEAN_INSTANCE"] = instance_or_url
        if api_token:
            env["GLEAN_API_TOKEN"] = api_token
        return {
            "glean_local": {
                "type": "stdio",
                "command": LOCAL_SERVER_COMMAND,
                "args": [],
                "env": env,
            }
        }

    if api_token:
        env["GLEAN_API_TOKEN"] = api_token
    args = ["-y", REMOTE_CONNECT_PACKAGE, build_mcp_url(instance_or_url, options.agents)]
    if not api_token:
        args += ["--header", "X-Glean-Auth-Type:OAUTH"]
    name = "glean_agents" if options.agents else "glean"
    return {name: {"command": "npx", "args": args, "type": "stdio", "env": env}}


def merge_mcp_servers(existing: dict, new: dict) -> dict:
    result = dict(existing or {})
    for name in GLEAN_SERVER_NAMES:
        if name in new:
            result[name] = new[name]
    return result


# --- 경로 ---

def _platform() -> str:
    """테스트에서 패치 가능."""
    return sys.platform


def _base_dir() -> Path:
    override = os.environ.get("GLEAN_MCP_CONFIG_DIR")
    return Path(override) if override else Path.home()


def _app_data_dir() -> Path:
    """Windows %APPDATA%. GLEAN_MCP_CONFIG_DIR 이 있으면 그쪽을 쓴다."""
    if os.environ.get("GLEAN_MCP_CONFIG_DIR"):
        return _base_dir()
    app_data = os.environ.get("APPDATA")
    return Path(app_data) if app_data else Path.home() / "AppData" / "Roaming"


def _user_config_dir() -> Path:
    """플랫폼별 사용자 애플리케이션 설정 디렉토리."""
    platform = _platform()
    if platform == "darwin":
        return _base_dir() / "Library" / "Application Support"
    if platform == "win32":
        return _app_data_dir()
    return _base_dir() / ".config"


# --- 클라이언트 ---

@dataclass
class MCPClient:
    name: str
    display_name: str
    path_resolver: Callable[[ConfigureOptions], Path]
    instructions: list[str] = field(default_factory=list)
    file_format: str = "json"

    def config_path(self, options: ConfigureOptions | None = None) -> Path:
        return self.path_resolver(options or ConfigureOptions())

    def config_template(
        self, instance_or_url: str, api_token: str | None, options: ConfigureOptions
    ) -> dict:
        return {"mcpServers": build_mcp_servers(instance_or_url, api_token, options)}

    def update_config(self, existing: dict, new: dict, options: ConfigureOptions) -> dict:
        result = dict(existing)
        result["mcpServers"] = merge_mcp_servers(result.get("mcpServers") or {}, new["mcpServers"])
        return result

    def has_existing_config(self, existing: dict, new: dict, options: ConfigureOptions) -> bool:
        """새 서버 항목이 이미 똑같이 들어 있으면 True."""
        current = existing.get("mcpServers") or {}
        return all(current.get(k) == v for k, v in new["mcpServers"].items())

    def success_message(self, path: Path, options: ConfigureOptions) -> str:
        steps = "\n".join(f"{i}. {step}" for i, step in enumerate(self.instructions, start=1))
        return (
            f"\n{self.display_name} MCP configuration has been configured to: {path}\n\n"
            f"To use it:\n{steps}\n"
        )


class VSCodeClient(MCPClient):
    def config_template(self, instance_or_url, api_token, options):
        servers = build_mcp_servers(instance_or_url, api_token, options)
        if options.workspace:
            return {"servers": servers}
        return {"mcp": {"servers": servers}}

    def _servers(self, config: dict, options: ConfigureOptions) -> dict:
        if options.workspace:
            return config.get("servers") or {}
        return (config.get("mcp") or {}).get("servers") or {}

    def update_config(self, existing, new, options):
        result = dict(existing)
        merged = merge_mcp_servers(self._servers(existing, options), self._servers(new, options))
        if options.workspace:
            result["servers"] = merged
        else:
            mcp = dict(result.get("mcp") or {})
            mcp["servers"] = merged
            result["mcp"] = mcp
        return result

    def has_existing_config(self, existing, new, options):
        current = self._servers(existing, options)
        return all(current.get(k) == v for k, v in self._servers(new, options).items())

    def success_message(self, path, options):
        if options.workspace:
            return (
                f"\nVS Code workspace MCP configuration has been configured: {path}\n\n"
                "To use it:\n"
                "1. Restart VS Code\n"
                '2. Open the Chat view (⌃⌘I on Mac, Ctrl+Alt+I on Windows/Linux) and select "Agent" mode\n'
                '3. Click the "Tools" button to see and use Glean tools in Agent mode\n'
                "4. You'll be asked for approval when Agent uses these tools\n"
            )
        return super().success_message(path, options)


class GooseClient(MCPClient):
    def config_template(self, instance_or_url, api_token, options):
        extensions = {}
        for name, server in build_mcp_servers(instance_or_url, api_token, options).items():
            extensions[name] = {
                "args": server["args"],
                "bundled": None,
                "cmd": server["command"],
                "description": "",
                "enabled": True,
                "env_keys": [],
                "envs": server["env"],
                "name": name,
                "timeout": GOOSE_TIMEOUT,
                "type": server.get("type", "stdio"),
            }
        return {"extensions": extensions}

    def update_config(self, existing, new, options):
        result = dict(existing)
        result["extensions"] = merge_mcp_servers(result.get("extensions") or {}, new["extensions"])
        return result

    def has_existing_config(self, existing, new, options):
        current = existing.get("extensions") or {}
        return all(current.get(k) == v for k, v in new["extensions"].items())


def _vscode_path(options: ConfigureOptions) -> Path:
    if options.workspace:
        return Path.cwd() / ".vscode" / "mcp.json"
    return _user_config_dir() / "Code" / "User" / "settings.json"


def _goose_path(options: ConfigureOptions) -> Path:
    if _platform() == "win32":
        return _app_data_dir() / "goose" / "config.yaml"
    return _base_dir() / ".config" / "goose" / "config.yaml"


CLIENTS: dict[str, MCPClient] = {
    "claude": MCPClient(
        "claude",
        "Claude Desktop",
        lambda options: _user_config_dir() / "Claude" / "claude_desktop_config.json",
        [
            "Restart Claude Desktop",
            "MCP tools will be available in your conversations",
            "The model will have access to Glean search and other configured tools",
        ],
    ),
    "claude-code": MCPClient(
        "claude-code",
        "Claude Code",
        lambda options: _base_dir() / ".claude.json",
        ["Restart Claude Code", "Run `claude mcp list` and verify the server is listed"],
    ),
    "cursor": MCPClient(
        "cursor",
        "Cursor",
        lambda options: _base_dir() / ".cursor" / "mcp.json",
        [
            "Restart Cursor",
            "Agent will now have access to Glean tools",
            "You'll be asked for approval when Agent uses these tools",
        ],
    ),
    "goose": GooseClient(
        "goose",
        "Goose",
        _goose_path,
        ["Restart Goose"],
        file_format="yaml",
    ),
    "vscode": VSCodeClient(
        "vscode",
        "VS Code",
        _vscode_path,
        [
            'Enable MCP support in VS Code by adding "chat.mcp.enabled": true to your user settings',
            "Restart VS Code",
            'Open the Chat view (Ctrl+Alt+I or ⌃⌘I) and select "Agent" mode from the dropdown',
            'Click the "Tools" button to see and use Glean tools in Agent mode',
            "You'll be asked for approval when Agent uses these tools",
        ],
    ),
    "windsurf": MCPClient(
        "windsurf",
        "Windsurf",
        lambda options: _base_dir() / ".codeium" / "windsurf" / "mcp_config.json",
        [
            "Open Windsurf Settings > Advanced Settings",
            "Scroll to the Cascade section",
            "Press the refresh button after configuration",
            "You should now see Glean in your available MCP servers",
        ],
    ),
}


def get_client(name: str) -> MCPClient | None:
    return CLIENTS.get(name.lower())
