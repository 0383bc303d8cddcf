"""MCP 클라이언트 설정 파일에 Glean 서버를 등록한다."""
from .clients import CLIENTS, ConfigureOptions, build_mcp_servers, get_client
from .command import ConfigureError, configure, load_credentials, supported_clients_text, validate_flags
from .writer import WriteResult, write_config

__all__ = [
    "CLIENTS",
    "ConfigureError",
    "ConfigureOptions",
    "WriteResult",
    "build_mcp_servers",
    "configure",
    "get_client",
    "load_credentials",
    "supported_clients_text",
    "validate_flags",
    "write_config",
]
