"""glean_mcp - Glean 검색 백엔드용 MCP 서버와 MCP 클라이언트 설정 도구."""

__version__ = "0.1.0"
