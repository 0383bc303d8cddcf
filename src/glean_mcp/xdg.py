"""
xdg.py - 상태 디렉토리 경로 계산

토큰, OAuth 메타데이터 캐시, 로그 파일은 모두 XDG state 디렉토리 아래에 저장된다.
    1. XDG_STATE_HOME 이 설정되어 있으면 $XDG_STATE_HOME/<app>
    2. Windows: %LOCALAPPDATA%/state/<app> (없으면 ~/AppData/Local/state/<app>)
    3. 그 외: ~/.local/state/<app>
"""
from __future__ import annotations

import os
import sys
from pathlib import Path

APP_NAME = "glean"


def _platform() -> str:
    """현재 플랫폼 이름. 테스트에서 패치 가능."""
    return sys.platform


def get_state_dir(app_name: str = APP_NAME) -> Path:
    """앱별 상태 디렉토리 경로를 반환한다. 디렉토리를 만들지는 않는다."""
    xdg_state_home = os.environ.get("XDG_STATE_HOME")
    if xdg_state_home:
        return Path(xdg_state_home) / app_name

    if _platform() == "win32":
        local_app_data = os.environ.get("LOCALAPPDATA")
        base = Path(local_app_data) if local_app_data else Path.home() / "AppData" / "Local"
        return base / "state" / app_name

    return Path.home() / ".local" / "state" / app_name


def ensure_private_file(path: Path) -> None:
    """파일이 없으면 0600 권한으로 만든다. 상위 디렉토리도 함께 생성한다.

    Windows에서는 권한 비트가 의미 없으므로 생성만 한다.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.exists():
        return
    fd = os.open(path, os.O_WRONLY | os.O_CREAT, 0o600)
    os.close(fd)
