"""
terminal.py - 장치 인증 흐름의 터미널 입출력

사용자 코드 출력, Enter 입력 대기, 브라우저 열기를 담당한다.
Enter 대기는 취소 가능한 코루틴이다. 토큰 폴링이 먼저 끝나면
cancel 이벤트로 대기를 중단하고 stdin 리스너를 반드시 제거한다.
"""
from __future__ import annotations

import asyncio
import logging
import sys
import threading
import webbrowser
from typing import Callable, TextIO

logger = logging.getLogger(__name__)


class Terminal:
    def __init__(
        self,
        stdin: TextIO | None = None,
        stdout: TextIO | None = None,
        open_browser: Callable[[str], bool] | None = None,
    ):
        self.stdin = stdin or sys.stdin
        self.stdout = stdout or sys.stdout
        self._open_browser = open_browser or webbrowser.open

    def is_interactive(self) -> bool:
        isatty = getattr(self.stdin, "isatty", None)
        return bool(isatty and isatty())

    def write(self, text: str) -> None:
        self.stdout.write(text)
        self.stdout.flush()

    def open_browser(self, url: str) -> None:
        try:
            opened = self._open_browser(url)
        except webbrowser.Error as e:
            logger.warning("브라우저 열기 실패: %s", e)
            opened = False
        if not opened:
            self.write(f"Unable to open a browser. Please visit: {url}\n")

    async def wait_for_enter(self, cancel: asyncio.Event) -> bool:
        """Enter 입력을 기다린다. 입력이 먼저 오면 True, cancel이 먼저 설정되면 False."""
        loop = asyncio.get_running_loop()
        line_read: asyncio.Future = loop.create_future()

        def _on_line() -> None:
            if not line_read.done():
                line_read.set_result(None)

        remove_listener = self._listen(loop, _on_line)
        cancel_wait = asyncio.ensure_future(cancel.wait())
        try:
            done, _ = await asyncio.wait(
                {line_read, cancel_wait}, return_when=asyncio.FIRST_COMPLETED
            )
            return line_read in done and not cancel.is_set()
        finally:
            remove_listener()
            cancel_wait.cancel()
            if not line_read.done():
                line_read.cancel()

    def _listen(self, loop: asyncio.AbstractEventLoop, on_line: Callable[[], None]) -> Callable[[], None]:
        """stdin 한 줄을 읽으면 on_line을 호출하도록 등록하고, 해제 함수를 반환한다."""
        try:
            fd = self.stdin.fileno()

            def _read() -> None:
                self.stdin.readline()
                on_line()

            loop.add_reader(fd, _read)
            return lambda: loop.remove_reader(fd)
        except (NotImplementedError, AttributeError, OSError, ValueError):
            pass

        # add_reader 를 지원하지 않는 루프(Windows 등)에서는 데몬 스레드로 읽는다.
        # 스레드는 프로세스 종료를 막지 않고, 해제 후 들어온 입력은 무시된다.
        active = threading.Event()
        active.set()

        def _read_in_thread() -> None:
            self.stdin.readline()
            if active.is_set():
                loop.call_soon_threadsafe(on_line)

        threading.Thread(target=_read_in_thread, name="glean-mcp-stdin", daemon=True).start()
        return active.clear
