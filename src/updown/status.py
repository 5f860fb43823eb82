from __future__ import annotations

import queue
import threading
from dataclasses import dataclass
from typing import List, Optional, Sequence, TextIO

from rich.console import Console
from rich.live import Live
from rich.text import Text

POLL_INTERVAL = 0.1


@dataclass
class _Message:
    text: str
    error: bool = False


class TerminalStatus:
    """Writes operation output and a live status line to a terminal.

    Messages are queued by the operation and written by :meth:`run`, which is
    meant to execute on its own thread until its lifetime event is set. The
    status line is only drawn on an interactive console and is cleared on exit.
    """

    def __init__(
        self,
        stdout: Optional[TextIO] = None,
        stderr: Optional[TextIO] = None,
        quiet: bool = False,
    ) -> None:
        self._out = Console(file=stdout, quiet=quiet, highlight=False)
        self._err = Console(file=stderr, stderr=stderr is None, highlight=False)
        self._quiet = quiet
        self._messages: "queue.Queue[_Message]" = queue.Queue()
        self._status: List[str] = []
        self._status_lock = threading.Lock()

    def print(self, text: str) -> None:
        if self._quiet:
            return
        self._messages.put(_Message(text))

    def error(self, text: str) -> None:
        self._messages.put(_Message(text, error=True))

    def set_status(self, lines: Sequence[str]) -> None:
        if self._quiet:
            return
        with self._status_lock:
            self._status = list(lines)

    def run(self, lifetime: threading.Event) -> None:
        with Live(
            self._status_text(),
            console=self._out,
            auto_refresh=False,
            transient=True,
            redirect_stdout=False,
            redirect_stderr=False,
        ) as live:
            while not lifetime.is_set():
                try:
                    message = self._messages.get(timeout=POLL_INTERVAL)
                except queue.Empty:
                    live.update(self._status_text(), refresh=True)
                    continue
                self._write(message)
            self._flush()

    def _flush(self) -> None:
        while True:
            try:
                message = self._messages.get_nowait()
            except queue.Empty:
                break
            self._write(message)

    def _write(self, message: _Message) -> None:
        console = self._err if message.error else self._out
        console.print(message.text.rstrip("\n"), markup=False, emoji=False, soft_wrap=True)

    def _status_text(self) -> Text:
        with self._status_lock:
            return Text("\n".join(self._status))
