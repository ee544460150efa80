from __future__ import annotations

import threading
from typing import Optional

from rich.console import Console
from rich.text import Text

LEVEL_STYLES = {
    "INFO": "bold green",
    "WARN": "bold yellow",
    "ERROR": "bold red",
    "DEBUG": "bold blue",
    "DONE": "bold cyan",
}


def make_console(stderr: bool = True) -> Console:
    return Console(stderr=stderr, highlight=False)


class RichLogger:
    """Leveled log lines on a rich console; stderr by default so reports own stdout."""

    def __init__(self, console: Optional[Console] = None, verbose: bool = False, quiet: bool = False):
        self.console = console or make_console()
        self.verbose = verbose
        self.quiet = quiet
        self.warnings = 0
        self.errors = 0
        self._lock = threading.Lock()

    def _emit(self, level: str, msg: str) -> None:
        with self._lock:
            if level == "WARN":
                self.warnings += 1
            elif level == "ERROR":
                self.errors += 1
            self.console.log(Text(level.ljust(5), style=LEVEL_STYLES[level]), Text(msg), log_locals=False)

    def info(self, msg: str) -> None:
        if not self.quiet:
            self._emit("INFO", msg)

    def warn(self, msg: str) -> None:
        self._emit("WARN", msg)

    def error(self, msg: str) -> None:
        self._emit("ERROR", msg)

    def debug(self, msg: str) -> None:
        if self.verbose:
            self._emit("DEBUG", msg)

    def done(self, msg: str) -> None:
        if not self.quiet:
            self._emit("DONE", msg)
