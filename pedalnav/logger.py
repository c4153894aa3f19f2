"""Ride log: timestamped lines to the console, a log file and a listener."""

import json
from datetime import datetime
from typing import Callable, Optional, TextIO

RULE = "-" * 60


def format_line(message: str, data: Optional[dict] = None, when: Optional[datetime] = None) -> str:
    stamp = (when or datetime.now()).isoformat(timespec="milliseconds")
    if not data:
        return f"[{stamp}] {message}"
    return f"[{stamp}] {message} | {json.dumps(data, default=str)}"


class Logger:
    """Fans each event out to stdout, an append-only file and a callback.

    The callback receives the raw message and data (the debug map uses it
    to mirror the log); stdout and the file get the formatted line.
    """

    def __init__(self, log_path: Optional[str] = None, callback: Optional[Callable] = None,
                 quiet: bool = False):
        self.log_path = log_path
        self.callback = callback
        self.quiet = quiet
        self.file: Optional[TextIO] = open(log_path, "a") if log_path else None
        if self.file:
            self._append(f"\n{RULE}\npedalnav ride - {datetime.now().isoformat()}\n{RULE}\n")

    def _append(self, text: str):
        self.file.write(text + "\n")
        self.file.flush()

    def log(self, message: str, data: Optional[dict] = None):
        line = format_line(message, data)
        if not self.quiet:
            print(line)
        if self.file:
            self._append(line)
        if self.callback:
            self.callback(message, data)

    def close(self):
        handle, self.file = self.file, None
        if handle:
            handle.close()
