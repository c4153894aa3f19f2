"""Location sources: the Termux GPS, and a recorder/player for ride traces."""

import json
import subprocess
import time
from datetime import datetime
from typing import Optional

from .config import CONFIG
from .errors import LocationUnavailableError
from .logger import Logger
from .models import LocationFix

TERMUX_COMMAND = ["termux-location", "-p", "gps", "-r", "once"]

# Bounds on the replay sleep, in seconds
MIN_REPLAY_INTERVAL = 0.1
MAX_REPLAY_INTERVAL = 5.0


class GPS:
    """Phone GPS read through the Termux API.

    get_fix() returns None while there is simply no fix yet and raises
    LocationUnavailableError when the location API is missing or the
    permission was denied.
    """

    def __init__(self, runner=subprocess.run, clock=time.time):
        self.runner = runner
        self.clock = clock
        self.last_fix: Optional[LocationFix] = None
        self.consecutive_failures = 0

    def _miss(self) -> None:
        self.consecutive_failures += 1

    def get_fix(self, timeout: int = 30) -> Optional[LocationFix]:
        try:
            result = self.runner(TERMUX_COMMAND, capture_output=True, text=True, timeout=timeout)
        except FileNotFoundError as e:
            self._miss()
            raise LocationUnavailableError("termux-location not installed") from e
        except subprocess.TimeoutExpired:
            self._miss()
            return None

        stdout = (result.stdout or "").strip()
        if "permission" in f"{stdout} {result.stderr or ''}".lower():
            self._miss()
            raise LocationUnavailableError("Location permission denied")
        if result.returncode != 0 or not stdout:
            self._miss()
            return None

        try:
            reading = json.loads(stdout)
            fix = LocationFix.create(
                reading["latitude"], reading["longitude"], self.clock(),
                speed=reading.get("speed"),
                heading=reading.get("bearing"),
                accuracy=reading.get("accuracy"),
            )
        except (json.JSONDecodeError, KeyError, ValueError):
            self._miss()
            return None

        self.last_fix, self.consecutive_failures = fix, 0
        return fix

    def get_status(self) -> str:
        if self.consecutive_failures:
            return f"GPS: {self.consecutive_failures} consecutive failures"
        if self.last_fix and self.last_fix.accuracy:
            return f"GPS OK, accuracy {self.last_fix.accuracy:.0f}m"
        return "GPS OK"


class GPSRecorder:
    """Wraps another source and keeps every poll, misses included, for replay"""

    def __init__(self, source, record_path: str, clock=time.time):
        self.source = source
        self.record_path = record_path
        self.clock = clock
        self.started = clock()
        self.trace: list[dict] = []

    def get_fix(self, timeout: int = 30) -> Optional[LocationFix]:
        fix = self.source.get_fix(timeout)
        now = self.clock()
        self.trace.append({
            "elapsed": now - self.started,
            "timestamp": now,
            "fix": fix.to_dict() if fix else None,
            "status": self.source.get_status(),
        })
        return fix

    def get_status(self) -> str:
        return self.source.get_status()

    def save(self, logger: Optional[Logger] = None):
        document = {"recorded_at": datetime.now().isoformat(), "trace": self.trace}
        with open(self.record_path, "w") as f:
            json.dump(document, f, indent=2)
        if logger:
            logger.log("GPS trace saved", {"path": self.record_path, "entries": len(self.trace)})


class GPSPlayback:
    """Replays a recorded trace one poll at a time.

    The ride loop asks get_poll_interval() how long to sleep so the replay
    keeps the recorded pacing, divided by `speed`.
    """

    def __init__(self, playback_path: str, speed: float = 1.0):
        self.playback_path = playback_path
        self.speed = speed
        self.index = 0
        self.last_fix: Optional[LocationFix] = None
        self.consecutive_failures = 0
        with open(playback_path) as f:
            self.trace: list[dict] = json.load(f)["trace"]

    def _elapsed(self, i: int) -> float:
        return self.trace[i].get("elapsed", 0)

    def get_fix(self, timeout: int = 30) -> Optional[LocationFix]:
        if self.is_finished():
            return None
        recorded = self.trace[self.index].get("fix")
        self.index += 1
        if not recorded:
            self.consecutive_failures += 1
            return None
        self.last_fix = LocationFix.from_dict(recorded)
        self.consecutive_failures = 0
        return self.last_fix

    def get_poll_interval(self) -> float:
        if not 0 < self.index < len(self.trace):
            return CONFIG["gps_poll_interval"] / self.speed
        gap = (self._elapsed(self.index) - self._elapsed(self.index - 1)) / self.speed
        return min(max(gap, MIN_REPLAY_INTERVAL), MAX_REPLAY_INTERVAL)

    def is_finished(self) -> bool:
        return self.index >= len(self.trace)

    def get_status(self) -> str:
        position = f"{self.index}/{len(self.trace)}"
        if self.consecutive_failures:
            return f"Playback: {self.consecutive_failures} failures ({position})"
        return f"Playback OK ({position})"
