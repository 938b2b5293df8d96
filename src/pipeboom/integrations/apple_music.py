"""Apple Music adapter — queries the player through osascript (JXA)."""

from __future__ import annotations

import json
import subprocess
from typing import Any

import structlog

from pipeboom.errors import AppleMusicError, FileSystemError, ParseError
from pipeboom.models.player import PlayerState, Song

log = structlog.get_logger()

DISCORD_APP = "Discord"


def run_osascript(expression: str) -> Any:
    """Evaluate a JXA expression and decode its JSON-stringified result."""
    script = f"(() => JSON.stringify({expression}))();"
    try:
        result = subprocess.run(
            ["osascript", "-l", "JavaScript", "-e", script],
            capture_output=True,
            text=True,
        )
    except OSError as e:
        raise FileSystemError(f"Failed to launch osascript: {e}") from e

    if result.returncode != 0:
        stderr = result.stderr.strip()
        log.debug("osascript failed", stderr=stderr)
        raise AppleMusicError(f"osascript execution failed: {stderr}")

    try:
        return json.loads(result.stdout)
    except json.JSONDecodeError as e:
        log.debug("osascript output is not json", output=result.stdout)
        raise ParseError(f"Failed to parse Apple Music script output: {e}") from e


def is_open(app_name: str) -> bool:
    """Whether a process named ``app_name`` is running."""
    return bool(run_osascript(f"Application('System Events').processes['{app_name}'].exists()"))


def get_player_state(app_name: str) -> PlayerState:
    return PlayerState.from_token(run_osascript(f"Application('{app_name}').playerState()"))


def get_current_song(app_name: str) -> Song | None:
    """Return the current track, or None when nothing is loaded.

    Scripting errors (e.g. no current track) are treated as "no song".
    """
    expression = (
        "{"
        f"...Application('{app_name}').currentTrack().properties(), "
        f"playerPosition: Application('{app_name}').playerPosition()"
        "}"
    )
    try:
        data = run_osascript(expression)
    except AppleMusicError as e:
        log.warning("assuming no song due to script error", error=e.message)
        return None

    if not isinstance(data, dict) or not data.get("album"):
        return None
    return Song.from_script(data)
