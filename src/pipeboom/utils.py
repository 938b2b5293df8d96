from __future__ import annotations

import platform
import time

import structlog

log = structlog.get_logger()

FALLBACK_URL = "https://music.apple.com/"


def truncate(text: str, max_length: int = 128) -> str:
    """Cut ``text`` to at most ``max_length`` code points."""
    return text[:max_length]


def current_time() -> int:
    """Wall-clock seconds since the epoch."""
    return int(time.time())


def macos_version() -> tuple[int, int] | None:
    """Return ``(major, minor)`` of the running macOS, or None elsewhere."""
    release = platform.mac_ver()[0]
    if not release:
        return None
    parts = release.split(".")
    try:
        return int(parts[0]), int(parts[1]) if len(parts) > 1 else 0
    except ValueError:
        return None


def player_app_name() -> str:
    """Name of the native player: "Music" since Catalina, "iTunes" before."""
    version = macos_version()
    if version is None:
        log.warning("could not determine macos version, defaulting app name", app="Music")
        return "Music"
    return "Music" if version >= (10, 15) else "iTunes"
