from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from pipeboom.errors import ParseError


class PlayerState(StrEnum):
    PLAYING = "Playing"
    PAUSED = "Paused"
    STOPPED = "Stopped"
    FAST_FORWARDING = "FastForwarding"
    REWINDING = "Rewinding"
    UNKNOWN = "Unknown"

    @classmethod
    def from_token(cls, token: object) -> PlayerState:
        """Decode the lowercase token osascript returns. Never raises."""
        return _TOKENS.get(token, cls.UNKNOWN) if isinstance(token, str) else cls.UNKNOWN


_TOKENS = {
    "playing": PlayerState.PLAYING,
    "paused": PlayerState.PAUSED,
    "stopped": PlayerState.STOPPED,
    "fastForwarding": PlayerState.FAST_FORWARDING,
    "rewinding": PlayerState.REWINDING,
}


@dataclass(frozen=True)
class Song:
    """Snapshot of the current track, re-read every poll cycle."""

    id: int
    name: str
    artist: str
    album: str
    album_artist: str = ""
    year: int = 0
    duration: float = 0.0
    player_position: float = 0.0

    @classmethod
    def from_script(cls, data: dict[str, Any]) -> Song:
        """Build from the track properties dict returned by the scripting bridge."""
        try:
            return cls(
                id=int(data["id"]),
                name=str(data["name"]),
                artist=str(data["artist"]),
                album=str(data["album"]),
                album_artist=str(data.get("albumArtist") or ""),
                year=int(data.get("year") or 0),
                duration=float(data.get("duration") or 0.0),
                player_position=float(data.get("playerPosition") or 0.0),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ParseError(f"Failed to parse song data: {e}") from e


@dataclass(frozen=True)
class SongDetails:
    """Artwork and links resolved for a song by the lookup service."""

    artwork: str
    album_url: str
    song_url: str

    def __post_init__(self) -> None:
        for name in ("artwork", "album_url", "song_url"):
            object.__setattr__(self, name, getattr(self, name).replace('"', ""))
