"""Discord Rich Presence client wrapper."""

from __future__ import annotations

from typing import Any

import structlog
from pypresence import Presence
from pypresence.exceptions import PyPresenceException
from pypresence.types import ActivityType

from pipeboom.errors import DiscordError
from pipeboom.models.player import Song, SongDetails
from pipeboom.utils import FALLBACK_URL, current_time, truncate

log = structlog.get_logger()

MAX_FIELD_LENGTH = 128
SMALL_IMAGE = "apple_music_logo"
BUTTON_LABEL = "Listen on Apple Music"


def listen_url(details: SongDetails) -> str:
    """Track link, else album link, else the store front page."""
    return details.song_url or details.album_url or FALLBACK_URL


def build_activity(song: Song, details: SongDetails, now: int | None = None) -> dict[str, Any]:
    """Presence payload for ``song``; ``start`` is when the track began playing."""
    if now is None:
        now = current_time()
    return {
        "activity_type": ActivityType.LISTENING,
        "state": truncate(song.artist, MAX_FIELD_LENGTH),
        "details": truncate(song.name, MAX_FIELD_LENGTH),
        "start": now - int(song.player_position),
        "large_image": details.artwork,
        "large_text": truncate(song.album, MAX_FIELD_LENGTH),
        "small_image": SMALL_IMAGE,
        "buttons": [{"label": BUTTON_LABEL, "url": listen_url(details)}],
    }


class DiscordClient:
    """Synchronous presence client. Owned by the controller, one per run.

    The underlying pypresence client drives its own event loop, so callers
    inside an asyncio task should invoke these methods via ``asyncio.to_thread``.
    """

    def __init__(self, client_id: str) -> None:
        self.client_id = client_id
        self.is_connected = False
        self._rpc: Presence | None = None

    def connect(self) -> None:
        try:
            self._rpc = Presence(self.client_id)
            self._rpc.connect()
        except (PyPresenceException, OSError) as e:
            self._rpc = None
            raise DiscordError(f"Failed to connect to Discord: {e}") from e
        self.is_connected = True
        log.info("connected to discord rpc", client_id=self.client_id)

    def update_activity(self, song: Song, details: SongDetails) -> None:
        payload = build_activity(song, details)
        try:
            self._require().update(**payload)
        except (PyPresenceException, OSError) as e:
            raise DiscordError(f"Failed to update activity: {e}") from e

    def clear_activity(self) -> None:
        try:
            self._require().clear()
        except (PyPresenceException, OSError) as e:
            raise DiscordError(f"Failed to clear activity: {e}") from e

    def close(self) -> None:
        if not self.is_connected or self._rpc is None:
            return
        try:
            self._rpc.close()
        except (PyPresenceException, OSError) as e:
            raise DiscordError(f"Failed to close Discord client: {e}") from e
        finally:
            self.is_connected = False
            self._rpc = None

    def _require(self) -> Presence:
        if self._rpc is None or not self.is_connected:
            raise DiscordError("Discord client is not connected")
        return self._rpc
