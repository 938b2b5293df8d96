import shutil
import tempfile
from pathlib import Path

import pytest

from pipeboom.errors import DiscordError
from pipeboom.integrations import apple_music
from pipeboom.models.player import PlayerState, Song, SongDetails

SONG = Song(
    id=42,
    name="Windowlicker",
    artist="Aphex Twin",
    album="Windowlicker",
    album_artist="Aphex Twin",
    year=1999,
    duration=367.0,
    player_position=61.5,
)

DETAILS = SongDetails(
    artwork="https://example.com/art.jpg",
    album_url="https://music.apple.com/album/1",
    song_url="https://music.apple.com/album/1?i=2",
)


class FakePlayer:
    """Stands in for the osascript adapter."""

    def __init__(self) -> None:
        self.open = {"Discord": True, "Music": True}
        self.state = PlayerState.PLAYING
        self.song: Song | None = SONG
        self.errors: dict[str, Exception] = {}

    def _maybe_raise(self, name: str) -> None:
        if name in self.errors:
            raise self.errors[name]

    def is_open(self, app_name: str) -> bool:
        self._maybe_raise("is_open")
        return self.open.get(app_name, False)

    def get_player_state(self, app_name: str) -> PlayerState:
        self._maybe_raise("get_player_state")
        return self.state

    def get_current_song(self, app_name: str) -> Song | None:
        self._maybe_raise("get_current_song")
        return self.song


class FakeDiscordClient:
    """Records what the controller pushes instead of talking to Discord."""

    def __init__(self, client_id: str, fail_connect: bool = False) -> None:
        self.client_id = client_id
        self.fail_connect = fail_connect
        self.is_connected = False
        self.updates: list[tuple[Song, SongDetails]] = []
        self.clears = 0
        self.closed = False

    def connect(self) -> None:
        if self.fail_connect:
            raise DiscordError("Discord is not running")
        self.is_connected = True

    def update_activity(self, song: Song, details: SongDetails) -> None:
        self.updates.append((song, details))

    def clear_activity(self) -> None:
        self.clears += 1

    def close(self) -> None:
        self.closed = True
        self.is_connected = False


class FakeITunes:
    def __init__(self, details: SongDetails = DETAILS) -> None:
        self.details = details
        self.error: Exception | None = None
        self.calls = 0
        self.closed = False

    async def get_details(self, song: Song) -> SongDetails:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.details

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def player(monkeypatch: pytest.MonkeyPatch) -> FakePlayer:
    fake = FakePlayer()
    monkeypatch.setattr(apple_music, "is_open", fake.is_open)
    monkeypatch.setattr(apple_music, "get_player_state", fake.get_player_state)
    monkeypatch.setattr(apple_music, "get_current_song", fake.get_current_song)
    return fake


class DiscordFactory:
    """Client factory handed to the controller; keeps every client it made."""

    def __init__(self) -> None:
        self.clients: list[FakeDiscordClient] = []
        self.fail_connect = False

    def __call__(self, client_id: str) -> FakeDiscordClient:
        client = FakeDiscordClient(client_id, fail_connect=self.fail_connect)
        self.clients.append(client)
        return client


@pytest.fixture
def song() -> Song:
    return SONG


@pytest.fixture
def details() -> SongDetails:
    return DETAILS


@pytest.fixture
def discord() -> DiscordFactory:
    return DiscordFactory()


@pytest.fixture
def itunes() -> FakeITunes:
    return FakeITunes()


@pytest.fixture
def socket_path():
    """Short socket path; AF_UNIX paths are limited to ~104 bytes."""
    directory = Path(tempfile.mkdtemp(prefix="pb-", dir="/tmp"))
    yield directory / "pb.sock"
    shutil.rmtree(directory, ignore_errors=True)
