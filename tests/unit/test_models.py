"""Tests for player models."""

import pytest

from pipeboom.errors import ParseError
from pipeboom.models.player import PlayerState, Song, SongDetails


class TestPlayerState:
    @pytest.mark.parametrize(
        "token, expected",
        [
            ("playing", PlayerState.PLAYING),
            ("paused", PlayerState.PAUSED),
            ("stopped", PlayerState.STOPPED),
            ("fastForwarding", PlayerState.FAST_FORWARDING),
            ("rewinding", PlayerState.REWINDING),
        ],
    )
    def test_known_tokens(self, token: str, expected: PlayerState) -> None:
        assert PlayerState.from_token(token) is expected

    @pytest.mark.parametrize("token", ["PLAYING", "seeking", "", None, 3])
    def test_unknown_tokens(self, token) -> None:
        assert PlayerState.from_token(token) is PlayerState.UNKNOWN


class TestSong:
    def test_from_script(self) -> None:
        song = Song.from_script(
            {
                "id": 7,
                "name": "Roygbiv",
                "artist": "Boards of Canada",
                "album": "Music Has the Right to Children",
                "albumArtist": "Boards of Canada",
                "year": 1998,
                "duration": 151.2,
                "playerPosition": 12.75,
                "genre": "Electronic",
            }
        )
        assert song.id == 7
        assert song.album_artist == "Boards of Canada"
        assert song.player_position == 12.75

    def test_optional_fields_default(self) -> None:
        song = Song.from_script({"id": 1, "name": "n", "artist": "a", "album": "b"})
        assert song.album_artist == ""
        assert song.year == 0
        assert song.player_position == 0.0

    def test_missing_required_field(self) -> None:
        with pytest.raises(ParseError, match="song data"):
            Song.from_script({"name": "n", "artist": "a", "album": "b"})


class TestSongDetails:
    def test_strips_quotes(self) -> None:
        details = SongDetails(artwork='"art"', album_url='"a"', song_url='s"')
        assert details == SongDetails(artwork="art", album_url="a", song_url="s")
