from pipeboom.models.player import PlayerState, Song, SongDetails

__all__ = [
    "PlayerState",
    "Song",
    "SongDetails",
]
