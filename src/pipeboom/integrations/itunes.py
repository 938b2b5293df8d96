"""iTunes Search lookup — resolves artwork and store links for a song."""

from __future__ import annotations

import time
from typing import Any, Callable

import httpx
import structlog
from pydantic import BaseModel, Field, ValidationError

from pipeboom.errors import NetworkError, ParseError
from pipeboom.models.player import Song, SongDetails

log = structlog.get_logger()

SEARCH_URL = "https://itunes.apple.com/search"
NO_ART = "no_art"
ONE_WEEK = 7 * 24 * 3600.0


class SearchResult(BaseModel):
    wrapper_type: str = Field("", alias="wrapperType")
    artist_name: str = Field("", alias="artistName")
    album_name: str = Field("", alias="collectionName")
    artwork_url: str = Field("", alias="artworkUrl100")
    album_url: str = Field("", alias="collectionViewUrl")
    artist_url: str | None = Field(None, alias="artistViewUrl")
    song_url: str | None = Field(None, alias="trackViewUrl")


class SearchResults(BaseModel):
    result_count: int = Field(0, alias="resultCount")
    results: list[SearchResult] = []


class ResponseCache:
    """In-memory TTL cache of decoded search responses, keyed by query."""

    def __init__(
        self,
        ttl_seconds: float = ONE_WEEK,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[tuple[str, str], tuple[float, SearchResults]] = {}

    def get(self, key: tuple[str, str]) -> SearchResults | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if self._clock() - stored_at > self.ttl_seconds:
            del self._entries[key]
            return None
        return value

    def put(self, key: tuple[str, str], value: SearchResults) -> None:
        now = self._clock()
        self._prune(now)
        self._entries[key] = (now, value)

    def _prune(self, now: float) -> None:
        expired = [k for k, (stored_at, _) in self._entries.items() if now - stored_at > self.ttl_seconds]
        for k in expired:
            del self._entries[k]

    def __len__(self) -> int:
        return len(self._entries)


def primary_artist(song: Song) -> str:
    """Album artist if set, else the first credited artist."""
    if song.album_artist:
        return song.album_artist
    for sep in (",", "&"):
        if sep in song.artist:
            return song.artist.split(sep, 1)[0].strip()
    return song.artist.strip()


class ITunesClient:
    """Looks up song details, caching responses for the life of the process."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        cache_ttl_seconds: float = ONE_WEEK,
    ) -> None:
        self._client = client or httpx.AsyncClient(timeout=10.0)
        self._cache = ResponseCache(cache_ttl_seconds)

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get_details(self, song: Song) -> SongDetails:
        """Song search first, album search as fallback."""
        details = await self._search_song(song)
        if details is not None:
            return details
        return await self._search_album(song)

    async def _search_song(self, song: Song) -> SongDetails | None:
        query = f"{song.artist.replace('&', '')} {song.name} {song.album}"
        results = await self._search("song", query)
        if not results.results:
            return None
        hit = results.results[0]
        return SongDetails(
            artwork=hit.artwork_url,
            album_url=hit.album_url,
            song_url=hit.song_url or "",
        )

    async def _search_album(self, song: Song) -> SongDetails:
        query = f"{primary_artist(song)} {song.album}"
        results = await self._search("album", query)
        if not results.results:
            return SongDetails(artwork=NO_ART, album_url="", song_url="")
        hit = results.results[0]
        return SongDetails(
            artwork=hit.artwork_url or NO_ART,
            album_url=hit.album_url,
            song_url=hit.album_url,
        )

    async def _search(self, entity: str, query: str) -> SearchResults:
        term = query.replace("*", "")
        key = (entity, term)
        cached = self._cache.get(key)
        if cached is not None:
            log.debug("itunes cache hit", entity=entity, term=term)
            return cached

        params: dict[str, Any] = {"media": "music", "entity": entity, "limit": 1, "term": term}
        log.debug("searching itunes", entity=entity, term=term)
        try:
            response = await self._client.get(SEARCH_URL, params=params)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as e:
            raise NetworkError(f"iTunes search failed: {e}") from e
        except ValueError as e:
            raise ParseError(f"iTunes returned invalid JSON: {e}") from e

        try:
            results = SearchResults.model_validate(payload)
        except ValidationError as e:
            raise ParseError(f"Unexpected iTunes payload: {e}") from e

        self._cache.put(key, results)
        return results
