"""Async Spotify Web API helpers.

Every helper takes an ``httpx.AsyncClient`` built by :func:`spotify_client`,
so one request handler shares a single connection pool across all of its
lookups.
"""
import base64
import logging
import re
from typing import Dict, List, Literal, Optional

import httpx
from pydantic import ValidationError

import config
from models import PlayedTrack, SearchParameters, SpotifyTrack

log = logging.getLogger("sonolens.spotify")

MAX_SEEDS = 5
ADD_TRACKS_CHUNK = 100

TimeRange = Literal["short_term", "medium_term", "long_term"]


class SpotifyAPIError(RuntimeError):
    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class SpotifyAuthError(SpotifyAPIError):
    """Spotify rejected the access token (HTTP 401)."""


def _bearer_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}

def spotify_client(access: str, transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=config.SPOTIFY_API,
        headers=_bearer_headers(access),
        timeout=config.SPOTIFY_TIMEOUT,
        transport=transport,
    )

def _fail(what: str, r: httpx.Response) -> SpotifyAPIError:
    log.error("%s: %s %s", what, r.status_code, r.text[:300])
    cls = SpotifyAuthError if r.status_code == 401 else SpotifyAPIError
    return cls(f"{what}: {r.status_code} {r.reason_phrase}", status=r.status_code)

def _parse_tracks(items) -> List[SpotifyTrack]:
    out = []
    for it in items or []:
        if not it:
            continue
        try:
            out.append(SpotifyTrack.model_validate(it))
        except ValidationError as e:
            log.warning("skipping malformed track %s: %s", (it or {}).get("id"), e.error_count())
    return out


# ------------------ profile ------------------

async def get_user_profile(client: httpx.AsyncClient) -> dict:
    r = await client.get("/me")
    if r.status_code != 200:
        raise _fail("Failed to get user profile", r)
    return r.json()

async def get_top_artists(client: httpx.AsyncClient, time_range: TimeRange = "medium_term",
                          limit: int = 10) -> List[dict]:
    r = await client.get("/me/top/artists", params={"time_range": time_range, "limit": limit})
    if r.status_code != 200:
        raise _fail("Failed to get top artists", r)
    return r.json().get("items", []) or []

async def get_top_tracks(client: httpx.AsyncClient, time_range: TimeRange = "medium_term",
                         limit: int = 10) -> List[SpotifyTrack]:
    r = await client.get("/me/top/tracks", params={"time_range": time_range, "limit": limit})
    if r.status_code != 200:
        raise _fail("Failed to get top tracks", r)
    return _parse_tracks(r.json().get("items"))

async def get_recently_played(client: httpx.AsyncClient, limit: int = 10) -> List[PlayedTrack]:
    r = await client.get("/me/player/recently-played", params={"limit": limit})
    if r.status_code != 200:
        raise _fail("Failed to get recently played tracks", r)
    out = []
    for it in r.json().get("items", []) or []:
        try:
            out.append(PlayedTrack.model_validate(it))
        except ValidationError:
            log.warning("skipping malformed play history entry")
    return out


# ------------------ discovery ------------------

def _allot_seeds(params: SearchParameters) -> Dict[str, List[str]]:
    # genres first, then artists, then tracks; Spotify accepts 5 in total
    seeds, room = {}, MAX_SEEDS
    for key in ("seed_genres", "seed_artists", "seed_tracks"):
        values = getattr(params, key) or []
        if values and room > 0:
            seeds[key] = values[:room]
            room -= len(seeds[key])
    return seeds

async def get_recommendations(client: httpx.AsyncClient, params: SearchParameters,
                              market: Optional[str] = None) -> List[SpotifyTrack]:
    """/recommendations with id seeds (artist and track seeds must be ids)."""
    seeds = _allot_seeds(params)
    if not seeds:
        raise SpotifyAPIError("At least one seed (genre, artist, or track) is required for recommendations")

    # built by hand: Spotify rejects %2C-encoded commas in seed lists
    parts = [f"{k}={','.join(v)}" for k, v in seeds.items()]
    parts += [f"{k}={v}" for k, v in params.targets().items()]
    parts.append(f"limit={params.limit}")
    if market:
        parts.append(f"market={market}")

    log.info("recommendations seeds=%s targets=%s", seeds, params.targets())
    r = await client.get("/recommendations?" + "&".join(parts))
    if r.status_code != 200:
        raise _fail("Failed to get recommendations", r)
    return _parse_tracks(r.json().get("tracks"))

async def search_tracks_by_mood(client: httpx.AsyncClient, genres: List[str], limit: int = 20,
                                market: Optional[str] = None) -> List[SpotifyTrack]:
    query = " OR ".join(f'genre:"{g}"' for g in genres[:3])
    q = {"q": query, "type": "track", "limit": limit}
    if market:
        q["market"] = market
    log.info("search by genre q=%s", query)
    r = await client.get("/search", params=q)
    if r.status_code != 200:
        raise _fail("Failed to search tracks", r)
    return _parse_tracks(((r.json().get("tracks") or {}).get("items")))

async def search_tracks(client: httpx.AsyncClient, query: str, limit: int = 10) -> List[SpotifyTrack]:
    r = await client.get("/search", params={"q": query, "type": "track", "limit": limit})
    if r.status_code != 200:
        raise _fail("Failed to search tracks", r)
    return _parse_tracks(((r.json().get("tracks") or {}).get("items")))

async def _first_item(client: httpx.AsyncClient, name: str, kind: str) -> Optional[dict]:
    try:
        r = await client.get("/search", params={"q": name, "type": kind, "limit": 1})
    except httpx.HTTPError as e:
        log.warning("search %s %r failed: %s", kind, name, e)
        return None
    if r.status_code != 200:
        log.warning("search %s %r failed: %s", kind, name, r.status_code)
        return None
    try:
        body = r.json()
    except ValueError:
        log.warning("search %s %r returned a non-JSON body", kind, name)
        return None
    page = body.get(f"{kind}s") if isinstance(body, dict) else None
    items = page.get("items") if isinstance(page, dict) else None
    if not isinstance(items, list):
        log.warning("search %s %r returned an unexpected shape", kind, name)
        return None
    hit = items[0] if items else None
    return hit if isinstance(hit, dict) else None

async def search_artist(client: httpx.AsyncClient, name: str) -> Optional[str]:
    hit = await _first_item(client, name, "artist")
    return hit.get("id") if hit else None

async def search_track(client: httpx.AsyncClient, name: str) -> Optional[str]:
    hit = await _first_item(client, name, "track")
    return hit.get("id") if hit else None

async def search_track_full(client: httpx.AsyncClient, name: str) -> Optional[SpotifyTrack]:
    """Best catalog match for a free-text track name, or None. Never raises."""
    try:
        hit = await _first_item(client, name, "track")
        if not hit:
            log.info("no match for %r", name)
            return None
        return SpotifyTrack.model_validate(hit)
    except ValidationError as e:
        log.warning("could not read search result for %r: %s", name, e)
        return None

async def get_available_genre_seeds(client: httpx.AsyncClient) -> List[str]:
    r = await client.get("/recommendations/available-genre-seeds")
    if r.status_code != 200:
        raise _fail("Failed to get genre seeds", r)
    return r.json().get("genres", []) or []


# ------------------ playlist ops ------------------

async def create_playlist(client: httpx.AsyncClient, user_id: str, name: str,
                          description: str = "", public: bool = False) -> dict:
    r = await client.post(f"/users/{user_id}/playlists",
                          json={"name": name, "description": description, "public": public})
    if r.status_code not in (200, 201):
        raise _fail("Failed to create playlist", r)
    return r.json()

async def add_tracks_to_playlist(client: httpx.AsyncClient, playlist_id: str,
                                 uris: List[str]) -> Optional[str]:
    snapshot = None
    for i in range(0, len(uris), ADD_TRACKS_CHUNK):
        r = await client.post(f"/playlists/{playlist_id}/tracks",
                              json={"uris": uris[i:i + ADD_TRACKS_CHUNK]})
        if r.status_code not in (200, 201):
            raise _fail("Failed to add tracks to playlist", r)
        snapshot = r.json().get("snapshot_id")
    return snapshot

_DATA_URI = re.compile(r"^data:[^;]+;base64,")

async def upload_playlist_cover(client: httpx.AsyncClient, playlist_id: str, image: str) -> None:
    """PUT a base64 JPEG as the playlist cover. Accepts a data URI too."""
    b64 = _DATA_URI.sub("", image.strip())
    base64.b64decode(b64, validate=True)
    r = await client.put(f"/playlists/{playlist_id}/images",
                         content=b64, headers={"Content-Type": "image/jpeg"})
    if r.status_code not in (200, 202):
        raise _fail("Failed to upload playlist cover", r)
