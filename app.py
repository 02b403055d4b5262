# app.py
import asyncio
import base64
import logging
from pathlib import Path
from typing import List, Optional
from urllib.parse import quote

import httpx
import requests
from fastapi import FastAPI, File, Form, Query, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError

import config
from batch import process_batches
from models import (
    AnalyzeImageRequest, CreatePlaylistRequest, MoodAnalysis, RecommendRequest,
    ReplacementRequest, SavedPlaylist, SpotifyTrack,
)
from mood_map import mood_to_search_parameters, normalize_genres
from spotify import (
    SpotifyAPIError, SpotifyAuthError, add_tracks_to_playlist, create_playlist,
    get_recently_played, get_recommendations, get_top_artists, get_top_tracks,
    get_user_profile, search_artist, search_track_full, search_tracks,
    search_tracks_by_mood, spotify_client, upload_playlist_cover,
)
from spotify_oauth import auth_url, exchange_code_for_token, new_state, refresh_token as _refresh_token
from vision import VisionError, analyze_image

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
log = logging.getLogger("sonolens.app")

app = FastAPI(title="SonoLens")
templates = Jinja2Templates(directory=str(Path(__file__).with_name("templates")))

VALID_IMAGE_TYPES = ("image/jpeg", "image/png", "image/webp")
DEFAULT_DESCRIPTION = "Created with SonoLens - AI-powered playlist from image analysis"
REFRESH_MAX_AGE = 60 * 60 * 24 * 30


class NoSeedsError(ValueError):
    pass

# ------------------ tiny utils ------------------

def _error(message: str, status: int) -> JSONResponse:
    return JSONResponse({"success": False, "error": message}, status_code=status)

def _set_cookie(resp, name: str, value: str, max_age: int):
    resp.set_cookie(name, value, max_age=max_age, httponly=True,
                    secure=config.COOKIE_SECURE, samesite="lax", path="/")

def _clear_auth_cookies(resp):
    for name in (config.ACCESS_COOKIE, config.REFRESH_COOKIE, config.STATE_COOKIE):
        resp.delete_cookie(name, path="/")

def _access(request: Request) -> Optional[str]:
    return request.cookies.get(config.ACCESS_COOKIE)

def _unique(tracks: List[Optional[SpotifyTrack]]) -> List[SpotifyTrack]:
    seen, out = set(), []
    for t in tracks:
        if t and t.id not in seen:
            seen.add(t.id); out.append(t)
    return out

async def _market(client) -> Optional[str]:
    try:
        return (await get_user_profile(client)).get("country") or None
    except (SpotifyAPIError, httpx.HTTPError) as e:
        log.info("no user market (%s), continuing without it", e)
        return None

@app.exception_handler(RequestValidationError)
async def invalid_request(request: Request, exc: RequestValidationError):
    first = (exc.errors() or [{}])[0]
    field = ".".join(str(p) for p in first.get("loc", ())[1:]) or "request"
    return _error(f"Invalid {field}: {first.get('msg', 'bad value')}", 400)

# ------------------ routes: ui + oauth ------------------

@app.get("/")
def home(request: Request, error: Optional[str] = None):
    return templates.TemplateResponse(request, "index.html", {
        "authenticated": bool(_access(request)),
        "error": error,
    })

@app.get("/auth/login")
def login():
    state = new_state()
    resp = RedirectResponse(auth_url(state), status_code=302)
    _set_cookie(resp, config.STATE_COOKIE, state, max_age=600)
    return resp

@app.get("/auth/callback")
def callback(request: Request, code: Optional[str] = None, state: Optional[str] = None,
             error: Optional[str] = None):
    if error:
        log.warning("spotify authorization error: %s", error)
        return RedirectResponse(f"/?error={quote(error)}", status_code=302)
    if not code:
        return RedirectResponse("/?error=no_code", status_code=302)
    expected = request.cookies.get(config.STATE_COOKIE)
    if not expected or state != expected:
        return RedirectResponse("/?error=state_mismatch", status_code=302)
    try:
        tokens = exchange_code_for_token(code)
    except requests.RequestException as e:
        log.error("token exchange error: %s", e)
        return RedirectResponse("/?error=token_exchange_failed", status_code=302)

    resp = RedirectResponse("/", status_code=302)
    _set_cookie(resp, config.ACCESS_COOKIE, tokens["access_token"], max_age=int(tokens.get("expires_in", 3600)))
    if "refresh_token" in tokens:
        _set_cookie(resp, config.REFRESH_COOKIE, tokens["refresh_token"], max_age=REFRESH_MAX_AGE)
    resp.delete_cookie(config.STATE_COOKIE, path="/")
    return resp

@app.post("/auth/logout")
def logout():
    resp = RedirectResponse("/", status_code=302)
    _clear_auth_cookies(resp)
    return resp

@app.get("/api/auth/check")
def auth_check(request: Request):
    if request.cookies.get(config.ACCESS_COOKIE) or request.cookies.get(config.REFRESH_COOKIE):
        return {"authenticated": True}
    return JSONResponse({"authenticated": False}, status_code=401)

@app.post("/api/auth/refresh")
def auth_refresh(request: Request):
    refresh = request.cookies.get(config.REFRESH_COOKIE)
    if not refresh:
        return _error("No refresh token available", 401)
    try:
        tokens = _refresh_token(refresh)
    except requests.RequestException as e:
        log.warning("token refresh error: %s", e)
        resp = _error("Failed to refresh token", 401)
        _clear_auth_cookies(resp)
        return resp
    resp = JSONResponse({"success": True})
    _set_cookie(resp, config.ACCESS_COOKIE, tokens["access_token"], max_age=int(tokens.get("expires_in", 3600)))
    # Spotify may rotate the refresh token
    if tokens.get("refresh_token"):
        _set_cookie(resp, config.REFRESH_COOKIE, tokens["refresh_token"], max_age=REFRESH_MAX_AGE)
    return resp

# ------------------ dashboard ------------------

@app.get("/api/dashboard")
async def dashboard(request: Request):
    access = _access(request)
    if not access:
        return _error("Not authenticated", 401)
    try:
        async with spotify_client(access) as client:
            user, artists, tracks, recent = await asyncio.gather(
                get_user_profile(client),
                get_top_artists(client, "medium_term", 4),
                get_top_tracks(client, "medium_term", 4),
                get_recently_played(client, 4),
            )
    except SpotifyAuthError:
        return _error("Authentication expired", 401)
    except Exception as e:
        log.exception("dashboard failed")
        return _error(str(e) or "Failed to load dashboard", 500)
    return {
        "success": True,
        "user": user,
        "top_artists": artists,
        "top_tracks": [t.model_dump() for t in tracks],
        "recently_played": [p.model_dump() for p in recent],
    }

# ------------------ image → mood ------------------

@app.post("/api/analyze-image")
def analyze_image_endpoint(request: Request, body: AnalyzeImageRequest):
    if not _access(request):
        return _error("Unauthorized: Please log in to use this feature", 401)
    if not body.image or not body.image_type:
        return _error("Missing required fields: image and image_type", 400)
    if body.image_type not in VALID_IMAGE_TYPES:
        return _error("Invalid image type. Supported types: JPEG, PNG, WebP", 400)
    try:
        mood = analyze_image(body.image, body.image_type)
    except VisionError as e:
        return _error(str(e), 500)
    except Exception:
        log.exception("analyze-image failed")
        return _error("An unexpected error occurred during analysis", 500)
    return {"success": True, "mood_analysis": mood.model_dump()}

# ------------------ mood → tracks ------------------

async def assemble_tracks(client, mood: MoodAnalysis, limit: int) -> List[SpotifyTrack]:
    """Turn a mood into catalog tracks.

    Suggested track names are resolved by name search, a batch at a time.
    Without names, genre/artist seeds go to /recommendations instead.
    """
    params = mood_to_search_parameters(mood, limit)
    log.info("search params: %s", params.model_dump(exclude_none=True))

    names = mood.seed_tracks[:limit]
    if names:
        log.info("resolving %d suggested tracks", len(names))
        found = await process_batches(names, config.SEARCH_BATCH_SIZE,
                                      lambda name: search_track_full(client, name))
        tracks = _unique(found)
        log.info("resolved %d/%d suggested tracks", len(tracks), len(names))
        return tracks

    if not params.seed_genres and not params.seed_artists:
        raise NoSeedsError("AI did not suggest any tracks or genres to search for")

    artist_ids = []
    if params.seed_artists:
        ids = await process_batches(params.seed_artists, config.SEARCH_BATCH_SIZE,
                                    lambda name: search_artist(client, name))
        artist_ids = [i for i in ids if i]
    params = params.model_copy(update={"seed_artists": artist_ids or None, "seed_tracks": None})
    if not params.seed_genres and not params.seed_artists:
        return []
    return _unique(await get_recommendations(client, params, market=await _market(client)))

@app.post("/api/spotify/recommend")
async def recommend(request: Request, body: RecommendRequest):
    access = _access(request)
    if not access:
        return _error("Unauthorized: Please log in to use this feature", 401)
    if not body.mood_analysis:
        return _error("Missing required field: mood_analysis", 400)
    try:
        mood = MoodAnalysis.model_validate(body.mood_analysis)
    except ValidationError as e:
        return _error(f"Invalid mood_analysis: {e.errors()[0].get('msg')}", 400)

    try:
        async with spotify_client(access) as client:
            tracks = await assemble_tracks(client, mood, body.limit)
    except NoSeedsError as e:
        return _error(str(e), 400)
    except SpotifyAuthError:
        return _error("Authentication expired", 401)
    except Exception as e:
        log.exception("recommend failed")
        return _error(str(e) or "An unexpected error occurred while generating recommendations", 500)

    if not tracks:
        return _error("Could not find any of the suggested tracks on Spotify. Try a different image.", 404)
    return {"success": True, "tracks": [t.model_dump() for t in tracks]}

@app.get("/api/spotify/search-tracks")
async def search_tracks_endpoint(request: Request, q: Optional[str] = Query(default=None)):
    if not q or not q.strip():
        return _error("Search query required", 400)
    access = _access(request)
    if not access:
        return _error("Not authenticated", 401)
    try:
        async with spotify_client(access) as client:
            tracks = await search_tracks(client, q.strip(), limit=10)
    except SpotifyAuthError:
        return _error("Authentication expired", 401)
    except Exception as e:
        log.exception("search-tracks failed")
        return _error(str(e) or "Search failed", 500)
    return {"success": True, "tracks": [t.model_dump() for t in tracks]}

@app.post("/api/spotify/suggest-replacements")
async def suggest_replacements(request: Request, body: ReplacementRequest):
    access = _access(request)
    if not access:
        return _error("Not authenticated with Spotify", 401)
    if not body.track or not body.mood_analysis:
        return _error("Missing track or mood_analysis in request", 400)
    try:
        mood = MoodAnalysis.model_validate(body.mood_analysis)
    except ValidationError as e:
        return _error(f"Invalid mood_analysis: {e.errors()[0].get('msg')}", 400)

    track = body.track
    genres = normalize_genres(mood.recommended_genres)[:2]
    # over-fetch so dropping the original still leaves enough
    params = mood_to_search_parameters(mood, body.limit * 2).model_copy(update={
        "seed_tracks": [track.id],
        "seed_genres": genres or None,
        "seed_artists": None,
    })
    log.info("replacements for %s (%s)", track.name, track.id)
    try:
        async with spotify_client(access) as client:
            try:
                candidates = await get_recommendations(client, params)
            except SpotifyAuthError:
                raise
            except SpotifyAPIError as e:
                log.warning("recommendations unavailable (%s), searching by genre", e)
                candidates = await search_tracks_by_mood(client, genres or ["pop"], limit=body.limit * 2)
    except SpotifyAuthError:
        return _error("Authentication expired", 401)
    except Exception as e:
        log.exception("suggest-replacements failed")
        return _error(str(e) or "Failed to get replacement suggestions", 500)

    suggestions = [t for t in _unique(candidates) if t.id != track.id][:body.limit]
    return {
        "success": True,
        "suggestions": [t.model_dump() for t in suggestions],
        "original_track": track.model_dump(),
    }

# ------------------ playlist ops ------------------

async def save_playlist(client, title: str, uris: List[str], description: str,
                        public: bool, cover_image: Optional[str] = None) -> SavedPlaylist:
    profile = await get_user_profile(client)
    pl = await create_playlist(client, profile["id"], title, description=description, public=public)
    await add_tracks_to_playlist(client, pl["id"], uris)
    log.info("playlist %s created with %d tracks", pl["id"], len(uris))
    if cover_image:
        try:
            await upload_playlist_cover(client, pl["id"], cover_image)
        except (SpotifyAPIError, ValueError) as e:
            log.warning("cover upload failed, keeping playlist without it: %s", e)
    return SavedPlaylist(
        id=pl["id"],
        name=pl.get("name", title),
        url=(pl.get("external_urls") or {}).get("spotify", f"https://open.spotify.com/playlist/{pl['id']}"),
        uri=pl.get("uri", f"spotify:playlist:{pl['id']}"),
    )

@app.post("/api/spotify/create-playlist")
async def create_playlist_endpoint(request: Request, body: CreatePlaylistRequest):
    access = _access(request)
    if not access:
        return _error("Unauthorized: Please log in to save playlists", 401)
    uris = body.track_uris
    if not body.title or not isinstance(uris, list) or not uris:
        return _error("Missing required fields: title and track_uris", 400)
    try:
        async with spotify_client(access) as client:
            playlist = await save_playlist(
                client, body.title, [str(u) for u in uris],
                description=body.description or DEFAULT_DESCRIPTION,
                public=True if body.is_public is None else body.is_public,
                cover_image=body.cover_image,
            )
    except SpotifyAuthError:
        return _error("Authentication expired", 401)
    except Exception as e:
        log.exception("create-playlist failed")
        return _error(str(e) or "Failed to create playlist", 500)
    return {"success": True, "playlist": playlist.model_dump()}

# ------------------ Build endpoint ------------------

@app.post("/build")
async def build(
    request: Request,
    image: UploadFile = File(...),
    ntracks: int = Form(20),
):
    access = _access(request)
    if not access:
        return RedirectResponse("/auth/login", status_code=303)
    if image.content_type not in VALID_IMAGE_TYPES:
        return _error("Invalid image type. Supported types: JPEG, PNG, WebP", 400)

    # --- 1) Image → mood
    img_b64 = base64.b64encode(await image.read()).decode()
    try:
        mood = await run_in_threadpool(analyze_image, img_b64, image.content_type)
    except VisionError as e:
        return _error(str(e), 500)
    except Exception:
        log.exception("build: image analysis failed")
        return _error("An unexpected error occurred during analysis", 500)

    # --- 2) Mood → tracks → playlist
    total = max(1, min(100, int(ntracks)))
    try:
        async with spotify_client(access) as client:
            tracks = await assemble_tracks(client, mood, total)
            if not tracks:
                return _error("Couldn't find tracks matching this image. Try another photo.", 404)
            title = mood.suggested_playlist_title or "SonoLens"
            desc = f"Image vibe → {', '.join(mood.mood_tags[:5])}. {DEFAULT_DESCRIPTION}"
            playlist = await save_playlist(client, title, [t.uri for t in tracks], desc,
                                           public=config.PLAYLIST_PUBLIC)
    except NoSeedsError as e:
        return _error(str(e), 400)
    except SpotifyAuthError:
        return _error("Authentication expired", 401)
    except SpotifyAPIError as e:
        return _error(str(e), 502)
    except httpx.HTTPError as e:
        log.error("build: spotify unreachable: %s", e)
        return _error("Could not reach Spotify, please try again", 502)
    except Exception:
        log.exception("build failed")
        return _error("An unexpected error occurred while building the playlist", 500)

    return {
        "success": True,
        "playlist": playlist.model_dump(),
        "mood_analysis": mood.model_dump(),
        "tracks": [t.model_dump() for t in tracks],
    }
