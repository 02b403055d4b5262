import logging
import secrets
import urllib.parse

import requests

import config

log = logging.getLogger("sonolens.oauth")

SCOPES = [
    "user-read-email",
    "user-read-private",
    "user-top-read",
    "user-read-recently-played",
    "playlist-modify-public",
    "playlist-modify-private",
    "ugc-image-upload",
]


def new_state() -> str:
    return secrets.token_urlsafe(16)

def auth_url(state: str) -> str:
    params = {
        "client_id": config.CLIENT_ID,
        "response_type": "code",
        "redirect_uri": config.REDIRECT_URI,
        "scope": " ".join(SCOPES),
        "state": state,
        "show_dialog": "true",
    }
    return f"{config.SPOTIFY_AUTH_BASE}?{urllib.parse.urlencode(params)}"

def _token_request(data: dict, what: str) -> dict:
    data = {**data, "client_id": config.CLIENT_ID, "client_secret": config.CLIENT_SECRET}
    headers = {"Content-Type": "application/x-www-form-urlencoded"}
    r = requests.post(config.SPOTIFY_TOKEN_URL, headers=headers, data=data, timeout=15)
    if r.status_code != 200:
        log.error("%s failed: %s %s", what, r.status_code, r.text[:300])
    r.raise_for_status()
    return r.json()

def exchange_code_for_token(code: str) -> dict:
    return _token_request({
        "grant_type": "authorization_code",
        "code": code,
        "redirect_uri": config.REDIRECT_URI,
    }, "token exchange")

def refresh_token(refresh_token: str) -> dict:
    return _token_request({
        "grant_type": "refresh_token",
        "refresh_token": refresh_token,
    }, "token refresh")
