import pytest
from fastapi.testclient import TestClient

import config
from app import app

TRACK = {
    "id": "6v3KW9xbzN5yKLt9YKDYA2",
    "uri": "spotify:track:6v3KW9xbzN5yKLt9YKDYA2",
    "name": "Holocene",
    "artists": [{"id": "4LEiUm1SRbFMgfqnQTwUbQ", "name": "Bon Iver",
                 "uri": "spotify:artist:4LEiUm1SRbFMgfqnQTwUbQ"}],
    "album": {"id": "1JlvIsP2f9YnXi3u8IxrsK", "name": "Bon Iver",
              "images": [{"url": "https://i.scdn.co/image/ab67616d0000b273", "height": 640, "width": 640}]},
    "duration_ms": 338960,
    "preview_url": None,
    "external_urls": {"spotify": "https://open.spotify.com/track/6v3KW9xbzN5yKLt9YKDYA2"},
    "popularity": 72,
}

MOOD = {
    "mood_tags": ["melancholic", "dreamy", "atmospheric"],
    "energy_level": "medium",
    "emotional_descriptors": ["nostalgic", "contemplative", "serene"],
    "atmosphere": "A misty, introspective landscape that evokes quiet reflection",
    "recommended_genres": ["indie", "ambient", "dream-pop"],
    "seed_tracks": ["Nude - Radiohead", "Holocene - Bon Iver", "Breathe - Pink Floyd"],
    "suggested_playlist_title": "Misty Reflections",
    "confidence_score": 0.85,
}


def make_track(track_id: str, name: str = "Song") -> dict:
    return {**TRACK, "id": track_id, "uri": f"spotify:track:{track_id}", "name": name}


@pytest.fixture
def track():
    return dict(TRACK)

@pytest.fixture
def mood():
    return {**MOOD, "seed_tracks": list(MOOD["seed_tracks"])}

@pytest.fixture
def anon():
    return TestClient(app)

@pytest.fixture
def client():
    return TestClient(app, cookies={config.ACCESS_COOKIE: "mock-token"})
