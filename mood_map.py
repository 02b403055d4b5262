"""Mood description -> Spotify search/recommendation parameters.

Keyword heuristics only: every check is a case-insensitive substring test, so
"energetic" matches the "energetic" keyword and "hyper-energetic" does too.
Nothing here does I/O and every input, however sparse, produces parameters.
"""
import re
from types import MappingProxyType
from typing import Iterable, List, Optional

from models import MoodAnalysis, SearchParameters

ENERGY_TARGETS = MappingProxyType({"low": 0.3, "medium": 0.6, "high": 0.9})
ENERGY_TO_DANCE = MappingProxyType({"low": 0.3, "medium": 0.5, "high": 0.7})

POSITIVE_WORDS = (
    "happy", "joyful", "uplifting", "cheerful", "energetic",
    "excited", "optimistic", "bright", "playful", "euphoric",
)
NEGATIVE_WORDS = (
    "sad", "melancholic", "somber", "dark", "gloomy",
    "depressing", "lonely", "nostalgic", "moody", "tragic",
)
DANCE_WORDS = ("dance", "groove", "rhythmic", "upbeat", "funky", "party", "energetic", "lively")
ACOUSTIC_WORDS = ("acoustic", "organic", "natural", "folk", "intimate", "stripped", "raw")
ELECTRONIC_WORDS = ("electronic", "synthetic", "digital", "techno", "edm")
INSTRUMENTAL_WORDS = ("instrumental", "ambient", "cinematic", "atmospheric", "soundscape")

# Client-side mirror of /recommendations/available-genre-seeds
VALID_GENRES = frozenset({
    "acoustic", "afrobeat", "alt-rock", "alternative", "ambient", "anime",
    "black-metal", "bluegrass", "blues", "bossanova", "brazil", "breakbeat",
    "british", "cantopop", "chicago-house", "children", "chill", "classical",
    "club", "comedy", "country", "dance", "dancehall", "death-metal",
    "deep-house", "detroit-techno", "disco", "disney", "drum-and-bass", "dub",
    "dubstep", "edm", "electro", "electronic", "emo", "folk", "forro",
    "french", "funk", "garage", "german", "gospel", "goth", "grindcore",
    "groove", "grunge", "guitar", "happy", "hard-rock", "hardcore",
    "hardstyle", "heavy-metal", "hip-hop", "holidays", "honky-tonk", "house",
    "idm", "indian", "indie", "indie-pop", "industrial", "iranian", "j-dance",
    "j-idol", "j-pop", "j-rock", "jazz", "k-pop", "kids", "latin", "latino",
    "malay", "mandopop", "metal", "metal-misc", "metalcore", "minimal-techno",
    "movies", "mpb", "new-age", "new-release", "opera", "pagode", "party",
    "philippines-opm", "piano", "pop", "pop-film", "post-dubstep",
    "power-pop", "progressive-house", "psych-rock", "punk", "punk-rock",
    "r-n-b", "rainy-day", "reggae", "reggaeton", "road-trip", "rock",
    "rock-n-roll", "rockabilly", "romance", "sad", "salsa", "samba",
    "sertanejo", "show-tunes", "singer-songwriter", "ska", "sleep",
    "songwriter", "soul", "soundtracks", "spanish", "study", "summer",
    "swedish", "synth-pop", "tango", "techno", "trance", "trip-hop",
    "turkish", "work-out", "world-music",
})

GENRE_ALIASES = MappingProxyType({
    "hip hop": "hip-hop",
    "hiphop": "hip-hop",
    "rap": "hip-hop",
    "rnb": "r-n-b",
    "r&b": "r-n-b",
    "alt": "alternative",
    "alt rock": "alt-rock",
    "indie rock": "indie",
    "rock and roll": "rock-n-roll",
})

FALLBACK_GENRE = "pop"
MAX_SEEDS = 5

_NOT_GENRE_CHARS = re.compile(r"[^a-z0-9\s-]")


def _lower(words: Iterable[str]) -> List[str]:
    return [w.lower() for w in words]

def _any_contains(words: Iterable[str], keywords) -> bool:
    return any(k in w for w in words for k in keywords)


def map_energy(energy_level: str) -> float:
    return ENERGY_TARGETS[energy_level]

def infer_valence(tags: Iterable[str], descriptors: Iterable[str]) -> float:
    """Share of positive hits among positive+negative hits; 0.5 when neither.

    Each entry counts at most once per side but may count for both.
    """
    pos = neg = 0
    for entry in _lower([*tags, *descriptors]):
        if any(k in entry for k in POSITIVE_WORDS):
            pos += 1
        if any(k in entry for k in NEGATIVE_WORDS):
            neg += 1
    total = pos + neg
    if total == 0:
        return 0.5
    return pos / total

def infer_danceability(tags: Iterable[str], energy_level: str) -> float:
    if _any_contains(_lower(tags), DANCE_WORDS):
        return 0.8
    return ENERGY_TO_DANCE[energy_level]

def infer_acousticness(tags: Iterable[str]) -> Optional[float]:
    words = _lower(tags)
    if _any_contains(words, ACOUSTIC_WORDS):
        return 0.8
    if _any_contains(words, ELECTRONIC_WORDS):
        return 0.2
    return None

def infer_instrumentalness(tags: Iterable[str]) -> Optional[float]:
    if _any_contains(_lower(tags), INSTRUMENTAL_WORDS):
        return 0.7
    return None


def _normalize_genre(raw: str) -> Optional[str]:
    lower = raw.lower().strip()
    # "r&b" would lose its ampersand below, so aliases are checked on both forms
    if lower in GENRE_ALIASES:
        return GENRE_ALIASES[lower]
    cleaned = _NOT_GENRE_CHARS.sub("", lower)
    if cleaned in GENRE_ALIASES:
        return GENRE_ALIASES[cleaned]
    if cleaned in VALID_GENRES:
        return cleaned
    hyphenated = re.sub(r"\s+", "-", cleaned)
    if hyphenated in VALID_GENRES:
        return hyphenated
    return None

def normalize_genres(genres: Iterable[str]) -> List[str]:
    """Map noisy genre names onto Spotify genre seeds, keeping input order.

    Unknown names are dropped silently. At most five are returned; if a
    non-empty input has no usable genre at all the result is ``["pop"]``.
    """
    genres = list(genres)
    if not genres:
        return []
    out = [g for g in (_normalize_genre(raw) for raw in genres) if g]
    return out[:MAX_SEEDS] or [FALLBACK_GENRE]


def mood_to_search_parameters(mood: MoodAnalysis, limit: int = 20) -> SearchParameters:
    """Build recommendation parameters from a mood description.

    ``seed_genres`` stays unset when the mood has no genres at all; the pop
    fallback only applies when genres were given but none were recognised.
    """
    params = {"limit": limit}

    if mood.recommended_genres:
        params["seed_genres"] = normalize_genres(mood.recommended_genres)
    if mood.seed_artists:
        params["seed_artists"] = mood.seed_artists[:MAX_SEEDS]
    if mood.seed_tracks:
        params["seed_tracks"] = mood.seed_tracks[:MAX_SEEDS]

    params["target_energy"] = map_energy(mood.energy_level)
    params["target_valence"] = infer_valence(mood.mood_tags, mood.emotional_descriptors)
    params["target_danceability"] = infer_danceability(mood.mood_tags, mood.energy_level)

    acousticness = infer_acousticness(mood.mood_tags)
    if acousticness is not None:
        params["target_acousticness"] = acousticness
    instrumentalness = infer_instrumentalness(mood.mood_tags)
    if instrumentalness is not None:
        params["target_instrumentalness"] = instrumentalness

    return SearchParameters(**params)
