# models.py
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field, field_validator

EnergyLevel = Literal["low", "medium", "high"]


class MoodAnalysis(BaseModel):
    """Mood description returned by the vision model for one image."""

    mood_tags: List[str] = Field(default_factory=list)
    energy_level: EnergyLevel
    emotional_descriptors: List[str] = Field(default_factory=list)
    recommended_genres: List[str] = Field(default_factory=list)
    seed_artists: List[str] = Field(default_factory=list)
    seed_tracks: List[str] = Field(default_factory=list)
    suggested_playlist_title: str = ""
    color_palette: List[str] = Field(default_factory=list)
    atmosphere: str = ""
    confidence_score: Optional[float] = Field(default=None, ge=0.0, le=1.0)

    @field_validator(
        "mood_tags", "emotional_descriptors", "recommended_genres",
        "seed_artists", "seed_tracks", "color_palette", mode="before",
    )
    @classmethod
    def _none_to_empty(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            v = [v]
        return [str(x) for x in v if isinstance(x, str) and x.strip()]

    @field_validator("suggested_playlist_title", "atmosphere", mode="before")
    @classmethod
    def _none_to_blank(cls, v):
        return "" if v is None else v


class SearchParameters(BaseModel):
    limit: int = Field(default=20, gt=0)
    seed_genres: Optional[List[str]] = None
    seed_artists: Optional[List[str]] = None
    seed_tracks: Optional[List[str]] = None
    target_energy: float = Field(ge=0.0, le=1.0)
    target_valence: float = Field(ge=0.0, le=1.0)
    target_danceability: float = Field(ge=0.0, le=1.0)
    target_acousticness: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    target_instrumentalness: Optional[float] = Field(default=None, ge=0.0, le=1.0)

    def targets(self) -> Dict[str, float]:
        """target_* values that are set, keyed by their query parameter name."""
        out = {}
        for k in ("target_energy", "target_valence", "target_danceability",
                  "target_acousticness", "target_instrumentalness"):
            v = getattr(self, k)
            if v is not None:
                out[k] = v
        return out


class Artist(BaseModel):
    id: str = ""
    name: str
    uri: str = ""


class Image(BaseModel):
    url: str
    height: Optional[int] = None
    width: Optional[int] = None


class Album(BaseModel):
    id: str = ""
    name: str = ""
    images: List[Image] = Field(default_factory=list)


class SpotifyTrack(BaseModel):
    id: str
    uri: str
    name: str
    artists: List[Artist] = Field(default_factory=list)
    album: Album = Field(default_factory=Album)
    duration_ms: int = 0
    preview_url: Optional[str] = None
    external_urls: Dict[str, str] = Field(default_factory=dict)
    popularity: Optional[int] = None

    @field_validator("album", mode="before")
    @classmethod
    def _album_or_default(cls, v):
        return v or {}


class PlayedTrack(BaseModel):
    track: SpotifyTrack
    played_at: str


class SavedPlaylist(BaseModel):
    id: str
    name: str
    url: str
    uri: str


# ---- request bodies ----

class AnalyzeImageRequest(BaseModel):
    image: Optional[str] = None
    image_type: Optional[str] = None


class RecommendRequest(BaseModel):
    mood_analysis: Optional[Dict[str, Any]] = None
    limit: int = Field(default=20, gt=0, le=100)


class ReplacementRequest(BaseModel):
    track: Optional[SpotifyTrack] = None
    mood_analysis: Optional[Dict[str, Any]] = None
    limit: int = Field(default=5, gt=0, le=50)


class CreatePlaylistRequest(BaseModel):
    title: Optional[str] = None
    track_uris: Optional[Any] = None
    description: Optional[str] = None
    is_public: Optional[bool] = None
    cover_image: Optional[str] = None
