import json
import logging
import re

import requests
from pydantic import ValidationError

import config
from models import MoodAnalysis

log = logging.getLogger("sonolens.vision")

PROMPT = """You are a music mood analyst. Analyze this image and extract musical mood and atmosphere information.

Respond ONLY with a JSON object of this shape:
{
  "mood_tags": [3-6 words for the emotional/atmospheric qualities, e.g. "nostalgic", "energetic"],
  "color_palette": [3-5 dominant colors],
  "energy_level": "low" | "medium" | "high",
  "emotional_descriptors": [3-5 emotional qualities the image evokes],
  "atmosphere": "1-2 sentences on the overall vibe",
  "recommended_genres": [3-6 music genres that match the mood],
  "seed_artists": [0-3 artist names, optional],
  "seed_tracks": [10-25 real songs as "Title - Artist" that fit the mood],
  "suggested_playlist_title": "a creative, evocative playlist title",
  "confidence_score": 0.0-1.0
}"""

REQUIRED_FIELDS = ("mood_tags", "energy_level", "recommended_genres", "suggested_playlist_title")


class VisionError(RuntimeError):
    pass


def _strip_fences(txt: str) -> str:
    txt = (txt or "").strip()
    if txt.startswith("```"):
        txt = re.sub(r"^```(?:json)?\s*|\s*```$", "", txt, flags=re.DOTALL)
    return txt

def validate_mood_analysis(data) -> bool:
    return (
        isinstance(data, dict)
        and isinstance(data.get("mood_tags"), list)
        and data.get("energy_level") in ("low", "medium", "high")
        and isinstance(data.get("recommended_genres"), list)
        and isinstance(data.get("suggested_playlist_title"), str)
    )

def _chat_payload(image_b64: str, image_type: str) -> dict:
    return {
        "model": config.OPENAI_MODEL,
        "messages": [
            {"role": "user", "content": [
                {"type": "image_url",
                 "image_url": {"url": f"data:{image_type};base64,{image_b64}", "detail": "high"}},
                {"type": "text", "text": PROMPT},
            ]}
        ],
        "max_tokens": 1024,
        "response_format": {"type": "json_object"},
    }

def analyze_image(image_b64: str, image_type: str) -> MoodAnalysis:
    """Ask the vision model for a mood description of one image."""
    try:
        if not config.OPENAI_API_KEY:
            raise VisionError("OPENAI_API_KEY is not configured")
        r = requests.post(
            config.OPENAI_CHAT_URL,
            headers={"Authorization": f"Bearer {config.OPENAI_API_KEY}", "Content-Type": "application/json"},
            json=_chat_payload(image_b64, image_type),
            timeout=config.OPENAI_TIMEOUT,
        )
        r.raise_for_status()
        content = ((r.json().get("choices") or [{}])[0].get("message") or {}).get("content")
        if not content:
            raise VisionError("No content in AI response")
        data = json.loads(_strip_fences(content))
        missing = [k for k in REQUIRED_FIELDS if not isinstance(data, dict) or data.get(k) is None]
        if missing:
            raise VisionError(f"Invalid AI response format: missing required fields {', '.join(missing)}")
        mood = MoodAnalysis.model_validate(data)
    except (requests.RequestException, ValueError, AttributeError, TypeError, IndexError, VisionError) as e:
        # ValueError covers JSON decode errors and pydantic ValidationError;
        # the lookup errors come from response bodies of the wrong shape
        log.error("image analysis failed: %s", e)
        raise VisionError(f"Failed to analyze image: {e}") from e

    log.info("mood tags=%s energy=%s genres=%s", mood.mood_tags, mood.energy_level, mood.recommended_genres)
    return mood
