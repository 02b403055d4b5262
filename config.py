import os
from dotenv import load_dotenv

load_dotenv()

SPOTIFY_API       = "https://api.spotify.com/v1"
SPOTIFY_AUTH_BASE = "https://accounts.spotify.com/authorize"
SPOTIFY_TOKEN_URL = "https://accounts.spotify.com/api/token"
OPENAI_CHAT_URL   = "https://api.openai.com/v1/chat/completions"

CLIENT_ID     = os.getenv("SPOTIFY_CLIENT_ID")
CLIENT_SECRET = os.getenv("SPOTIFY_CLIENT_SECRET")
REDIRECT_URI  = os.getenv("SPOTIFY_REDIRECT_URI", "http://127.0.0.1:8000/auth/callback")

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_MODEL   = os.getenv("OPENAI_MODEL", "gpt-4o")

SPOTIFY_TIMEOUT = float(os.getenv("SPOTIFY_TIMEOUT", "15"))
OPENAI_TIMEOUT  = float(os.getenv("OPENAI_TIMEOUT", "40"))

# how many name lookups run at once against /search
SEARCH_BATCH_SIZE = int(os.getenv("SPOTIFY_SEARCH_BATCH_SIZE", "5"))

PLAYLIST_PUBLIC = os.getenv("PLAYLIST_PRIVACY", "public").lower() == "public"
COOKIE_SECURE   = os.getenv("COOKIE_SECURE", "false").lower() == "true"
LOG_LEVEL       = os.getenv("LOG_LEVEL", "INFO").upper()

ACCESS_COOKIE  = "spotify_access_token"
REFRESH_COOKIE = "spotify_refresh_token"
STATE_COOKIE   = "spotify_oauth_state"
