import os
import sys


def _get_spotify_client_id() -> str:
    return (os.getenv("SPOTIFY_CLIENT_ID", DEFAULT_CLIENT_ID)).strip()


def _get_config_path() -> str:
    override = os.getenv("SPOTIMINE_CONFIG", "").strip()
    if override:
        return os.path.expanduser(override)
    if sys.platform.startswith("win"):
        base = os.path.join(os.environ.get("APPDATA", os.path.expanduser("~")), "spotimine")
    else:
        base = os.path.join(os.path.expanduser("~"), ".config", "spotimine")
    return os.path.join(base, "config.json")


def _get_log_level() -> str:
    return os.getenv("SPOTIMINE_LOG_LEVEL", "INFO").strip().upper()


# Public PKCE client; no secret is involved.
DEFAULT_CLIENT_ID = "d75a5cecbe5c4b71869c602e802ba265"
REDIRECT_URI = os.environ.get("SPOTIFY_REDIRECT_URI", "http://127.0.0.1:8888/callback")

SCOPES = [
    "user-read-private",
    "user-read-email",
    "user-read-playback-state",
    "user-modify-playback-state",
    "user-read-currently-playing",
    "user-read-recently-played",
    "user-library-read",
    "user-library-modify",
    "user-top-read",
    "playlist-read-private",
    "playlist-read-collaborative",
    "playlist-modify-public",
    "playlist-modify-private",
]

ACCOUNTS_BASE = "https://accounts.spotify.com"
API_BASE = "https://api.spotify.com/v1"

# Hard ceiling of the Web API for ids=/uris= batches and page sizes.
BATCH_LIMIT = 50
PAGE_SIZE = 50
DEFAULT_RETRY_AFTER = 5
REQUEST_TIMEOUT = 30
AUTH_TIMEOUT = 300

# Legacy config files stored a relative expires_in; anything above this is already absolute.
LEGACY_ABSOLUTE_THRESHOLD = 100000

LIKED_SONGS_NAME = "Liked Songs"
