SPOTIFY_ACCOUNTS_BASE_URL = "https://accounts.spotify.com"
SPOTIFY_AUTHORIZE_URL = f"{SPOTIFY_ACCOUNTS_BASE_URL}/authorize"
SPOTIFY_TOKEN_URL = f"{SPOTIFY_ACCOUNTS_BASE_URL}/api/token"
SPOTIFY_API_BASE_URL = "https://api.spotify.com/v1"

# Permissions needed for the profile card and the now-playing view.
DEFAULT_SCOPES = [
    "user-read-private",
    "user-read-email",
    "user-read-currently-playing",
    "user-read-playback-state",
]

# Single-slot key the PKCE verifier is persisted under between
# begin_login() and complete_login().
VERIFIER_KEY = "verifier"
VERIFIER_STORE_FILE = "data/pkce_verifier.json"

# RFC 7636 unreserved characters and length bounds.
VERIFIER_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-._~"
VERIFIER_MIN_LENGTH = 43
VERIFIER_MAX_LENGTH = 128

DEFAULT_POLL_INTERVAL_MS = 5000
DEFAULT_STATUS_CLEAR_SECONDS = 3
DEFAULT_HTTP_TIMEOUT = 30.0
