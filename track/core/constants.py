"""Constants used across the track codebase."""

# Seconds before an HTTP request is abandoned (TRACK_TIMEOUT overrides)
DEFAULT_TIMEOUT = 30.0

# Cap for --all style fetches (TRACK_MAX_RESULTS overrides)
DEFAULT_MAX_RESULTS = 1000

GITHUB_API_URL = "https://api.github.com"

CONFIG_FILENAME = ".track.toml"
PREFS_FILENAME = ".track-config.json"
CACHE_FILENAME = ".tracker-cache.json"
