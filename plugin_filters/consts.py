import os
from pathlib import Path

DEFAULT_DATA_DIR = Path(
    os.getenv("PLUGIN_FILTERS_DATA_DIR", "")
    or (Path(__file__).parent.parent.resolve() / "data")
).absolute().resolve()

# Plugin directory API
DIRECTORY_API_BASE_URL = "https://api.wordpress.org/plugins/info/1.2/"
DIRECTORY_USER_AGENT = "plugin-directory-filters/1.0.0"
DIRECTORY_TOTAL_TIMEOUT = 30.0  # Wall-clock budget per client call (seconds)
DIRECTORY_REQUEST_TIMEOUT = 15.0  # Per-attempt HTTP timeout (seconds)
DIRECTORY_MAX_RETRIES = 3  # Retries on transient failures only
DIRECTORY_MAX_PAGE_SIZE = 48

# Fields requested from query_plugins / plugin_information
DIRECTORY_SEARCH_FIELDS = {
    "short_description": True,
    "description": False,
    "tested": True,
    "requires": True,
    "rating": True,
    "ratings": True,
    "downloaded": True,
    "active_installs": True,
    "last_updated": True,
    "homepage": True,
    "tags": True,
    "support_threads": True,
    "support_threads_resolved": True,
    "screenshots": False,
    "sections": False,
    "icons": False,
}
DIRECTORY_DETAIL_FIELDS = {
    **DIRECTORY_SEARCH_FIELDS,
    "installation": False,
    "faq": False,
    "changelog": False,
    "reviews": False,
}

# Current platform release used by the compatibility component
DEFAULT_PLATFORM_VERSION = os.getenv("PLUGIN_FILTERS_PLATFORM_VERSION", "6.8")

# Cache TTLs per kind (seconds)
CACHE_TTL_PLUGIN_METADATA = 86400  # 24 hours
CACHE_TTL_CALCULATED_SCORES = 21600  # 6 hours
CACHE_TTL_SEARCH_RESULTS = 3600  # 1 hour
CACHE_TTL_MIN = 60
CACHE_TTL_MAX = 604800  # 7 days

# Weight validation
WEIGHT_TOTAL = 100
WEIGHT_TOLERANCE = 1

# Default weights (integer percentages)
DEFAULT_USABILITY_WEIGHTS = {
    "user_rating": 40,
    "rating_count": 20,
    "installs": 25,
    "support": 15,
}
DEFAULT_HEALTH_WEIGHTS = {
    "update_frequency": 30,
    "compatibility": 25,
    "support": 20,
    "recency": 15,
    "issues": 10,
}

# Step tables: (threshold, score), checked top-down with >=
RATING_COUNT_STEPS = [(1000, 1.0), (100, 0.8), (20, 0.6), (5, 0.4)]
RATING_COUNT_FLOOR = 0.2
INSTALL_STEPS = [(1_000_000, 1.0), (100_000, 0.8), (10_000, 0.6), (1_000, 0.4)]
INSTALL_FLOOR = 0.2

# Step tables: (max days, score), checked top-down with <=
RECENCY_STEPS = [(30, 1.0), (90, 0.8), (180, 0.6), (365, 0.4)]
RECENCY_FLOOR = 0.2
UPDATE_FREQUENCY_RECENCY_FACTORS = [(30, 1.0), (90, 0.9), (180, 0.7)]
UPDATE_FREQUENCY_RECENCY_FLOOR = 0.5

NEUTRAL_SUPPORT_SCORE = 0.5  # No support threads at all
NEUTRAL_ISSUES_SCORE = 0.5  # No rating distribution

# Query limits
MAX_SEARCH_TERM_LENGTH = 200
MAX_PAGE = 1000
DEFAULT_PAGE_SIZE = 24
