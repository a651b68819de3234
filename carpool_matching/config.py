"""Central configuration for the carpool route matching engine.

All values are constants imported by the rest of the package. Each can be
overridden through an environment variable (optionally via a local `.env`).
"""

from __future__ import annotations

import importlib
import os


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


# Load .env variables when python-dotenv is available.
_load_dotenv = None
try:
    _dotenv_mod = importlib.import_module("dotenv")
    _load_dotenv = getattr(_dotenv_mod, "load_dotenv", None)
except Exception:
    _load_dotenv = None

if callable(_load_dotenv):
    # Load .env from the current directory or any parent folder.
    _load_dotenv()


# ---------------------------------------------------------------------------
# Route sampling
# ---------------------------------------------------------------------------
# Arc-length spacing (metres) between sampled route points. Larger values
# reduce index load and recall; smaller values sharpen overlap precision.
MATCH_SAMPLE_INTERVAL_M = _env_float("MATCH_SAMPLE_INTERVAL_M", 150.0)


# ---------------------------------------------------------------------------
# Candidate retrieval
# ---------------------------------------------------------------------------
# Radius (metres) used both for index proximity queries and for the
# point-to-point overlap test in the scorer.
MATCH_RADIUS_M = _env_float("MATCH_RADIUS_M", 200.0)

# Maximum departure difference (minutes) between matched trips.
MATCH_TIME_WINDOW_MINUTES = _env_int("MATCH_TIME_WINDOW_MINUTES", 15)

# Per-query timeout (seconds) for spatial index lookups. A timed-out query
# contributes no candidates; only all queries timing out fails the run.
MATCH_QUERY_TIMEOUT_S = _env_float("MATCH_QUERY_TIMEOUT_S", 5.0)


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------
# Endpoint distances (metres) beyond which the proximity component is zero.
MATCH_MAX_START_DISTANCE_M = _env_float("MATCH_MAX_START_DISTANCE_M", 1000.0)
MATCH_MAX_END_DISTANCE_M = _env_float("MATCH_MAX_END_DISTANCE_M", 1000.0)

# Composite score weights. Must be non-negative and sum to 1.
MATCH_WEIGHT_OVERLAP = _env_float("MATCH_WEIGHT_OVERLAP", 0.5)
MATCH_WEIGHT_START = _env_float("MATCH_WEIGHT_START", 0.2)
MATCH_WEIGHT_END = _env_float("MATCH_WEIGHT_END", 0.2)
MATCH_WEIGHT_TIME = _env_float("MATCH_WEIGHT_TIME", 0.1)


# ---------------------------------------------------------------------------
# Ranking / orchestration
# ---------------------------------------------------------------------------
# Maximum candidates returned per match run.
MATCH_RESULT_LIMIT = _env_int("MATCH_RESULT_LIMIT", 5)

# Threads used to fan out index queries and scoring. 0 means one per
# available CPU.
MATCH_MAX_WORKERS = _env_int("MATCH_MAX_WORKERS", 0)

# Re-deliveries allowed for a retryable match job before it is dropped.
MATCH_JOB_MAX_ATTEMPTS = _env_int("MATCH_JOB_MAX_ATTEMPTS", 3)


# ---------------------------------------------------------------------------
# Trip lifecycle
# ---------------------------------------------------------------------------
# Minutes after departure before an active trip is considered expired.
TRIP_EXPIRY_GRACE_MINUTES = _env_int("TRIP_EXPIRY_GRACE_MINUTES", 30)


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------
# Number of local CRS transformers kept in memory (one per UTM zone).
PROJECTION_CACHE_SIZE = _env_int("PROJECTION_CACHE_SIZE", 32)

# Fall back to Web Mercator when a UTM zone cannot be resolved.
PROJECTION_ALLOW_MERCATOR_FALLBACK = _env_bool(
    "PROJECTION_ALLOW_MERCATOR_FALLBACK", True
)


def resolve_max_workers(configured: int | None = None) -> int:
    """Return a positive worker count, treating 0/None as "one per CPU"."""

    value = MATCH_MAX_WORKERS if configured is None else configured
    if value and value > 0:
        return value
    return max(1, os.cpu_count() or 1)
