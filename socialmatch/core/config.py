"""
Runtime configuration for the similarity matching core.
Values come from environment variables; tunables are snapshotted into MatchSettings.
"""

import os
import threading
from dataclasses import dataclass
from pathlib import Path

# Database path configuration
DB_PATH = os.getenv("DB_PATH", "./data/socialmatch.db")

DEBUG = os.getenv("DEBUG", "true").lower() == "true"

# Embedding provider configuration
EMBED_PROVIDER = os.getenv("EMBED_PROVIDER", "sentence_transformers")  # hash|sentence_transformers
EMBED_MODEL_NAME = os.getenv("EMBED_MODEL_NAME", "all-MiniLM-L6-v2")
EMBED_DIM = int(os.getenv("EMBED_DIM", "384"))
EMBED_TIMEOUT_SEC = float(os.getenv("EMBED_TIMEOUT_SEC", "30"))  # 0 disables the timeout

# Ranking tunables
RELATED_POSTS_MIN_SCORE = float(os.getenv("RELATED_POSTS_MIN_SCORE", "0.0"))
USER_MATCHES_MIN_SCORE = float(os.getenv("USER_MATCHES_MIN_SCORE", "0.0"))
SEEKING_WEIGHT = float(os.getenv("SEEKING_WEIGHT", "0.7"))
OFFERING_WEIGHT = float(os.getenv("OFFERING_WEIGHT", "0.3"))
LOW_CONFIDENCE_CUTOFF = float(os.getenv("LOW_CONFIDENCE_CUTOFF", "0.2"))
DEFAULT_MATCH_SCORE = float(os.getenv("DEFAULT_MATCH_SCORE", "0.1"))
DIRECTION_MARGIN = float(os.getenv("DIRECTION_MARGIN", "0.15"))
MAX_RESULTS = int(os.getenv("MAX_RESULTS", "0"))  # 0 means unbounded

# Version string
VERSION = "1.0.0"


@dataclass
class MatchSettings:
    """Tunable constants for one ranking invocation."""
    related_posts_min_score: float = 0.0
    user_matches_min_score: float = 0.0
    seeking_weight: float = 0.7
    offering_weight: float = 0.3
    low_confidence_cutoff: float = 0.2
    default_score: float = 0.1
    direction_margin: float = 0.15
    max_results: int = 0


def get_match_settings() -> MatchSettings:
    """Build MatchSettings from the current environment."""
    return MatchSettings(
        related_posts_min_score=float(os.getenv("RELATED_POSTS_MIN_SCORE", str(RELATED_POSTS_MIN_SCORE))),
        user_matches_min_score=float(os.getenv("USER_MATCHES_MIN_SCORE", str(USER_MATCHES_MIN_SCORE))),
        seeking_weight=float(os.getenv("SEEKING_WEIGHT", str(SEEKING_WEIGHT))),
        offering_weight=float(os.getenv("OFFERING_WEIGHT", str(OFFERING_WEIGHT))),
        low_confidence_cutoff=float(os.getenv("LOW_CONFIDENCE_CUTOFF", str(LOW_CONFIDENCE_CUTOFF))),
        default_score=float(os.getenv("DEFAULT_MATCH_SCORE", str(DEFAULT_MATCH_SCORE))),
        direction_margin=float(os.getenv("DIRECTION_MARGIN", str(DIRECTION_MARGIN))),
        max_results=int(os.getenv("MAX_RESULTS", str(MAX_RESULTS))),
    )


def validate_match_config(settings: MatchSettings = None):
    """Validate ranking configuration and return any issues."""
    settings = settings or get_match_settings()
    issues = []

    if get_embed_provider_kind() not in ["hash", "sentence_transformers"]:
        issues.append(f"Invalid EMBED_PROVIDER: {get_embed_provider_kind()}")

    for name in ["related_posts_min_score", "user_matches_min_score", "low_confidence_cutoff", "default_score"]:
        value = getattr(settings, name)
        if not 0.0 <= value <= 1.0:
            issues.append(f"{name.upper()} must be within [0, 1], got {value}")

    if settings.seeking_weight < 0 or settings.offering_weight < 0:
        issues.append("SEEKING_WEIGHT and OFFERING_WEIGHT must be non-negative")

    if settings.seeking_weight + settings.offering_weight > 1.0 + 1e-9:
        issues.append("SEEKING_WEIGHT + OFFERING_WEIGHT must not exceed 1.0")

    if settings.max_results < 0:
        issues.append("MAX_RESULTS must be >= 0")

    if EMBED_DIM < 1:
        issues.append("EMBED_DIM must be >= 1")

    return issues


def get_db_path() -> str:
    """Database path, re-read so tests can point at a temporary file."""
    return os.getenv("DB_PATH", DB_PATH)


def get_embed_provider_kind() -> str:
    return os.getenv("EMBED_PROVIDER", EMBED_PROVIDER)


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "true").lower() == "true"


def ensure_db_directory():
    """Ensure the database directory exists."""
    Path(get_db_path()).parent.mkdir(parents=True, exist_ok=True)


_provider = None
_provider_lock = threading.Lock()


def get_embedding_provider():
    """Get the process-wide embedding provider, created on first use."""
    global _provider
    if _provider is None:
        with _provider_lock:
            if _provider is None:
                kind = get_embed_provider_kind()
                if kind == "hash":
                    from ..vector.embeddings import DeterministicHashEmbedding
                    _provider = DeterministicHashEmbedding(EMBED_DIM)
                else:
                    from ..vector.embeddings import SentenceTransformerEmbedding
                    _provider = SentenceTransformerEmbedding(EMBED_MODEL_NAME)
    return _provider


def reset_embedding_provider():
    """Drop the cached provider so the next call re-reads configuration."""
    global _provider
    with _provider_lock:
        _provider = None
