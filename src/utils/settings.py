"""
Runtime settings for the matching pipeline.

Thresholds are policy constants; everything can be overridden per
environment through Lambda environment variables.
"""

from dataclasses import dataclass
import os
from typing import Tuple

# Default minimum token length for the Jaccard scorer; MIN_TOKEN_LENGTH overrides it.
MIN_TOKEN_LENGTH = 2

DEFAULT_LEXICAL_THRESHOLD = 0.75
DEFAULT_SEMANTIC_THRESHOLD = 0.80

# Browser origins allowed to call the chatbot outside dev.
DEFAULT_ALLOWED_ORIGINS = ("https://edus.vn", "https://www.edus.vn", "http://localhost:3000")


def _env_bool(name: str, default: bool) -> bool:
    return os.environ.get(name, str(default)).lower() == "true"


def _env_list(name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    raw = os.environ.get(name)
    if not raw:
        return default
    return tuple(item.strip() for item in raw.split(",") if item.strip())


@dataclass
class MatchSettings:
    """Matching, data access and analytics settings."""

    # Environment
    environment: str = "dev"
    region: str = "eu-west-2"

    # Candidate source: memory | postgres | dynamodb
    candidate_backend: str = "memory"
    knowledge_file: str = ""
    knowledge_table: str = "chatbot-knowledge"
    analytics_table: str = ""
    database_url: str = ""
    db_secret_arn: str = ""

    # Embeddings
    embeddings_enabled: bool = True
    embedding_model_id: str = "amazon.titan-embed-text-v2:0"

    # Acceptance thresholds
    lexical_threshold: float = DEFAULT_LEXICAL_THRESHOLD
    semantic_threshold: float = DEFAULT_SEMANTIC_THRESHOLD
    min_token_length: int = MIN_TOKEN_LENGTH

    # Retrieval bounds
    max_candidates: int = 1000
    page_size: int = 100
    early_exit_similarity: float = 0.95
    page_delay_seconds: float = 0.05
    max_scan_seconds: float = 20.0
    stage_timeout_seconds: float = 10.0
    semantic_staged: bool = False
    keyword_prefilter: bool = False

    # Request handling
    max_message_length: int = 500
    analytics_async: bool = False
    analytics_ttl_days: int = 90
    allowed_origins: Tuple[str, ...] = DEFAULT_ALLOWED_ORIGINS

    # Cache Configuration
    cache_ttl_seconds: int = 300
    cache_max_size: int = 256

    @property
    def is_dev(self) -> bool:
        return self.environment == "dev"

    @classmethod
    def from_environment(cls) -> "MatchSettings":
        """Load settings from environment variables."""
        env = os.environ
        return cls(
            environment=env.get("ENVIRONMENT", "dev"),
            region=env.get("BEDROCK_REGION") or env.get("AWS_REGION") or "eu-west-2",
            candidate_backend=env.get("CANDIDATE_BACKEND", "memory").lower(),
            knowledge_file=env.get("KNOWLEDGE_FILE", ""),
            knowledge_table=env.get("KNOWLEDGE_TABLE", "chatbot-knowledge"),
            analytics_table=env.get("ANALYTICS_TABLE", ""),
            database_url=env.get("DATABASE_URL", ""),
            db_secret_arn=env.get("DB_SECRET_ARN", ""),
            embeddings_enabled=_env_bool("EMBEDDINGS_ENABLED", True),
            embedding_model_id=env.get("EMBEDDING_MODEL_ID", "amazon.titan-embed-text-v2:0"),
            lexical_threshold=float(env.get("LEXICAL_THRESHOLD", DEFAULT_LEXICAL_THRESHOLD)),
            semantic_threshold=float(env.get("SEMANTIC_THRESHOLD", DEFAULT_SEMANTIC_THRESHOLD)),
            min_token_length=int(env.get("MIN_TOKEN_LENGTH", MIN_TOKEN_LENGTH)),
            max_candidates=int(env.get("MAX_CANDIDATES", "1000")),
            page_size=int(env.get("PAGE_SIZE", "100")),
            early_exit_similarity=float(env.get("EARLY_EXIT_SIMILARITY", "0.95")),
            page_delay_seconds=float(env.get("PAGE_DELAY_SECONDS", "0.05")),
            max_scan_seconds=float(env.get("MAX_SCAN_SECONDS", "20")),
            stage_timeout_seconds=float(env.get("STAGE_TIMEOUT_SECONDS", "10")),
            semantic_staged=_env_bool("SEMANTIC_STAGED", False),
            keyword_prefilter=_env_bool("KEYWORD_PREFILTER", False),
            max_message_length=int(env.get("MAX_MESSAGE_LENGTH", "500")),
            analytics_async=_env_bool("ANALYTICS_ASYNC", False),
            analytics_ttl_days=int(env.get("ANALYTICS_TTL_DAYS", "90")),
            allowed_origins=_env_list("ALLOWED_ORIGINS", DEFAULT_ALLOWED_ORIGINS),
            cache_ttl_seconds=int(env.get("CACHE_TTL_SECONDS", "300")),
            cache_max_size=int(env.get("CACHE_MAX_SIZE", "256")),
        )
