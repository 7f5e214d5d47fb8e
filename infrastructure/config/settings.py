"""
Environment-specific deployment settings.

Cost-optimized defaults for development/testing.
"""

from dataclasses import dataclass, field
import os
from typing import List

DEFAULT_ALLOWED_ORIGINS = ["https://edus.vn", "https://www.edus.vn", "http://localhost:3000"]


@dataclass
class Settings:
    """Deployment settings with cost-optimized defaults."""

    # Environment
    environment: str = "dev"
    aws_region: str = "eu-west-2"

    # Bedrock Configuration
    embedding_model_id: str = "amazon.titan-embed-text-v2:0"
    embeddings_enabled: bool = True

    # Matching policy
    lexical_threshold: float = 0.75
    semantic_threshold: float = 0.80
    semantic_staged: bool = False

    # Browser origins for CORS and the handler allow-list
    allowed_origins: List[str] = field(default_factory=lambda: list(DEFAULT_ALLOWED_ORIGINS))

    # Lambda Configuration
    lambda_memory_mb: int = 512
    lambda_timeout_seconds: int = 30

    # Cache Configuration
    cache_ttl_seconds: int = 300
    cache_max_size: int = 256

    @classmethod
    def from_environment(cls) -> "Settings":
        """Load settings from environment variables."""
        env = os.environ.get("ENVIRONMENT", "dev")
        embeddings_enabled = os.environ.get("EMBEDDINGS_ENABLED", "true").lower() == "true"
        semantic_staged = os.environ.get("SEMANTIC_STAGED", "false").lower() == "true"
        allowed_origins = [
            origin.strip()
            for origin in os.environ.get("ALLOWED_ORIGINS", ",".join(DEFAULT_ALLOWED_ORIGINS)).split(",")
            if origin.strip()
        ]

        # Production overrides
        if env == "prod":
            return cls(
                environment="prod",
                embeddings_enabled=embeddings_enabled,
                semantic_staged=semantic_staged,
                allowed_origins=allowed_origins,
                lambda_memory_mb=1024,
                lambda_timeout_seconds=60,
            )

        return cls(
            environment=env,
            embeddings_enabled=embeddings_enabled,
            semantic_staged=semantic_staged,
            allowed_origins=allowed_origins,
        )
