"""
Amazon Bedrock embedding service.

Maps query text to a fixed-length vector with Titan Text Embeddings.
Results are cached in-memory so repeated questions skip the model call.
"""

from __future__ import annotations

import json
import os
from abc import ABC, abstractmethod
from typing import List, Optional

import boto3
from botocore.config import Config

from utils.cache_service import LRUCache, cache_key
from utils.error_handling import EmbeddingError
from utils.logging_config import get_logger

logger = get_logger(__name__)


class EmbeddingProvider(ABC):
    """Text to vector."""

    @abstractmethod
    def embed(self, text: str) -> List[float]:
        """Return the embedding for ``text``; raise EmbeddingError on failure."""


class BedrockEmbeddingService(EmbeddingProvider):
    """Titan embeddings through bedrock-runtime with an LRU cache in front."""

    def __init__(
        self,
        model_id: Optional[str] = None,
        region: Optional[str] = None,
        dimensions: int = 1024,
        cache: Optional[LRUCache] = None,
        config: Optional[Config] = None,
    ):
        self.model_id = model_id or os.environ.get(
            "EMBEDDING_MODEL_ID", "amazon.titan-embed-text-v2:0"
        )
        resolved_region = (
            region
            or os.environ.get("BEDROCK_REGION")
            or os.environ.get("AWS_REGION")
            or "eu-west-2"
        )
        self.dimensions = dimensions
        self.client = boto3.client(
            "bedrock-runtime", region_name=resolved_region, config=config
        )
        self._cache = cache or LRUCache(max_size=256, ttl_seconds=300)

    def embed(self, text: str) -> List[float]:
        if not text:
            raise EmbeddingError("Cannot embed empty text")
        return self._cache.get_or_load(cache_key(self.model_id, text), lambda: self._invoke(text))

    def _invoke(self, text: str) -> List[float]:
        try:
            response = self.client.invoke_model(
                modelId=self.model_id,
                contentType="application/json",
                accept="application/json",
                body=json.dumps(
                    {"inputText": text, "dimensions": self.dimensions, "normalize": True}
                ),
            )
            payload = json.loads(response["body"].read())
            vector = [float(value) for value in payload["embedding"]]
        except Exception as exc:
            logger.error("Embedding call failed", extra={"error": str(exc)})
            raise EmbeddingError(f"Embedding call failed: {exc}") from exc

        if not vector:
            raise EmbeddingError("Embedding provider returned an empty vector")
        logger.info(
            "Embedding computed",
            extra={"text_length": len(text), "dimensions": len(vector)},
        )
        return vector
