"""Liveness check; never touches the knowledge store or Bedrock."""

import json
from datetime import datetime, timezone

from utils.settings import MatchSettings


def lambda_handler(event, context):
    """Report liveness plus which candidate backend this deployment reads from."""
    settings = MatchSettings.from_environment()
    body = {
        "status": "ok",
        "environment": settings.environment,
        "candidate_backend": settings.candidate_backend,
        "embeddings_enabled": settings.embeddings_enabled,
        "semantic_staged": settings.semantic_staged,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    return {
        "statusCode": 200,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(body),
    }
