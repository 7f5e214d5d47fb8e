"""
Single entrypoint Lambda that routes HTTP API requests to thin handler modules.

One Lambda keeps the embedding cache and the DB pool warm across routes.
"""

from typing import Callable, Tuple

from utils.error_handling import NotFoundError, to_response

from . import chatbot, health_check


def lambda_handler(event, context):
    """Route by method and path; the chatbot handler does its own method checks."""
    method = event.get("requestContext", {}).get("http", {}).get("method", "")
    path = event.get("requestContext", {}).get("http", {}).get("path", "")
    route_key = f"{method.upper()} {path.rstrip('/') or '/'}"

    route_table: Tuple[Tuple[str, Callable], ...] = (
        ("GET /health", health_check.lambda_handler),
        ("GET /chatbot", chatbot.lambda_handler),
        ("POST /chatbot", chatbot.lambda_handler),
        ("OPTIONS /chatbot", chatbot.lambda_handler),
    )

    for key, handler in route_table:
        if route_key == key:
            return handler(event, context)

    if path.rstrip("/") == "/chatbot":
        return chatbot.lambda_handler(event, context)

    return to_response(NotFoundError(f"Route not found: {route_key}"))
