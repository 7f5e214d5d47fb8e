"""
Chatbot handler for GET/POST /chatbot.

GET reads ``q``/``message``, ``userId``/``user_id`` and ``lang`` from the
query string; POST reads the same keys from a JSON body. Outside dev, only
browser origins listed in ALLOWED_ORIGINS may call the endpoint.
"""

from __future__ import annotations

import base64
import json
import uuid
from typing import Dict, Optional, Sequence
from urllib.parse import urlparse

from models.query import ChatQuery
from utils.error_handling import ValidationError
from utils.logging_config import get_logger
from utils.settings import MatchSettings

logger = get_logger(__name__)

ALLOWED_METHODS = ["GET", "POST", "OPTIONS"]

# Lazy-loaded service so warm invocations reuse the engine and caches.
_chatbot: Optional["ChatbotService"] = None


def _get_chatbot():
    """Lazy-load ChatbotService."""
    global _chatbot
    if _chatbot is None:
        from services.chatbot_service import ChatbotService
        _chatbot = ChatbotService.from_settings(MatchSettings.from_environment())
    return _chatbot


def _cors_headers(origin: Optional[str]) -> Dict[str, str]:
    headers = {
        "Access-Control-Allow-Methods": ", ".join(ALLOWED_METHODS),
        "Access-Control-Allow-Headers": "Content-Type, Authorization",
        "Access-Control-Max-Age": "86400",
    }
    if origin:
        headers["Access-Control-Allow-Origin"] = origin
    return headers


def _response(status: int, body: Dict, headers: Optional[Dict[str, str]] = None) -> Dict:
    return {
        "statusCode": status,
        "headers": {"Content-Type": "application/json", **(headers or {})},
        "body": json.dumps(body, ensure_ascii=False),
    }


def _request_headers(event: Dict) -> Dict[str, str]:
    return {str(k).lower(): v for k, v in (event.get("headers") or {}).items()}


def _allowed_origin(headers: Dict[str, str], allowed: Sequence[str]) -> Optional[str]:
    """The caller's origin when allow-listed, checked via Origin then Referer."""
    origin = headers.get("origin")
    if origin and origin in allowed:
        return origin

    referer = headers.get("referer")
    if referer:
        parsed = urlparse(referer)
        if parsed.scheme and parsed.netloc:
            referer_origin = f"{parsed.scheme}://{parsed.netloc}"
            if referer_origin in allowed:
                return referer_origin
    return None


def _json_body(event: Dict) -> Dict:
    body = event.get("body")
    if not body:
        return {}
    try:
        if event.get("isBase64Encoded"):
            body = base64.b64decode(body).decode("utf-8")
        payload = json.loads(body)
    except ValueError as exc:
        raise ValidationError("Request body is not valid JSON") from exc
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def _parse_query(event: Dict, method: str) -> ChatQuery:
    if method == "GET":
        return ChatQuery.from_query_string(event.get("queryStringParameters") or {})
    return ChatQuery.from_body(_json_body(event))


def _lang_hint(event: Dict) -> str:
    params = event.get("queryStringParameters") or {}
    return "en" if str(params.get("lang") or "").lower() == "en" else "vi"


def lambda_handler(event, context) -> Dict:
    """Answer a question; unexpected failures return a generic 500."""
    correlation_id = str(uuid.uuid4())
    settings = MatchSettings.from_environment()
    method = (
        event.get("requestContext", {}).get("http", {}).get("method")
        or event.get("httpMethod")
        or "GET"
    ).upper()

    request_headers = _request_headers(event)
    origin = _allowed_origin(request_headers, settings.allowed_origins)
    if origin is None and not settings.is_dev:
        logger.warning(
            "Blocked request from unauthorized origin",
            extra={
                "origin": request_headers.get("origin"),
                "referer": request_headers.get("referer"),
                "correlation_id": correlation_id,
            },
        )
        return _response(
            403,
            {
                "success": False,
                "error": "Access denied - Domain not allowed",
                "message": "This API is only accessible from authorized domains",
            },
        )
    cors = _cors_headers(
        origin or request_headers.get("origin") or next(iter(settings.allowed_origins), None)
    )

    if method == "OPTIONS":
        return {"statusCode": 200, "headers": cors, "body": ""}
    if method not in ALLOWED_METHODS:
        return _response(
            405,
            {"success": False, "error": "Method not allowed", "allowedMethods": ALLOWED_METHODS},
            cors,
        )

    try:
        try:
            query = _parse_query(event, method)
        except ValidationError as exc:
            logger.warning(
                "Rejected chatbot payload",
                extra={"error": str(exc), "correlation_id": correlation_id},
            )
            result = _get_chatbot().invalid_input(_lang_hint(event), str(exc), correlation_id)
        else:
            result = _get_chatbot().handle_request(query, correlation_id=correlation_id)
        return {
            "statusCode": 200,
            "headers": {"Content-Type": "application/json", **cors},
            "body": result.model_dump_json(exclude_none=True),
        }
    except Exception as exc:
        logger.exception("Chatbot handler failed", extra={"correlation_id": correlation_id})
        return _response(
            500,
            {
                "success": False,
                "error": str(exc) if settings.is_dev else "Internal server error",
                "response": "",
                "confidence": 0,
                "category": "error",
                "correlation_id": correlation_id,
            },
            cors,
        )
