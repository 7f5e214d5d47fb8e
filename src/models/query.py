"""Incoming chatbot query."""

from typing import Any, Dict, Mapping

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


def _first_present(payload: Mapping[str, Any], *keys: str) -> Any:
    """First value that is not empty; empty strings count as absent."""
    for key in keys:
        value = payload.get(key)
        if value:
            return value
    return None


class ChatQuery(BaseModel):
    """Query as accepted from either the query string or the JSON body."""

    model_config = ConfigDict(populate_by_name=True)

    message: Any = Field(default="", validation_alias=AliasChoices("message", "q"))
    user_id: Any = Field(
        default="anonymous", validation_alias=AliasChoices("userId", "user_id")
    )
    lang: str = "vi"

    @classmethod
    def from_query_string(cls, params: Mapping[str, Any]) -> "ChatQuery":
        """GET: ``q`` wins over ``message``."""
        return cls._from_payload(params, ("q", "message"))

    @classmethod
    def from_body(cls, body: Mapping[str, Any]) -> "ChatQuery":
        """POST: ``message`` wins over ``q``."""
        return cls._from_payload(body, ("message", "q"))

    @classmethod
    def _from_payload(cls, payload: Mapping[str, Any], message_keys) -> "ChatQuery":
        fields: Dict[str, Any] = {
            "message": _first_present(payload, *message_keys) or "",
            "user_id": _first_present(payload, "userId", "user_id"),
            "lang": payload.get("lang"),
        }
        return cls(**fields)

    @field_validator("lang", mode="before")
    @classmethod
    def default_lang(cls, value: Any) -> str:
        """Only 'en' switches language; anything else falls back to Vietnamese."""
        return "en" if str(value or "").lower() == "en" else "vi"

    @field_validator("user_id", mode="before")
    @classmethod
    def default_user(cls, value: Any) -> Any:
        return value or "anonymous"
