"""
Effect Notification Schema

Server push message asking this client to resolve an effect.

Wire format: {"event": "<effect kind>", "payload": <any, optional>}

Examples:
    {"event": "stealSet"}
    {"event": "lookIntoTheAshes", "payload": [{"id": 8001, "name": "..."}]}
    {"event": "lookIntoTheAshes", "payload": {"cards": [{"id": 8001}]}}
"""

import json
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from effects.errors import MalformedNotificationError


class EffectNotification(BaseModel):
    """A single push notification. `event` may still be an unknown kind."""

    event: str = Field(..., description="Effect kind wire name")
    payload: Any = Field(None, description="Effect-specific data (e.g. discard cards)")

    class Config:
        """Pydantic model configuration."""

        extra = "allow"

    @field_validator("event", mode="before")
    @classmethod
    def event_must_be_present(cls, v):
        """Reject null/blank event names."""
        if not isinstance(v, str) or not v.strip():
            raise ValueError("event must be a non-empty string")
        return v


def parse_notification(raw: str | bytes | dict) -> EffectNotification:
    """
    Parse a push frame into an EffectNotification.

    Args:
        raw: Text/bytes frame from the push channel, or an already-decoded dict

    Returns:
        Parsed notification

    Raises:
        MalformedNotificationError: Unparsable JSON, non-object, or missing event
    """
    if isinstance(raw, (str, bytes, bytearray)):
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MalformedNotificationError(f"Non-JSON push message: {e}") from e
    else:
        data = raw

    if not isinstance(data, dict):
        raise MalformedNotificationError(
            f"Push message must be a JSON object, got {type(data).__name__}"
        )
    if not data.get("event"):
        raise MalformedNotificationError("Push message without 'event' field")

    try:
        return EffectNotification.model_validate(data)
    except ValidationError as e:
        raise MalformedNotificationError(f"Invalid push message: {e}") from e
