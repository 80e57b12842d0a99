"""
Frame router for the game push channel.

The same channel carries game-state documents and effect notifications:

    {"event": "publicData",  "payload": {...players...}}
    {"event": "privateData", "payload": {...secrets, cards...}}
    {"event": "<effect kind>", "payload": ...}

State documents rebuild the manager's GameSnapshot; every other frame,
including unparsable ones, goes to EffectManager.handle_message.
"""

import json
import logging
from typing import Any

from effects.manager import EffectManager
from models.game_snapshot import EntityId, GameSnapshot

logger = logging.getLogger(__name__)

SNAPSHOT_EVENTS = ("publicData", "privateData")


class SnapshotRouter:
    """Splits push frames between snapshot updates and effect notifications."""

    def __init__(self, manager: EffectManager, acting_player_id: EntityId | None):
        self.manager = manager
        self.acting_player_id = acting_player_id
        self._public: dict[str, Any] = {}
        self._private: dict[str, Any] = {}

    def route(self, frame: str | bytes | dict) -> None:
        data = frame
        if isinstance(frame, (str, bytes, bytearray)):
            try:
                data = json.loads(frame)
            except (json.JSONDecodeError, UnicodeDecodeError):
                # The manager logs and counts malformed frames
                self.manager.handle_message(frame)
                return

        if not isinstance(data, dict) or data.get("event") not in SNAPSHOT_EVENTS:
            self.manager.handle_message(data)
            return

        payload = data.get("payload")
        if not isinstance(payload, dict):
            logger.warning(f"Ignoring {data['event']} frame without an object payload")
            return

        if data["event"] == "publicData":
            self._public = payload
        else:
            self._private = payload
        self.manager.update_snapshot(
            GameSnapshot.from_public_private(self._public, self._private, self.acting_player_id)
        )
        logger.debug(f"Snapshot updated from {data['event']}")
