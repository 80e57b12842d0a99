"""
Data models for the effect orchestrator
"""

from .effect_notification import EffectNotification, parse_notification
from .enums import Direction, EffectKind, FlowPhase, ResetPolicy, StepId
from .flow_state import FlowState, Selections
from .game_snapshot import (
    Card,
    DetectiveSet,
    EntityId,
    GameSnapshot,
    Player,
    Secret,
    same_id,
)

__all__ = [
    "Direction",
    "EffectKind",
    "FlowPhase",
    "ResetPolicy",
    "StepId",
    # Push notifications
    "EffectNotification",
    "parse_notification",
    # Flow state
    "FlowState",
    "Selections",
    # Game snapshot
    "Card",
    "DetectiveSet",
    "EntityId",
    "GameSnapshot",
    "Player",
    "Secret",
    "same_id",
]
