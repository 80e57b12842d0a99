"""
Candidate Derivation

Pure functions computing what the active step may offer, from the game
snapshot and the selections made so far. Missing players, secrets or sets
produce empty lists; nothing in here raises on absent data.
"""

import logging
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from effects.transitions import CardSource, PlayerFilter, SecretSource
from models.enums import Direction, StepId
from models.flow_state import FlowState
from models.game_snapshot import Card, DetectiveSet, EntityId, GameSnapshot, Player, Secret

if TYPE_CHECKING:
    from effects.transitions import EffectDefinition

logger = logging.getLogger(__name__)

# The reorder widget only ever shows the top five discard cards
MAX_ORDERABLE_CARDS = 5


def eligible_players(snapshot: GameSnapshot, exclude_self: bool = False) -> list[Player]:
    """All players, or all except the acting player."""
    if exclude_self:
        return [p for p in snapshot.players if not snapshot.is_viewer(p.id)]
    return list(snapshot.players)


def eligible_secrets(
    snapshot: GameSnapshot,
    target_player_id: EntityId | None,
    revealed: bool | None = None,
    own_only: bool = False,
) -> list[Secret]:
    """
    Secrets a selectSecret step may offer.

    Args:
        snapshot: Current game snapshot
        target_player_id: selections.player1 (ignored when own_only)
        revealed: True -> revealed only, False -> hidden only, None -> no filter
        own_only: Offer the viewer's private secrets regardless of target

    Returns:
        Filtered secrets; empty when no target has been chosen yet
    """
    if own_only:
        secrets = snapshot.private_secrets
    elif target_player_id is None:
        return []
    elif snapshot.is_viewer(target_player_id):
        # Public data withholds names, the private copy has them
        secrets = snapshot.private_secrets
    else:
        target = snapshot.player(target_player_id)
        secrets = target.secrets if target else []

    if revealed is None:
        return list(secrets)
    return [s for s in secrets if s.revealed == revealed]


def eligible_sets(snapshot: GameSnapshot, player_id: EntityId | None) -> list[DetectiveSet]:
    """Detective sets of the chosen player."""
    player = snapshot.player(player_id)
    return list(player.sets) if player else []


def payload_cards(payload: Any) -> list[Card]:
    """
    Cards attached to a notification.

    Accepts a bare list or an object with a `cards` list. Entries that are
    not valid cards are skipped.
    """
    if isinstance(payload, dict):
        payload = payload.get("cards")
    if not isinstance(payload, (list, tuple)):
        return []

    cards = []
    for item in payload:
        if isinstance(item, Card):
            cards.append(item)
            continue
        try:
            cards.append(Card.model_validate(item))
        except ValidationError:
            logger.debug(f"Skipping invalid payload card: {item!r}")
    return cards


def eligible_cards(
    source: CardSource | None,
    snapshot: GameSnapshot,
    payload: Any,
    limit: int | None = None,
) -> list[Card]:
    """Cards from the notification payload or from the viewer's hand."""
    if source == CardSource.PAYLOAD:
        cards = payload_cards(payload)
    elif source == CardSource.HAND:
        cards = list(snapshot.private_cards)
    else:
        cards = []
    if limit is not None:
        cards = cards[:limit]
    return cards


def adjacent_players(snapshot: GameSnapshot) -> dict[Direction, Player | None]:
    """
    Neighbours of the acting player by turn order (wrapping around).

    Left is the previous seat, right the next one.
    """
    neighbours: dict[Direction, Player | None] = {Direction.LEFT: None, Direction.RIGHT: None}
    me = snapshot.player(snapshot.acting_player_id)
    total = len(snapshot.players)
    if me is None or me.turn_order is None or total < 2:
        return neighbours

    left_order = total if me.turn_order == 1 else me.turn_order - 1
    right_order = 1 if me.turn_order == total else me.turn_order + 1
    for player in snapshot.players:
        if player.turn_order == left_order:
            neighbours[Direction.LEFT] = player
        if player.turn_order == right_order:
            neighbours[Direction.RIGHT] = player
    return neighbours


def candidates_for_step(
    definition: "EffectDefinition",
    step: StepId | None,
    snapshot: GameSnapshot,
    state: FlowState,
) -> list:
    """Candidate list for `step` of `definition` given the current flow state."""
    selections = state.selections

    if step == StepId.SELECT_PLAYER:
        return eligible_players(
            snapshot, exclude_self=definition.player_filter == PlayerFilter.OTHERS
        )
    if step == StepId.SELECT_PLAYER_2:
        return eligible_players(snapshot)
    if step == StepId.SELECT_SECRET:
        return eligible_secrets(
            snapshot,
            selections.player1,
            revealed=definition.secret_revealed,
            own_only=definition.secret_source == SecretSource.OWN,
        )
    if step == StepId.SELECT_SET:
        return eligible_sets(snapshot, selections.player1)
    if step == StepId.SELECT_CARD:
        return eligible_cards(definition.card_source, snapshot, state.payload)
    if step == StepId.ORDER_DISCARD:
        return eligible_cards(
            definition.card_source, snapshot, state.payload, limit=MAX_ORDERABLE_CARDS
        )
    if step == StepId.SELECT_DIRECTION:
        return list(Direction)
    return []
