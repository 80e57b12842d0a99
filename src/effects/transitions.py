"""
Effect Transition Table

One EffectDefinition per EffectKind. Each definition fixes:
- the ordered step graph (first step is the initial step)
- the back graph (which steps can rewind, and which selections that clears)
- the candidate rules (player filter, secret predicate, card source)
- the endpoint template and the response-field mapping
- the prompt text shown for every step

Forward graph:
    selectAnyPlayer         selectPlayer -> submit
    stealSet                selectPlayer(others) -> selectSet -> submit
    andThenThereWasOneMore  selectPlayer -> selectSecret(revealed) -> selectPlayer2 -> submit
    revealSecret            selectPlayer -> selectSecret(hidden) -> submit
    revealOwnSecret         selectSecret(hidden, own, no back) -> submit
    hideSecret              selectPlayer -> selectSecret(revealed) -> submit
    selectSet               selectPlayer -> selectSet -> submit (no default endpoint)
    lookIntoTheAshes        selectCard(payload) -> submit
    delayTheMurderersEscape orderDiscard(payload) -> submit
    selectOwnCard           selectCard(hand) -> submit
    selectDirection         selectDirection -> submit

Back always clears the selection that would re-trigger the forward guard of
the step being returned to, otherwise the reducer would advance straight past
it again.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from models.enums import Direction, EffectKind, StepId
from models.flow_state import Selections
from models.game_snapshot import EntityId

# advance() result when the flow is complete
SUBMIT = "submit"

# Selection field written by each step
STEP_FIELDS: dict[StepId, str] = {
    StepId.SELECT_PLAYER: "player1",
    StepId.SELECT_PLAYER_2: "player2",
    StepId.SELECT_SECRET: "secret",
    StepId.SELECT_SET: "set",
    StepId.SELECT_CARD: "card",
    StepId.ORDER_DISCARD: "ordered_card_ids",
    StepId.SELECT_DIRECTION: "direction",
}

ENDPOINT_PREFIX = "/play/:gameId/actions/"


class PlayerFilter(str, Enum):
    """Which players a selectPlayer step offers"""

    ALL = "all"
    OTHERS = "others"  # Everyone except the acting player


class SecretSource(str, Enum):
    """Whose secrets a selectSecret step offers"""

    TARGET = "target"  # Secrets of selections.player1
    OWN = "own"  # Viewer's private secrets


class CardSource(str, Enum):
    """Where a selectCard/orderDiscard step takes its cards from"""

    PAYLOAD = "payload"  # Cards attached to the notification
    HAND = "hand"  # Viewer's own hand


@dataclass(frozen=True)
class BackTransition:
    """Rewind target and the selections it clears."""

    previous_step: StepId
    cleared_fields: tuple[str, ...]


BACK_SET_TO_PLAYER = BackTransition(StepId.SELECT_PLAYER, ("set", "player1"))
BACK_SECRET_TO_PLAYER = BackTransition(StepId.SELECT_PLAYER, ("secret", "player1"))
BACK_PLAYER2_TO_SECRET = BackTransition(StepId.SELECT_SECRET, ("player2", "secret"))


@dataclass(frozen=True)
class EffectDefinition:
    """Static description of one effect kind."""

    kind: EffectKind
    steps: tuple[StepId, ...]
    endpoint: str | None  # None: no server route, POST skipped unless configured
    response_fields: tuple[tuple[str, str], ...]  # (payload field, selection field)
    prompts: Mapping[StepId, str]
    back: Mapping[StepId, BackTransition] = field(default_factory=dict)
    player_filter: PlayerFilter = PlayerFilter.ALL
    secret_revealed: bool | None = None
    secret_source: SecretSource = SecretSource.TARGET
    card_source: CardSource | None = None

    @property
    def initial_step(self) -> StepId:
        return self.steps[0]

    def advance(self, step: StepId | None, selections: Selections) -> StepId | str | None:
        """
        Forward transition.

        Returns:
            Next StepId, SUBMIT when the flow is complete, or None when the
            current step has not been answered yet (or is not part of this effect)
        """
        if step not in self.steps:
            return None
        if getattr(selections, STEP_FIELDS[step]) is None:
            return None
        index = self.steps.index(step)
        if index + 1 < len(self.steps):
            return self.steps[index + 1]
        return SUBMIT

    def retreat(self, step: StepId | None) -> BackTransition | None:
        """Back transition for `step`, None where going back is not allowed."""
        return self.back.get(step)

    def can_go_back(self, step: StepId | None) -> bool:
        return step in self.back

    def prompt(self, step: StepId | None) -> str:
        return self.prompts.get(step, "")

    def endpoint_template(self) -> str | None:
        if self.endpoint is None:
            return None
        return ENDPOINT_PREFIX + self.endpoint


def _serialize(value: Any) -> Any:
    if isinstance(value, Direction):
        return value.value
    if isinstance(value, tuple):
        return list(value)
    return value


def build_response(
    definition: EffectDefinition,
    selections: Selections,
    acting_player_id: EntityId | None,
) -> dict[str, Any]:
    """
    Assemble the terminal payload for a completed flow.

    Returns:
        {"playerId": <actor>, <kind-specific fields>} (without "event")
    """
    fields = {"playerId": acting_player_id}
    for payload_field, selection_field in definition.response_fields:
        fields[payload_field] = _serialize(getattr(selections, selection_field))
    return fields


_SECRET_STEAL_PROMPTS = {
    StepId.SELECT_PLAYER: "Select one player to steal a secret from",
    StepId.SELECT_SECRET: "Select one revealed secret to steal",
    StepId.SELECT_PLAYER_2: "Select one player to give the secret hidden to",
}

EFFECTS: dict[EffectKind, EffectDefinition] = {
    EffectKind.SELECT_ANY_PLAYER: EffectDefinition(
        kind=EffectKind.SELECT_ANY_PLAYER,
        steps=(StepId.SELECT_PLAYER,),
        endpoint="select-any-player",
        response_fields=(("selectedPlayerId", "player1"),),
        prompts={StepId.SELECT_PLAYER: "Select any player"},
    ),
    EffectKind.STEAL_SET: EffectDefinition(
        kind=EffectKind.STEAL_SET,
        steps=(StepId.SELECT_PLAYER, StepId.SELECT_SET),
        endpoint="steal-set",
        response_fields=(("stolenPlayerId", "player1"), ("setId", "set")),
        prompts={
            StepId.SELECT_PLAYER: "Select one player to steal a set from",
            StepId.SELECT_SET: "Select one set to steal",
        },
        back={StepId.SELECT_SET: BACK_SET_TO_PLAYER},
        player_filter=PlayerFilter.OTHERS,
    ),
    EffectKind.AND_THEN_THERE_WAS_ONE_MORE: EffectDefinition(
        kind=EffectKind.AND_THEN_THERE_WAS_ONE_MORE,
        steps=(StepId.SELECT_PLAYER, StepId.SELECT_SECRET, StepId.SELECT_PLAYER_2),
        endpoint="and-then-there-was-one-more",
        response_fields=(
            ("selectedPlayerId", "player1"),  # stolen from
            ("secretId", "secret"),
            ("stolenPlayerId", "player2"),  # receives the secret, hidden
        ),
        prompts=_SECRET_STEAL_PROMPTS,
        back={
            StepId.SELECT_SECRET: BACK_SECRET_TO_PLAYER,
            StepId.SELECT_PLAYER_2: BACK_PLAYER2_TO_SECRET,
        },
        secret_revealed=True,
    ),
    EffectKind.REVEAL_SECRET: EffectDefinition(
        kind=EffectKind.REVEAL_SECRET,
        steps=(StepId.SELECT_PLAYER, StepId.SELECT_SECRET),
        endpoint="reveal-secret",
        response_fields=(("revealedPlayerId", "player1"), ("secretId", "secret")),
        prompts={
            StepId.SELECT_PLAYER: "Select one player to reveal a secret from",
            StepId.SELECT_SECRET: "Select one hidden secret to reveal",
        },
        back={StepId.SELECT_SECRET: BACK_SECRET_TO_PLAYER},
        secret_revealed=False,
    ),
    EffectKind.REVEAL_OWN_SECRET: EffectDefinition(
        kind=EffectKind.REVEAL_OWN_SECRET,
        steps=(StepId.SELECT_SECRET,),
        endpoint="reveal-own-secret",
        response_fields=(("secretId", "secret"),),
        prompts={StepId.SELECT_SECRET: "Select one of your hidden secrets to reveal"},
        secret_revealed=False,
        secret_source=SecretSource.OWN,
    ),
    EffectKind.HIDE_SECRET: EffectDefinition(
        kind=EffectKind.HIDE_SECRET,
        steps=(StepId.SELECT_PLAYER, StepId.SELECT_SECRET),
        endpoint="hide-secret",
        response_fields=(("hiddenPlayerId", "player1"), ("secretId", "secret")),
        prompts={
            StepId.SELECT_PLAYER: "Select one player to hide a secret from",
            StepId.SELECT_SECRET: "Select one revealed secret to hide",
        },
        back={StepId.SELECT_SECRET: BACK_SECRET_TO_PLAYER},
        secret_revealed=True,
    ),
    EffectKind.SELECT_SET: EffectDefinition(
        kind=EffectKind.SELECT_SET,
        steps=(StepId.SELECT_PLAYER, StepId.SELECT_SET),
        endpoint=None,
        response_fields=(("stolenPlayerId", "player1"), ("setId", "set")),
        prompts={
            StepId.SELECT_PLAYER: "Select one player to add a card to their set",
            StepId.SELECT_SET: "Select one set to add a card to",
        },
        back={StepId.SELECT_SET: BACK_SET_TO_PLAYER},
    ),
    EffectKind.LOOK_INTO_THE_ASHES: EffectDefinition(
        kind=EffectKind.LOOK_INTO_THE_ASHES,
        steps=(StepId.SELECT_CARD,),
        endpoint="look-into-the-ashes",
        response_fields=(("cardId", "card"),),
        prompts={
            StepId.SELECT_CARD: (
                "Select one card to steal from the top five cards of the discard pile"
            )
        },
        card_source=CardSource.PAYLOAD,
    ),
    EffectKind.DELAY_THE_MURDERERS_ESCAPE: EffectDefinition(
        kind=EffectKind.DELAY_THE_MURDERERS_ESCAPE,
        steps=(StepId.ORDER_DISCARD,),
        endpoint="delay-the-murderers-escape",
        response_fields=(("cards", "ordered_card_ids"),),
        prompts={
            StepId.ORDER_DISCARD: (
                "Reorder the cards of the discard pile that are going to the top "
                "of the regular deck"
            )
        },
        card_source=CardSource.PAYLOAD,
    ),
    EffectKind.SELECT_OWN_CARD: EffectDefinition(
        kind=EffectKind.SELECT_OWN_CARD,
        steps=(StepId.SELECT_CARD,),
        endpoint="select-own-card",
        response_fields=(("cardId", "card"),),
        prompts={StepId.SELECT_CARD: "Select one of your own cards to trade"},
        card_source=CardSource.HAND,
    ),
    EffectKind.SELECT_DIRECTION: EffectDefinition(
        kind=EffectKind.SELECT_DIRECTION,
        steps=(StepId.SELECT_DIRECTION,),
        endpoint="select-direction",
        response_fields=(("direction", "direction"),),
        prompts={StepId.SELECT_DIRECTION: "Select a direction for the card trade effect"},
    ),
}

_missing = set(EffectKind) - set(EFFECTS)
if _missing:
    raise RuntimeError(f"Transition table incomplete, missing: {sorted(k.value for k in _missing)}")


def get_definition(kind: EffectKind) -> EffectDefinition:
    """Definition for a kind (the table is exhaustive)."""
    return EFFECTS[kind]


def step_field(step: StepId) -> str:
    """Selection field a step writes."""
    return STEP_FIELDS[step]
