"""
Game Snapshot Schema

Read-only view of the game supplied by the parent container: public player
data (secrets with withheld names, detective sets), the viewer's private
secrets and hand, and the acting player's id.

Wire documents (camelCase):
    publicData.players[]   -> Player (id, name, turnOrder, secrets, sets)
    privateData.secrets[]  -> GameSnapshot.private_secrets
    privateData.cards[]    -> GameSnapshot.private_cards

Ids arrive as int or str depending on the endpoint, so every lookup compares
them as strings.
"""

from typing import Any

from pydantic import BaseModel, Field

EntityId = int | str


def same_id(left: EntityId | None, right: EntityId | None) -> bool:
    """Compare two entity ids the way the server documents mix them."""
    if left is None or right is None:
        return False
    return str(left) == str(right)


class Card(BaseModel):
    """A card in a hand, a detective set or a notification payload."""

    id: EntityId = Field(..., description="Card id")
    name: str | None = Field(None, description="Card name")
    type: str | None = Field(None, description="detective | event | devious | ...")

    class Config:
        """Pydantic model configuration."""

        extra = "allow"


class Secret(BaseModel):
    """
    A secret card.

    `name` is withheld (null) for hidden secrets the viewer does not own.
    """

    id: EntityId = Field(..., description="Secret id")
    revealed: bool = Field(False, description="Face up on the table")
    name: str | None = Field(None, description="Null when withheld from the viewer")

    class Config:
        """Pydantic model configuration."""

        extra = "allow"

    def is_visible_to_viewer(self, owned_by_viewer: bool) -> bool:
        """True when the viewer is entitled to see this secret's name."""
        return self.revealed or owned_by_viewer


class DetectiveSet(BaseModel):
    """A detective set laid down by a player."""

    set_id: EntityId = Field(..., alias="setId", description="Set id")
    set_name: str | None = Field(None, alias="setName", description="Set name")
    cards: list[Card] = Field(default_factory=list)

    class Config:
        """Pydantic model configuration."""

        extra = "allow"
        populate_by_name = True


class Player(BaseModel):
    """Public view of a seated player."""

    id: EntityId = Field(..., description="Player id")
    name: str | None = Field(None, description="Display name")
    turn_order: int | None = Field(None, alias="turnOrder", description="1-based seat order")
    secrets: list[Secret] = Field(default_factory=list)
    sets: list[DetectiveSet] = Field(default_factory=list)

    class Config:
        """Pydantic model configuration."""

        extra = "allow"
        populate_by_name = True


class GameSnapshot(BaseModel):
    """
    Everything the orchestrator reads to derive candidate lists.

    Never mutated by the effect subsystem; replaced wholesale by the caller.
    """

    players: list[Player] = Field(default_factory=list, alias="publicPlayers")
    private_secrets: list[Secret] = Field(default_factory=list, alias="privateSecrets")
    private_cards: list[Card] = Field(default_factory=list, alias="privateCards")
    acting_player_id: EntityId | None = Field(None, alias="actingPlayerId")

    class Config:
        """Pydantic model configuration."""

        populate_by_name = True
        frozen = True

    @classmethod
    def from_public_private(
        cls,
        public_data: dict[str, Any] | None,
        private_data: dict[str, Any] | None,
        acting_player_id: EntityId | None,
    ) -> "GameSnapshot":
        """Build a snapshot from the server's publicData/privateData documents."""
        public_data = public_data or {}
        private_data = private_data or {}
        return cls(
            players=public_data.get("players") or [],
            private_secrets=private_data.get("secrets") or [],
            private_cards=private_data.get("cards") or [],
            acting_player_id=acting_player_id,
        )

    def player(self, player_id: EntityId | None) -> Player | None:
        """Find a player by id, None if absent."""
        for candidate in self.players:
            if same_id(candidate.id, player_id):
                return candidate
        return None

    def is_viewer(self, player_id: EntityId | None) -> bool:
        """True if `player_id` is the acting player."""
        return same_id(player_id, self.acting_player_id)

    def name_invariant_violations(self) -> list[Secret]:
        """Public secrets whose name leaks although hidden and not owned by the viewer."""
        violations = []
        for player in self.players:
            owned = self.is_viewer(player.id)
            for secret in player.secrets:
                if secret.name is not None and not secret.is_visible_to_viewer(owned):
                    violations.append(secret)
        return violations
