"""
Domain events pushed by the host game.

Every event carries a literal `type` tag so JSON payloads can be parsed into
the right model through the DomainEvent discriminated union. Payloads whose
tag is unknown (or whose fields fail validation) are not events we narrate.
"""
from enum import Enum
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from models.game import RunState


class Side(str, Enum):
    PLAYER = "player"
    OPPONENT = "opponent"


class EffectKind(str, Enum):
    DAMAGE = "damage"
    HEAL = "heal"
    SHIELD = "shield"
    BURN = "burn"
    POISON = "poison"
    SLOW = "slow"
    FREEZE = "freeze"
    # Reported by the simulation but never narrated
    CHARGE = "charge"
    HASTE = "haste"
    RELOAD = "reload"
    DESTROY = "destroy"
    OTHER = "other"


class SessionMode(str, Enum):
    COMBAT = "combat"
    REPLAY = "replay"


class UserAction(str, Enum):
    PURCHASE = "purchase"
    SALE = "sale"
    DISPOSAL = "disposal"
    MOVE = "move"
    SKILL_EQUIPPED = "skill_equipped"
    SELECTION = "selection"
    NOT_ENOUGH_SPACE = "not_enough_space"
    CANT_AFFORD = "cant_afford"


class StateTransitionEvent(BaseModel):
    type: Literal["state_transition"] = "state_transition"
    state: RunState
    # True once the host finished animating into the state
    settled: bool = False


class CombatEffectEvent(BaseModel):
    type: Literal["combat_effect"] = "combat_effect"
    side: Side
    kind: EffectKind
    amount: int = Field(default=0, ge=0)
    is_crit: bool = False
    item_name: str = ""


class HealthChangedEvent(BaseModel):
    type: Literal["health_changed"] = "health_changed"
    side: Side
    health: int
    max_health: int
    shield: int = 0


class ContentRevealedEvent(BaseModel):
    type: Literal["content_revealed"] = "content_revealed"
    content: str = "items"


class SessionModeChangedEvent(BaseModel):
    type: Literal["session_mode_changed"] = "session_mode_changed"
    mode: SessionMode
    entered: bool
    enemy_name: Optional[str] = None


class UserActionCompletedEvent(BaseModel):
    type: Literal["user_action_completed"] = "user_action_completed"
    action: UserAction
    card_name: str = ""
    price: int = 0
    destination: Optional[str] = None


class CombatOutcomeEvent(BaseModel):
    type: Literal["combat_outcome"] = "combat_outcome"
    victory: bool
    victories: int = 0
    prestige_delta: int = 0
    prestige: int = 0


DomainEvent = Annotated[
    Union[
        StateTransitionEvent,
        CombatEffectEvent,
        HealthChangedEvent,
        ContentRevealedEvent,
        SessionModeChangedEvent,
        UserActionCompletedEvent,
        CombatOutcomeEvent,
    ],
    Field(discriminator="type"),
]

_event_adapter: TypeAdapter = TypeAdapter(DomainEvent)


def parse_event(payload: Dict[str, Any]) -> Optional[BaseModel]:
    """Validate a JSON payload into a DomainEvent. Returns None when it is not one."""
    try:
        return _event_adapter.validate_python(payload)
    except ValidationError:
        return None
