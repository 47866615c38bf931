from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from enum import Enum


class RunState(str, Enum):
    CHOICE = "choice"
    ENCOUNTER = "encounter"
    COMBAT = "combat"
    PVP_COMBAT = "pvp_combat"
    LOOT = "loot"
    LEVEL_UP = "level_up"
    PEDESTAL = "pedestal"
    END_RUN_VICTORY = "end_run_victory"
    END_RUN_DEFEAT = "end_run_defeat"
    NEW_RUN = "new_run"
    SHUTDOWN = "shutdown"


# Spoken names for run states
STATE_DESCRIPTIONS: Dict[RunState, str] = {
    RunState.CHOICE: "Shop",
    RunState.ENCOUNTER: "Encounters",
    RunState.COMBAT: "Combat",
    RunState.PVP_COMBAT: "PvP Combat",
    RunState.LOOT: "Loot",
    RunState.LEVEL_UP: "Level up",
    RunState.PEDESTAL: "Upgrade",
    RunState.END_RUN_VICTORY: "Victory",
    RunState.END_RUN_DEFEAT: "Defeat",
    RunState.NEW_RUN: "Starting run",
    RunState.SHUTDOWN: "Game ending",
}


def describe_state(state: RunState) -> str:
    return STATE_DESCRIPTIONS.get(state, state.value.replace("_", " ").capitalize())


class CardKind(str, Enum):
    ITEM = "item"
    SKILL = "skill"
    ENCOUNTER = "encounter"


class CardInfo(BaseModel):
    id: str
    name: str = ""
    kind: CardKind = CardKind.ITEM
    tier: Optional[str] = None
    size: Optional[int] = None
    buy_price: int = 0
    sell_price: int = 0
    tags: List[str] = []
    description: str = ""
    flavor_text: str = ""
    enchantment: Optional[str] = None
    # Pre-rendered lines from the host; built from the fields above when empty
    detail_lines: List[str] = []

    @property
    def display_name(self) -> str:
        return self.name or "Unknown item"

    @property
    def is_encounter(self) -> bool:
        return self.kind == CardKind.ENCOUNTER

    def lines(self) -> List[str]:
        """Detail lines read one at a time by the detail reader."""
        if self.detail_lines:
            return list(self.detail_lines)
        lines = [self.display_name]
        if self.tier:
            lines.append(self.tier)
        if self.tags:
            lines.append(", ".join(self.tags))
        if self.enchantment:
            lines.append(f"Enchanted: {self.enchantment}")
        if self.size:
            size_name = {1: "Small", 2: "Medium", 3: "Large"}.get(self.size, "")
            lines.append(f"Size: {self.size} slots ({size_name})" if size_name else f"Size: {self.size} slots")
        if self.description:
            lines.append(self.description)
        if self.flavor_text:
            lines.append(self.flavor_text)
        return lines


class HeroStats(BaseModel):
    health: int = 0
    max_health: Optional[int] = None
    shield: Optional[int] = None
    gold: Optional[int] = None
    level: Optional[int] = None
    experience: Optional[int] = None
    poison: Optional[int] = None
    burn: Optional[int] = None
    regen: Optional[int] = None
    crit_chance: Optional[int] = None
    income: Optional[int] = None
    prestige: Optional[int] = None


# Fixed hero stat slots, in reading order
HERO_STAT_FIELDS: List[tuple] = [
    ("health", "Health"),
    ("max_health", "Max Health"),
    ("gold", "Gold"),
    ("level", "Level"),
    ("experience", "Experience"),
    ("shield", "Shield"),
    ("poison", "Poison"),
    ("burn", "Burn"),
    ("regen", "Regeneration"),
    ("crit_chance", "Crit Chance"),
    ("income", "Income"),
]


class OpponentInfo(BaseModel):
    name: str = "Enemy"
    health: int = 0
    max_health: int = 0
    shield: int = 0
    items: List[CardInfo] = []
    skills: List[CardInfo] = []


class GameSnapshot(BaseModel):
    """Read-only view of the host game state; every collection may be missing."""
    run_state: RunState = RunState.CHOICE
    selection: List[CardInfo] = []
    selection_free: bool = False
    can_exit: bool = False
    can_reroll: bool = False
    reroll_cost: int = 0
    can_sell: bool = False
    can_move: bool = False
    board: List[CardInfo] = []
    stash: List[CardInfo] = []
    skills: List[CardInfo] = []
    hero: HeroStats = Field(default_factory=HeroStats)
    opponent: Optional[OpponentInfo] = None
