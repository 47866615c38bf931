from pydantic import BaseModel
from typing import Optional
from enum import Enum


class Priority(str, Enum):
    NORMAL = "normal"
    URGENT = "urgent"


class AnnouncementRequest(BaseModel):
    # None → compose the current-state summary when the request fires
    text: Optional[str] = None
    interrupt: bool = False
    priority: Priority = Priority.NORMAL

    @property
    def urgent(self) -> bool:
        return self.priority == Priority.URGENT


class NavigationMode(str, Enum):
    FREE = "free"
    COMBAT = "combat"
    REPLAY = "replay"
    ENEMY_INSPECT = "enemy_inspect"


class Section(str, Enum):
    SELECTION = "selection"
    BOARD = "board"
    STASH = "stash"
    SKILLS = "skills"
    HERO = "hero"


class HeroSubsection(str, Enum):
    STATS = "stats"
    SKILLS = "skills"


class CombatPanel(str, Enum):
    HERO = "hero"
    ENEMY = "enemy"


class NavigationContext(BaseModel):
    mode: NavigationMode = NavigationMode.FREE
    section: Section = Section.SELECTION
    subsection: HeroSubsection = HeroSubsection.STATS
    index: int = 0
    # -1 → the detail reader is not positioned on any line yet
    detail_line_index: int = -1


class NavCommand(str, Enum):
    NEXT = "next"
    PREVIOUS = "previous"
    UP = "up"
    DOWN = "down"
    NEXT_SECTION = "next_section"
    GO_TO_BOARD = "go_to_board"
    GO_TO_HERO = "go_to_hero"
    GO_TO_CHOICES = "go_to_choices"
    GO_TO_ENEMY = "go_to_enemy"
    CONFIRM = "confirm"
    BACK = "back"
    READ_DETAILS = "read_details"
    DETAIL_UP = "detail_up"
    DETAIL_DOWN = "detail_down"
    DETAIL_LEFT = "detail_left"
    DETAIL_RIGHT = "detail_right"
    EXIT = "exit"
    REROLL = "reroll"
    MOVE = "move"
    LATEST_MESSAGE = "latest_message"
    NEXT_MESSAGE = "next_message"
    PREVIOUS_MESSAGE = "previous_message"
    HELP = "help"
    TOGGLE_COMBAT_MODE = "toggle_combat_mode"
    COMBAT_SUMMARY = "combat_summary"
    READ_PLAYER_HEALTH = "read_player_health"
    READ_ENEMY_HEALTH = "read_enemy_health"
    READ_DAMAGE_DEALT = "read_damage_dealt"
    READ_DAMAGE_TAKEN = "read_damage_taken"
    REPLAY_CONTINUE = "replay_continue"
    REPLAY_AGAIN = "replay_again"
    REPLAY_RECAP = "replay_recap"
