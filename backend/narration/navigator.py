"""
Navigation context state machine.

Tracks which entity is focused and therefore narratable, across four modes:

  FREE           selection / board / stash / skills / hero sections.
                 Hero has two subsections: stats and skills.
  COMBAT         only hero stats and enemy stats are readable; the combat
                 quick reads are forwarded to the combat describer.
  ENEMY_INSPECT  transient overlay paging the opponent's items. Any command
                 other than its own exits it first.
  REPLAY         post-combat menu: continue, replay again, recap.

COMBAT and REPLAY are entered and left only through session mode events,
never through user input.

Item lists used to browse gameplay content do not wrap: pressing past an
edge re-reads the edge item. Menu-like lists (hero stats, the replay menu,
the section cycle) wrap.
"""
import logging
from enum import Enum
from typing import Callable, Dict, List, Optional, Protocol, Tuple

from models.game import (
    CardInfo, CardKind, GameSnapshot, HERO_STAT_FIELDS, describe_state,
)
from models.narration import (
    CombatPanel, HeroSubsection, NavCommand, NavigationContext, NavigationMode, Section,
)
from narration.combat_describer import CombatDescriber
from services.speech import MessageBuffer

logger = logging.getLogger(__name__)

# Fallback order when the focused section runs empty; hero is never empty
FALLBACK_ORDER: List[Section] = [Section.SELECTION, Section.BOARD, Section.SKILLS, Section.HERO]

SECTION_CYCLE: List[Section] = [
    Section.SELECTION, Section.BOARD, Section.STASH, Section.SKILLS, Section.HERO,
]

SECTION_NAMES: Dict[Section, str] = {
    Section.BOARD: "Board",
    Section.STASH: "Stash",
    Section.SKILLS: "Skills",
}


class GameActions(Protocol):
    """Host adapter that performs game actions. Each returns False when refused."""

    def buy(self, card_id: str) -> bool: ...

    def sell(self, card_id: str) -> bool: ...

    def move(self, card_id: str, to_stash: bool) -> bool: ...

    def select(self, card_id: str) -> bool: ...

    def exit_state(self) -> bool: ...

    def reroll(self) -> bool: ...

    def replay_continue(self) -> bool: ...

    def replay_again(self) -> bool: ...

    def replay_recap(self) -> bool: ...


class NullGameActions:
    """Refuses everything; used when the host exposes no actions."""

    def buy(self, card_id: str) -> bool:
        return False

    def sell(self, card_id: str) -> bool:
        return False

    def move(self, card_id: str, to_stash: bool) -> bool:
        return False

    def select(self, card_id: str) -> bool:
        return False

    def exit_state(self) -> bool:
        return False

    def reroll(self) -> bool:
        return False

    def replay_continue(self) -> bool:
        return False

    def replay_again(self) -> bool:
        return False

    def replay_recap(self) -> bool:
        return False


class NavItemType(str, Enum):
    CARD = "card"
    EXIT = "exit"
    REROLL = "reroll"


class NavItem:
    def __init__(self, type: NavItemType, card: Optional[CardInfo] = None, reroll_cost: int = 0):
        self.type = type
        self.card = card
        self.reroll_cost = reroll_cost


def step_index(index: int, delta: int, count: int, wrap: bool) -> Tuple[int, bool]:
    """Move a cursor. Returns (new_index, moved); moved is False at a non-wrapping edge."""
    if count <= 0:
        return 0, False
    if wrap:
        return (index + delta) % count, count > 1
    new_index = min(max(index + delta, 0), count - 1)
    return new_index, new_index != index


# (label, action method name, success speech)
REPLAY_OPTIONS: List[Tuple[str, str, str]] = [
    ("Continue", "replay_continue", "Continuing"),
    ("Replay", "replay_again", "Replaying combat"),
    ("Recap", "replay_recap", "Showing recap"),
]

_HELP: Dict[NavigationMode, str] = {
    NavigationMode.FREE: (
        "Left/Right: Navigate. Tab: Switch section. "
        "B: Board. V: Hero. C: Choices. F: Enemy. "
        "Enter: Select/Buy/Sell. E: Exit. R: Refresh. "
        "Ctrl+Arrow: Details. Space: Move item. "
        "Period/Comma: Messages. Slash: Latest message."
    ),
    NavigationMode.COMBAT: (
        "Arrows: Stats. Tab: Hero or enemy stats. F: Enemy items. "
        "H: Combat summary. 1/2: Health. 3/4: Damage dealt/taken. M: Combat mode."
    ),
    NavigationMode.ENEMY_INSPECT: (
        "Left/Right: Enemy items. Enter: Details. Escape: Close. Any other key closes."
    ),
    NavigationMode.REPLAY: "Left/Right: Options. Enter: Choose. Continue, Replay, or Recap.",
}

_COMBAT_READS = {
    NavCommand.COMBAT_SUMMARY,
    NavCommand.READ_PLAYER_HEALTH,
    NavCommand.READ_ENEMY_HEALTH,
    NavCommand.READ_DAMAGE_DEALT,
    NavCommand.READ_DAMAGE_TAKEN,
    NavCommand.TOGGLE_COMBAT_MODE,
}

_INSPECT_OWN = {
    NavCommand.NEXT,
    NavCommand.PREVIOUS,
    NavCommand.CONFIRM,
    NavCommand.BACK,
    NavCommand.GO_TO_ENEMY,
}


class Navigator:
    def __init__(
        self,
        speak: Callable[[str, bool], None],
        actions: Optional[GameActions] = None,
        combat: Optional[CombatDescriber] = None,
        messages: Optional[MessageBuffer] = None,
        session_id: str = "-",
    ):
        self._speak_fn = speak
        self.actions: GameActions = actions if actions is not None else NullGameActions()
        self.combat = combat
        self.messages = messages if messages is not None else MessageBuffer()
        self.session_id = session_id

        self.context = NavigationContext()
        self.combat_panel = CombatPanel.HERO
        self.exiting_replay = False
        self._saved_context: Optional[NavigationContext] = None
        self._saved_panel = CombatPanel.HERO

        self.snapshot: Optional[GameSnapshot] = None
        self._selection: List[NavItem] = []
        self._board: List[CardInfo] = []
        self._stash: List[CardInfo] = []
        self._skills: List[CardInfo] = []
        self._enemy_items: List[CardInfo] = []

    # ── Speech helpers ───────────────────────────────────────────────────────

    def _say(self, *texts: Optional[str]) -> None:
        first = True
        for text in texts:
            if text:
                self._speak_fn(text, first)
                first = False

    # ── Data refresh ─────────────────────────────────────────────────────────

    def refresh(self, snapshot: GameSnapshot) -> None:
        """Rebuild item caches from a fresh snapshot and re-validate the focus."""
        self.snapshot = snapshot
        items: List[NavItem] = [NavItem(NavItemType.CARD, card=c) for c in snapshot.selection]
        if snapshot.can_reroll and snapshot.reroll_cost >= 0:
            items.append(NavItem(NavItemType.REROLL, reroll_cost=snapshot.reroll_cost))
        if snapshot.can_exit:
            items.append(NavItem(NavItemType.EXIT))
        self._selection = items
        self._board = list(snapshot.board)
        self._stash = list(snapshot.stash)
        self._skills = list(snapshot.skills)
        self._enemy_items = list(snapshot.opponent.items) if snapshot.opponent else []
        self._revalidate()

    def _revalidate(self) -> None:
        ctx = self.context
        if ctx.mode == NavigationMode.FREE:
            if ctx.section == Section.HERO and ctx.subsection == HeroSubsection.SKILLS and not self._skills:
                ctx.subsection = HeroSubsection.STATS
            if self._count(ctx.section) == 0:
                for section in FALLBACK_ORDER:
                    if self._count(section) > 0:
                        ctx.section = section
                        break
                ctx.index = 0
                ctx.detail_line_index = -1
                return
        self._set_index(min(ctx.index, max(self._focus_count() - 1, 0)))

    def _set_index(self, index: int) -> None:
        if index != self.context.index:
            self.context.index = index
            self.context.detail_line_index = -1

    # ── Collections ──────────────────────────────────────────────────────────

    def _count(self, section: Section) -> int:
        if section == Section.SELECTION:
            return len(self._selection)
        if section == Section.BOARD:
            return len(self._board)
        if section == Section.STASH:
            return len(self._stash)
        if section == Section.SKILLS:
            return len(self._skills)
        if self.context.subsection == HeroSubsection.SKILLS:
            return len(self._skills)
        return len(HERO_STAT_FIELDS)

    def _focus_count(self) -> int:
        mode = self.context.mode
        if mode == NavigationMode.FREE:
            return self._count(self.context.section)
        if mode == NavigationMode.COMBAT:
            return len(self._panel_lines())
        if mode == NavigationMode.ENEMY_INSPECT:
            return len(self._enemy_items)
        return len(REPLAY_OPTIONS)

    def available_sections(self) -> List[Section]:
        return [s for s in SECTION_CYCLE if s == Section.HERO or self._count(s) > 0]

    @property
    def has_content(self) -> bool:
        return self._focus_count() > 0

    def current_nav_item(self) -> Optional[NavItem]:
        ctx = self.context
        if ctx.mode != NavigationMode.FREE or ctx.section != Section.SELECTION:
            return None
        if 0 <= ctx.index < len(self._selection):
            return self._selection[ctx.index]
        return None

    def current_card(self) -> Optional[CardInfo]:
        ctx = self.context
        if ctx.mode == NavigationMode.ENEMY_INSPECT:
            return self._enemy_items[ctx.index] if ctx.index < len(self._enemy_items) else None
        if ctx.mode != NavigationMode.FREE:
            return None
        if ctx.section == Section.SELECTION:
            item = self.current_nav_item()
            return item.card if item and item.type == NavItemType.CARD else None
        collection = {
            Section.BOARD: self._board,
            Section.STASH: self._stash,
            Section.SKILLS: self._skills,
        }.get(ctx.section)
        if collection is None:
            if ctx.subsection == HeroSubsection.SKILLS:
                collection = self._skills
            else:
                return None
        return collection[ctx.index] if ctx.index < len(collection) else None

    # ── Descriptions ─────────────────────────────────────────────────────────

    def selection_type_name(self) -> str:
        cards = [i.card for i in self._selection if i.type == NavItemType.CARD and i.card]
        if not cards:
            return "options"
        if cards[0].is_encounter:
            return "encounters"
        if cards[0].kind == CardKind.SKILL:
            return "skills"
        return "items"

    def _card_description(self, card: CardInfo, section: Section) -> str:
        if section == Section.SELECTION:
            if card.is_encounter or (self.snapshot and self.snapshot.selection_free):
                return card.display_name
            return f"{card.display_name}, {card.buy_price} gold" if card.buy_price > 0 else card.display_name
        if section in (Section.BOARD, Section.STASH) and card.sell_price > 0:
            return f"{card.display_name}, sell {card.sell_price}"
        return card.display_name

    def _hero_stat_line(self, position: int) -> str:
        if self.snapshot is None:
            return "No hero data"
        field, name = HERO_STAT_FIELDS[position % len(HERO_STAT_FIELDS)]
        value = getattr(self.snapshot.hero, field)
        return f"{name}: {value}" if value is not None else f"{name}: none"

    def _panel_lines(self) -> List[str]:
        if self.combat_panel == CombatPanel.HERO:
            return [self._hero_stat_line(i) for i in range(len(HERO_STAT_FIELDS))]
        opponent = self.snapshot.opponent if self.snapshot else None
        if opponent is None:
            return ["No enemy data"]
        return [
            f"Name: {opponent.name}",
            f"Health: {opponent.health}",
            f"Max Health: {opponent.max_health}",
            f"Shield: {opponent.shield}",
            f"Items: {len(opponent.items)}",
        ]

    def current_item_text(self) -> str:
        ctx = self.context
        total = self._focus_count()
        position = f"{ctx.index + 1} of {total}"

        if ctx.mode == NavigationMode.COMBAT:
            lines = self._panel_lines()
            return lines[min(ctx.index, len(lines) - 1)]
        if ctx.mode == NavigationMode.REPLAY:
            return f"{REPLAY_OPTIONS[ctx.index % len(REPLAY_OPTIONS)][0]}, {position}"
        if ctx.mode == NavigationMode.ENEMY_INSPECT:
            card = self.current_card()
            return f"{card.display_name}, {position}" if card else "No enemy items"

        if ctx.section == Section.HERO and ctx.subsection == HeroSubsection.STATS:
            return self._hero_stat_line(ctx.index)
        if ctx.section == Section.SELECTION:
            item = self.current_nav_item()
            if item is None:
                return "Empty"
            if item.type == NavItemType.EXIT:
                desc = "Exit"
            elif item.type == NavItemType.REROLL:
                desc = f"Refresh, {item.reroll_cost} gold"
            else:
                desc = self._card_description(item.card, Section.SELECTION)
            return f"{desc}, {position}"

        card = self.current_card()
        if card is None:
            return "Empty"
        return f"{self._card_description(card, ctx.section)}, {position}"

    def section_announcement(self) -> List[str]:
        ctx = self.context
        if ctx.section == Section.HERO:
            if ctx.subsection == HeroSubsection.SKILLS:
                return [f"Hero skills, {len(self._skills)} items", self.current_item_text()]
            return ["Hero stats", self.current_item_text()]
        if ctx.section == Section.SELECTION:
            name = self.selection_type_name().capitalize()
        else:
            name = SECTION_NAMES[ctx.section]
        count = self._count(ctx.section)
        head = f"{name}, {count} items"
        return [head, self.current_item_text()] if count > 0 else [head]

    def compose_summary(self) -> Optional[str]:
        """Current-state summary for the announcement coordinator."""
        if self.snapshot is None:
            return None
        mode = self.context.mode
        state = describe_state(self.snapshot.run_state)
        if mode == NavigationMode.REPLAY:
            return f"Combat over. {self.current_item_text()}"
        if mode == NavigationMode.COMBAT:
            return f"{state}. {self.current_item_text()}"
        if mode == NavigationMode.ENEMY_INSPECT:
            return self.current_item_text()

        parts = [state]
        if self._selection:
            parts.append(f"{len(self._selection)} {self.selection_type_name()}")
        if self._board:
            parts.append(f"{len(self._board)} items on board")
        summary = ", ".join(parts)
        if self.has_content:
            summary += f". {self.current_item_text()}"
        return summary

    def detailed_info(self) -> str:
        ctx = self.context
        if ctx.mode == NavigationMode.COMBAT:
            return ", ".join(self._panel_lines())
        if ctx.mode == NavigationMode.FREE and ctx.section == Section.HERO and ctx.subsection == HeroSubsection.STATS:
            return self._all_hero_stats()
        item = self.current_nav_item()
        if item is not None and item.type == NavItemType.EXIT:
            return "Exit. Leave the current state and continue."
        if item is not None and item.type == NavItemType.REROLL:
            gold = (self.snapshot.hero.gold or 0) if self.snapshot else 0
            return f"Refresh. Get new items for {item.reroll_cost} gold. You have {gold} gold."
        card = self.current_card()
        if card is None:
            return "Nothing selected"
        return ". ".join(card.lines())

    def _all_hero_stats(self) -> str:
        if self.snapshot is None:
            return "No hero data"
        hero = self.snapshot.hero
        parts = []
        if hero.max_health is not None:
            parts.append(f"Health {hero.health} of {hero.max_health}")
        else:
            parts.append(f"Health {hero.health}")
        if hero.gold is not None:
            parts.append(f"Gold {hero.gold}")
        if hero.level is not None:
            parts.append(f"Level {hero.level}")
        if hero.shield:
            parts.append(f"Shield {hero.shield}")
        return ", ".join(parts)

    # ── Mode transitions (session-driven) ────────────────────────────────────

    def enter_combat(self) -> None:
        """Focus is forced to hero stats without announcing the switch."""
        target = NavigationContext(
            mode=NavigationMode.COMBAT, section=Section.HERO, subsection=HeroSubsection.STATS,
        )
        if self.context.mode == NavigationMode.ENEMY_INSPECT:
            self._saved_context = target
            self._saved_panel = CombatPanel.HERO
        else:
            self.context = target
            self.combat_panel = CombatPanel.HERO
        self.exiting_replay = False
        logger.info("[%s] Navigation: combat", self.session_id)

    def exit_combat(self) -> None:
        free = NavigationContext(mode=NavigationMode.FREE, section=Section.HERO)
        if self.context.mode == NavigationMode.ENEMY_INSPECT:
            if self._saved_context and self._saved_context.mode == NavigationMode.COMBAT:
                self._saved_context = free
        elif self.context.mode == NavigationMode.COMBAT:
            self.context = free
            self._revalidate()
        logger.info("[%s] Navigation: combat ended", self.session_id)

    def enter_replay(self) -> None:
        self._saved_context = None
        self.context = NavigationContext(mode=NavigationMode.REPLAY, section=Section.HERO)
        self.exiting_replay = False
        logger.info("[%s] Navigation: replay", self.session_id)

    def begin_replay_exit(self) -> None:
        """Input is ignored until resume_free() once external state settles."""
        if self.context.mode == NavigationMode.REPLAY:
            self.exiting_replay = True

    def resume_free(self) -> None:
        self.exiting_replay = False
        self._saved_context = None
        self.context = NavigationContext(mode=NavigationMode.FREE, section=Section.SELECTION)
        self._revalidate()
        logger.info("[%s] Navigation: free", self.session_id)

    def enter_enemy_inspect(self) -> None:
        if self.context.mode not in (NavigationMode.FREE, NavigationMode.COMBAT):
            return
        opponent = self.snapshot.opponent if self.snapshot else None
        if opponent is None:
            self._say("No enemy information")
            return
        self._saved_context = self.context.model_copy()
        self._saved_panel = self.combat_panel
        self.context = NavigationContext(mode=NavigationMode.ENEMY_INSPECT, section=self.context.section)
        count = len(self._enemy_items)
        if count:
            self._say(f"{opponent.name}, {count} items", self.current_item_text())
        else:
            self._say(f"{opponent.name}, no items")

    def exit_enemy_inspect(self, announce: bool = True) -> None:
        if self.context.mode != NavigationMode.ENEMY_INSPECT:
            return
        self.context = self._saved_context or NavigationContext()
        self.combat_panel = self._saved_panel
        self._saved_context = None
        self._revalidate()
        if announce:
            self._say("Closed enemy view", self.current_item_text() if self.has_content else None)

    # ── Input dispatch ───────────────────────────────────────────────────────

    def handle(self, command: NavCommand) -> None:
        mode = self.context.mode
        if command == NavCommand.HELP:
            self._say(_HELP[mode])
            return
        if mode == NavigationMode.REPLAY:
            self._handle_replay(command)
        elif mode == NavigationMode.ENEMY_INSPECT:
            self._handle_inspect(command)
        elif mode == NavigationMode.COMBAT:
            self._handle_combat(command)
        else:
            self._handle_free(command)

    def _handle_free(self, command: NavCommand) -> None:
        ctx = self.context
        in_hero = ctx.section == Section.HERO

        if command in (NavCommand.NEXT, NavCommand.PREVIOUS):
            self._move(1 if command == NavCommand.NEXT else -1)
        elif command in (NavCommand.UP, NavCommand.DOWN):
            if in_hero:
                self._move(1 if command == NavCommand.DOWN else -1)
        elif command == NavCommand.NEXT_SECTION:
            self.next_section()
        elif command == NavCommand.GO_TO_BOARD:
            self.go_to_board()
        elif command == NavCommand.GO_TO_HERO:
            self.go_to_section(Section.HERO)
        elif command == NavCommand.GO_TO_CHOICES:
            if self._selection:
                self.go_to_section(Section.SELECTION)
            else:
                self._say("No choices available")
        elif command == NavCommand.GO_TO_ENEMY:
            self.enter_enemy_inspect()
        elif command == NavCommand.CONFIRM:
            self._confirm()
        elif command == NavCommand.BACK:
            self._say(self.compose_summary() or "No game data")
        elif command == NavCommand.READ_DETAILS:
            self._say(self.detailed_info())
        elif command in (NavCommand.DETAIL_UP, NavCommand.DETAIL_DOWN):
            if in_hero and ctx.subsection == HeroSubsection.STATS:
                self._move(1 if command == NavCommand.DETAIL_DOWN else -1)
            else:
                self._read_detail_line(1 if command == NavCommand.DETAIL_DOWN else -1)
        elif command in (NavCommand.DETAIL_LEFT, NavCommand.DETAIL_RIGHT):
            if in_hero:
                self._switch_hero_subsection()
        elif command == NavCommand.EXIT:
            self._try_exit()
        elif command == NavCommand.REROLL:
            self._try_reroll()
        elif command == NavCommand.MOVE:
            self._move_item()
        elif command == NavCommand.LATEST_MESSAGE:
            self._say(*self.messages.read_newest())
        elif command == NavCommand.NEXT_MESSAGE:
            self._say(*self.messages.read_next())
        elif command == NavCommand.PREVIOUS_MESSAGE:
            self._say(*self.messages.read_previous())
        elif command in _COMBAT_READS:
            self._combat_read(command)
        else:
            logger.debug("[%s] Ignored %s in free mode", self.session_id, command.value)

    def _handle_combat(self, command: NavCommand) -> None:
        if command in (NavCommand.NEXT, NavCommand.DOWN, NavCommand.DETAIL_DOWN):
            self._move(1)
        elif command in (NavCommand.PREVIOUS, NavCommand.UP, NavCommand.DETAIL_UP):
            self._move(-1)
        elif command == NavCommand.NEXT_SECTION:
            self._set_panel(CombatPanel.ENEMY if self.combat_panel == CombatPanel.HERO else CombatPanel.HERO)
        elif command == NavCommand.GO_TO_HERO:
            self._set_panel(CombatPanel.HERO)
        elif command in (NavCommand.CONFIRM, NavCommand.READ_DETAILS):
            self._say(self.detailed_info())
        elif command == NavCommand.GO_TO_ENEMY:
            self.enter_enemy_inspect()
        elif command in _COMBAT_READS:
            self._combat_read(command)
        else:
            logger.debug("[%s] Ignored %s during combat", self.session_id, command.value)

    def _handle_inspect(self, command: NavCommand) -> None:
        if command not in _INSPECT_OWN:
            self.exit_enemy_inspect(announce=False)
            self.handle(command)
            return
        if command in (NavCommand.NEXT, NavCommand.PREVIOUS):
            self._move(1 if command == NavCommand.NEXT else -1)
        elif command == NavCommand.CONFIRM:
            self._say(self.detailed_info())
        else:
            self.exit_enemy_inspect()

    def _handle_replay(self, command: NavCommand) -> None:
        if self.exiting_replay:
            logger.debug("[%s] Ignored %s while leaving replay", self.session_id, command.value)
            return
        if command in (NavCommand.NEXT, NavCommand.DOWN):
            self._move(1)
        elif command in (NavCommand.PREVIOUS, NavCommand.UP):
            self._move(-1)
        elif command == NavCommand.CONFIRM:
            self._replay_action(self.context.index % len(REPLAY_OPTIONS))
        elif command == NavCommand.REPLAY_CONTINUE:
            self._replay_action(0)
        elif command == NavCommand.REPLAY_AGAIN:
            self._replay_action(1)
        elif command == NavCommand.REPLAY_RECAP:
            self._replay_action(2)
        else:
            logger.debug("[%s] Ignored %s in replay", self.session_id, command.value)

    # ── Navigation primitives ────────────────────────────────────────────────

    def _wraps(self) -> bool:
        ctx = self.context
        if ctx.mode in (NavigationMode.REPLAY, NavigationMode.COMBAT):
            return True
        if ctx.mode == NavigationMode.FREE:
            return ctx.section == Section.HERO and ctx.subsection == HeroSubsection.STATS
        return False

    def _move(self, delta: int) -> None:
        count = self._focus_count()
        if count == 0:
            return
        index, _ = step_index(self.context.index, delta, count, self._wraps())
        # At a non-wrapping edge the current item is simply read again
        self._set_index(index)
        self._say(self.current_item_text())

    def next_section(self) -> None:
        sections = self.available_sections()
        if len(sections) <= 1:
            return
        current = self.context.section
        position = sections.index(current) if current in sections else -1
        self._focus_section(sections[(position + 1) % len(sections)])
        self._say(*self.section_announcement())

    def go_to_section(self, section: Section) -> None:
        self._focus_section(section)
        self._say(*self.section_announcement())

    def go_to_board(self) -> None:
        if self._board:
            self.go_to_section(Section.BOARD)
        elif self._stash:
            self._focus_section(Section.STASH)
            self._say("Board empty, showing stash", *self.section_announcement())
        else:
            self._say("No items on board")

    def _focus_section(self, section: Section) -> None:
        self.context.section = section
        self.context.subsection = HeroSubsection.STATS
        self.context.index = 0
        self.context.detail_line_index = -1

    def _switch_hero_subsection(self) -> None:
        ctx = self.context
        if ctx.subsection == HeroSubsection.STATS:
            if not self._skills:
                self._say("No skills")
                return
            ctx.subsection = HeroSubsection.SKILLS
        else:
            ctx.subsection = HeroSubsection.STATS
        ctx.index = 0
        ctx.detail_line_index = -1
        self._say(*self.section_announcement())

    def _set_panel(self, panel: CombatPanel) -> None:
        self.combat_panel = panel
        self._set_index(0)
        self._say("Hero stats" if panel == CombatPanel.HERO else "Enemy stats", self.current_item_text())

    def _read_detail_line(self, delta: int) -> None:
        card = self.current_card()
        if card is None:
            self._say("Nothing selected")
            return
        lines = card.lines()
        ctx = self.context
        if ctx.detail_line_index < 0:
            ctx.detail_line_index = 0
        else:
            ctx.detail_line_index, _ = step_index(ctx.detail_line_index, delta, len(lines), wrap=False)
        self._say(lines[ctx.detail_line_index])

    # ── Actions ──────────────────────────────────────────────────────────────

    def _confirm(self) -> None:
        ctx = self.context
        if ctx.section == Section.HERO:
            self._say(self.detailed_info())
            return
        if ctx.section == Section.SELECTION:
            item = self.current_nav_item()
            if item is None:
                self._say("Nothing selected")
            elif item.type == NavItemType.EXIT:
                self._try_exit()
            elif item.type == NavItemType.REROLL:
                self._try_reroll()
            else:
                self._select_card(item.card)
            return
        if ctx.section in (Section.BOARD, Section.STASH):
            card = self.current_card()
            if card is None:
                self._say("Nothing selected")
            elif not (self.snapshot and self.snapshot.can_sell):
                self._say("Cannot sell right now")
            elif not self.actions.sell(card.id):
                self._say("Cannot sell now")
            return
        self._say(self.detailed_info())

    def _select_card(self, card: CardInfo) -> None:
        if card.kind == CardKind.ITEM:
            if not self.actions.buy(card.id):
                self._say("Cannot buy now")
        elif card.kind == CardKind.SKILL:
            if not self.actions.select(card.id):
                self._say("Cannot select now")
        else:
            self._say(card.flavor_text or None, f"Selecting {card.display_name}")
            if not self.actions.select(card.id):
                self._say("Cannot select now")

    def _try_exit(self) -> None:
        if not (self.snapshot and self.snapshot.can_exit):
            self._say("Cannot exit now")
            return
        self._say("Exiting" if self.actions.exit_state() else "Exit failed")

    def _try_reroll(self) -> None:
        snapshot = self.snapshot
        if not (snapshot and snapshot.can_reroll):
            self._say("Cannot refresh now")
            return
        cost = snapshot.reroll_cost
        gold = snapshot.hero.gold or 0
        if gold < cost:
            self._say(f"Not enough gold. Need {cost}, have {gold}")
            return
        self._say(f"Refreshed for {cost} gold" if self.actions.reroll() else "Refresh failed")

    def _move_item(self) -> None:
        ctx = self.context
        if ctx.section not in (Section.BOARD, Section.STASH):
            self._say("Select an item on your board first")
            return
        card = self.current_card()
        if card is None or card.kind != CardKind.ITEM:
            self._say("Cannot move this")
            return
        if not (self.snapshot and self.snapshot.can_move):
            self._say("Cannot move right now")
            return
        if not self.actions.move(card.id, to_stash=ctx.section == Section.BOARD):
            self._say("Move failed")

    def _replay_action(self, option: int) -> None:
        label, method, success = REPLAY_OPTIONS[option]
        if getattr(self.actions, method)():
            self._say(success)
        else:
            self._say(f"{label} unavailable")

    def _combat_read(self, command: NavCommand) -> None:
        combat = self.combat
        if combat is None:
            self._say("Not in combat.")
            return
        if command == NavCommand.TOGGLE_COMBAT_MODE:
            self._say(combat.toggle_mode())
        elif command == NavCommand.COMBAT_SUMMARY:
            self._say(combat.combat_summary())
        elif command == NavCommand.READ_PLAYER_HEALTH:
            self._say(combat.player_health())
        elif command == NavCommand.READ_ENEMY_HEALTH:
            self._say(combat.enemy_health())
        elif command == NavCommand.READ_DAMAGE_DEALT:
            self._say(str(combat.damage_dealt))
        elif command == NavCommand.READ_DAMAGE_TAKEN:
            self._say(str(combat.damage_taken))
