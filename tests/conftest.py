"""Small GameState implementations used across the test suite."""

from dataclasses import dataclass, field
from typing import List, Tuple

import pytest

from games.base import CHANCE, GameState
from games.kuhn import KuhnPoker


@dataclass(frozen=True)
class GuessGame(GameState):
    """
    Two-player, two-action game with one information set per player.

    Player 0 picks "x" or "y", then player 1 picks "x" or "y" without
    seeing it. Matching on x pays 2, matching on y pays 1, mismatch pays
    -1 (all to player 0; player 1 gets the negation).
    """
    history: Tuple[str, ...] = ()

    PAYOFFS = {("x", "x"): 2.0, ("y", "y"): 1.0, ("x", "y"): -1.0, ("y", "x"): -1.0}

    def is_terminal(self) -> bool:
        return len(self.history) == 2

    def terminal_utility(self, player: int) -> float:
        u = self.PAYOFFS[self.history]
        return u if player == 0 else -u

    def current_player(self) -> int:
        return len(self.history)

    def legal_actions(self) -> List[str]:
        return [] if self.is_terminal() else ["x", "y"]

    def apply(self, action) -> "GuessGame":
        return GuessGame(self.history + (action,))

    def information_set_key(self) -> str:
        return f"p{len(self.history)}"

    def num_players(self) -> int:
        return 2


@dataclass(frozen=True)
class WideGame(GameState):
    """
    Chance picks one of three boards, then each player chooses among four
    actions. Player 0 sees the board, player 1 sees nothing. Used for
    sampling statistics.
    """
    board: int = -1
    history: Tuple[int, ...] = ()

    def is_terminal(self) -> bool:
        return len(self.history) == 2

    def terminal_utility(self, player: int) -> float:
        a, b = self.history
        u = ((self.board + 1) * (a - b) + a * b) / 10.0
        return u if player == 0 else -u

    def current_player(self) -> int:
        if self.board < 0:
            return CHANCE
        return len(self.history)

    def legal_actions(self) -> List[int]:
        if self.board < 0:
            return [0, 1, 2]
        return [] if self.is_terminal() else [0, 1, 2, 3]

    def chance_outcomes(self):
        return [(0, 0.5), (1, 0.25), (2, 0.25)]

    def apply(self, action) -> "WideGame":
        if self.board < 0:
            return WideGame(board=action)
        return WideGame(board=self.board, history=self.history + (action,))

    def information_set_key(self) -> str:
        if not self.history:
            return f"p0:{self.board}"
        return "p1"

    def num_players(self) -> int:
        return 2


@dataclass(frozen=True)
class EndlessRaise(GameState):
    """
    Betting war that never ends: players alternate raising forever.

    Every state created is recorded in log so tests can see how deep a
    traversal went.
    """
    level: int = 0
    width: int = 1
    log: list = field(default_factory=list, compare=False, hash=False)

    def is_terminal(self) -> bool:
        return False

    def terminal_utility(self, player: int) -> float:
        raise AssertionError("EndlessRaise never terminates")

    def current_player(self) -> int:
        return self.level % 2

    def legal_actions(self) -> List[str]:
        return ["raise", "reraise", "shove"][:self.width]

    def apply(self, action) -> "EndlessRaise":
        self.log.append(self.level + 1)
        return EndlessRaise(level=self.level + 1, width=self.width, log=self.log)

    def information_set_key(self) -> str:
        return f"raise:{self.level}"

    def num_players(self) -> int:
        return 2

    def estimate_utility(self, player: int) -> float:
        return 0.25 if player == 0 else -0.25


@dataclass(frozen=True)
class NoActions(GameState):
    """Non-terminal state with an empty action list."""

    def is_terminal(self) -> bool:
        return False

    def terminal_utility(self, player: int) -> float:
        return 0.0

    def current_player(self) -> int:
        return 0

    def legal_actions(self) -> List[str]:
        return []

    def apply(self, action) -> "NoActions":
        return self

    def information_set_key(self) -> str:
        return "none"

    def num_players(self) -> int:
        return 2


@dataclass(frozen=True)
class BadPlayer(NoActions):
    """Reports a player id outside the game."""

    def current_player(self) -> int:
        return 7

    def legal_actions(self) -> List[str]:
        return ["a"]


@dataclass(frozen=True)
class BadChance(NoActions):
    """Chance node whose probabilities sum to 0.5."""

    def current_player(self) -> int:
        return CHANCE

    def chance_outcomes(self):
        return [("a", 0.25), ("b", 0.25)]


@dataclass(frozen=True)
class ShiftingActions(GameState):
    """Same information set key reached with two different action counts."""
    depth: int = 0

    def is_terminal(self) -> bool:
        return self.depth == 2

    def terminal_utility(self, player: int) -> float:
        return 0.0

    def current_player(self) -> int:
        return 0

    def legal_actions(self) -> List[str]:
        return ["a", "b"] if self.depth == 0 else ["a", "b", "c"]

    def apply(self, action) -> "ShiftingActions":
        return ShiftingActions(self.depth + 1)

    def information_set_key(self) -> str:
        return "same"

    def num_players(self) -> int:
        return 1


@pytest.fixture
def kuhn_root():
    return KuhnPoker().root()


@pytest.fixture
def guess_root():
    return GuessGame()
