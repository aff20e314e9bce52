from dataclasses import dataclass
from typing import List, Optional, Tuple
from itertools import permutations

from games.base import CHANCE, GameState

CARD_NAMES = ("J", "Q", "K")

DEALS: List[Tuple[int, int]] = list(permutations(range(3), 2))


@dataclass(frozen=True)
class KuhnState(GameState):
    """
    State in Kuhn Poker.

    Attributes:
        cards: (player_0_card, player_1_card) where cards are 0=J, 1=Q, 2=K,
            or None before the deal (chance node)
        history: Tuple of actions taken, e.g., ("p", "b", "b")
    """
    cards: Optional[Tuple[int, int]] = None
    history: Tuple[str, ...] = ()

    PASS = "p"
    BET = "b"

    # Terminal histories
    TERMINALS = frozenset({
        ("p", "p"),      # check-check
        ("b", "p"),      # bet-fold
        ("b", "b"),      # bet-call
        ("p", "b", "p"), # check-bet-fold
        ("p", "b", "b"), # check-bet-call
    })

    def is_terminal(self) -> bool:
        return self.history in self.TERMINALS

    def current_player(self) -> int:
        """Chance deals first, then players alternate: 0, 1, 0, ..."""
        if self.cards is None:
            return CHANCE
        return len(self.history) % 2

    def legal_actions(self) -> List:
        if self.cards is None:
            return list(DEALS)
        if self.is_terminal():
            return []
        return [self.PASS, self.BET]

    def chance_outcomes(self) -> List[Tuple[Tuple[int, int], float]]:
        """All 6 card dealings, equally likely."""
        return [(deal, 1.0 / len(DEALS)) for deal in DEALS]

    def apply(self, action) -> "KuhnState":
        if self.cards is None:
            return KuhnState(cards=tuple(action), history=())
        return KuhnState(cards=self.cards, history=self.history + (action,))

    def terminal_utility(self, player: int) -> float:
        """
        Payoffs:
        - pp (check-check): winner gets 1
        - bp (bet-fold): P0 gets 1
        - bb (bet-call): winner gets 2
        - pbp (check-bet-fold): P1 gets 1
        - pbb (check-bet-call): winner gets 2
        """
        if not self.is_terminal():
            raise ValueError(f"Cannot get utility of non-terminal state: {self}")

        h = self.history
        if h == ("b", "p"):
            return 1.0 if player == 0 else -1.0
        if h == ("p", "b", "p"):
            return 1.0 if player == 1 else -1.0

        winner = 0 if self.cards[0] > self.cards[1] else 1
        payoff = 2.0 if h[-1] == self.BET else 1.0
        return payoff if player == winner else -payoff

    def information_set_key(self) -> str:
        """
        Player sees only their own card and the action history.
        Format: "card:history" e.g., "1:pb" = Queen, check-bet
        """
        player = self.current_player()
        if player == CHANCE:
            return "deal"
        return f"{self.cards[player]}:{''.join(self.history)}"

    def num_players(self) -> int:
        return 2

    def estimate_utility(self, player: int) -> float:
        """Immediate showdown for the chips currently committed."""
        if self.cards is None:
            return 0.0
        committed = 1.0 + (1.0 if self.BET in self.history else 0.0)
        return committed if self.cards[player] > self.cards[1 - player] else -committed


class KuhnPoker:
    """
    Kuhn Poker: Simplified 3-card poker game.

    Rules:
    - 3 cards: Jack (0), Queen (1), King (2)
    - 2 players, each dealt 1 card, 1 chip ante
    - Actions: Pass (p) = check/fold, Bet (b) = bet/call
    - Higher card wins at showdown
    """

    def root(self) -> KuhnState:
        """Chance node that deals the cards."""
        return KuhnState()

    def initial_states(self) -> List[KuhnState]:
        """All 6 possible card dealings."""
        return [KuhnState(cards=cards, history=()) for cards in DEALS]


def describe_info_set(key: str) -> str:
    """Human-readable label, e.g. "K pb" for King facing check-bet."""
    card, _, history = key.partition(":")
    return f"{CARD_NAMES[int(card)]} {history or '(root)'}"
