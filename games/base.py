from abc import ABC, abstractmethod
from typing import Hashable, List, Sequence, Tuple

Action = Hashable
Key = Hashable

# Player id reported by chance nodes (card deals, coin flips).
CHANCE = -1


class GameState(ABC):
    """
    One node of an extensive-form game tree.

    The tree is never materialized: solvers walk it by calling apply(),
    which must return a new state and leave the receiver untouched.
    Mirrors Definition 1 from Zinkevich et al.'s CFR paper.
    """

    @abstractmethod
    def is_terminal(self) -> bool:
        """Check if state is terminal (z ∈ Z in paper)."""

    @abstractmethod
    def terminal_utility(self, player: int) -> float:
        """Utility for player at terminal state. u_i(z) in paper."""

    @abstractmethod
    def current_player(self) -> int:
        """Player to act, or CHANCE. P(h) in paper."""

    @abstractmethod
    def legal_actions(self) -> List[Action]:
        """Available actions at state, in a stable order. A(h) in paper."""

    @abstractmethod
    def apply(self, action: Action) -> "GameState":
        """Return state after taking action."""

    @abstractmethod
    def information_set_key(self) -> Key:
        """Map state to the acting player's information set. h → I in paper."""

    @abstractmethod
    def num_players(self) -> int:
        """Number of players in the game."""

    def chance_outcomes(self) -> Sequence[Tuple[Action, float]]:
        """(outcome, probability) pairs at a chance node. f_c(h) in paper."""
        raise NotImplementedError(
            f"{type(self).__name__} has chance nodes but no chance_outcomes()"
        )

    def estimate_utility(self, player: int) -> float:
        """Static value estimate used when a traversal is cut off by depth."""
        return 0.0
