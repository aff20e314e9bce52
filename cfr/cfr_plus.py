"""
Full-tree CFR+.

Depth-limited recursive traversal that expands every legal action and
every chance outcome. Regrets are clamped at zero after each update
(Tammelin 2014), and updates alternate: a traversal on behalf of player i
only updates the information sets where i acts.
"""

import logging
import math
from typing import Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np

from cfr.errors import ContractViolation
from cfr.fallback import DepthFallback, get_fallback
from cfr.table import NodeTable
from games.base import CHANCE, Action, GameState

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 15


def initial_reach(state: GameState) -> np.ndarray:
    """(π_0, ..., π_{n-1}, π_c) = 1 for every player plus chance."""
    return np.ones(state.num_players() + 1)


def counterfactual_reach(reach: np.ndarray, player: int) -> float:
    """π_{-i}(h): product of every reach except player's own (chance included)."""
    return float(np.prod(np.delete(reach, player)))


def checked_actions(state: GameState, actor: int, reach: np.ndarray) -> List[Action]:
    """Legal actions at a decision node, validating the contract."""
    if not 0 <= actor < len(reach) - 1:
        raise ContractViolation(
            f"current_player() returned {actor!r} for a {len(reach) - 1}-player game: {state!r}"
        )
    actions = list(state.legal_actions())
    if not actions:
        raise ContractViolation(f"Non-terminal state has no legal actions: {state!r}")
    return actions


def checked_chance_outcomes(state: GameState) -> List[Tuple[Action, float]]:
    """Chance outcomes with strictly positive probabilities summing to 1."""
    outcomes = [(outcome, float(prob)) for outcome, prob in state.chance_outcomes()]
    if not outcomes:
        raise ContractViolation(f"Chance node has no outcomes: {state!r}")
    if any(prob <= 0 for _, prob in outcomes):
        raise ContractViolation(f"Chance node has non-positive probabilities: {state!r}")
    total = math.fsum(prob for _, prob in outcomes)
    if abs(total - 1.0) > 1e-6:
        raise ContractViolation(f"Chance probabilities sum to {total}, not 1: {state!r}")
    return outcomes


class CFRPlus:
    """
    CFR+ over the full (depth-limited) game tree.

    Example:
        solver = CFRPlus(NodeTable(), max_depth=15)
        for _ in range(1000):
            solver.iterate([KuhnPoker().root()])
        print(solver.table.average_strategy("0:"))
    """

    def __init__(
        self,
        table: Optional[NodeTable] = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
        fallback: Union[str, DepthFallback, None] = None,
    ):
        """
        Args:
            table: Shared node table (a private one is created if None)
            max_depth: Depth at which traversal stops and fallback is used
            fallback: Registry name or callable evaluating cut-off states
        """
        if max_depth < 0:
            raise ValueError(f"max_depth must be non-negative, got {max_depth}")
        self.table = table if table is not None else NodeTable()
        self.max_depth = max_depth
        self.fallback = get_fallback(fallback)

        # Diagnostics
        self.nodes_touched = 0
        self.cutoffs = 0

    def traverse(
        self,
        state: GameState,
        player: int,
        reach: Optional[Sequence[float]] = None,
        depth: int = 0,
    ) -> float:
        """
        Counterfactual value of state for player, updating player's nodes.

        Args:
            state: Root of the subtree to walk
            player: Traversing player
            reach: Per-player reach probabilities, chance last (default all 1)
            depth: Depth of state within the tree

        Returns:
            Expected utility of state for player under the current strategy
        """
        reach = self._checked_reach(state, player, reach)
        return self._cfr(state, player, reach, depth)

    def iterate(self, roots: Iterable[GameState]) -> None:
        """One CFR iteration: a traversal per player for each root."""
        touched, cutoffs = self.nodes_touched, self.cutoffs
        for root in roots:
            for player in range(root.num_players()):
                self.traverse(root, player)
        logger.debug(
            "iteration touched %d states, %d depth cutoffs",
            self.nodes_touched - touched,
            self.cutoffs - cutoffs,
        )

    def _checked_reach(self, state: GameState, player: int, reach) -> np.ndarray:
        num_players = state.num_players()
        if not 0 <= player < num_players:
            raise ValueError(f"player must be in [0, {num_players}), got {player}")
        if reach is None:
            return initial_reach(state)
        reach = np.array(reach, dtype=np.float64)
        if reach.shape != (num_players + 1,):
            raise ContractViolation(
                f"Reach vector has {len(reach)} entries, state has {num_players} players (+ chance)"
            )
        return reach

    def _cfr(self, state: GameState, player: int, reach: np.ndarray, depth: int) -> float:
        self.nodes_touched += 1

        # Terminal: return payoff
        if state.is_terminal():
            return float(state.terminal_utility(player))

        # Depth limit: never expand past max_depth
        if depth >= self.max_depth:
            self.cutoffs += 1
            return self.fallback(state, player)

        actor = state.current_player()

        # Chance: expectation over outcomes, chance reach scaled by f_c
        if actor == CHANCE:
            value = 0.0
            for outcome, prob in checked_chance_outcomes(state):
                new_reach = reach.copy()
                new_reach[-1] *= prob
                value += prob * self._cfr(state.apply(outcome), player, new_reach, depth + 1)
            return value

        actions = checked_actions(state, actor, reach)
        key = state.information_set_key()
        strategy = self.table.current_strategy(key, len(actions))

        # Traverse each action
        action_values = np.zeros(len(actions))
        for i, action in enumerate(actions):
            new_reach = reach.copy()
            new_reach[actor] *= strategy[i]
            action_values[i] = self._cfr(state.apply(action), player, new_reach, depth + 1)

        node_value = float(np.dot(strategy, action_values))

        if actor == player:
            cf_reach = counterfactual_reach(reach, actor)
            self.table.update(
                key,
                cf_reach * (action_values - node_value),
                reach[actor] * strategy,
            )

        return node_value
