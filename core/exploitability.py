"""
Exploitability of an average strategy in a two-player zero-sum game.

exploitability(σ) = (max_σ0' u_0(σ0', σ1) + max_σ1' u_1(σ0, σ1')) / 2

Zero exactly at a Nash equilibrium. Best responses are computed per
information set: the responder picks, at every one of its information
sets, the action maximizing the opponent-and-chance-reach-weighted value
summed over all histories in that set.
"""

from collections import defaultdict
from typing import Callable, Dict, List, Mapping, Optional, Tuple, Union

import numpy as np

from cfr.cfr_plus import checked_actions, checked_chance_outcomes
from cfr.fallback import DepthFallback, get_fallback
from cfr.table import NodeTable
from games.base import CHANCE, GameState, Key

StrategyLookup = Callable[[Key], Optional[np.ndarray]]


def _as_lookup(strategy: Union[NodeTable, Mapping[Key, np.ndarray], StrategyLookup]) -> StrategyLookup:
    if isinstance(strategy, NodeTable):
        return strategy.average_strategy
    if isinstance(strategy, Mapping):
        return strategy.get
    return strategy


def _policy(lookup: StrategyLookup, key: Key, num_actions: int) -> np.ndarray:
    """Average strategy at key; uniform for never-visited information sets."""
    probs = lookup(key)
    if probs is None:
        return np.full(num_actions, 1.0 / num_actions)
    probs = np.asarray(probs, dtype=np.float64)
    if probs.shape != (num_actions,):
        raise ValueError(f"Strategy at {key!r} has {len(probs)} entries, expected {num_actions}")
    return probs


def best_response_value(
    root: GameState,
    responder: int,
    strategy: Union[NodeTable, Mapping[Key, np.ndarray], StrategyLookup],
    max_depth: Optional[int] = None,
    fallback: Union[str, DepthFallback, None] = None,
) -> float:
    """
    Value responder achieves by best-responding to strategy from root.

    Args:
        root: Root state (may be a chance node)
        responder: Player computing the best response
        strategy: Node table, key → probabilities mapping, or lookup function
        max_depth: Depth cutoff, matching the one used in training (None = none)
        fallback: Evaluation used at the cutoff

    Returns:
        Expected utility for responder
    """
    lookup = _as_lookup(strategy)
    evaluate = get_fallback(fallback)
    num_players = root.num_players()
    reach_shape = np.ones(num_players + 1)

    def cut(state: GameState, depth: int) -> bool:
        return max_depth is not None and depth >= max_depth

    # Histories of each responder information set with opponent×chance reach
    histories: Dict[Key, List[Tuple[GameState, float, int]]] = defaultdict(list)

    def collect(state: GameState, reach: float, depth: int) -> None:
        if state.is_terminal() or cut(state, depth):
            return
        actor = state.current_player()
        if actor == CHANCE:
            for outcome, prob in checked_chance_outcomes(state):
                collect(state.apply(outcome), reach * prob, depth + 1)
            return
        actions = checked_actions(state, actor, reach_shape)
        if actor == responder:
            histories[state.information_set_key()].append((state, reach, depth))
            for action in actions:
                collect(state.apply(action), reach, depth + 1)
        else:
            probs = _policy(lookup, state.information_set_key(), len(actions))
            for action, prob in zip(actions, probs):
                if prob > 0:
                    collect(state.apply(action), reach * prob, depth + 1)

    best_actions: Dict[Key, int] = {}

    def best_action(key: Key) -> int:
        if key not in best_actions:
            entries = histories[key]
            num_actions = len(entries[0][0].legal_actions())
            totals = np.zeros(num_actions)
            for state, reach, depth in entries:
                for i, action in enumerate(state.legal_actions()):
                    totals[i] += reach * value(state.apply(action), depth + 1)
            best_actions[key] = int(np.argmax(totals))
        return best_actions[key]

    def value(state: GameState, depth: int) -> float:
        if state.is_terminal():
            return float(state.terminal_utility(responder))
        if cut(state, depth):
            return evaluate(state, responder)
        actor = state.current_player()
        if actor == CHANCE:
            return sum(
                prob * value(state.apply(outcome), depth + 1)
                for outcome, prob in checked_chance_outcomes(state)
            )
        actions = checked_actions(state, actor, reach_shape)
        key = state.information_set_key()
        if actor == responder:
            return value(state.apply(actions[best_action(key)]), depth + 1)
        probs = _policy(lookup, key, len(actions))
        return sum(
            prob * value(state.apply(action), depth + 1)
            for action, prob in zip(actions, probs)
            if prob > 0
        )

    collect(root, 1.0, 0)
    return value(root, 0)


def compute_exploitability(
    root: GameState,
    strategy: Union[NodeTable, Mapping[Key, np.ndarray], StrategyLookup],
    max_depth: Optional[int] = None,
    fallback: Union[str, DepthFallback, None] = None,
) -> float:
    """
    Average best-response gain against strategy (two-player zero-sum only).

    Raises:
        ValueError: If the game does not have exactly two players.
    """
    if root.num_players() != 2:
        raise ValueError(f"Exploitability needs a two-player game, got {root.num_players()} players")
    total = sum(
        best_response_value(root, player, strategy, max_depth, fallback)
        for player in range(2)
    )
    return float(total / 2)
