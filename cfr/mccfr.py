"""
Monte Carlo CFR (MCCFR)
=======================

Sampling variant of CFR+ that expands only part of the tree per traversal.

Sampling schemes:
1. subset: at every decision and chance node, draw k = ceil(n * sample_rate)
   of the n branches uniformly without replacement
2. external: explore all of the traversing player's actions, sample one
   opponent action from the current strategy and one chance outcome

Every sampled branch is importance-weighted by 1/q, where q is the
probability it was sampled, and node updates are scaled by the inverse
probability of the sampled path, so the expected update equals the
full-tree CFR+ update. A subset rate of 1.0 reproduces CFR+ exactly.

Reference:
- Lanctot et al., "Monte Carlo Sampling for Regret Minimization in
  Extensive Games with Imperfect Information" (NeurIPS 2009)
"""

import math
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

from cfr.cfr_plus import (
    DEFAULT_MAX_DEPTH,
    CFRPlus,
    checked_actions,
    checked_chance_outcomes,
    counterfactual_reach,
)
from cfr.fallback import DepthFallback
from cfr.table import NodeTable
from games.base import CHANCE, GameState

SAMPLING_SCHEMES = ("subset", "external")

Seed = Union[None, int, np.random.SeedSequence, np.random.Generator]


class MCCFR(CFRPlus):
    """
    Sampled CFR+ traversal sharing the node model of CFRPlus.

    Usage:
        solver = MCCFR(sample_rate=0.5, rng=42)
        for _ in range(10000):
            solver.iterate([KuhnPoker().root()])
    """

    def __init__(
        self,
        table: Optional[NodeTable] = None,
        sample_rate: float = 1.0,
        sampling: str = "subset",
        exploration: float = 0.0,
        max_depth: int = DEFAULT_MAX_DEPTH,
        fallback: Union[str, DepthFallback, None] = None,
        rng: Seed = None,
    ):
        """
        Args:
            table: Shared node table (a private one is created if None)
            sample_rate: Fraction of branches expanded per node (subset scheme)
            sampling: "subset" or "external"
            exploration: Uniform mixing when sampling opponent actions (external scheme)
            max_depth: Depth at which traversal stops and fallback is used
            fallback: Registry name or callable evaluating cut-off states
            rng: Seed or numpy Generator driving the samples
        """
        super().__init__(table=table, max_depth=max_depth, fallback=fallback)
        if not 0.0 < sample_rate <= 1.0:
            raise ValueError(f"sample_rate must be in (0, 1], got {sample_rate}")
        if sampling not in SAMPLING_SCHEMES:
            raise ValueError(f"Unknown sampling: {sampling!r}. Use one of {SAMPLING_SCHEMES}")
        if not 0.0 <= exploration <= 1.0:
            raise ValueError(f"exploration must be in [0, 1], got {exploration}")
        self.sample_rate = sample_rate
        self.sampling = sampling
        self.exploration = exploration
        self.rng = np.random.default_rng(rng)

    def traverse(
        self,
        state: GameState,
        player: int,
        reach: Optional[Sequence[float]] = None,
        depth: int = 0,
    ) -> float:
        """Sampled estimate of the counterfactual value of state for player."""
        reach = self._checked_reach(state, player, reach)
        return self._mccfr(state, player, reach, 1.0, depth)

    def _subset(self, n: int) -> Tuple[np.ndarray, float]:
        """Uniform k-of-n draw; returns sorted indices and inclusion probability."""
        k = max(1, math.ceil(n * self.sample_rate - 1e-9))
        if k >= n:
            return np.arange(n), 1.0
        return np.sort(self.rng.choice(n, size=k, replace=False)), k / n

    def _sample_chance(self, probs: np.ndarray) -> List[Tuple[int, float]]:
        if self.sampling == "external":
            p = probs / probs.sum()
            i = int(self.rng.choice(len(p), p=p))
            return [(i, p[i])]
        indices, q = self._subset(len(probs))
        return [(int(i), q) for i in indices]

    def _sample_actions(
        self, strategy: np.ndarray, acting_is_traverser: bool
    ) -> List[Tuple[int, float]]:
        n = len(strategy)
        if self.sampling == "external":
            if acting_is_traverser:
                return [(i, 1.0) for i in range(n)]
            policy = (1.0 - self.exploration) * strategy + self.exploration / n
            policy = policy / policy.sum()
            i = int(self.rng.choice(n, p=policy))
            return [(i, policy[i])]
        indices, q = self._subset(n)
        return [(int(i), q) for i in indices]

    def _mccfr(
        self,
        state: GameState,
        player: int,
        reach: np.ndarray,
        weight: float,
        depth: int,
    ) -> float:
        """
        Args:
            weight: 1 / probability that sampling reached this state
        """
        self.nodes_touched += 1

        if state.is_terminal():
            return float(state.terminal_utility(player))

        if depth >= self.max_depth:
            self.cutoffs += 1
            return self.fallback(state, player)

        actor = state.current_player()

        if actor == CHANCE:
            outcomes = checked_chance_outcomes(state)
            probs = np.array([prob for _, prob in outcomes])
            value = 0.0
            for i, q in self._sample_chance(probs):
                outcome, prob = outcomes[i]
                new_reach = reach.copy()
                new_reach[-1] *= prob
                child = self._mccfr(state.apply(outcome), player, new_reach, weight / q, depth + 1)
                value += prob * child / q
            return value

        actions = checked_actions(state, actor, reach)
        key = state.information_set_key()
        strategy = self.table.current_strategy(key, len(actions))

        # Unsampled actions keep a zero estimate
        action_values = np.zeros(len(actions))
        for i, q in self._sample_actions(strategy, actor == player):
            new_reach = reach.copy()
            new_reach[actor] *= strategy[i]
            child = self._mccfr(state.apply(actions[i]), player, new_reach, weight / q, depth + 1)
            action_values[i] = child / q

        node_value = float(np.dot(strategy, action_values))

        if actor == player:
            cf_reach = counterfactual_reach(reach, actor)
            self.table.update(
                key,
                weight * cf_reach * (action_values - node_value),
                weight * reach[actor] * strategy,
            )

        return node_value
