from dataclasses import dataclass
from typing import Optional

import numpy as np


def _normalize(weights: np.ndarray) -> np.ndarray:
    """Proportional distribution over weights, uniform when they sum to 0."""
    total = weights.sum()
    if total > 0:
        return weights / total
    return np.full(len(weights), 1.0 / len(weights))


@dataclass
class Node:
    """
    Regret-matching state for one information set.

    regret_sum holds R+(I, a): cumulative counterfactual regret, clamped at
    zero after every update (CFR+), so entries are never negative.
    strategy_sum holds Σ_t π_i(I) σ^t(I)(a), the numerator of the average
    strategy.
    """
    num_actions: int
    regret_sum: Optional[np.ndarray] = None
    strategy_sum: Optional[np.ndarray] = None
    visits: int = 0

    def __post_init__(self):
        if self.num_actions < 1:
            raise ValueError(f"Node needs at least one action, got {self.num_actions}")
        if self.regret_sum is None:
            self.regret_sum = np.zeros(self.num_actions)
        if self.strategy_sum is None:
            self.strategy_sum = np.zeros(self.num_actions)
        self.regret_sum = np.array(self.regret_sum, dtype=np.float64)
        self.strategy_sum = np.array(self.strategy_sum, dtype=np.float64)
        if self.regret_sum.shape != (self.num_actions,) or self.strategy_sum.shape != (self.num_actions,):
            raise ValueError(
                f"Arrays must have shape ({self.num_actions},), got "
                f"{self.regret_sum.shape} and {self.strategy_sum.shape}"
            )

    def current_strategy(self) -> np.ndarray:
        """
        Equation (8): Compute strategy proportional to positive regret.

        σ(I)(a) = R+(I,a) / Σ_a' R+(I,a')  if denominator > 0
                = 1/|A(I)|                   otherwise
        """
        return _normalize(self.regret_sum)

    def average_strategy(self) -> np.ndarray:
        """
        Equation (4): Compute average strategy.

        σ̄(I)(a) = Σ_t π_i(I) σ^t(I)(a) / Σ_t π_i(I)
        """
        return _normalize(self.strategy_sum)

    def update(self, regret_delta: np.ndarray, strategy_delta: np.ndarray) -> None:
        """Add one visit's regrets (CFR+ clamp) and strategy weights."""
        np.maximum(self.regret_sum + regret_delta, 0.0, out=self.regret_sum)
        self.strategy_sum += strategy_delta
        self.visits += 1

    def merge(self, other: "Node") -> None:
        """Fold in the statistics of a node trained elsewhere on the same key."""
        if other.num_actions != self.num_actions:
            raise ValueError(
                f"Cannot merge node with {other.num_actions} actions into one with {self.num_actions}"
            )
        np.maximum(self.regret_sum + other.regret_sum, 0.0, out=self.regret_sum)
        self.strategy_sum += other.strategy_sum
        self.visits += other.visits

    def copy(self) -> "Node":
        return Node(
            num_actions=self.num_actions,
            regret_sum=self.regret_sum.copy(),
            strategy_sum=self.strategy_sum.copy(),
            visits=self.visits,
        )
