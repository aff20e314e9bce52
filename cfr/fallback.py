"""
Depth-cutoff evaluations.

Betting rounds with raise/re-raise cycles have no natural bound on depth,
so traversals stop at max_depth and substitute one of these estimates for
the subtree value. Each takes (state, player) and returns a float.
"""

from typing import Callable, Dict, Union

from games.base import GameState

DepthFallback = Callable[[GameState, int], float]


def estimate_fallback(state: GameState, player: int) -> float:
    """Ask the game for its static estimate (e.g. an immediate showdown)."""
    return float(state.estimate_utility(player))


def zero_fallback(state: GameState, player: int) -> float:
    """Treat the cut-off subtree as break-even."""
    return 0.0


FALLBACKS: Dict[str, DepthFallback] = {
    "estimate": estimate_fallback,
    "zero": zero_fallback,
}


def get_fallback(fallback: Union[str, DepthFallback, None]) -> DepthFallback:
    """Resolve a fallback by registry name, or pass a callable through."""
    if fallback is None:
        return estimate_fallback
    if callable(fallback):
        return fallback
    try:
        return FALLBACKS[fallback]
    except KeyError:
        raise ValueError(
            f"Unknown fallback: {fallback!r}. Use one of {sorted(FALLBACKS)}"
        ) from None
