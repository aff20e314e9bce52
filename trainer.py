import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

import numpy as np
from tqdm import tqdm

from cfr.cfr_plus import CFRPlus
from cfr.mccfr import MCCFR
from cfr.node import Node
from cfr.table import NodeTable
from config.loader import TrainerConfig
from core import checkpoint
from core.exploitability import compute_exploitability
from games.base import CHANCE, Action, GameState, Key

logger = logging.getLogger(__name__)


class Trainer:
    """
    High-level API for training CFR+ / MCCFR strategies.

    All workers share one NodeTable; iterations are split across a thread
    pool when config.workers > 1.

    Example:
        trainer = Trainer(TrainerConfig(iterations=1000))
        trainer.run(KuhnPoker().root())
        print(trainer.average_strategy("0:"))
        print(f"Exploitability: {trainer.exploitability(KuhnPoker().root())}")
    """

    def __init__(
        self,
        config: Optional[TrainerConfig] = None,
        table: Optional[NodeTable] = None,
        **overrides,
    ):
        """
        Initialize trainer.

        Args:
            config: Training configuration (defaults if None)
            table: Existing node table to keep training (fresh if None)
            **overrides: TrainerConfig fields replacing those of config
        """
        if config is None:
            config = TrainerConfig(**overrides)
        elif overrides:
            config = replace(config, **overrides)
        self.config = config
        self.table = table if table is not None else NodeTable(num_shards=config.num_shards)
        self.iterations_completed = 0

        self._stop = threading.Event()
        self._progress_lock = threading.Lock()

    def _make_solver(self, seed: np.random.SeedSequence) -> CFRPlus:
        c = self.config
        if c.sampled:
            return MCCFR(
                self.table,
                sample_rate=c.sample_rate,
                sampling=c.sampling,
                exploration=c.exploration,
                max_depth=c.max_depth,
                fallback=c.fallback,
                rng=np.random.default_rng(seed),
            )
        return CFRPlus(self.table, max_depth=c.max_depth, fallback=c.fallback)

    def run(
        self,
        roots: Union[GameState, Iterable[GameState]],
        iterations: Optional[int] = None,
    ) -> int:
        """
        Run training iterations over roots, mutating the node table.

        Each iteration traverses every root once per player. Training stops
        early, at an iteration boundary, when stop() is called.

        Args:
            roots: Root state or states to train from
            iterations: Number of iterations (config.iterations if None)

        Returns:
            Number of iterations actually completed

        Raises:
            ContractViolation: If a game state breaks the GameState contract.
        """
        roots = [roots] if isinstance(roots, GameState) else list(roots)
        if iterations is None:
            iterations = self.config.iterations
        if isinstance(iterations, bool) or not isinstance(iterations, int) or iterations < 0:
            raise ValueError(f"iterations must be a non-negative integer, got: {iterations!r}")
        if iterations == 0 or not roots:
            return 0

        self._stop.clear()
        workers = min(self.config.workers, iterations)
        shares = [
            iterations // workers + (1 if i < iterations % workers else 0)
            for i in range(workers)
        ]
        seeds = np.random.SeedSequence(self.config.seed).spawn(workers)
        label = "MCCFR" if self.config.sampled else "CFR+"

        logger.info(
            "Training %s: %d root(s), %d iterations, %d worker(s)",
            label, len(roots), iterations, workers,
        )
        logger.debug("Iterations per worker: %s", shares)

        progress = tqdm(
            total=iterations,
            desc=f"Training {label}",
            unit="iter",
            disable=not self.config.verbose,
        )
        try:
            if workers == 1:
                done = self._work(roots, shares[0], seeds[0], progress)
            else:
                with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="cfr-worker") as pool:
                    futures = [
                        pool.submit(self._work, roots, share, seed, progress)
                        for share, seed in zip(shares, seeds)
                    ]
                    try:
                        done = sum(future.result() for future in futures)
                    except BaseException:
                        # Let the other workers finish their current iteration and exit
                        self._stop.set()
                        raise
        finally:
            progress.close()

        logger.info(
            "Training finished: %d/%d iterations, %d information sets",
            done, iterations, len(self.table),
        )
        return done

    def _work(
        self,
        roots: List[GameState],
        iterations: int,
        seed: np.random.SeedSequence,
        progress: tqdm,
    ) -> int:
        solver = self._make_solver(seed)
        done = 0
        for _ in range(iterations):
            if self._stop.is_set():
                break
            solver.iterate(roots)
            done += 1
            with self._progress_lock:
                self.iterations_completed += 1
                progress.update(1)
        return done

    def stop(self) -> None:
        """Ask a running training loop to stop after the current iteration."""
        self._stop.set()

    def node(self, key: Key) -> Optional[Node]:
        """Node for an information set, or None if never visited."""
        return self.table.get(key)

    def average_strategy(self, key: Key) -> Optional[np.ndarray]:
        """Average strategy at an information set, or None if never visited."""
        return self.table.average_strategy(key)

    def average_strategies(self) -> Dict[Key, np.ndarray]:
        """Get average strategy for all visited information sets."""
        return {key: node.average_strategy() for key, node in self.table.items()}

    def action_probabilities(self, state: GameState) -> Dict[Action, float]:
        """
        Average strategy at state keyed by action.

        Information sets never visited in training play uniformly.
        """
        if state.is_terminal() or state.current_player() == CHANCE:
            raise ValueError(f"State has no acting player: {state!r}")
        actions = list(state.legal_actions())
        probs = self.table.average_strategy(state.information_set_key())
        if probs is None:
            probs = np.full(len(actions), 1.0 / len(actions))
        elif len(probs) != len(actions):
            raise ValueError(
                f"Trained node has {len(probs)} actions, state has {len(actions)}"
            )
        return {action: float(p) for action, p in zip(actions, probs)}

    def exploitability(self, root: GameState) -> float:
        """Compute exploitability of the current average strategy."""
        return compute_exploitability(
            root,
            self.table,
            max_depth=self.config.max_depth,
            fallback=self.config.fallback,
        )

    def reset(self) -> None:
        """Clear the node table for a new training run."""
        self.table.clear()
        self.iterations_completed = 0

    def save(self, path: Union[str, Path]) -> None:
        """
        Save the node table to a compressed checkpoint.

        Args:
            path: File path (recommended: .nodes.gz extension)
        """
        checkpoint.save(self.table, path)

    def load(self, path: Union[str, Path]) -> None:
        """
        Replace the node table with a checkpoint to resume training.

        The iteration counter restarts at zero; checkpoints hold only nodes.

        Raises:
            FileNotFoundError: If path doesn't exist.
            TableFormatError: If the file is not a valid checkpoint.
        """
        self.table = checkpoint.load(path, num_shards=self.config.num_shards)
        self.iterations_completed = 0
