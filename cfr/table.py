import threading
from typing import Dict, Iterator, List, Optional, Tuple

import numpy as np

from cfr.errors import ContractViolation
from cfr.node import Node
from games.base import Key


class NodeTable:
    """
    Information-set key → Node map shared by every concurrent traversal.

    Keys are spread over num_shards dicts, each guarded by its own lock, so
    traversals touching different information sets rarely contend. Every
    read-modify-write of a node happens under its shard lock, and a node is
    created at most once per key.
    """

    def __init__(self, num_shards: int = 64):
        if num_shards < 1:
            raise ValueError(f"num_shards must be positive, got {num_shards}")
        self.num_shards = num_shards
        self._shards: List[Dict[Key, Node]] = [{} for _ in range(num_shards)]
        self._locks = [threading.Lock() for _ in range(num_shards)]

    def _shard(self, key: Key) -> int:
        return hash(key) % self.num_shards

    def get(self, key: Key) -> Optional[Node]:
        """Node for key, or None if the information set was never visited."""
        i = self._shard(key)
        with self._locks[i]:
            return self._shards[i].get(key)

    def get_or_create(self, key: Key, num_actions: int) -> Node:
        i = self._shard(key)
        with self._locks[i]:
            return self._get_or_create_locked(i, key, num_actions)

    def _get_or_create_locked(self, shard: int, key: Key, num_actions: int) -> Node:
        node = self._shards[shard].get(key)
        if node is None:
            node = Node(num_actions=num_actions)
            self._shards[shard][key] = node
        elif node.num_actions != num_actions:
            raise ContractViolation(
                f"Information set {key!r} has {num_actions} legal actions, "
                f"but was first seen with {node.num_actions}"
            )
        return node

    def current_strategy(self, key: Key, num_actions: int) -> np.ndarray:
        """Regret-matching strategy at key, creating the node on first touch."""
        i = self._shard(key)
        with self._locks[i]:
            return self._get_or_create_locked(i, key, num_actions).current_strategy()

    def update(self, key: Key, regret_delta: np.ndarray, strategy_delta: np.ndarray) -> None:
        """Apply one visit's increments to the node at key atomically."""
        i = self._shard(key)
        with self._locks[i]:
            node = self._get_or_create_locked(i, key, len(regret_delta))
            node.update(regret_delta, strategy_delta)

    def average_strategy(self, key: Key) -> Optional[np.ndarray]:
        i = self._shard(key)
        with self._locks[i]:
            node = self._shards[i].get(key)
            return None if node is None else node.average_strategy()

    def insert(self, key: Key, node: Node) -> None:
        """Store node under key, replacing whatever was there."""
        i = self._shard(key)
        with self._locks[i]:
            self._shards[i][key] = node

    def merge(self, other: "NodeTable") -> None:
        """Add every node of other into this table (post-hoc worker merge)."""
        for key, node in other.items():
            i = self._shard(key)
            with self._locks[i]:
                mine = self._shards[i].get(key)
                if mine is None:
                    self._shards[i][key] = node
                else:
                    mine.merge(node)

    def items(self) -> List[Tuple[Key, Node]]:
        """Snapshot of (key, node copy) pairs."""
        result = []
        for shard, lock in zip(self._shards, self._locks):
            with lock:
                result.extend((key, node.copy()) for key, node in shard.items())
        return result

    def keys(self) -> List[Key]:
        result = []
        for shard, lock in zip(self._shards, self._locks):
            with lock:
                result.extend(shard.keys())
        return result

    def clear(self) -> None:
        for shard, lock in zip(self._shards, self._locks):
            with lock:
                shard.clear()

    def __len__(self) -> int:
        return sum(len(shard) for shard in self._shards)

    def __contains__(self, key: Key) -> bool:
        return self.get(key) is not None

    def __iter__(self) -> Iterator[Key]:
        return iter(self.keys())
