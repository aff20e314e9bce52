"""
Node table checkpoints.

A checkpoint is a gzip-compressed pickle of

    {"format": "cfr-node-table", "version": 1,
     "nodes": {info_set_key: (regret_sum, strategy_sum, visits)}}

with float64 arrays, so a save/load round trip is bit-exact. Anything that
does not decode to that shape raises TableFormatError.
"""

import gzip
import pickle
import zlib
from pathlib import Path
from typing import Union

import numpy as np

from cfr.errors import TableFormatError
from cfr.node import Node
from cfr.table import NodeTable

FORMAT = "cfr-node-table"
VERSION = 1


def dumps(table: NodeTable) -> bytes:
    """Serialize every node of table to bytes."""
    nodes = {
        key: (node.regret_sum, node.strategy_sum, node.visits)
        for key, node in table.items()
    }
    payload = {"format": FORMAT, "version": VERSION, "nodes": nodes}
    return gzip.compress(pickle.dumps(payload, protocol=pickle.HIGHEST_PROTOCOL), compresslevel=6)


def loads(data: bytes, num_shards: int = 64) -> NodeTable:
    """
    Rebuild a NodeTable from dumps() output.

    Raises:
        TableFormatError: If data is truncated, corrupt or not a node table.
    """
    try:
        payload = pickle.loads(gzip.decompress(data))
    except (OSError, EOFError, zlib.error, pickle.UnpicklingError,
            AttributeError, ImportError, IndexError, KeyError, TypeError, ValueError) as e:
        raise TableFormatError(f"Cannot decode node table: {e}") from e

    if not isinstance(payload, dict) or payload.get("format") != FORMAT:
        raise TableFormatError("Data is not a node table checkpoint")
    if payload.get("version") != VERSION:
        raise TableFormatError(f"Unsupported checkpoint version: {payload.get('version')!r}")
    nodes = payload.get("nodes")
    if not isinstance(nodes, dict):
        raise TableFormatError("Checkpoint has no node mapping")

    table = NodeTable(num_shards=num_shards)
    for key, entry in nodes.items():
        table.insert(key, _decode_node(key, entry))
    return table


def _is_real(array: np.ndarray) -> bool:
    return np.issubdtype(array.dtype, np.floating) or np.issubdtype(array.dtype, np.integer)


def _decode_node(key, entry) -> Node:
    try:
        regret_sum, strategy_sum, visits = entry
    except (TypeError, ValueError):
        raise TableFormatError(f"Malformed entry for {key!r}") from None

    if not isinstance(regret_sum, np.ndarray) or not isinstance(strategy_sum, np.ndarray):
        raise TableFormatError(f"Entry for {key!r} does not hold arrays")
    if regret_sum.ndim != 1 or regret_sum.shape != strategy_sum.shape or len(regret_sum) == 0:
        raise TableFormatError(
            f"Entry for {key!r} has mismatched shapes {regret_sum.shape} and {strategy_sum.shape}"
        )
    if not isinstance(visits, int) or visits < 0:
        raise TableFormatError(f"Entry for {key!r} has invalid visit count {visits!r}")
    if not (_is_real(regret_sum) and _is_real(strategy_sum)):
        raise TableFormatError(
            f"Entry for {key!r} holds non-numeric arrays of dtype {regret_sum.dtype} and {strategy_sum.dtype}"
        )
    if not (np.all(np.isfinite(regret_sum)) and np.all(np.isfinite(strategy_sum))):
        raise TableFormatError(f"Entry for {key!r} holds non-finite values")
    if np.any(regret_sum < 0):
        raise TableFormatError(f"Entry for {key!r} holds negative regret")
    if np.any(strategy_sum < 0):
        raise TableFormatError(f"Entry for {key!r} holds negative strategy weight")

    return Node(
        num_actions=len(regret_sum),
        regret_sum=regret_sum,
        strategy_sum=strategy_sum,
        visits=visits,
    )


def save(table: NodeTable, path: Union[str, Path]) -> None:
    """Write table to path (recommended extension: .nodes.gz)."""
    Path(path).write_bytes(dumps(table))


def load(path: Union[str, Path], num_shards: int = 64) -> NodeTable:
    """
    Read a table written by save().

    Raises:
        FileNotFoundError: If path doesn't exist.
        TableFormatError: If the file is not a valid checkpoint.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Checkpoint not found: {path}")
    return loads(path.read_bytes(), num_shards=num_shards)
