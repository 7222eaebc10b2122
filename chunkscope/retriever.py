"""Fetches block traces from local JSON files or, failing that, the node."""

from __future__ import annotations

import json
import os
from typing import Any

from chunkscope.rpcclient import RpcClient, TransactionTrace


def load_trace_file(path: str | os.PathLike[str]) -> list[TransactionTrace]:
    """Read the ``result`` list of a saved debug_traceBlockByNumber response."""
    with open(path, encoding="utf-8") as handle:
        data: Any = json.load(handle)
    if not isinstance(data, dict):
        raise ValueError(f"trace file {os.fspath(path)} does not hold a JSON object")
    return [TransactionTrace.from_json(item) for item in data.get("result") or []]


class TraceRetriever:
    """Prefers ``<trace_dir>/block_<n>_trace.json`` and falls back to RPC."""

    def __init__(self, rpc_client: RpcClient, trace_dir: str) -> None:
        self.rpc_client = rpc_client
        self.trace_dir = trace_dir

    def trace_path(self, block_number: int) -> str:
        return f"{self.trace_dir}/block_{block_number}_trace.json"

    def get_trace(self, block_number: int) -> list[TransactionTrace]:
        path = self.trace_path(block_number)
        if os.path.exists(path):
            return load_trace_file(path)
        return self.rpc_client.trace_block_by_number(block_number)