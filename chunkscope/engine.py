"""Runs one analyzer per RPC endpoint over configured block ranges."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

from cachetools import LRUCache

from chunkscope.analyzer import Analyzer
from chunkscope.config import Config
from chunkscope.logger import get_logger
from chunkscope.retriever import TraceRetriever
from chunkscope.rpcclient import RpcClient, RpcError
from chunkscope.writer import ResultWriter

CODE_CACHE_SIZE = 100_000


class Engine:
    """Assigns block range ``i`` to the ``i``-th usable RPC endpoint."""

    def __init__(self, config: Config) -> None:
        self.config = config
        self._log = get_logger("engine")

    def run(self, cancel_event: threading.Event | None = None) -> None:
        """Analyse all block ranges; failures are logged, not raised.

        Raises ``ValueError`` if the block ranges do not match the analyzers.
        """
        cancel = cancel_event if cancel_event is not None else threading.Event()
        analyzers = self._prepare(cancel)
        try:
            starts = self.config.start_blocks
            ends = self.config.end_blocks
            if (len(starts) != len(ends) and len(starts) != len(analyzers)) or min(
                len(starts), len(ends)
            ) < len(analyzers):
                raise ValueError("startBlocks and endBlocks must have the same length as analyzers")
            if not analyzers:
                return

            with ThreadPoolExecutor(max_workers=len(analyzers)) as pool:
                futures = [
                    pool.submit(self._work, index, analyzer, starts[index], ends[index], cancel)
                    for index, analyzer in enumerate(analyzers)
                ]
            failure = next((f.exception() for f in futures if f.exception() is not None), None)
            if failure is not None:
                self._log.error("failed to analyze", error=failure)
        finally:
            for analyzer in analyzers:
                analyzer.client.close()

    def _prepare(self, cancel: threading.Event) -> list[Analyzer]:
        code_cache: LRUCache = LRUCache(maxsize=CODE_CACHE_SIZE)
        analyzers = []
        for index, url in enumerate(self.config.rpc_urls):
            try:
                client = RpcClient(url, self.config, cancel)
            except RpcError as exc:
                self._log.error("failed to create rpc client", error=exc)
                continue
            retriever = TraceRetriever(client, self.config.trace_dir)
            analyzers.append(Analyzer(index, client, retriever, code_cache))
        return analyzers

    def _work(
        self,
        worker_idx: int,
        analyzer: Analyzer,
        start: int,
        end: int,
        cancel: threading.Event,
    ) -> None:
        self._log.info("starting worker", worker_idx=worker_idx, start=start, end=end)
        with ResultWriter(self.config.result_dir, worker_idx) as writer:
            for block in range(start, end + 1):
                if cancel.is_set():
                    return
                result = analyzer.analyze(block)
                writer.write(block, result.results)
                self._log.info("worker finished", idx=worker_idx, block=block)