"""Replays block traces to find which bytes of each contract's code were touched."""

from __future__ import annotations

import os
import threading
from collections import defaultdict
from collections.abc import MutableMapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from itertools import zip_longest
from typing import TYPE_CHECKING

from chunkscope.address import Address
from chunkscope.bitset import BitSet
from chunkscope.logger import get_logger
from chunkscope.results import MergedTraceResult, TraceResult
from chunkscope.rpcclient import InnerResult, TraceStep, TransactionTrace

if TYPE_CHECKING:
    from chunkscope.retriever import TraceRetriever
    from chunkscope.rpcclient import RpcClient

OP_PUSH0 = "PUSH0"

# The code cache is shared between analyzers running in different threads.
_cache_lock = threading.Lock()


@dataclass(frozen=True)
class Code:
    """The bytecode of an account at some block."""

    addr: Address
    code: bytes


@dataclass
class BlockResult:
    """Merged per-contract results for every transaction in a block."""

    block_num: int
    results: dict[Address, MergedTraceResult] = field(default_factory=dict)


def _is_ext_code_op(op: str) -> bool:
    """EXTCODESIZE, EXTCODEHASH, EXTCODECOPY."""
    return len(op) == 11 and op[0] == "E"


def _is_call_op(op: str) -> bool:
    """CALL, STATICCALL, DELEGATECALL, CALLCODE."""
    length = len(op)
    return (
        (length == 4 and op[3] == "L")
        or (length == 10 and op[9] == "L")
        or (length == 12 and op[0] == "D")
        or (length == 8 and op[2] == "L")
    )


def _is_create_op(op: str) -> bool:
    """CREATE, CREATE2."""
    return len(op) >= 6 and op.startswith("CR")


def _decode_hex(text: str) -> bytes:
    """Decode a 0x-prefixed, even-length hex string."""
    if not text:
        raise ValueError("empty hex string")
    if text[:2] not in ("0x", "0X"):
        raise ValueError("hex string without 0x prefix")
    digits = text[2:]
    if len(digits) % 2:
        raise ValueError("hex string of odd length")
    try:
        return bytes.fromhex(digits)
    except ValueError:
        raise ValueError("invalid hex string") from None


def _mark_push(bits: BitSet, step: TraceStep) -> None:
    """PUSHn reads n immediate bytes following the opcode."""
    width = int(step.op[4:])
    for offset in range(1, width + 1):
        bits.set(step.pc + offset)


class Analyzer:
    """Analyses the traces of blocks, one worker thread per transaction."""

    def __init__(
        self,
        analyzer_id: int,
        client: RpcClient,
        retriever: TraceRetriever,
        code_cache: MutableMapping[str, Code],
    ) -> None:
        self.client = client
        self.retriever = retriever
        self.code_cache = code_cache
        self._log = get_logger(f"analyzer-{analyzer_id}")

    def analyze(self, block_num: int) -> BlockResult:
        """Analyse every transaction of ``block_num`` and merge per contract."""
        trace = self.retriever.get_trace(block_num)
        aggregated: dict[Address, MergedTraceResult] = {}
        lock = threading.Lock()

        def merge(results: dict[Address, TraceResult]) -> None:
            with lock:
                for addr, res in results.items():
                    existing = aggregated.get(addr)
                    if existing is None:
                        aggregated[addr] = MergedTraceResult(
                            bits=res.bits,
                            code_size_hash_count=res.code_size_hash_count,
                            code_copy_count=res.code_copy_count,
                        )
                    else:
                        existing.bits.merge(res.bits)
                        existing.code_size_hash_count += res.code_size_hash_count
                        existing.code_copy_count += res.code_copy_count

        def work(tx: TransactionTrace) -> None:
            merge(self._analyze_tx(tx, block_num))

        if trace:
            with ThreadPoolExecutor(max_workers=os.cpu_count() or 1) as pool:
                futures = [pool.submit(work, tx) for tx in trace]
                for future in futures:
                    future.result()

        return BlockResult(block_num=block_num, results=aggregated)

    def _analyze_tx(self, tx: TransactionTrace, block_num: int) -> dict[Address, TraceResult]:
        code = self._code_from_tx(tx.tx_hash, block_num)
        if not code.code:
            return {}
        codes: dict[int, list[TraceResult]] = {1: [TraceResult.for_code(code.addr, code.code)]}
        return self._analyze_steps(block_num, tx.result, codes)

    def _code_from_tx(self, tx_hash: str, block_num: int) -> Code:
        tx = self.client.transaction_by_hash(tx_hash)
        return self._get_code(tx.to, block_num)

    def _get_code(self, addr_text: str, block_num: int) -> Code:
        addr = Address.from_hex(addr_text)
        key = f"{addr.hex()}:{block_num}"
        with _cache_lock:
            cached = self.code_cache.get(key)
        if cached is not None:
            return cached

        result = Code(addr=addr, code=_decode_hex(self.client.code(addr, block_num)))
        with _cache_lock:
            self.code_cache[key] = result
        return result

    def _lookup(self, addr_text: str, block_num: int, failed: bool) -> Code | None:
        """Fetch code; lookup errors are tolerated inside failed transactions."""
        try:
            return self._get_code(addr_text, block_num)
        except ValueError:
            if failed:
                return None
            raise

    def _analyze_steps(
        self,
        block_num: int,
        trace: InnerResult,
        codes: dict[int, list[TraceResult]],
    ) -> dict[Address, TraceResult]:
        root = codes[1][0]
        results: dict[Address, TraceResult] = {root.addr: root}
        steps = trace.steps

        # First pass: work out which code runs in each call frame, per depth.
        for step, nxt in zip_longest(steps, steps[1:]):
            op = step.op
            if _is_ext_code_op(op):
                code = self._lookup(step.stack[-1], block_num, trace.failed)
                if code is not None and code.code:
                    res = results.get(code.addr)
                    if res is None:
                        res = results[code.addr] = TraceResult.for_code(code.addr, code.code)
                    if op.endswith("Y"):
                        res.code_copy_count += 1
                    else:
                        res.code_size_hash_count += 1
            elif _is_call_op(op) or _is_create_op(op):
                if nxt is None or nxt.depth != step.depth + 1:
                    continue
                if _is_create_op(op):
                    frame = TraceResult.skipped()
                else:
                    code = self._lookup(step.stack[-2], block_num, trace.failed)
                    if code is not None and code.code:
                        frame = results.get(code.addr)
                        if frame is None:
                            frame = results[code.addr] = TraceResult.for_code(code.addr, code.code)
                    else:
                        frame = TraceResult.skipped()
                codes.setdefault(nxt.depth, []).append(frame)

        # Second pass: attribute every executed step to the frame it ran in.
        pointers: defaultdict[int, int] = defaultdict(int)
        prev_depth = 0
        for step in steps:
            depth = step.depth
            if prev_depth > depth:
                pointers[prev_depth] += 1
            try:
                res = codes[depth][pointers[depth]]
            except (KeyError, IndexError):
                raise ValueError(
                    f"trace step at pc {step.pc} depth {depth} has no matching call frame"
                ) from None
            prev_depth = depth
            if res.skip:
                continue

            op = step.op
            if len(op) == 4 and op.startswith("ST"):  # STOP, possibly implicit past the code end
                if step.pc < res.bits.size():
                    res.bits.set(step.pc)
                continue
            if op == OP_PUSH0:
                pass
            elif len(op) > 4 and op.startswith("PU"):
                _mark_push(res.bits, step)
            elif len(op) > 4 and op.startswith("COD"):
                if op.endswith("Y"):
                    res.code_copy_count += 1
                else:
                    res.code_size_hash_count += 1
            res.bits.set(step.pc)

        return results