"""JSON-RPC client for a node, with exponential-backoff retries."""

from __future__ import annotations

import itertools
import random
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar
from urllib.parse import urlsplit

import requests

from chunkscope.address import Address
from chunkscope.config import Config
from chunkscope.logger import get_logger

_T = TypeVar("_T")

_RETRYABLE = (requests.RequestException, ValueError, TypeError)


class RpcError(ValueError):
    """A failed or abandoned RPC call."""


def _require_dict(data: Any, what: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise ValueError(f"cannot decode {what} from {type(data).__name__}")
    return data


@dataclass(frozen=True)
class RetryConfig:
    max_attempts: int
    base_delay: float  # seconds
    max_delay: float  # seconds
    jitter: bool

    @classmethod
    def from_config(cls, config: Config) -> RetryConfig:
        return cls(
            max_attempts=config.retry_max_attempts,
            base_delay=config.retry_base_delay / 1000,
            max_delay=config.retry_max_delay / 1000,
            jitter=config.retry_jitter,
        )


@dataclass
class TraceStep:
    pc: int = 0
    op: str = ""
    depth: int = 0
    stack: list[str] = field(default_factory=list)

    @classmethod
    def from_json(cls, data: Any) -> TraceStep:
        data = _require_dict(data, "trace step")
        return cls(
            pc=int(data.get("pc") or 0),
            op=str(data.get("op") or ""),
            depth=int(data.get("depth") or 0),
            stack=[str(item) for item in data.get("stack") or []],
        )


@dataclass
class InnerResult:
    steps: list[TraceStep] = field(default_factory=list)
    failed: bool = False

    @classmethod
    def from_json(cls, data: Any) -> InnerResult:
        data = _require_dict(data or {}, "trace result")
        return cls(
            steps=[TraceStep.from_json(step) for step in data.get("structLogs") or []],
            failed=bool(data.get("failed", False)),
        )


@dataclass
class TransactionTrace:
    tx_hash: str = ""
    result: InnerResult = field(default_factory=InnerResult)

    @classmethod
    def from_json(cls, data: Any) -> TransactionTrace:
        data = _require_dict(data, "transaction trace")
        return cls(
            tx_hash=str(data.get("txHash") or ""),
            result=InnerResult.from_json(data.get("result")),
        )


@dataclass(frozen=True)
class TxByHash:
    """The recipient of a transaction; empty for creations or unknown hashes."""

    to: str = ""


class RpcClient:
    """Calls a node over HTTP, retrying failures until attempts run out or
    ``cancel_event`` is set."""

    def __init__(
        self,
        url: str,
        config: Config,
        cancel_event: threading.Event | None = None,
    ) -> None:
        scheme = urlsplit(url).scheme
        if scheme not in ("http", "https"):
            raise RpcError(f'no known transport for URL scheme "{scheme}"')
        self.url = url
        self.retry_config = RetryConfig.from_config(config)
        self._cancel = cancel_event if cancel_event is not None else threading.Event()
        self._session = requests.Session()
        self._ids = itertools.count(1)
        self._log = get_logger("rpcclient")

    def _call(self, method: str, *params: Any) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": list(params)}
        response = self._session.post(self.url, json=payload)
        response.raise_for_status()
        body = _require_dict(response.json(), "RPC response")
        err = body.get("error")
        if err:
            message = err.get("message", err) if isinstance(err, dict) else err
            raise RpcError(str(message))
        return body.get("result")

    def trace_block_by_number(self, block_num: int) -> list[TransactionTrace]:
        def call() -> list[TransactionTrace]:
            result = self._call(
                "debug_traceBlockByNumber",
                hex(block_num),
                {"disableMemory": True, "disableStorage": True},
            )
            return [TransactionTrace.from_json(item) for item in result or []]

        return self._with_retry(call, f"TraceBlockByNumber({block_num})")

    def transaction_by_hash(self, tx_hash: str) -> TxByHash:
        def call() -> TxByHash:
            result = _require_dict(self._call("eth_getTransactionByHash", tx_hash) or {}, "transaction")
            return TxByHash(to=str(result.get("to") or ""))

        return self._with_retry(call, f"TransactionByHash({tx_hash})")

    def code(self, address: Address, block_num: int) -> str:
        def call() -> str:
            result = self._call("eth_getCode", "0x" + address.value.hex(), hex(block_num))
            if result is None:
                return ""
            if not isinstance(result, str):
                raise ValueError(f"cannot decode code from {type(result).__name__}")
            return result

        return self._with_retry(call, f"Code({address.hex()}, {block_num})")

    def close(self) -> None:
        self._session.close()

    def _with_retry(self, fn: Callable[[], _T], operation: str) -> _T:
        attempts = self.retry_config.max_attempts
        last_error: BaseException | None = None

        for attempt in range(1, attempts + 1):
            try:
                result = fn()
            except _RETRYABLE as exc:
                last_error = exc
            else:
                if attempt > 1:
                    self._log.info("RPC call succeeded after retry", operation=operation, attempt=attempt)
                return result

            if attempt == attempts:
                self._log.error(
                    "RPC call failed after all retries",
                    operation=operation,
                    attempts=attempt,
                    error=last_error,
                )
                break

            delay = self.calculate_delay(attempt)
            self._log.warn(
                "RPC call failed, retrying",
                operation=operation,
                attempt=attempt,
                maxAttempts=attempts,
                delay=f"{delay}s",
                error=last_error,
            )
            if self._cancel.wait(delay):
                raise RpcError("context cancelled during retry: context canceled") from last_error

        raise RpcError(f"RPC call failed after {attempts} attempts: {last_error}") from last_error

    def calculate_delay(self, attempt: int) -> float:
        """Seconds to wait after ``attempt``: doubling from the base delay,
        capped at the max delay, plus up to 50% jitter when enabled."""
        cfg = self.retry_config
        if cfg.base_delay <= 0:
            delay = 0.0
        else:
            try:
                delay = cfg.base_delay * 2.0 ** (attempt - 1)
            except OverflowError:
                delay = float("inf")
        delay = min(delay, cfg.max_delay)
        if cfg.jitter:
            delay += random.random() * 0.5 * delay
        return delay