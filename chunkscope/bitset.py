"""Byte-access bit sets over contract bytecode, grouped into 32-byte chunks."""

from __future__ import annotations

import base64
from dataclasses import dataclass

MAX_CONTRACT_BYTES = 24576
CHUNK_BYTES = 32
MAX_CHUNKS = MAX_CONTRACT_BYTES // CHUNK_BYTES


@dataclass(frozen=True)
class ChunkEfficiencyStats:
    """How efficiently the 32-byte chunks of a contract are used."""

    total_chunks: int
    accessed_chunks: int
    average_efficiency: float
    # Index n counts the chunks with exactly n bytes accessed; index 0 is unused.
    distribution: tuple[int, ...]


@dataclass(frozen=True)
class ChunkDetail:
    """Access information for a single accessed chunk."""

    index: int
    bytes_accessed: int
    efficiency: float


class BitSet:
    """One bit per byte of contract code; each 32-bit word covers one chunk."""

    __slots__ = ("_words", "_size")

    def __init__(self, size: int) -> None:
        if size <= 0:
            raise ValueError("size must be greater than 0")
        if size > MAX_CONTRACT_BYTES:
            raise ValueError(f"size out of range ({size} > max contract size)")
        self._size = size
        self._words = [0] * ((size + CHUNK_BYTES - 1) // CHUNK_BYTES)

    def __repr__(self) -> str:
        return f"BitSet(size={self._size}, count={self.count()})"

    def set(self, index: int) -> BitSet:
        """Mark the byte at ``index`` as accessed and return the set itself."""
        if not 0 <= index < self._size:
            raise IndexError(f"index out of range ({index} >= {self._size})")
        word, bit = divmod(index, CHUNK_BYTES)
        self._words[word] |= 1 << bit
        return self

    def count(self) -> int:
        """Number of accessed bytes."""
        return sum(word.bit_count() for word in self._words)

    def proportion(self) -> float:
        """Fraction of the contract's bytes that were accessed."""
        return self.count() / self._size

    def chunk_count(self) -> int:
        """Number of chunks with at least one accessed byte."""
        return sum(1 for word in self._words if word)

    def chunks(self) -> bytes:
        """One byte per chunk holding the number of bytes accessed in it."""
        return bytes(word.bit_count() for word in self._words)

    def encode_chunks(self) -> str:
        """Standard base64 of :meth:`chunks`."""
        return base64.b64encode(self.chunks()).decode("ascii")

    def chunk_proportion(self) -> float:
        """Fraction of chunks that were accessed."""
        return self.chunk_count() / len(self._words)

    def merge(self, other: BitSet) -> BitSet:
        """OR ``other`` into this set in place and return this set."""
        if self._size != other._size:
            raise ValueError("size mismatch")
        self._words = [mine | theirs for mine, theirs in zip(self._words, other._words)]
        return self

    def is_full(self) -> bool:
        return self.count() == self._size

    def size(self) -> int:
        """Contract size in bytes."""
        return self._size

    def chunk_efficiency_stats(self) -> ChunkEfficiencyStats:
        distribution = [0] * (CHUNK_BYTES + 1)
        accessed = 0
        total_bytes = 0
        for word in self._words:
            if word:
                used = word.bit_count()
                accessed += 1
                total_bytes += used
                distribution[used] += 1
        average = total_bytes / (accessed * CHUNK_BYTES) if accessed else 0.0
        return ChunkEfficiencyStats(
            total_chunks=len(self._words),
            accessed_chunks=accessed,
            average_efficiency=average,
            distribution=tuple(distribution),
        )

    def chunk_efficiencies(self) -> list[float]:
        """Efficiency (bytes accessed / 32) of each accessed chunk, in order."""
        return [word.bit_count() / CHUNK_BYTES for word in self._words if word]

    def chunk_details(self) -> list[ChunkDetail]:
        """Index, byte count and efficiency of each accessed chunk."""
        return [
            ChunkDetail(
                index=index,
                bytes_accessed=word.bit_count(),
                efficiency=word.bit_count() / CHUNK_BYTES,
            )
            for index, word in enumerate(self._words)
            if word
        ]