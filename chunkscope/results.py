"""Per-contract results of analysing a transaction trace."""

from __future__ import annotations

from dataclasses import dataclass, field

from chunkscope.address import Address
from chunkscope.bitset import BitSet


@dataclass
class TraceResult:
    """Bytes of one contract touched during a transaction.

    A skipped result stands for a frame whose code is not analysed: a contract
    creation or a call into an account that has no code.
    """

    addr: Address = field(default_factory=Address)
    bits: BitSet | None = None
    skip: bool = False
    # Opcodes that touch the whole code are counted apart from byte access.
    code_size_hash_count: int = 0  # CODESIZE, CODEHASH, EXTCODESIZE, EXTCODEHASH
    code_copy_count: int = 0  # CODECOPY, EXTCODECOPY

    @classmethod
    def for_code(cls, addr: Address, code: bytes) -> TraceResult:
        return cls(addr=addr, bits=BitSet(len(code)))

    @classmethod
    def skipped(cls) -> TraceResult:
        return cls(skip=True)

    def __str__(self) -> str:
        if self.skip:
            return f"Addr: {self.addr.hex()}, Skip: true"
        return (
            f"Addr: {self.addr.hex()}, Bits: {self.bits.count()}, "
            f"Chunks: {self.bits.chunk_count()}, "
            f"CodeSizeHashCount: {self.code_size_hash_count}, "
            f"CodeCopyCount: {self.code_copy_count}"
        )


@dataclass
class MergedTraceResult:
    """Results for one contract merged over all transactions of a block."""

    bits: BitSet
    code_size_hash_count: int = 0
    code_copy_count: int = 0