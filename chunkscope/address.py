"""Twenty-byte account addresses with checksummed hex output."""

from __future__ import annotations

import re
from dataclasses import dataclass

from Crypto.Hash import keccak

ADDRESS_LENGTH = 20

_HEX_PAIRS = re.compile(r"(?:[0-9a-fA-F]{2})*")


@dataclass(frozen=True)
class Address:
    """An account address; the zero address by default."""

    value: bytes = bytes(ADDRESS_LENGTH)

    def __post_init__(self) -> None:
        if len(self.value) != ADDRESS_LENGTH:
            raise ValueError(f"address must be {ADDRESS_LENGTH} bytes, got {len(self.value)}")

    @classmethod
    def from_hex(cls, text: str) -> Address:
        """Parse hex leniently: an optional 0x prefix, odd lengths padded, and
        only the last 20 bytes kept, left-padded with zeros when shorter."""
        if text[:2] in ("0x", "0X"):
            text = text[2:]
        if len(text) % 2:
            text = "0" + text
        decoded = bytes.fromhex(_HEX_PAIRS.match(text).group())
        return cls(decoded[-ADDRESS_LENGTH:].rjust(ADDRESS_LENGTH, b"\0"))

    def hex(self) -> str:
        """Mixed-case checksummed hex form with a 0x prefix."""
        raw = self.value.hex()
        digest = keccak.new(digest_bits=256, data=raw.encode("ascii")).digest()
        chars = []
        for position, char in enumerate(raw):
            byte = digest[position // 2]
            nibble = byte >> 4 if position % 2 == 0 else byte & 0x0F
            chars.append(char.upper() if char > "9" and nibble > 7 else char)
        return "0x" + "".join(chars)

    def __str__(self) -> str:
        return self.hex()