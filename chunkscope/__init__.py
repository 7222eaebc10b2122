"""Measure bytecode chunk usage of Ethereum contracts from execution traces."""

__version__ = "0.1.0"