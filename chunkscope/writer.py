"""CSV output of per-block analysis results."""

from __future__ import annotations

import csv
import os
from collections.abc import Mapping
from pathlib import Path
from types import TracebackType
from typing import IO

from chunkscope.address import Address
from chunkscope.results import MergedTraceResult

HEADER = (
    "block_number",
    "address",
    "bytecode_size",
    "chunks_data",
    "code_size_hash_count",
    "code_copy_count",
)


class ResultWriter:
    """Appends result rows to ``analysis-<id>.csv`` inside a directory.

    The file is opened lazily on the first write. A new file starts with a
    header row; an existing non-empty file gets a newline separator and no
    second header.
    """

    def __init__(self, directory: str | os.PathLike[str], worker_id: int) -> None:
        os.makedirs(directory, mode=0o755, exist_ok=True)
        self.path = Path(directory) / f"analysis-{worker_id}.csv"
        self._file: IO[str] | None = None
        self._writer = None

    def _open(self) -> None:
        exists = self.path.exists()
        if exists:
            file = open(self.path, "a", newline="", encoding="utf-8")
            try:
                if os.path.getsize(self.path) > 0:
                    file.write("\n")
            except OSError:
                file.close()
                raise
        else:
            file = open(self.path, "w", newline="", encoding="utf-8")

        self._file = file
        self._writer = csv.writer(file, lineterminator="\n")
        if not exists:
            self._writer.writerow(HEADER)
            file.flush()

    def write(self, block_num: int, results: Mapping[Address, MergedTraceResult]) -> None:
        """Write one row per contract for ``block_num`` and flush to disk."""
        if self._file is None:
            self._open()
        for address, result in results.items():
            self._writer.writerow(
                (
                    str(block_num),
                    address.hex(),
                    str(result.bits.size()),
                    result.bits.encode_chunks(),
                    str(result.code_size_hash_count),
                    str(result.code_copy_count),
                )
            )
        self._file.flush()

    @property
    def is_open(self) -> bool:
        return self._file is not None

    def close(self) -> None:
        """Flush and close the file; safe to call more than once."""
        if self._file is not None:
            try:
                self._file.flush()
            finally:
                self._file.close()
                self._file = None
                self._writer = None

    def __enter__(self) -> ResultWriter:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()