"""CSV output helpers for the report layer."""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Iterable, Optional, Sequence, Union

Row = Sequence[object]


class IncrementalCSVWriter:
    """Appends rows to a CSV file, writing the header only once."""

    def __init__(self, file_path: Union[str, Path], header: Optional[Sequence[str]] = None) -> None:
        self.file_path = Path(file_path)
        self.header = list(header) if header is not None else None
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        self._header_written = (
            self.file_path.exists() and self.file_path.stat().st_size > 0
        )

    def append_rows(self, rows: Iterable[Row]) -> int:
        row_list = [row for row in rows if row]
        if not row_list:
            return 0

        with self.file_path.open("a", encoding="utf-8", newline="") as handle:
            writer = csv.writer(handle)
            if not self._header_written and self.header is not None:
                writer.writerow(self.header)
                self._header_written = True
            writer.writerows(row_list)

        return len(row_list)

    def write_header(self) -> None:
        if self._header_written or self.header is None:
            return
        with self.file_path.open("a", encoding="utf-8", newline="") as handle:
            csv.writer(handle).writerow(self.header)
        self._header_written = True

    def reset(self) -> None:
        """Truncate the target so the next append starts a fresh file."""
        if self.file_path.exists():
            self.file_path.unlink()
        self._header_written = False


__all__ = ["IncrementalCSVWriter"]
