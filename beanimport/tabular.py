"""Uniform table model that CSV and XLSX sources are read into."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

POSITIONAL_HEADER_COUNT = 256


@dataclass
class RowData:
    """One data row with its human-readable line number in the source."""

    line_no: int
    cells: List[str]


@dataclass
class TabularData:
    """Headers and rows of a source, plus the count of rows that failed to parse."""

    source_name: str
    headers: List[str] = field(default_factory=list)
    rows: List[RowData] = field(default_factory=list)
    pre_parse_errors: int = 0


def build_positional_headers() -> List[str]:
    """Column names used when a source has no header row."""
    return [f"col_{index}" for index in range(POSITIONAL_HEADER_COUNT)]