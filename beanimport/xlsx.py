"""Reading the first worksheet of an XLSX workbook and spotting its header row."""

from __future__ import annotations

import logging
import posixpath
import re
import zipfile
from decimal import Decimal
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union
from xml.etree import ElementTree

from beanimport.errors import ConfigError
from beanimport.mapping import FieldMapping

logger = logging.getLogger(__name__)

_MAIN_NS = "http://schemas.openxmlformats.org/spreadsheetml/2006/main"
_DOC_REL_NS = "http://schemas.openxmlformats.org/officeDocument/2006/relationships"
_PKG_REL_NS = "http://schemas.openxmlformats.org/package/2006/relationships"
_CELL_REF = re.compile(r"^([A-Za-z]+)(\d+)$")


def _tag(name: str) -> str:
    return f"{{{_MAIN_NS}}}{name}"


def _text_of(element: Optional[ElementTree.Element]) -> str:
    """Concatenate direct ``t`` and rich-text run ``r/t`` texts, skipping phonetics."""
    if element is None:
        return ""
    parts = []
    for child in element:
        if child.tag == _tag("t"):
            parts.append(child.text or "")
        elif child.tag == _tag("r"):
            parts.extend(t.text or "" for t in child.findall(_tag("t")))
    return "".join(parts)


def _format_number(raw: str) -> str:
    try:
        number = float(raw)
    except ValueError:
        return raw
    if number != number or number in (float("inf"), float("-inf")):
        return raw
    if number.is_integer():
        return str(int(number))
    return format(Decimal(repr(number)), "f")


def _column_index(letters: str) -> int:
    index = 0
    for letter in letters.upper():
        index = index * 26 + (ord(letter) - ord("A") + 1)
    return index - 1


def _shared_strings(archive: zipfile.ZipFile) -> List[str]:
    try:
        data = archive.read("xl/sharedStrings.xml")
    except KeyError:
        return []
    root = ElementTree.fromstring(data)
    return [_text_of(item) for item in root.findall(_tag("si"))]


def _first_sheet(archive: zipfile.ZipFile) -> Optional[Tuple[str, str]]:
    """Name and archive path of the first worksheet, or None if there is none."""
    workbook = ElementTree.fromstring(archive.read("xl/workbook.xml"))
    sheets = workbook.find(_tag("sheets"))
    first = sheets.find(_tag("sheet")) if sheets is not None else None
    if first is None:
        return None
    name = first.get("name", "")
    rel_id = first.get(f"{{{_DOC_REL_NS}}}id")

    rels = ElementTree.fromstring(archive.read("xl/_rels/workbook.xml.rels"))
    for rel in rels.findall(f"{{{_PKG_REL_NS}}}Relationship"):
        if rel.get("Id") == rel_id:
            target = rel.get("Target", "")
            if target.startswith("/"):
                return name, target.lstrip("/")
            return name, posixpath.normpath(posixpath.join("xl", target))
    raise KeyError(f"no relationship for sheet '{name}'")


def _cell_value(cell: ElementTree.Element, shared: Sequence[str]) -> Optional[str]:
    kind = cell.get("t", "n")
    if kind == "inlineStr":
        return _text_of(cell.find(_tag("is")))
    value = cell.find(_tag("v"))
    if value is None or value.text is None:
        return None
    raw = value.text
    if kind == "s":
        return shared[int(raw)]
    if kind == "b":
        return "true" if raw.strip() == "1" else "false"
    if kind in ("str", "e", "d"):
        return raw
    return _format_number(raw)


def _sheet_cells(
    archive: zipfile.ZipFile, sheet_path: str, shared: Sequence[str]
) -> Dict[Tuple[int, int], str]:
    root = ElementTree.fromstring(archive.read(sheet_path))
    data = root.find(_tag("sheetData"))
    cells: Dict[Tuple[int, int], str] = {}
    if data is None:
        return cells

    next_row = 0
    for row in data.findall(_tag("row")):
        row_index = int(row.get("r")) - 1 if row.get("r") else next_row
        next_row = row_index + 1
        next_col = 0
        for cell in row.findall(_tag("c")):
            ref = cell.get("r")
            match = _CELL_REF.match(ref) if ref else None
            col_index = _column_index(match.group(1)) if match else next_col
            next_col = col_index + 1
            value = _cell_value(cell, shared)
            if value is not None:
                cells[(row_index, col_index)] = value
    return cells


def read_xlsx_rows(path: Union[str, Path]) -> List[List[str]]:
    """Return the used range of the first worksheet as rows of cell text.

    The range spans from the first to the last cell holding a value; gaps
    are filled with empty strings.
    """
    path = Path(path)
    try:
        archive = zipfile.ZipFile(path)
    except (OSError, zipfile.BadZipFile) as exc:
        raise ConfigError(f"Failed to open XLSX file '{path}': {exc}") from exc

    with archive:
        try:
            shared = _shared_strings(archive)
            sheet = _first_sheet(archive)
        except (KeyError, ElementTree.ParseError) as exc:
            raise ConfigError(f"Failed to open XLSX file '{path}': {exc}") from exc

        if sheet is None:
            logger.warning("No worksheet found in XLSX file: %s", path)
            return []

        name, sheet_path = sheet
        try:
            cells = _sheet_cells(archive, sheet_path, shared)
        except (KeyError, ValueError, IndexError, ElementTree.ParseError) as exc:
            raise ConfigError(
                f"Failed to read worksheet '{name}' from '{path}': {exc}"
            ) from exc

    if not cells:
        return []

    rows = [r for r, _ in cells]
    cols = [c for _, c in cells]
    first_row, last_row = min(rows), max(rows)
    first_col, last_col = min(cols), max(cols)
    return [
        [cells.get((r, c), "") for c in range(first_col, last_col + 1)]
        for r in range(first_row, last_row + 1)
    ]


def header_match_score(mapping: FieldMapping, row: Sequence[str]) -> int:
    """Count the mapped columns, standard and extra, that appear in ``row``."""
    normalized = {value.strip() for value in row}
    score = sum(
        1 for _, spec in mapping.mapped_specs() if spec is not None and spec.column in normalized
    )
    score += sum(1 for column in mapping.extra_fields.values() if column in normalized)
    return score


def select_header_row(rows: Sequence[Sequence[str]], mapping: Optional[FieldMapping]) -> int:
    """Index of the row that best matches the mapping; the last wins a tie.

    Without a mapping the first row is taken.
    """
    if mapping is None:
        return 0

    best_index, best_score = 0, 0
    for index, row in enumerate(rows):
        score = header_match_score(mapping, row)
        if score >= best_score:
            best_index, best_score = index, score

    if best_score == 0:
        logger.warning("Unable to auto-detect XLSX header row by mapping")
    return best_index