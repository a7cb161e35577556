"""Reading CSV and XLSX statements into raw records through a field mapping."""

from __future__ import annotations

import codecs
import csv
import datetime as dt
import io
import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Union

from beanimport.config import CsvOptions
from beanimport.errors import ConfigError, ImporterError, ParseError
from beanimport.mapping import FieldMapping, FieldSpec
from beanimport.records import RawRecord
from beanimport.tabular import RowData, TabularData, build_positional_headers
from beanimport.xlsx import read_xlsx_rows, select_header_row

logger = logging.getLogger(__name__)

_TEXT_FIELDS = (
    "currency",
    "payee",
    "narration",
    "transaction_type",
    "status",
    "reference",
    "symbol",
    "security_name",
)
_DECIMAL_FIELDS = ("amount", "quantity", "unit_price", "fee", "tax")
_NUMBER_NOISE = re.compile(r"[\s,¥￥$€£]")


def normalize_cell_value(value: str) -> str:
    """Trim a cell and unwrap Excel's ``="..."`` literal form."""
    trimmed = value.strip()
    unwrapped = _strip_excel_quoted_literal(trimmed)
    return trimmed if unwrapped is None else unwrapped


def _strip_excel_quoted_literal(value: str) -> Optional[str]:
    # Only the conservative form: '=' followed by a double-quoted literal.
    if not value.startswith("="):
        return None
    expression = value[1:].strip()
    if len(expression) < 2 or not expression.startswith('"') or not expression.endswith('"'):
        return None
    return expression[1:-1].replace('""', '"')


def _non_empty(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    trimmed = value.strip()
    return trimmed or None


def _split_lines(text: str) -> List[str]:
    """Split on newlines, dropping a trailing ``\\r`` and the empty tail after a final newline."""
    if not text:
        return []
    parts = text.split("\n")
    if parts[-1] == "":
        parts.pop()
    return [part[:-1] if part.endswith("\r") else part for part in parts]


def _decode(data: bytes, encoding: str) -> str:
    try:
        codec = codecs.lookup(encoding.strip())
    except LookupError as exc:
        raise ConfigError(f"Unsupported encoding '{encoding}'") from exc
    if codec.name == "utf-8" and data.startswith(codecs.BOM_UTF8):
        data = data[len(codecs.BOM_UTF8):]
    return data.decode(codec.name, errors="replace")


def _parse_decimal(text: str, transform: Optional[str]) -> Optional[Decimal]:
    cleaned = _NUMBER_NOISE.sub("", text)
    try:
        number = Decimal(cleaned)
    except InvalidOperation:
        return None
    if not number.is_finite():
        return None
    if transform is None:
        return number
    name = transform.strip().lower()
    if name == "negate":
        return -number
    if name == "abs":
        return abs(number)
    logger.warning("Unknown transform '%s', value left unchanged", transform)
    return number


def _parse_date(value: str, formats: List[str]) -> Optional[dt.date]:
    for fmt in formats:
        try:
            return dt.datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    return None


def _is_xlsx_path(path: Path) -> bool:
    return path.suffix.lower() == ".xlsx"


@dataclass
class CsvRecordReader:
    """Reads a CSV or XLSX source and maps its rows to ``RawRecord`` objects."""

    csv_options: CsvOptions = field(default_factory=CsvOptions)
    skip_lines: int = 0
    has_header: bool = True
    strict_mode: bool = False

    def read_file(
        self, path: Union[str, Path], mapping: Optional[FieldMapping] = None
    ) -> List[RawRecord]:
        """Read the source file and map every row."""
        path = Path(path)
        if _is_xlsx_path(path):
            table = self._read_xlsx_table(path, mapping)
        else:
            table = self._read_csv_table(path)
        return self.map_table_to_records(table, mapping)

    # -- sources ---------------------------------------------------------

    def _read_csv_table(self, path: Path) -> TabularData:
        logger.info("Opening file: %s", path)
        data = path.read_bytes()
        logger.debug("File size: %d bytes", len(data))
        content = _decode(data, self.csv_options.encoding)
        logger.debug("Decoded content length: %d chars", len(content))

        lines = _split_lines(content)[self.skip_lines:]
        if not lines:
            logger.warning("No data lines found after skipping %d lines", self.skip_lines)
            return TabularData(source_name="CSV")

        comment = self.csv_options.comment
        if comment is not None:
            lines = [line for line in lines if not line.startswith(comment)]

        records = self._csv_records("\n".join(lines))
        headers: List[str] = []
        expected: Optional[int] = None

        if self.has_header:
            first = next(records, None)
            if isinstance(first, list):
                headers = [header.strip() for header in first]
                expected = len(first)
            elif isinstance(first, csv.Error):
                raise ParseError(self.skip_lines + 1, str(first))
            logger.info("CSV headers (%d columns): %r", len(headers), headers)
        else:
            logger.debug("No header row, generated positional headers")
            headers = build_positional_headers()

        rows: List[RowData] = []
        pre_parse_errors = 0
        offset = self.skip_lines + (2 if self.has_header else 1)

        for index, item in enumerate(records):
            line_no = index + offset
            error: Optional[str] = None
            if isinstance(item, csv.Error):
                error = str(item)
            elif not self.csv_options.flexible and expected is not None and len(item) != expected:
                error = (
                    f"found record with {len(item)} fields, "
                    f"but the previous record has {expected} fields"
                )

            if error is not None:
                pre_parse_errors += 1
                logger.warning("Line %d: CSV parse error - %s", line_no, error)
                if self.strict_mode or not self.csv_options.flexible:
                    raise ParseError(line_no, error)
                continue

            if expected is None:
                expected = len(item)
            rows.append(RowData(line_no=line_no, cells=[cell.strip() for cell in item]))

        return TabularData(
            source_name="CSV", headers=headers, rows=rows, pre_parse_errors=pre_parse_errors
        )

    def _csv_records(self, text: str) -> Iterator[Union[List[str], csv.Error]]:
        """Yield non-blank records, or the error met while reading one."""
        reader = csv.reader(
            io.StringIO(text),
            delimiter=self.csv_options.delimiter,
            quotechar=self.csv_options.quote,
        )
        while True:
            try:
                record = next(reader)
            except StopIteration:
                return
            except csv.Error as exc:
                yield exc
                continue
            if record:
                yield record

    def _read_xlsx_table(self, path: Path, mapping: Optional[FieldMapping]) -> TabularData:
        logger.info("Detected XLSX input, using spreadsheet reader")
        raw_rows = read_xlsx_rows(path)[self.skip_lines:]
        if not raw_rows:
            logger.warning(
                "No data lines found in '%s' after skipping %d lines", path, self.skip_lines
            )
            return TabularData(source_name="XLSX")

        if self.has_header:
            header_offset = select_header_row(raw_rows, mapping)
            headers = [header.strip() for header in raw_rows[header_offset]]
            logger.info(
                "XLSX headers (row %d, %d columns): %r",
                header_offset + self.skip_lines + 1,
                len(headers),
                headers,
            )
            rows = [
                RowData(line_no=index + self.skip_lines + header_offset + 2, cells=list(cells))
                for index, cells in enumerate(raw_rows[header_offset + 1:])
            ]
        else:
            logger.debug("No header row in XLSX, generated positional headers")
            headers = build_positional_headers()
            rows = [
                RowData(line_no=index + self.skip_lines + 1, cells=list(cells))
                for index, cells in enumerate(raw_rows)
            ]

        return TabularData(source_name="XLSX", headers=headers, rows=rows)

    # -- mapping ---------------------------------------------------------

    def map_table_to_records(
        self, table: TabularData, mapping: Optional[FieldMapping] = None
    ) -> List[RawRecord]:
        """Turn table rows into records; in strict mode the first bad row raises."""
        if mapping is not None:
            self._validate_mapping(mapping, table.headers)

        expected = len(table.headers)
        records: List[RawRecord] = []
        mapping_errors = 0

        for row in table.rows:
            if len(row.cells) != expected:
                message = f"Field count mismatch (expected {expected}, got {len(row.cells)})"
                logger.warning("Line %d: %s", row.line_no, message)
                if self.strict_mode:
                    raise ParseError(row.line_no, message)

            fields = {
                header: normalize_cell_value(value)
                for header, value in zip(table.headers, row.cells)
            }
            try:
                records.append(self._map_record(fields, mapping))
            except ImporterError as exc:
                mapping_errors += 1
                logger.warning("Line %d: mapping error - %s", row.line_no, exc)
                if self.strict_mode:
                    raise ParseError(row.line_no, f"Mapping error: {exc}") from exc

        logger.info(
            "%s parsing complete: %d records parsed, %d errors",
            table.source_name,
            len(records),
            table.pre_parse_errors + mapping_errors,
        )
        return records

    @staticmethod
    def _validate_mapping(mapping: FieldMapping, headers: List[str]) -> None:
        for name, spec in mapping.mapped_specs():
            if spec is None:
                continue
            if spec.column in headers:
                logger.debug("Mapping '%s' -> '%s'", name, spec.column)
            else:
                logger.warning(
                    "Mapping field '%s' references column '%s' that is not in CSV headers",
                    name,
                    spec.column,
                )

    def _map_record(
        self, fields: Dict[str, str], mapping: Optional[FieldMapping]
    ) -> RawRecord:
        record = RawRecord()
        if mapping is None:
            record.extra.update({key: value for key, value in fields.items() if value})
            return record

        if mapping.date is not None:
            text = self._resolve_text(fields, mapping.date)
            record.date = _parse_date(text, mapping.date_formats) if text is not None else None
        for name in _DECIMAL_FIELDS:
            spec = getattr(mapping, name)
            if spec is not None:
                text = self._resolve_text(fields, spec)
                value = _parse_decimal(text, spec.transform) if text is not None else None
                setattr(record, name, value)
        for name in _TEXT_FIELDS:
            spec = getattr(mapping, name)
            if spec is not None:
                setattr(record, name, self._resolve_text(fields, spec))

        # Preferred form is extra_key -> column; column -> extra_key is accepted too.
        for left, right in mapping.extra_fields.items():
            value = _non_empty(fields.get(right))
            if value is not None:
                record.extra[left] = value
                continue
            value = _non_empty(fields.get(left))
            if value is not None:
                record.extra[right] = value
        return record

    @staticmethod
    def _resolve_text(fields: Dict[str, str], spec: FieldSpec) -> Optional[str]:
        value = _non_empty(fields.get(spec.column))
        if value is None:
            value = _non_empty(spec.default)
        if value is None or spec.regex_extract is None:
            return value

        try:
            pattern = re.compile(spec.regex_extract)
        except re.error as exc:
            raise ConfigError(
                f"Invalid regex_extract '{spec.regex_extract}' "
                f"for column '{spec.column}': {exc}"
            ) from exc

        match = pattern.search(value)
        if match is None:
            return None
        extracted = match.group(1) if pattern.groups >= 1 else None
        if extracted is None:
            extracted = match.group(0)
        return _non_empty(extracted)