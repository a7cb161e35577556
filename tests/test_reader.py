import datetime as dt
import zipfile
from decimal import Decimal

import pytest

from beanimport.config import CsvOptions
from beanimport.errors import ConfigError, ParseError
from beanimport.mapping import FieldMapping, FieldSpec
from beanimport.reader import CsvRecordReader, normalize_cell_value
from beanimport.tabular import RowData, TabularData


def _table(headers, *rows):
    return TabularData(
        source_name="CSV",
        headers=list(headers),
        rows=[RowData(line_no=index + 2, cells=list(cells)) for index, cells in enumerate(rows)],
    )


def _bad_regex_mapping():
    return FieldMapping(payee=FieldSpec(column="A", regex_extract="("))


def test_strict_mode_fails_on_field_count_mismatch():
    reader = CsvRecordReader(CsvOptions(), 0, True, True)
    with pytest.raises(ParseError) as info:
        reader.map_table_to_records(_table(["A", "B"], ["value"]), None)
    assert info.value.line == 2


def test_strict_mode_fails_on_mapping_error():
    reader = CsvRecordReader(CsvOptions(), 0, True, True)
    with pytest.raises(ParseError) as info:
        reader.map_table_to_records(_table(["A"], ["value"]), _bad_regex_mapping())
    assert info.value.message.startswith("Mapping error:")


def test_non_strict_mode_skips_mapping_error():
    reader = CsvRecordReader(CsvOptions(), 0, True, False)
    result = reader.map_table_to_records(_table(["A"], ["value"]), _bad_regex_mapping())
    assert result == []


@pytest.mark.parametrize(
    "raw, expected",
    [
        ('="0"', "0"),
        ('="0.00"', "0.00"),
        ('="240599141221"', "240599141221"),
        ('  ="abc"  ', "abc"),
        ("=SUM(A1:A3)", "=SUM(A1:A3)"),
        ('="say ""hi"""', 'say "hi"'),
    ],
)
def test_normalizes_excel_equals_quoted_literals(raw, expected):
    assert normalize_cell_value(raw) == expected


def test_maps_amount_and_extra_fields_after_excel_literal_normalization():
    reader = CsvRecordReader(CsvOptions(), 0, True, False)
    mapping = FieldMapping(amount=FieldSpec(column="amount"))
    mapping.extra_fields["productAccount"] = "product"
    records = reader.map_table_to_records(
        _table(["amount", "product"], ['="0.00"', '="240599141221"']), mapping
    )
    assert len(records) == 1
    assert records[0].amount == Decimal("0.00")
    assert str(records[0].amount) == "0.00"
    assert records[0].extra["productAccount"] == "240599141221"


def test_non_strict_mismatch_keeps_row():
    reader = CsvRecordReader(strict_mode=False)
    records = reader.map_table_to_records(_table(["A", "B"], ["value"]), None)
    assert [r.extra for r in records] == [{"A": "value"}]


def test_without_mapping_only_non_empty_values_become_extras():
    reader = CsvRecordReader()
    records = reader.map_table_to_records(_table(["A", "B"], ["x", "  "]), None)
    assert records[0].extra == {"A": "x"}


def test_legacy_reversed_extra_fields():
    reader = CsvRecordReader()
    mapping = FieldMapping(extra_fields={"product": "productAccount"})
    records = reader.map_table_to_records(_table(["product"], ["P1"]), mapping)
    assert records[0].extra == {"productAccount": "P1"}


def test_default_value_and_regex_extract():
    reader = CsvRecordReader()
    mapping = FieldMapping(
        currency=FieldSpec(column="cur", default="USD"),
        reference=FieldSpec(column="memo", regex_extract=r"order (\d+)"),
        status=FieldSpec(column="memo", regex_extract=r"nomatch"),
    )
    records = reader.map_table_to_records(
        _table(["cur", "memo"], ["", "paid order 42 today"]), mapping
    )
    assert records[0].currency == "USD"
    assert records[0].reference == "42"
    assert records[0].status is None


def test_date_formats_and_transforms():
    reader = CsvRecordReader()
    mapping = FieldMapping(
        date=FieldSpec(column="when"),
        amount=FieldSpec(column="amt", transform="abs"),
        fee=FieldSpec(column="fee", transform="negate"),
    )
    records = reader.map_table_to_records(
        _table(["when", "amt", "fee"], ["2024/01/15 10:30", "-12.50", "1.5"]), mapping
    )
    assert records[0].date == dt.date(2024, 1, 15)
    assert records[0].amount == Decimal("12.50")
    assert records[0].fee == Decimal("-1.5")


def test_unparseable_date_and_amount_become_none():
    reader = CsvRecordReader()
    mapping = FieldMapping(date=FieldSpec(column="d"), amount=FieldSpec(column="a"))
    records = reader.map_table_to_records(_table(["d", "a"], ["someday", "lots"]), mapping)
    assert records[0].date is None
    assert records[0].amount is None


def test_read_csv_file_with_mapping(tmp_path):
    path = tmp_path / "bill.csv"
    path.write_text("date,payee,amount\n2024-02-03, Cafe ,\"1,234.50\"\n", encoding="utf-8")
    mapping = FieldMapping(
        date=FieldSpec(column="date"),
        payee=FieldSpec(column="payee"),
        amount=FieldSpec(column="amount"),
    )
    records = CsvRecordReader().read_file(path, mapping)
    assert len(records) == 1
    assert records[0].date == dt.date(2024, 2, 3)
    assert records[0].payee == "Cafe"
    assert records[0].amount == Decimal("1234.50")


def test_read_csv_skips_lines_and_reports_line_numbers(tmp_path):
    path = tmp_path / "bill.csv"
    path.write_text("title\na,b\n1,2\n3\n", encoding="utf-8")
    reader = CsvRecordReader(CsvOptions(), skip_lines=1)
    with pytest.raises(ParseError) as info:
        reader.read_file(path)
    assert info.value.line == 4


def test_read_csv_flexible_keeps_short_rows(tmp_path):
    path = tmp_path / "bill.csv"
    path.write_text("title\na,b\n1,2\n3\n", encoding="utf-8")
    reader = CsvRecordReader(CsvOptions(flexible=True), skip_lines=1)
    records = reader.read_file(path)
    assert [r.extra for r in records] == [{"a": "1", "b": "2"}, {"a": "3"}]


def test_read_csv_without_header_uses_positional_names(tmp_path):
    path = tmp_path / "bill.csv"
    path.write_text("x;y\n", encoding="utf-8")
    reader = CsvRecordReader(CsvOptions(delimiter=";"), has_header=False)
    records = reader.read_file(path)
    assert records[0].extra == {"col_0": "x", "col_1": "y"}


def test_read_csv_comment_and_encoding(tmp_path):
    path = tmp_path / "bill.csv"
    path.write_bytes("名称,金额\n# note\n咖啡,5\n".encode("gbk"))
    reader = CsvRecordReader(CsvOptions(encoding="GBK", comment="#"))
    records = reader.read_file(path)
    assert [r.extra for r in records] == [{"名称": "咖啡", "金额": "5"}]


def test_unknown_encoding_raises(tmp_path):
    path = tmp_path / "bill.csv"
    path.write_text("a\n1\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        CsvRecordReader(CsvOptions(encoding="no-such-codec")).read_file(path)


def test_empty_csv_after_skip_gives_no_records(tmp_path):
    path = tmp_path / "bill.csv"
    path.write_text("only line\n", encoding="utf-8")
    assert CsvRecordReader(skip_lines=1).read_file(path) == []


_MAIN = "http://schemas.openxmlformats.org/spreadsheetml/2006/main"
_DOC_REL = "http://schemas.openxmlformats.org/officeDocument/2006/relationships"
_PKG_REL = "http://schemas.openxmlformats.org/package/2006/relationships"


def _inline(ref, text):
    return f'<c r="{ref}" t="inlineStr"><is><t>{text}</t></is></c>'


def _write_xlsx(path):
    sheet = (
        f'<worksheet xmlns="{_MAIN}"><sheetData>'
        f'<row r="1">{_inline("A1", "Statement")}</row>'
        f'<row r="2">{_inline("A2", "date")}{_inline("B2", "payee")}{_inline("C2", "amount")}</row>'
        f'<row r="3">{_inline("A3", "2024-05-06")}{_inline("B3", "Shop")}'
        '<c r="C3"><v>12.5</v></c></row>'
        "</sheetData></worksheet>"
    )
    workbook = (
        f'<workbook xmlns="{_MAIN}" xmlns:r="{_DOC_REL}"><sheets>'
        '<sheet name="Sheet1" sheetId="1" r:id="rId1"/></sheets></workbook>'
    )
    rels = (
        f'<Relationships xmlns="{_PKG_REL}">'
        f'<Relationship Id="rId1" Type="{_DOC_REL}/worksheet" Target="worksheets/sheet1.xml"/>'
        "</Relationships>"
    )
    with zipfile.ZipFile(path, "w") as archive:
        archive.writestr("xl/workbook.xml", workbook)
        archive.writestr("xl/_rels/workbook.xml.rels", rels)
        archive.writestr("xl/worksheets/sheet1.xml", sheet)


def test_read_xlsx_detects_header_row(tmp_path):
    path = tmp_path / "bill.xlsx"
    _write_xlsx(path)
    mapping = FieldMapping(
        date=FieldSpec(column="date"),
        payee=FieldSpec(column="payee"),
        amount=FieldSpec(column="amount"),
    )
    records = CsvRecordReader().read_file(path, mapping)
    assert len(records) == 1
    assert records[0].date == dt.date(2024, 5, 6)
    assert records[0].payee == "Shop"
    assert records[0].amount == Decimal("12.5")


def test_read_xlsx_strict_error_carries_sheet_line(tmp_path):
    path = tmp_path / "bill.xlsx"
    _write_xlsx(path)
    mapping = FieldMapping(payee=FieldSpec(column="payee", regex_extract="("))
    reader = CsvRecordReader(strict_mode=True)
    with pytest.raises(ParseError) as info:
        reader.read_file(path, mapping)
    assert info.value.line == 3