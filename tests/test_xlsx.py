import zipfile

import pytest

from beanimport.errors import ConfigError
from beanimport.mapping import FieldMapping, FieldSpec
from beanimport.xlsx import header_match_score, read_xlsx_rows, select_header_row

_WORKBOOK = (
    '<workbook xmlns="http://schemas.openxmlformats.org/spreadsheetml/2006/main" '
    'xmlns:r="http://schemas.openxmlformats.org/officeDocument/2006/relationships">'
    '<sheets><sheet name="Sheet1" sheetId="1" r:id="rId1"/></sheets></workbook>'
)
_RELS = (
    '<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships">'
    '<Relationship Id="rId1" '
    'Type="http://schemas.openxmlformats.org/officeDocument/2006/relationships/worksheet" '
    'Target="worksheets/sheet1.xml"/></Relationships>'
)
_SHARED = (
    '<sst xmlns="http://schemas.openxmlformats.org/spreadsheetml/2006/main">'
    "<si><t>Statement</t></si><si><t>date</t></si><si><t>payee</t></si>"
    "<si><t>amount</t></si><si><r><t>Coffee</t></r><r><t> Shop</t></r></si></sst>"
)
_SHEET = (
    '<worksheet xmlns="http://schemas.openxmlformats.org/spreadsheetml/2006/main"><sheetData>'
    '<row r="1"><c r="A1" t="s"><v>0</v></c></row>'
    '<row r="2"><c r="A2" t="s"><v>1</v></c><c r="B2" t="s"><v>2</v></c>'
    '<c r="C2" t="s"><v>3</v></c></row>'
    '<row r="3"><c r="A3" t="inlineStr"><is><t>2024-01-15</t></is></c>'
    '<c r="B3" t="s"><v>4</v></c><c r="C3"><v>12.5</v></c></row>'
    '<row r="4"><c r="A4" t="str"><v>2024-01-16</v></c><c r="C4"><v>3</v></c></row>'
    '<row r="5"><c r="B5" t="b"><v>1</v></c></row>'
    "</sheetData></worksheet>"
)


def _write_workbook(path, sheet=_SHEET, workbook=_WORKBOOK):
    with zipfile.ZipFile(path, "w") as archive:
        archive.writestr("xl/workbook.xml", workbook)
        archive.writestr("xl/_rels/workbook.xml.rels", _RELS)
        archive.writestr("xl/sharedStrings.xml", _SHARED)
        archive.writestr("xl/worksheets/sheet1.xml", sheet)
    return path


@pytest.fixture
def mapping():
    return FieldMapping(
        date=FieldSpec("date"), amount=FieldSpec("amount"), payee=FieldSpec("payee")
    )


def test_xlsx_header_score_prefers_real_header_row(mapping):
    meta_score = header_match_score(mapping, ["meta title", ""])
    header_score = header_match_score(mapping, ["date", "payee", "amount"])
    assert header_score > meta_score


def test_header_score_counts_extra_fields_and_trims(mapping):
    mapping.extra_fields["productAccount"] = "product"
    assert header_match_score(mapping, [" date ", "product"]) == 2


def test_read_rows_from_first_sheet(tmp_path):
    rows = read_xlsx_rows(_write_workbook(tmp_path / "book.xlsx"))
    assert rows[0] == ["Statement", "", ""]
    assert rows[1] == ["date", "payee", "amount"]
    assert rows[2] == ["2024-01-15", "Coffee Shop", "12.5"]
    assert rows[3] == ["2024-01-16", "", "3"]
    assert rows[4] == ["", "true", ""]


def test_rows_are_rectangular(tmp_path):
    rows = read_xlsx_rows(_write_workbook(tmp_path / "book.xlsx"))
    assert len({len(row) for row in rows}) == 1


def test_range_starts_at_first_used_cell(tmp_path):
    sheet = (
        '<worksheet xmlns="http://schemas.openxmlformats.org/spreadsheetml/2006/main">'
        '<sheetData><row r="3"><c r="C3"><v>7</v></c><c r="D3" t="s"><v>1</v></c></row>'
        "</sheetData></worksheet>"
    )
    rows = read_xlsx_rows(_write_workbook(tmp_path / "book.xlsx", sheet=sheet))
    assert rows == [["7", "date"]]


def test_empty_sheet_gives_no_rows(tmp_path):
    sheet = (
        '<worksheet xmlns="http://schemas.openxmlformats.org/spreadsheetml/2006/main">'
        "<sheetData/></worksheet>"
    )
    assert read_xlsx_rows(_write_workbook(tmp_path / "book.xlsx", sheet=sheet)) == []


def test_select_header_row_finds_header(tmp_path, mapping):
    rows = read_xlsx_rows(_write_workbook(tmp_path / "book.xlsx"))
    assert select_header_row(rows, mapping) == 1


def test_select_header_row_without_mapping_is_first():
    assert select_header_row([["x"], ["date"]], None) == 0


def test_select_header_row_tie_goes_to_last(mapping):
    rows = [["nothing"], ["here"], ["either"]]
    assert select_header_row(rows, mapping) == 2


def test_missing_file_raises_config_error(tmp_path):
    with pytest.raises(ConfigError):
        read_xlsx_rows(tmp_path / "absent.xlsx")


def test_not_a_zip_raises_config_error(tmp_path):
    path = tmp_path / "bad.xlsx"
    path.write_text("date,amount\n")
    with pytest.raises(ConfigError):
        read_xlsx_rows(path)