"""Import file parsing for CSV, Excel and JSON."""

import json

import pytest

from factories import csv_bytes, xlsx_bytes
from jobimport.parsers import (
    ImportType,
    ParseError,
    UnsupportedFormat,
    coerce_import_type,
    detect_import_type,
    parse_import_file,
)


def test_csv_rows_keep_text_values():
    content = csv_bytes([
        {"title": "Data Engineer", "experienceMin": "03", "salary": "10-12 LPA"},
        {"title": "QA Lead", "experienceMin": "", "salary": ""},
    ])

    rows = parse_import_file(content, "csv")

    assert len(rows) == 2
    assert rows[0]["title"] == "Data Engineer"
    assert rows[0]["experienceMin"] == "03"
    assert rows[1]["experienceMin"] == ""


def test_csv_with_bom_and_padded_headers():
    content = "\ufefftitle , location\nAnalyst,Pune\n".encode("utf-8")

    rows = parse_import_file(content, ImportType.CSV)

    assert rows == [{"title": "Analyst", "location": "Pune"}]


def test_empty_csv_has_no_rows():
    assert parse_import_file(b"", "csv") == []
    assert parse_import_file(b"title,location\n", "csv") == []


def test_xlsx_rows_skip_empty_cells():
    content = xlsx_bytes([
        {"title": "Designer", "experienceMin": 2, "city": "Chennai"},
        {"title": "Writer", "experienceMin": None, "city": None},
    ])

    rows = parse_import_file(content, "xlsx")

    assert rows[0] == {"title": "Designer", "experienceMin": 2, "city": "Chennai"}
    assert rows[1] == {"title": "Writer"}


def test_excel_alias_reads_workbook():
    content = xlsx_bytes([{"title": "Recruiter"}])

    assert parse_import_file(content, "excel") == [{"title": "Recruiter"}]


def test_corrupt_workbook_raises_parse_error():
    with pytest.raises(ParseError):
        parse_import_file(b"definitely not a workbook", "xlsx")


def test_json_array_and_single_object():
    rows = parse_import_file(json.dumps([{"title": "A"}, {"title": "B"}]).encode(), "json")
    single = parse_import_file(json.dumps({"title": "C"}).encode(), "json")

    assert [r["title"] for r in rows] == ["A", "B"]
    assert single == [{"title": "C"}]


def test_json_with_non_object_item():
    with pytest.raises(ParseError, match="item 2"):
        parse_import_file(json.dumps([{"title": "A"}, "oops"]).encode(), "json")


def test_malformed_json():
    with pytest.raises(ParseError):
        parse_import_file(b"[{", "json")


def test_unknown_import_type():
    with pytest.raises(UnsupportedFormat):
        parse_import_file(b"a,b\n1,2\n", "pdf")


@pytest.mark.parametrize(
    "filename, expected",
    [("jobs.csv", ImportType.CSV), ("Jobs.XLSX", ImportType.XLSX), ("old.xls", ImportType.XLS), ("x.json", ImportType.JSON)],
)
def test_detect_import_type(filename, expected):
    assert detect_import_type(filename) == expected


def test_detect_import_type_rejects_other_extensions():
    with pytest.raises(UnsupportedFormat):
        detect_import_type("resume.pdf")


def test_coerce_import_type():
    assert coerce_import_type(" CSV ") == ImportType.CSV
    assert coerce_import_type("excel") == ImportType.XLSX
    assert coerce_import_type(ImportType.JSON) == ImportType.JSON
