from __future__ import annotations

import pytest

from adsync.errors import ConfigurationError, RowValidationError
from adsync.rows import SheetRow, get_content_rows, normalise_header, validate_headers
from fakes import ERROR_COLUMN, FakeSheet, header_row, make_config, make_row


def _row(config, row_index: int = 4, **values) -> tuple[FakeSheet, SheetRow]:
    sheet = FakeSheet({row_index: make_row(config, **values)})
    return sheet, SheetRow(sheet, row_index, sheet.read_row(row_index), config)


def test_row_requires_error_column() -> None:
    config = make_config(columns=["customer_id", "headline"])
    with pytest.raises(ConfigurationError):
        SheetRow(FakeSheet(), 4, ["1", "x"], config)


def test_unknown_column_raises_configuration_error() -> None:
    _, row = _row(make_config(), customer_id=1)
    with pytest.raises(ConfigurationError, match='Column "missing" does not exist.'):
        row.get("missing")


def test_get_number_parses_text_and_rejects_garbage() -> None:
    _, row = _row(make_config(), customer_id="123", campaign_id="abc", ad_group_id=7.5)
    assert row.get_number("customer_id") == 123
    assert row.get_number("ad_group_id") == 7.5
    with pytest.raises(RowValidationError):
        row.get_number("campaign_id")


def test_get_string_drops_trailing_zero_of_integral_floats() -> None:
    _, row = _row(make_config(), sta_id=123.0)
    assert row.get_string("sta_id") == "123"


def test_get_array_accepts_json_lists_and_bare_strings() -> None:
    _, row = _row(
        make_config(),
        final_url='["https://example.com"]',
        mobile_final_url="https://m.example.com",
        labels="",
    )
    assert row.get_array("final_url") == ["https://example.com"]
    assert row.get_array("mobile_final_url") == ["https://m.example.com"]
    assert row.get_array("labels") == []


def test_get_array_rejects_non_list_json() -> None:
    _, row = _row(make_config(), labels='{"a": 1}')
    with pytest.raises(RowValidationError, match="Incorrect array value stored in `labels` column."):
        row.get_array("labels")


def test_set_writes_through_to_store() -> None:
    config = make_config()
    sheet, row = _row(config, customer_id=1)
    row.set("eta_id", 42)

    assert row.get("eta_id") == 42
    assert sheet.cell(4, config.column_index("eta_id")) == 42


def test_mark_as_error_appends_messages_and_paints_row() -> None:
    config = make_config()
    sheet, row = _row(config, customer_id=1)

    row.mark_as_error("first")
    row.mark_as_error(["second", "third"])

    error_column = config.column_index(ERROR_COLUMN)
    assert sheet.cell(4, error_column) == "- first\n- second\n- third\n"
    assert sheet.background(4, 1) == config.error_color
    assert row.has_errors()


def test_mark_as_error_requires_a_message() -> None:
    _, row = _row(make_config(), customer_id=1)
    with pytest.raises(ValueError):
        row.mark_as_error("  ")
    with pytest.raises(ValueError):
        row.mark_as_error([])


def test_resolve_clears_previous_errors() -> None:
    config = make_config()
    sheet = FakeSheet({4: make_row(config, customer_id=1, error_message="- old\n")})
    sheet.backgrounds[(4, 1)] = config.error_color

    row = SheetRow(sheet, 4, sheet.read_row(4), config, resolve=True)

    assert sheet.cell(4, config.column_index(ERROR_COLUMN)) == ""
    assert sheet.background(4, 1) is None
    assert not row.has_errors()


def test_unsupported_status_marks_row() -> None:
    config = make_config()
    sheet = FakeSheet({4: make_row(config, customer_id=1, eta_status="Removed")})

    row = SheetRow(sheet, 4, sheet.read_row(4), config)

    assert row.has_errors()
    assert "Unsupported ETA status with value of 'Removed'." in sheet.cell(
        4, config.column_index(ERROR_COLUMN)
    )


def test_get_content_rows_skips_rows_without_check_value() -> None:
    config = make_config()
    sheet = FakeSheet(
        {
            3: header_row(config),
            4: make_row(config, customer_id=1),
            5: make_row(config, customer_name="no id"),
            6: make_row(config, customer_id=2, sta_status="bogus"),
        }
    )

    rows = get_content_rows(sheet, config)
    assert [row.row_index for row in rows] == [4, 6]

    valid = get_content_rows(sheet, config, valid_only=True, validate=True)
    assert [row.row_index for row in valid] == [4]


def test_get_content_rows_on_empty_sheet() -> None:
    config = make_config()
    assert get_content_rows(FakeSheet({3: header_row(config)}), config) == []


def test_get_content_rows_requires_check_column() -> None:
    config = make_config(non_empty_column="nope")
    with pytest.raises(ConfigurationError):
        get_content_rows(FakeSheet(), config)


def test_normalise_header() -> None:
    assert normalise_header("Ad Group ID") == "adgroupid"
    assert normalise_header("ad_group_id") == "adgroupid"
    assert normalise_header(None) == ""


def test_validate_headers_reports_mismatched_positions() -> None:
    config = make_config()
    header = header_row(config)
    sheet = FakeSheet({3: header})
    assert validate_headers(sheet, config) == {}

    header[1] = "Customer"
    sheet.put_row(3, header)
    assert validate_headers(sheet, config) == {"customer_name": "Customer"}
