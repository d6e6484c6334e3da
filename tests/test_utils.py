from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from commit_alert.utils import dedupe, format_w3c, is_valid_repo_name, parse_iso_datetime


def test_parse_iso_datetime_accepts_z_suffix_and_offsets():
    assert parse_iso_datetime("2016-08-01T00:00:00Z") == datetime(2016, 8, 1, tzinfo=timezone.utc)
    jst = parse_iso_datetime("2016-08-01T09:00:00+09:00")
    assert jst == datetime(2016, 8, 1, tzinfo=timezone.utc)


def test_parse_iso_datetime_assumes_utc_without_offset():
    assert parse_iso_datetime("2016-08-01T00:00:00").tzinfo is not None


def test_parse_iso_datetime_rejects_garbage():
    with pytest.raises(ValueError):
        parse_iso_datetime("yesterday")


def test_format_w3c_normalizes_to_utc_seconds():
    dt = datetime(2016, 8, 1, 9, 0, 0, 123456, tzinfo=timezone(timedelta(hours=9)))
    assert format_w3c(dt) == "2016-08-01T00:00:00+00:00"


@pytest.mark.parametrize(
    "value,expected",
    [
        ("owner/name", True),
        ("badname", False),
        ("a/b/c", False),
        ("/name", False),
        ("owner/", False),
        (" owner/name", False),
        ("owner/ name", False),
        ("owner/name\n", False),
        ("", False),
    ],
)
def test_is_valid_repo_name(value, expected):
    assert is_valid_repo_name(value) is expected


def test_dedupe_keeps_first_occurrence_order():
    assert dedupe(["b/b", "a/a", "b/b", "c/c", "a/a"]) == ["b/b", "a/a", "c/c"]
