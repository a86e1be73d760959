from datetime import date, datetime

import pytest

from taskplanner.nextdate import RuleError, format_date, next_date, parse_date

NOW = date(2024, 1, 26)

CASES = [
    ("20240126", "", ""),
    ("20240126", "k 34", ""),
    ("20240126", "ooops", ""),
    ("15000156", "y", ""),
    ("ooops", "y", ""),
    ("16890220", "y", "20240220"),
    ("20250701", "y", "20260701"),
    ("20240101", "y", "20250101"),
    ("20231231", "y", "20241231"),
    ("20240229", "y", "20250301"),
    ("20240301", "y", "20250301"),
    ("20240113", "d", ""),
    ("20240113", "d 7", "20240127"),
    ("20240120", "d 20", "20240209"),
    ("20240202", "d 30", "20240303"),
    ("20240320", "d 401", ""),
    ("20231225", "d 12", "20240130"),
    ("20240228", "d 1", "20240229"),
    ("20231106", "m 13", "20240213"),
    ("20240120", "m 40,11,19", ""),
    ("20240116", "m 16,5", "20240205"),
    ("20240126", "m 25,26,7", "20240207"),
    ("20240409", "m 31", "20240531"),
    ("20240329", "m 10,17 12,8,1", "20240810"),
    ("20230311", "m 07,19 05,6", "20240507"),
    ("20230311", "m 1 1,2", "20240201"),
    ("20240127", "m -1", "20240131"),
    ("20240222", "m -2", "20240228"),
    ("20240222", "m -2,-3", ""),
    ("20240326", "m -1,-2", "20240330"),
    ("20240201", "m -1,18", "20240218"),
    ("20240125", "w 1,2,3", "20240129"),
    ("20240126", "w 7", "20240128"),
    ("20230126", "w 4,5", "20240201"),
    ("20230226", "w 8,4,5", ""),
]


@pytest.mark.parametrize(
    ("start", "repeat", "want"), [c for c in CASES if c[2]]
)
def test_next_date_valid(start, repeat, want):
    assert next_date(NOW, start, repeat) == want


@pytest.mark.parametrize(
    ("start", "repeat"), [c[:2] for c in CASES if not c[2]]
)
def test_next_date_errors(start, repeat):
    with pytest.raises(RuleError):
        next_date(NOW, start, repeat)


def test_next_date_accepts_datetime():
    assert next_date(datetime(2024, 1, 26, 15, 30), "20240113", "d 7") == "20240127"


def test_rule_without_matching_date_raises():
    with pytest.raises(RuleError):
        next_date(NOW, "20240101", "m 31 2")


def test_rule_error_is_value_error():
    with pytest.raises(ValueError):
        next_date(NOW, "20240101", "x")


def test_parse_format_round_trip():
    assert format_date(parse_date("20240229")) == "20240229"
    assert parse_date("20231231") == date(2023, 12, 31)


@pytest.mark.parametrize("bad", ["20240192", "28.01.2024", "2024011", "202401011", ""])
def test_parse_date_rejects(bad):
    with pytest.raises(ValueError):
        parse_date(bad)


def test_format_date_pads_year():
    assert format_date(date(999, 3, 4)) == "09990304"