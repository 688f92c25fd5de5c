from datetime import datetime, timezone

import pytest

from src.tour_console.services.jst_time import (
    MalformedTimeError,
    format_date_jst,
    format_datetime_jst,
    format_jst_with_label,
    from_date_value,
    from_datetime_local_value,
    jst_date_to_utc,
    parse_utc,
    to_date_value,
    to_datetime_local_value,
    to_utc_string,
    utc_to_jst_string,
)


def test_utc_to_jst_string_shifts_nine_hours():
    assert utc_to_jst_string("2025-09-29T10:30:00Z") == "2025-09-29T19:30:00"


def test_utc_to_jst_string_crosses_midnight():
    assert utc_to_jst_string("2025-04-02T20:00:00Z") == "2025-04-03T05:00:00"


def test_utc_to_jst_string_accepts_explicit_offsets():
    assert utc_to_jst_string("2025-04-03T09:00:00+09:00") == "2025-04-03T09:00:00"


def test_jst_date_to_utc_from_naive_datetime():
    assert jst_date_to_utc(datetime(2025, 4, 3, 9, 0)) == "2025-04-03T00:00:00Z"


def test_jst_date_to_utc_ignores_attached_timezone():
    # The calendar hands over values tagged with some zone; the wall clock is what counts
    tagged = datetime(2025, 4, 3, 9, 0, tzinfo=timezone.utc)
    assert jst_date_to_utc(tagged) == "2025-04-03T00:00:00Z"


def test_jst_date_to_utc_from_string():
    assert jst_date_to_utc("2025-04-03T10:00:00") == "2025-04-03T01:00:00Z"


@pytest.mark.parametrize("instant", [
    "2025-04-03T00:00:00Z",
    "2025-12-31T15:00:00Z",
    "2024-02-29T23:59:00Z",
    "2025-06-15T06:45:00Z",
])
def test_display_round_trip_preserves_instant(instant):
    assert jst_date_to_utc(utc_to_jst_string(instant)) == instant


def test_datetime_local_pair():
    assert to_datetime_local_value("2025-04-03T00:00:00Z") == "2025-04-03T09:00"
    assert from_datetime_local_value("2025-04-03T09:00") == "2025-04-03T00:00:00Z"


def test_datetime_local_accepts_seconds():
    assert from_datetime_local_value("2025-04-03T09:00:30") == "2025-04-03T00:00:30Z"


def test_date_pair_uses_jst_midnight():
    assert to_date_value("2025-03-31T15:00:00Z") == "2025-04-01"
    assert from_date_value("2025-04-01") == "2025-03-31T15:00:00Z"


def test_date_pair_drops_time_of_day():
    assert from_date_value(to_date_value("2025-04-01T05:30:00Z")) == "2025-03-31T15:00:00Z"


def test_blank_form_values_stay_blank():
    assert from_datetime_local_value("") == ""
    assert from_date_value("") == ""


@pytest.mark.parametrize("value", ["", "not-a-date", "2025-13-01T00:00:00Z"])
def test_malformed_utc_raises(value):
    with pytest.raises(MalformedTimeError):
        utc_to_jst_string(value)


def test_malformed_form_values_raise():
    with pytest.raises(MalformedTimeError):
        from_datetime_local_value("2025-04-03 9am")
    with pytest.raises(MalformedTimeError):
        from_date_value("04/01/2025")
    with pytest.raises(MalformedTimeError):
        jst_date_to_utc("tomorrow")


def test_malformed_time_error_is_value_error():
    assert issubclass(MalformedTimeError, ValueError)


def test_to_utc_string_keeps_milliseconds_only_when_present():
    assert to_utc_string(parse_utc("2025-04-03T00:00:00.250Z")) == "2025-04-03T00:00:00.250Z"
    assert to_utc_string(parse_utc("2025-04-03T00:00:00.000Z")) == "2025-04-03T00:00:00Z"


def test_display_formats():
    assert format_date_jst("2025-03-31T15:00:00Z") == "Apr 1, 2025"
    assert format_datetime_jst("2025-03-31T15:30:00Z") == "Apr 1, 2025 00:30"
    assert format_jst_with_label("2025-03-31T15:00:00Z") == "2025-04-01 00:00 JST"
