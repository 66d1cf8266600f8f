from datetime import datetime, timedelta, timezone

import pytest

from newsreader.core.dates import (
    EPOCH,
    is_today,
    is_valid_date,
    iso_format,
    parse_date,
    sort_key,
    to_iso,
    utc_now,
    utc_now_iso,
)

EXPECTED = datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "value",
    [
        "2023-11-14T22:13:20.000Z",
        "2023-11-14T22:13:20+00:00",
        "2023-11-14T23:13:20+01:00",
        "Tue, 14 Nov 2023 22:13:20 +0000",
        1700000000000,
        "1700000000000",
        datetime(2023, 11, 14, 22, 13, 20),
    ],
)
def test_parse_date_formats(value):
    assert parse_date(value) == EXPECTED


def test_parse_date_fallbacks():
    assert parse_date("not a date", fallback="null") is None
    assert parse_date(None, fallback="null") is None
    with pytest.raises(ValueError):
        parse_date("not a date", fallback="raise")

    fallback = parse_date("not a date")
    assert abs(fallback - utc_now()) < timedelta(seconds=5)


def test_iso_format_uses_milliseconds():
    value = datetime(2023, 1, 2, 3, 4, 5, 678000, tzinfo=timezone.utc)
    assert iso_format(value) == "2023-01-02T03:04:05.678Z"
    assert to_iso("2023-01-02T03:04:05.678Z") == "2023-01-02T03:04:05.678Z"


def test_is_valid_date():
    assert is_valid_date("2023-11-14")
    assert not is_valid_date("yesterday-ish")
    assert not is_valid_date("")


def test_sort_key_puts_invalid_dates_last():
    assert sort_key("garbage") == EPOCH
    assert sort_key("2023-11-14T22:13:20.000Z") > sort_key("garbage")


def test_is_today():
    assert is_today(utc_now_iso())
    assert not is_today("2000-01-01T00:00:00.000Z")
    assert not is_today("garbage")
