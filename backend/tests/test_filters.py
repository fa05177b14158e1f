"""
Test analytics filter parsing
"""
from datetime import datetime, timezone

from cmms_analytics.services.filters import (
    AnalyticsFilters,
    build_filters,
    isoformat_utc,
    parse_date,
    parse_id,
    parse_id_list,
    parse_list,
)


class TestParseDate:
    def test_trailing_z_is_utc(self):
        assert parse_date("2024-03-01T08:00:00Z") == datetime(2024, 3, 1, 8, tzinfo=timezone.utc)

    def test_naive_date_is_utc(self):
        assert parse_date("2024-03-01") == datetime(2024, 3, 1, tzinfo=timezone.utc)

    def test_offset_converted_to_utc(self):
        assert parse_date("2024-03-01T10:00:00+02:00") == datetime(2024, 3, 1, 8, tzinfo=timezone.utc)

    def test_malformed_is_ignored(self):
        assert parse_date("not-a-date") is None
        assert parse_date("") is None
        assert parse_date(None) is None


class TestParseLists:
    def test_comma_separated_and_repeated(self):
        assert parse_list(["1,2", "3", " ", None]) == ["1", "2", "3"]
        assert parse_list("a, b") == ["a", "b"]

    def test_id_list_drops_non_numeric_and_duplicates(self):
        assert parse_id_list(["3,x,1", "3"]) == (3, 1)

    def test_ids_outside_the_column_range_are_dropped(self):
        assert parse_id_list(["1", "99999999999999999999", "²", "١٢"]) == (1,)
        assert parse_id(2 ** 63 - 1) == 2 ** 63 - 1
        assert parse_id(-(2 ** 63)) == -(2 ** 63)
        assert parse_id(2 ** 63) is None
        assert parse_id(True) is None
        assert parse_id(" 42 ") == 42


class TestAnalyticsFilters:
    def test_build_filters(self):
        filters = build_filters("2024-03-01", "garbage", "1,2", ["5"])
        assert filters.start_date == datetime(2024, 3, 1, tzinfo=timezone.utc)
        assert filters.end_date is None
        assert filters.asset_ids == (1, 2)
        assert filters.site_ids == (5,)

    def test_contains_is_inclusive(self):
        start = datetime(2024, 3, 1, tzinfo=timezone.utc)
        end = datetime(2024, 3, 2, tzinfo=timezone.utc)
        filters = AnalyticsFilters(start_date=start, end_date=end)
        assert filters.contains(start)
        assert filters.contains(end)
        assert not filters.contains(None)
        assert AnalyticsFilters().contains(None)

    def test_range_payload_uses_millisecond_z_format(self):
        filters = AnalyticsFilters(start_date=datetime(2024, 3, 1, 8, 0, 0, 123456, tzinfo=timezone.utc))
        assert filters.range_payload() == {"start": "2024-03-01T08:00:00.123Z"}
        assert isoformat_utc(datetime(2024, 3, 1)) == "2024-03-01T00:00:00.000Z"
