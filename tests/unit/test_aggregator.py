"""Unit tests for uptime aggregation (timelines, summaries, formatting)."""

from datetime import timedelta

import pytest

from app.services.uptime.aggregator import (
    format_duration,
    format_period,
    get_all_summaries,
    get_summary,
    get_timeline,
)
from tests.mocks.uptime_factories import T0, make_record


def _load(store, service, *records):
    for record in records:
        store.insert(record)
    store.sync_current_status(service)


class TestTimeline:
    def test_none_without_records(self, store):
        assert get_timeline(store, "http", 24, T0) is None

    def test_none_when_window_empty(self, store):
        _load(store, "http", make_record("http", "up", T0 - timedelta(hours=5)))
        assert get_timeline(store, "http", 1, T0) is None

    def test_open_record_inferred_up_to_now(self, store):
        _load(store, "http", make_record("http", "up", T0))
        now = T0 + timedelta(milliseconds=600_000)

        timeline = get_timeline(store, "http", 1, now)

        assert timeline.total_uptime == 600_000
        assert timeline.total_downtime == 0
        assert timeline.uptime_percentage == 100.0

    def test_live_interval_grows_with_now(self, store):
        _load(store, "http", make_record("http", "up", T0))
        first = get_timeline(store, "http", 1, T0 + timedelta(minutes=1))
        second = get_timeline(store, "http", 1, T0 + timedelta(minutes=2))
        assert second.total_uptime > first.total_uptime

    def test_gap_inferred_from_next_record(self, store):
        _load(
            store,
            "http",
            make_record("http", "up", T0),
            make_record("http", "down", T0 + timedelta(minutes=30)),
        )
        timeline = get_timeline(store, "http", 24, T0 + timedelta(minutes=40))

        assert timeline.total_uptime == 30 * 60_000
        assert timeline.total_downtime == 10 * 60_000
        assert timeline.uptime_percentage == pytest.approx(75.0)

    def test_explicit_duration_wins(self, store):
        _load(
            store,
            "http",
            make_record("http", "up", T0, duration=1_000),
            make_record("http", "down", T0 + timedelta(minutes=30), duration=2_000),
        )
        timeline = get_timeline(store, "http", 24, T0 + timedelta(hours=1))
        assert timeline.total_uptime == 1_000
        assert timeline.total_downtime == 2_000

    def test_degraded_counts_as_downtime(self, store):
        _load(store, "http", make_record("http", "degraded", T0, duration=5_000))
        timeline = get_timeline(store, "http", 24, T0 + timedelta(minutes=1))
        assert timeline.total_downtime == 5_000
        assert timeline.uptime_percentage == 0

    def test_negative_and_nonfinite_durations_contribute_zero(self, store):
        _load(
            store,
            "http",
            make_record("http", "up", T0, duration=-500),
            make_record("http", "down", T0 + timedelta(minutes=1), duration=float("nan")),
            make_record("http", "up", T0 + timedelta(minutes=2), duration=float("inf")),
        )
        timeline = get_timeline(store, "http", 24, T0 + timedelta(minutes=3))
        assert timeline.total_uptime == 0
        assert timeline.total_downtime == 0
        assert timeline.uptime_percentage == 0

    def test_open_record_in_future_contributes_zero(self, store):
        _load(store, "http", make_record("http", "up", T0 + timedelta(minutes=5)))
        timeline = get_timeline(store, "http", 24, T0)
        assert timeline.total_uptime == 0

    def test_finalized_durations_sum_to_span(self, store):
        times = [T0 + timedelta(minutes=m) for m in (0, 7, 19, 31, 60)]
        statuses = ["up", "down", "up", "degraded", "up"]
        records = []
        for i, (at, status) in enumerate(zip(times, statuses)):
            duration = (times[i + 1] - at).total_seconds() * 1000 if i + 1 < len(times) else None
            records.append(make_record("http", status, at, duration=duration))
        _load(store, "http", *records)

        timeline = get_timeline(store, "http", 24, times[-1])

        span = (timeline.end_time - timeline.start_time).total_seconds() * 1000
        assert timeline.total_uptime + timeline.total_downtime == pytest.approx(span)

    def test_fields(self, store):
        _load(
            store,
            "http",
            make_record("http", "up", T0),
            make_record("http", "down", T0 + timedelta(minutes=10)),
        )
        timeline = get_timeline(store, "http", 24, T0 + timedelta(minutes=20))

        assert timeline.service_name == "http"
        assert timeline.current_status == "down"
        assert timeline.last_status_change == T0 + timedelta(minutes=10)
        assert timeline.start_time == T0
        assert timeline.end_time == T0 + timedelta(minutes=10)
        assert len(timeline.records) == 2


class TestWindowSelection:
    def test_window_filters_old_records(self, store):
        _load(
            store,
            "http",
            make_record("http", "down", T0 - timedelta(hours=3)),
            make_record("http", "up", T0 - timedelta(minutes=30)),
        )
        timeline = get_timeline(store, "http", 1, T0)
        assert [r.status for r in timeline.records] == ["up"]

    @pytest.mark.parametrize("hours", [-1, 8761])
    def test_all_time_keeps_earliest_record(self, store, hours):
        ancient = make_record("http", "down", T0 - timedelta(days=400))
        _load(store, "http", ancient, make_record("http", "up", T0 - timedelta(minutes=5)))

        timeline = get_timeline(store, "http", hours, T0)

        assert timeline.records[0] is ancient
        assert timeline.start_time == ancient.timestamp


class TestSummary:
    def test_none_without_data(self, store):
        assert get_summary(store, "http", 24, T0) is None

    def test_formats_totals(self, store):
        _load(store, "http", make_record("http", "up", T0))
        summary = get_summary(store, "http", 24, T0 + timedelta(hours=2, minutes=15))

        assert summary.total_uptime == "2h 15m"
        assert summary.total_downtime == "0s"
        assert summary.is_currently_up is True
        assert summary.uptime_percentage == 100.0

    def test_all_summaries_omit_services_without_data(self, store):
        _load(store, "http", make_record("http", "up", T0))
        _load(store, "database", make_record("database", "down", T0))

        summaries = get_all_summaries(store, 24, T0 + timedelta(minutes=1))

        assert [s.service_name for s in summaries] == ["http", "database"]
        assert summaries[1].is_currently_up is False


class TestFormatting:
    @pytest.mark.parametrize(
        "ms,expected",
        [
            (0, "0s"),
            (45_000, "45s"),
            (125_000, "2m 5s"),
            (3_600_000, "1h 0m"),
            (90_061_000, "1d 1h 1m"),
            (-10, "0s"),
        ],
    )
    def test_format_duration(self, ms, expected):
        assert format_duration(ms) == expected

    @pytest.mark.parametrize(
        "hours,expected",
        [
            (-1, "All time"),
            (0.5, "30 minutes"),
            (1, "1 hour"),
            (6, "6 hours"),
            (24, "1 day"),
            (72, "3 days"),
            (168, "1 week"),
            (720, "1 month"),
            (8760, "1 year"),
        ],
    )
    def test_format_period(self, hours, expected):
        assert format_period(hours) == expected
