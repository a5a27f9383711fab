from datetime import date, datetime, timezone

import pytest

from sellerops.services.marketplace_service import FetchPage, collect_window
from sellerops.services.window_partitioner import (
    KST,
    DateWindow,
    Granularity,
    WindowPolicy,
    filter_to_window,
    parse_date,
    partition,
    request_bounds,
    rolling_window,
    to_kst,
)


def test_partition_day_status_orders_statuses_within_each_day():
    windows = partition(date(2026, 1, 30), date(2026, 1, 31), Granularity.DAY_STATUS, statuses=["ACCEPT", "INSTRUCT"])

    assert [(w.start.day, w.status) for w in windows] == [
        (30, "ACCEPT"),
        (30, "INSTRUCT"),
        (31, "ACCEPT"),
        (31, "INSTRUCT"),
    ]
    assert all(w.start == w.end for w in windows)


def test_partition_caps_span_and_covers_range_without_gaps():
    windows = partition(date(2026, 1, 1), date(2026, 3, 5), max_span_days=30)

    assert [(w.start, w.end) for w in windows] == [
        (date(2026, 1, 1), date(2026, 1, 30)),
        (date(2026, 1, 31), date(2026, 3, 1)),
        (date(2026, 3, 2), date(2026, 3, 5)),
    ]


def test_partition_rejects_inverted_range():
    with pytest.raises(ValueError):
        partition(date(2026, 2, 1), date(2026, 1, 31))


def test_parse_date_accepts_compact_and_iso_forms():
    assert parse_date("20260130") == date(2026, 1, 30)
    assert parse_date("2026-01-30") == date(2026, 1, 30)
    assert parse_date("2026-01-30T10:00:00") == date(2026, 1, 30)


def test_to_kst_normalizes_marketplace_timestamps():
    assert to_kst("2026-01-30T23:50:00") == datetime(2026, 1, 30, 23, 50, tzinfo=KST)
    assert to_kst("2026-01-30T14:50:00Z") == datetime(2026, 1, 30, 23, 50, tzinfo=KST)
    epoch_ms = int(datetime(2026, 1, 30, 14, 50, tzinfo=timezone.utc).timestamp() * 1000)
    assert to_kst(epoch_ms) == datetime(2026, 1, 30, 23, 50, tzinfo=KST)
    assert to_kst("2026-01-30T23:50:00.0+09:00") == datetime(2026, 1, 30, 23, 50, tzinfo=KST)
    assert to_kst(None) is None


def test_request_bounds_widens_end_only():
    window = DateWindow(date(2026, 1, 30), date(2026, 1, 30))

    assert request_bounds(window, WindowPolicy(widen_days=1)) == (date(2026, 1, 30), date(2026, 1, 31))
    assert request_bounds(window, WindowPolicy()) == (date(2026, 1, 30), date(2026, 1, 30))


def test_filter_to_window_keeps_records_without_timestamp():
    window = DateWindow(date(2026, 1, 30), date(2026, 1, 30))
    records = [
        {"id": 1, "paidAt": "2026-01-30T00:00:00+09:00"},
        {"id": 2, "paidAt": "2026-01-31T00:00:00+09:00"},
        {"id": 3},
    ]

    kept = filter_to_window(records, window, lambda r: r.get("paidAt"))

    assert [r["id"] for r in kept] == [1, 3]


def test_rolling_window_counts_back_from_today():
    assert rolling_window(3, date(2026, 2, 2)) == (date(2026, 1, 30), date(2026, 2, 2))


@pytest.mark.asyncio
async def test_collect_window_widens_request_for_endpoint_empty_on_single_day():
    requests = []

    async def fetch(window, cursor):
        requests.append((window.start, window.end))
        if window.start == window.end:
            return FetchPage(records=[])
        return FetchPage(records=[
            {"orderId": "A", "paidAt": "2026-01-30T23:50:00+09:00"},
            {"orderId": "B", "paidAt": "2026-01-31T00:10:00+09:00"},
        ])

    collected = await collect_window(
        fetch,
        DateWindow(date(2026, 1, 30), date(2026, 1, 30)),
        WindowPolicy(widen_days=1, filter_by_record_time=True),
        timestamp_fn=lambda r: r.get("paidAt"),
    )

    assert requests == [(date(2026, 1, 30), date(2026, 1, 31))]
    assert [r["orderId"] for r in collected.records] == ["A"]
    assert collected.truncated is False


@pytest.mark.asyncio
async def test_collect_window_follows_cursor_until_exhausted():
    pages = {None: FetchPage([{"n": 1}], "p2"), "p2": FetchPage([{"n": 2}], "p3"), "p3": FetchPage([{"n": 3}])}

    async def fetch(window, cursor):
        return pages[cursor]

    collected = await collect_window(fetch, DateWindow(date(2026, 1, 30), date(2026, 1, 30)), WindowPolicy())

    assert [r["n"] for r in collected.records] == [1, 2, 3]
    assert collected.pages == 3


class _ExhaustedAfter:
    def __init__(self, checks):
        self.checks = checks

    @property
    def exhausted(self):
        self.checks -= 1
        return self.checks < 0


@pytest.mark.asyncio
async def test_collect_window_reports_pages_left_unread_when_budget_runs_out():
    pages = {None: FetchPage([{"n": 1}], "p2"), "p2": FetchPage([{"n": 2}], "p3"), "p3": FetchPage([{"n": 3}])}

    async def fetch(window, cursor):
        return pages[cursor]

    collected = await collect_window(
        fetch,
        DateWindow(date(2026, 1, 30), date(2026, 1, 30)),
        WindowPolicy(),
        budget=_ExhaustedAfter(1),
    )

    assert [r["n"] for r in collected.records] == [1, 2]
    assert collected.truncated is True
    assert collected.pages == 2


@pytest.mark.asyncio
async def test_collect_window_reports_max_pages_as_truncated():
    async def fetch(window, cursor):
        return FetchPage([{"cursor": cursor}], next_cursor=f"{cursor or 0}+")

    collected = await collect_window(
        fetch, DateWindow(date(2026, 1, 30), date(2026, 1, 30)), WindowPolicy(), max_pages=2
    )

    assert len(collected.records) == 2
    assert collected.truncated is True
