"""Tests for cachegate.freshness."""

from __future__ import annotations

from cachegate.freshness import DEFAULT_MARKER_HEADER, FreshnessTracker
from cachegate.store.entries import ResponseSnapshot

from conftest import FakeClock

DAY = 24 * 60 * 60


def _snapshot(**headers: str) -> ResponseSnapshot:
    return ResponseSnapshot(
        status_code=200,
        headers=[(k.replace("_", "-"), v) for k, v in headers.items()],
        content=b"body",
    )


class TestStamp:
    def test_stamp_writes_epoch_millis(self):
        clock = FakeClock(1000.5)
        stamped = FreshnessTracker(clock=clock).stamp(_snapshot())
        assert stamped.header(DEFAULT_MARKER_HEADER) == "1000500"

    def test_stamp_preserves_status_and_body(self):
        original = ResponseSnapshot(
            status_code=201, headers=[("content-type", "text/plain")], content=b"hello"
        )
        stamped = FreshnessTracker(clock=FakeClock()).stamp(original)
        assert stamped.status_code == 201
        assert stamped.content == b"hello"
        assert stamped.header("content-type") == "text/plain"

    def test_stamp_replaces_existing_marker(self):
        clock = FakeClock(10)
        tracker = FreshnessTracker(clock=clock)
        first = tracker.stamp(_snapshot())
        clock.advance(5)
        second = tracker.stamp(first)
        values = [v for k, v in second.headers if k == DEFAULT_MARKER_HEADER]
        assert values == ["15000"]

    def test_stamp_does_not_mutate_original(self):
        original = _snapshot()
        FreshnessTracker(clock=FakeClock()).stamp(original)
        assert original.header(DEFAULT_MARKER_HEADER) is None

    def test_custom_header(self):
        tracker = FreshnessTracker(header="sw-fetched-on", clock=FakeClock(2))
        assert tracker.stamp(_snapshot()).header("sw-fetched-on") == "2000"


class TestExpiry:
    def test_fresh_within_threshold(self):
        clock = FakeClock()
        tracker = FreshnessTracker(clock=clock)
        stamped = tracker.stamp(_snapshot())
        clock.advance(DAY)
        assert not tracker.is_expired(stamped, DAY)

    def test_expired_past_threshold(self):
        clock = FakeClock()
        tracker = FreshnessTracker(clock=clock)
        stamped = tracker.stamp(_snapshot())
        clock.advance(DAY + 1)
        assert tracker.is_expired(stamped, DAY)

    def test_age_seconds(self):
        clock = FakeClock(100)
        tracker = FreshnessTracker(clock=clock)
        stamped = tracker.stamp(_snapshot())
        clock.advance(42)
        assert tracker.age_seconds(stamped) == 42

    def test_unmarked_never_expires_by_default(self):
        tracker = FreshnessTracker(clock=FakeClock())
        assert tracker.marker(_snapshot()) is None
        assert not tracker.is_expired(_snapshot(), 0)

    def test_unmarked_expires_when_configured(self):
        tracker = FreshnessTracker(clock=FakeClock(), treat_unmarked_as_fresh=False)
        assert tracker.is_expired(_snapshot(), DAY)

    def test_unparsable_marker_is_unmarked(self):
        tracker = FreshnessTracker(clock=FakeClock())
        response = _snapshot(x_cachegate_date="yesterday")
        assert tracker.marker(response) is None
        assert not tracker.is_expired(response, 0)

    def test_marker_header_lookup_is_case_insensitive(self):
        tracker = FreshnessTracker(clock=FakeClock(10))
        response = ResponseSnapshot(status_code=200, headers=[("X-Cachegate-Date", "5000")])
        assert tracker.marker(response) == 5000
