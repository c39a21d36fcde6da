"""Unit tests for StatusTracker — tickets, in-flight counts and expiring banners."""

from workers.status_tracker import StatusTracker


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


class TestTickets:

    def test_newer_ticket_makes_older_stale(self):
        tracker = StatusTracker()
        first = tracker.begin("loading")
        second = tracker.begin("loading")
        assert not tracker.is_current(first)
        assert tracker.is_current(second)

    def test_kinds_are_independent(self):
        tracker = StatusTracker()
        load = tracker.begin("loading")
        tracker.begin("saving")
        assert tracker.is_current(load)

    def test_finish_reports_remaining_calls(self):
        tracker = StatusTracker()
        first = tracker.begin("advantages")
        second = tracker.begin("advantages")
        assert tracker.finish(second) is True
        assert tracker.processing_kinds() == ["advantages"]
        assert tracker.finish(first) is False
        assert tracker.processing_kinds() == []

    def test_cancel_all(self):
        tracker = StatusTracker()
        ticket = tracker.begin("saving")
        tracker.cancel_all()
        assert not tracker.is_current(ticket)


class TestBanners:

    def test_banner_expires(self):
        clock = FakeClock()
        tracker = StatusTracker(ttl=6, clock=clock)
        tracker.set_error("saving", "Failed to save")
        assert tracker.errors() == {"saving": "Failed to save"}
        clock.now += 6
        assert tracker.error("saving") is None
        assert tracker.errors() == {}

    def test_dismiss(self):
        tracker = StatusTracker()
        tracker.set_error("loading", "Failed")
        tracker.dismiss_error("loading")
        assert tracker.errors() == {}
