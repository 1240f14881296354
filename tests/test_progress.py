"""
Tests for run progress reporting
"""

import json
from unittest.mock import MagicMock

import redis

from fluxqc.services import progress
from fluxqc.services.progress import ProgressReporter, channel_for


class TestProgressReporter:
    def test_callback_receives_events(self):
        events = []
        reporter = ProgressReporter(5, events.append, publish=False)
        reporter.emit("imputing", 42.5, "Imputed Ta", current_column="Ta", processed_columns=1, total_columns=2)

        (event,) = events
        assert (event.result_id, event.stage, event.progress) == (5, "imputing", 42.5)
        assert event.current_column == "Ta"
        assert event.total_columns == 2

    def test_progress_clamped(self):
        events = []
        reporter = ProgressReporter(1, events.append, publish=False)
        reporter.emit("saving", 130)
        reporter.emit("preparing", -5)
        assert [e.progress for e in events] == [100.0, 0.0]

    def test_failing_callback_does_not_raise(self):
        def broken(event):
            raise RuntimeError("listener gone")

        ProgressReporter(1, broken, publish=False).emit("preparing", 0)

    def test_publishes_to_result_channel(self, monkeypatch):
        publisher = MagicMock()
        monkeypatch.setattr(progress, "_get_publisher", lambda: publisher)

        ProgressReporter(9, publish=True).emit("detecting", 45, "Checked Ta")

        channel, payload = publisher.publish.call_args.args
        assert channel == channel_for(9) == "fluxqc:progress:9"
        assert json.loads(payload)["progress"] == 45

    def test_publish_failure_is_logged(self, monkeypatch, caplog):
        publisher = MagicMock()
        publisher.publish.side_effect = redis.ConnectionError("down")
        monkeypatch.setattr(progress, "_get_publisher", lambda: publisher)

        ProgressReporter(9, publish=True).emit("detecting", 45)
        assert "Progress publish failed" in caplog.text

    def test_publish_off_by_default_in_tests(self, monkeypatch):
        publisher = MagicMock()
        monkeypatch.setattr(progress, "_get_publisher", lambda: publisher)
        ProgressReporter(9).emit("detecting", 45)
        publisher.publish.assert_not_called()
