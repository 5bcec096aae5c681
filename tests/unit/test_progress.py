from __future__ import annotations

from unittest.mock import patch

from sheetscan.models.source import ResolvedSource
from sheetscan.services.progress import ProgressTracker, is_tty_enabled

SRC = ResolvedSource("a.xlsx", "Data")


def test_is_tty_enabled_follows_stderr():
    with patch("sys.stderr.isatty", return_value=True):
        assert is_tty_enabled() is True
    with patch("sys.stderr.isatty", return_value=False):
        assert is_tty_enabled() is False


def test_tracker_creates_bar_on_tty():
    with patch("sheetscan.services.progress.is_tty_enabled", return_value=True), \
         patch("sheetscan.services.progress.tqdm") as mock_tqdm:
        tracker = ProgressTracker(3, description="Reading")
        assert tracker.enabled is True
        kwargs = mock_tqdm.call_args.kwargs
        assert kwargs["total"] == 3
        assert kwargs["unit"] == "sheet"
        assert kwargs["ascii"] is True

        tracker.start_source(SRC)
        tracker.finish_source(SRC, 5)
        bar = mock_tqdm.return_value
        bar.update.assert_called_once_with(1)
        bar.set_postfix.assert_called_once_with(rows=5)
        tracker.close()
        bar.close.assert_called_once()
        assert tracker.pbar is None


def test_tracker_disabled_without_tty():
    with patch("sheetscan.services.progress.is_tty_enabled", return_value=False), \
         patch("sheetscan.services.progress.tqdm") as mock_tqdm:
        with ProgressTracker(2) as tracker:
            tracker.start_source(SRC)
            tracker.finish_source(SRC, 4)
        mock_tqdm.assert_not_called()
        assert tracker.current_source == 1
        assert tracker.rows == 4
