"""Tests for finding the previous sync of a configuration."""

import logging

from snapper_sync import IN_PROGRESS_MARKER
from snapper_sync.snapper.matcher import MetadataMatcher
from snapper_sync.snapper.store import SnapperStore

TAG = {"backupdir": "backups", "uuid": "D1"}


def _matcher(endpoint):
    return MetadataMatcher(SnapperStore(endpoint))


class TestFindPrevious:
    """Tests for MetadataMatcher.find_previous."""

    def test_no_snapshots(self, source, root_config):
        assert _matcher(source).find_previous(root_config, "D1") is None

    def test_match(self, source, root_config):
        source.add_snapshot("root", 12, "latest incremental backup", TAG)
        source.add_snapshot("root", 14, "timeline")

        match = _matcher(source).find_previous(root_config, "D1")

        assert match.number == 12
        assert match.backupdir == "backups"
        assert match.record.description == "latest incremental backup"

    def test_other_destination_ignored(self, source, root_config):
        source.add_snapshot("root", 12, "done", {"backupdir": "backups", "uuid": "D2"})
        assert _matcher(source).find_previous(root_config, "D1") is None

    def test_in_progress_never_matches(self, source, root_config):
        """A snapshot from an interrupted run is not a valid base."""
        source.add_snapshot("root", 12, "done", {"backupdir": "backups", "uuid": "D1"})
        source.add_snapshot("root", 13, IN_PROGRESS_MARKER, {"backupdir": "backups", "uuid": "D1"})

        assert _matcher(source).find_previous(root_config, "D1").number == 12

    def test_missing_backupdir_never_matches(self, source, root_config):
        source.add_snapshot("root", 12, "done", {"uuid": "D1"})
        assert _matcher(source).find_previous(root_config, "D1") is None

    def test_duplicates_most_recent_wins(self, source, root_config, caplog):
        source.add_snapshot("root", 12, "done", {"backupdir": "backups", "uuid": "D1"})
        source.add_snapshot("root", 13, "done", {"backupdir": "backups", "uuid": "D1"})

        with caplog.at_level(logging.WARNING):
            match = _matcher(source).find_previous(root_config, "D1")

        assert match.number == 13
        assert "12, 13" in caplog.text

    def test_configurations_are_separate(self, source, root_config, home_config):
        source.add_snapshot("home", 5, "done", {"backupdir": "backups", "uuid": "D1"})

        matcher = _matcher(source)

        assert matcher.find_previous(root_config, "D1") is None
        assert matcher.find_previous(home_config, "D1").number == 5


class TestFindAll:
    def test_only_completed_tags(self, source, root_config):
        source.add_snapshot("root", 1, "done", {"backupdir": "b", "uuid": "D1"})
        source.add_snapshot("root", 2, IN_PROGRESS_MARKER)
        source.add_snapshot("root", 3, "done", {"backupdir": "b", "uuid": "D2"})

        assert [r.number for r in _matcher(source).find_all(root_config, "D1")] == [1]
