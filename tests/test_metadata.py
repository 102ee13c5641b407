"""Tests for snapshot userdata metadata."""

import pytest

from snapper_sync.snapper.metadata import (
    DESTINATION_KEYS,
    MetadataFormatError,
    SnapshotMetadata,
)


class TestParse:
    """Tests for parsing userdata strings and listings."""

    def test_parse_pairs(self):
        metadata = SnapshotMetadata.parse("backupdir=backups, uuid=D1")
        assert metadata.values == {"backupdir": "backups", "uuid": "D1"}

    def test_parse_ignores_entries_without_equals(self):
        metadata = SnapshotMetadata.parse("important, uuid=D1,,")
        assert metadata.values == {"uuid": "D1"}

    def test_parse_empty(self):
        assert not SnapshotMetadata.parse("")
        assert not SnapshotMetadata.parse(None)

    def test_from_userdata_dict(self):
        metadata = SnapshotMetadata.from_userdata({"uuid": "D1", "important": None})
        assert metadata.values == {"uuid": "D1", "important": ""}

    def test_from_userdata_string_and_none(self):
        assert SnapshotMetadata.from_userdata("uuid=D1").uuid == "D1"
        assert SnapshotMetadata.from_userdata(None).values == {}


class TestSerialize:
    """Tests for serialize."""

    def test_serialize_keeps_order(self):
        metadata = SnapshotMetadata.for_destination("D1", "backups")
        assert metadata.serialize() == "backupdir=backups, uuid=D1"

    def test_comma_in_value_rejected(self):
        with pytest.raises(MetadataFormatError, match="comma"):
            SnapshotMetadata({"backupdir": "a,b"}).serialize()

    @pytest.mark.parametrize("key", ["", "back up", "a=b", "a,b"])
    def test_bad_key_rejected(self, key):
        with pytest.raises(MetadataFormatError):
            SnapshotMetadata({key: "x"}).serialize()

    def test_reparse(self):
        metadata = SnapshotMetadata({"important": "yes", "backupdir": "b/c", "uuid": "D1"})
        assert SnapshotMetadata.parse(metadata.serialize()) == metadata


class TestMerge:
    """Tests for merged and without."""

    def test_merge_overwrites_given_keys_only(self):
        existing = SnapshotMetadata({"important": "yes", "uuid": "OLD"})
        merged = existing.merged(SnapshotMetadata.for_destination("D1", "backups"))

        assert merged.values == {"important": "yes", "uuid": "D1", "backupdir": "backups"}
        assert existing.values == {"important": "yes", "uuid": "OLD"}

    def test_without(self):
        metadata = SnapshotMetadata({"important": "yes", "uuid": "D1", "backupdir": "b"})
        assert metadata.without(DESTINATION_KEYS).values == {"important": "yes"}


class TestDestinationTag:
    """Tests for recognizing destination tags."""

    def test_complete_tag(self):
        metadata = SnapshotMetadata.for_destination("D1", "backups")
        assert metadata.is_destination_tag("D1")
        assert not metadata.is_destination_tag("D2")

    def test_uuid_without_backupdir(self):
        metadata = SnapshotMetadata({"uuid": "D1", "backupdir": ""})
        assert metadata.backupdir is None
        assert not metadata.is_destination_tag("D1")

    def test_str(self):
        assert str(SnapshotMetadata.for_destination("D1", "b")) == "backupdir=b, uuid=D1"
