"""Tests for resolving the destination volume."""

from unittest.mock import MagicMock

import pytest

from snapper_sync.__util__ import AmbiguousTarget, VolumeNotFound
from snapper_sync.volume import FINDMNT_COMMAND, Volume, VolumeResolver, parse_findmnt


class TestParseFindmnt:
    """Tests for parse_findmnt."""

    def test_pairs(self):
        output = "0a1b-c2 /\n0a1b-c2 /home\nD1 /mnt/backup\n"
        assert parse_findmnt(output) == [
            ("0a1b-c2", "/"),
            ("0a1b-c2", "/home"),
            ("D1", "/mnt/backup"),
        ]

    def test_snapshot_dirs_excluded(self):
        output = "0a1b /\n0a1b /.snapshots\n0a1b /home/.snapshots\n"
        assert parse_findmnt(output) == [("0a1b", "/")]

    def test_escaped_blanks(self):
        assert parse_findmnt("D1 /run/media/me/My\\x20Disk\n") == [
            ("D1", "/run/media/me/My Disk")
        ]

    def test_lines_without_uuid_skipped(self):
        assert parse_findmnt("\n   /mnt/nouuid\n") == []


class TestVolumeResolver:
    """Tests for VolumeResolver."""

    def test_list_volumes(self, make_endpoint):
        endpoint = make_endpoint(configs=(), mounts=[("A", "/"), ("D1", "/mnt/backup")])

        volumes = VolumeResolver(endpoint).list_volumes()

        assert [(v.uuid, v.mount_path) for v in volumes] == [("A", "/"), ("D1", "/mnt/backup")]
        assert all(v.endpoint is endpoint for v in volumes)
        assert endpoint.calls[-1] == FINDMNT_COMMAND

    def test_nothing_mounted(self, make_endpoint):
        assert VolumeResolver(make_endpoint(configs=())).list_volumes() == []

    def test_resolve(self, make_endpoint):
        endpoint = make_endpoint(configs=(), mounts=[("A", "/"), ("D1", "/mnt/backup")])

        volume = VolumeResolver(endpoint).resolve("D1")

        assert volume == Volume(uuid="D1", mount_path="/mnt/backup", endpoint=endpoint)

    def test_not_found(self, make_endpoint):
        endpoint = make_endpoint(configs=(), mounts=[("A", "/")])
        with pytest.raises(VolumeNotFound, match="D1"):
            VolumeResolver(endpoint).resolve("D1")

    def test_ambiguous(self, make_endpoint):
        endpoint = make_endpoint(configs=(), mounts=[("D1", "/mnt/a"), ("D1", "/mnt/b")])
        with pytest.raises(AmbiguousTarget, match="/mnt/a, /mnt/b"):
            VolumeResolver(endpoint).resolve("D1")

    def test_findmnt_error(self):
        endpoint = MagicMock()
        endpoint.run.return_value = MagicMock(returncode=2, stdout="", stderr="bad usage")
        with pytest.raises(VolumeNotFound, match="findmnt failed"):
            VolumeResolver(endpoint).list_volumes()

    def test_volume_is_frozen(self):
        volume = Volume(uuid="D1", mount_path="/mnt/backup", endpoint=None)
        with pytest.raises(AttributeError):
            volume.uuid = "D2"
