"""Pytest configuration and shared fixtures."""

import json
import subprocess
from pathlib import Path, PurePosixPath

import pytest

from snapper_sync.config.schema import SnapperConfig
from snapper_sync.endpoint.common import Endpoint
from snapper_sync.transaction import set_transaction_log
from snapper_sync.volume import Volume


def _completed(command, returncode=0, stdout="", stderr=""):
    return subprocess.CompletedProcess(command, returncode, stdout, stderr)


def _parse_userdata(text):
    values = {}
    for item in text.split(","):
        key, _, value = item.partition("=")
        if key.strip():
            values[key.strip()] = value.strip()
    return values


class FakeEndpoint(Endpoint):
    """In-memory stand-in for a machine running snapper, findmnt and coreutils.

    Snapper configurations hold ``{number: {"description", "userdata"}}``.
    ``modify`` follows snapper: given keys are set, keys given an empty value
    are removed. Names in ``fail_on`` make that command exit non-zero.
    """

    def __init__(self, configs=("root",), dirs=(), mounts=(), remote=False):
        super().__init__()
        self._is_remote = remote
        self.snapshots = {name: {} for name in configs}
        self.next_number = {name: 1 for name in configs}
        self.dirs = set()
        for path in dirs:
            self._add_dir(path)
        self.mounts = list(mounts)
        self.fail_on = set()
        self.calls = []
        self.copied = []

    def __repr__(self):
        return "fake"

    def get_id(self):
        return "fake://"

    def add_snapshot(self, config, number, description="", userdata=None):
        self.snapshots[config][number] = {
            "description": description,
            "userdata": dict(userdata or {}),
        }
        self.next_number[config] = max(self.next_number[config], number + 1)

    def description(self, config, number):
        return self.snapshots[config][number]["description"]

    def userdata(self, config, number):
        return self.snapshots[config][number]["userdata"]

    def copy_file(self, source, destination_dir):
        self.copied.append((str(source), str(destination_dir)))

    def _add_dir(self, path):
        path = PurePosixPath(path)
        self.dirs.add(str(path))
        for parent in path.parents:
            self.dirs.add(str(parent))

    def _exec_command(self, options, **kwargs):
        command = [str(c) for c in options["command"]]
        self.calls.append(command)
        name = command[0]
        if name in self.fail_on:
            return _completed(command, 1, "", f"{name} failed")
        if name == "snapper":
            return self._snapper(command)
        if command[:2] == ["test", "-d"]:
            return _completed(command, 0 if command[2] in self.dirs else 1)
        if command[:2] == ["mkdir", "-p"]:
            self._add_dir(command[2])
            return _completed(command)
        if name == "findmnt":
            lines = [f"{uuid} {target}" for uuid, target in self.mounts]
            return _completed(command, 0 if lines else 1, "\n".join(lines) + "\n")
        raise AssertionError(f"Unexpected command: {command}")

    def _snapper(self, command):
        args = command[1:]
        json_output = args[0] == "--jsonout"
        if json_output:
            args = args[1:]
        assert args[0] == "-c"
        config, action, rest = args[1], args[2], args[3:]

        if f"snapper-{action}" in self.fail_on:
            return _completed(command, 1, "", f"snapper {action} failed")
        if config not in self.snapshots:
            return _completed(command, 1, "", "Unknown config.")
        snapshots = self.snapshots[config]

        opts = {}
        positional = []
        i = 0
        while i < len(rest):
            if rest[i] in ("--type", "--description", "--userdata"):
                opts[rest[i]] = rest[i + 1]
                i += 2
            elif rest[i].startswith("--"):
                opts[rest[i]] = True
                i += 1
            else:
                positional.append(rest[i])
                i += 1

        if action == "create":
            number = self.next_number[config]
            self.add_snapshot(
                config,
                number,
                opts.get("--description", ""),
                _parse_userdata(opts.get("--userdata", "")),
            )
            return _completed(command, 0, f"{number}\n")

        if action == "list":
            rows = [{"number": 0, "type": "single", "description": "current", "userdata": None}]
            for number in sorted(snapshots):
                snap = snapshots[number]
                rows.append(
                    {
                        "number": number,
                        "type": "single",
                        "date": "2026-10-19 12:00:00",
                        "description": snap["description"],
                        "userdata": dict(snap["userdata"]) or None,
                    }
                )
            return _completed(command, 0, json.dumps({config: rows}))

        number = int(positional[-1])
        if number not in snapshots:
            return _completed(command, 1, "", f"Snapshot '{number}' not found.")

        if action == "delete":
            del snapshots[number]
            return _completed(command)

        if action == "modify":
            if "--description" in opts:
                snapshots[number]["description"] = opts["--description"]
            for key, value in _parse_userdata(opts.get("--userdata", "")).items():
                if value:
                    snapshots[number]["userdata"][key] = value
                else:
                    snapshots[number]["userdata"].pop(key, None)
            return _completed(command)

        raise AssertionError(f"Unexpected snapper command: {command}")


class FakeTransferEngine:
    """Records transfer requests; raises ``error`` when set."""

    def __init__(self, error=None):
        self.error = error
        self.requests = []

    def transfer(self, request, destination_endpoint):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        destination_endpoint.mkdir(request.destination)


@pytest.fixture(autouse=True)
def no_transaction_log():
    """Keep the module-level transaction log disabled between tests."""
    set_transaction_log(None)
    yield
    set_transaction_log(None)


@pytest.fixture
def source():
    """Source machine with snapper configurations root and home."""
    return FakeEndpoint(configs=("root", "home"))


@pytest.fixture
def destination():
    """Destination machine with a btrfs filesystem D1 mounted at /mnt/backup."""
    return FakeEndpoint(
        configs=(), dirs=["/mnt/backup"], mounts=[("D1", "/mnt/backup")]
    )


@pytest.fixture
def volume(destination):
    return Volume(uuid="D1", mount_path="/mnt/backup", endpoint=destination)


@pytest.fixture
def root_config():
    return SnapperConfig(name="root", subvolume=Path("/"))


@pytest.fixture
def home_config():
    return SnapperConfig(name="home", subvolume=Path("/home"))


@pytest.fixture
def tmp_config_dir(tmp_path):
    """Create a temporary config directory."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def sample_config_toml():
    """Return a sample valid TOML settings string."""
    return """
[global]
description = "nightly backup"
noconfirm = true
notify = false
transaction_log = "/var/log/snapper-sync/transactions.jsonl"

[remote]
host = "backup@nas.example.org"
port = 2222
identity = "~/.ssh/id_backup"
ssh_opts = ["Compression=yes"]
"""


@pytest.fixture
def config_file(tmp_config_dir, sample_config_toml):
    """Create a temporary settings file."""
    config_path = tmp_config_dir / "config.toml"
    config_path.write_text(sample_config_toml)
    return config_path


@pytest.fixture
def snapper_sysconfig(tmp_path):
    """Snapper's global sysconfig plus per-configuration files."""
    configs_dir = tmp_path / "configs"
    configs_dir.mkdir()
    (configs_dir / "root").write_text('SUBVOLUME="/"\nFSTYPE="btrfs"\n')
    (configs_dir / "home").write_text('SUBVOLUME="/home"\n')
    (configs_dir / "scratch").write_text('SUBVOLUME="/scratch"\nSNAP_SYNC_EXCLUDE="yes"\n')
    global_config = tmp_path / "snapper"
    global_config.write_text('## Path: System/Snapper\nSNAPPER_CONFIGS="root home scratch"\n')
    return global_config, configs_dir


@pytest.fixture
def make_endpoint():
    """Factory for extra fake machines."""
    return FakeEndpoint


@pytest.fixture
def transfer_engine():
    return FakeTransferEngine()
