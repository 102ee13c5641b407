"""Tests for CLI common utilities."""

import argparse

import pytest

from snapper_sync import DEFAULT_DESCRIPTION
from snapper_sync.cli.common import (
    add_config_selection_args,
    add_verbosity_args,
    apply_overrides,
    create_global_parser,
    get_log_level,
    load_settings,
)
from snapper_sync.config import ConfigError, Settings


class TestCreateGlobalParser:
    """Tests for create_global_parser."""

    def test_parser_has_no_help(self):
        parser = create_global_parser()
        assert isinstance(parser, argparse.ArgumentParser)
        assert parser.parse_args([]) is not None

    def test_has_verbosity_and_settings(self):
        args = create_global_parser().parse_args(["--verbose", "--settings", "/tmp/s.toml"])
        assert args.verbose is True
        assert args.settings == "/tmp/s.toml"


class TestAddVerbosityArgs:
    """Tests for add_verbosity_args."""

    @pytest.mark.parametrize(
        "flag,attr",
        [("-v", "verbose"), ("--verbose", "verbose"), ("-q", "quiet"), ("--debug", "debug")],
    )
    def test_flags(self, flag, attr):
        parser = argparse.ArgumentParser()
        add_verbosity_args(parser)
        assert getattr(parser.parse_args([flag]), attr) is True

    def test_defaults_are_false(self):
        parser = argparse.ArgumentParser()
        add_verbosity_args(parser)
        args = parser.parse_args([])
        assert args.verbose is False
        assert args.quiet is False
        assert args.debug is False


class TestConfigSelection:
    """Tests for add_config_selection_args."""

    def test_repeatable(self):
        parser = argparse.ArgumentParser()
        add_config_selection_args(parser)
        args = parser.parse_args(["-c", "root", "--config", "home"])
        assert args.configs == ["root", "home"]

    def test_default_none(self):
        parser = argparse.ArgumentParser()
        add_config_selection_args(parser)
        assert parser.parse_args([]).configs is None


class TestGetLogLevel:
    """Tests for get_log_level."""

    def test_debug_flag(self):
        args = argparse.Namespace(debug=True, quiet=False, verbose=False)
        assert get_log_level(args) == "DEBUG"

    def test_quiet_flag(self):
        args = argparse.Namespace(debug=False, quiet=True, verbose=False)
        assert get_log_level(args) == "WARNING"

    def test_verbose_flag(self):
        args = argparse.Namespace(debug=False, quiet=False, verbose=True)
        assert get_log_level(args) == "DEBUG"

    def test_no_flags(self):
        assert get_log_level(argparse.Namespace()) == "INFO"


class TestLoadSettings:
    """Tests for load_settings."""

    def test_explicit_file(self, config_file):
        settings = load_settings(argparse.Namespace(settings=str(config_file)))
        assert settings.global_config.description == "nightly backup"

    def test_explicit_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_settings(argparse.Namespace(settings=str(tmp_path / "missing.toml")))

    def test_defaults_without_file(self, monkeypatch):
        monkeypatch.setattr("snapper_sync.cli.common.find_config_file", lambda path: None)
        settings = load_settings(argparse.Namespace(settings=None))
        assert settings.global_config.description == DEFAULT_DESCRIPTION


class TestApplyOverrides:
    """Tests for apply_overrides."""

    def test_command_line_wins(self):
        args = argparse.Namespace(
            description="before upgrade",
            noconfirm=True,
            keepold=True,
            no_notify=True,
            remote="backup@nas",
            port=2222,
            identity="/root/.ssh/id_backup",
            ssh_sudo=True,
        )

        settings = apply_overrides(Settings(), args)

        assert settings.global_config.description == "before upgrade"
        assert settings.global_config.noconfirm is True
        assert settings.global_config.keep_old is True
        assert settings.global_config.notify is False
        assert settings.remote.host == "backup@nas"
        assert settings.remote.port == 2222
        assert settings.remote.identity == "/root/.ssh/id_backup"
        assert settings.remote.ssh_sudo is True

    def test_unset_options_keep_settings(self):
        settings = Settings()
        settings.global_config.description = "from file"
        settings.remote.host = "nas"

        apply_overrides(settings, argparse.Namespace())

        assert settings.global_config.description == "from file"
        assert settings.remote.host == "nas"

    def test_bad_port(self):
        with pytest.raises(ConfigError, match="Port"):
            apply_overrides(Settings(), argparse.Namespace(port=0))
