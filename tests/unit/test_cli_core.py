from pathlib import Path

import pytest

from prg_import.cli import main, parse_args
from prg_import.common.constants import EXIT_USAGE
from prg_import.common.errors import UsageError


def test_parse_args_positionals_and_defaults(tmp_path: Path):
    args = parse_args([str(tmp_path), "localhost", "prg", "secret", "geo"])
    assert args.dir == str(tmp_path)
    assert (args.host, args.username, args.password, args.schema) == ("localhost", "prg", "secret", "geo")
    assert args.config_dir == "./config"
    assert args.overlay_config_dir is None
    assert args.strict is False


def test_parse_args_rejects_missing_positionals(tmp_path: Path):
    with pytest.raises(UsageError):
        parse_args([str(tmp_path), "localhost"])


def test_parse_args_rejects_missing_directory(tmp_path: Path):
    with pytest.raises(UsageError):
        parse_args([str(tmp_path / "nope"), "localhost", "prg", "secret", "geo"])


def test_main_prints_usage_and_returns_usage_exit(capsys):
    assert main(["only-one"]) == EXIT_USAGE
    err = capsys.readouterr().err
    assert "usage: prg-import" in err
    assert "SCHEMA - MySQL schema" in err
