"""Tests for the db-dumper command line.

dump_database is patched out; these tests cover argument handling, exit
codes and what reaches stdout/stderr.
"""

from pathlib import Path
from unittest.mock import patch

import pytest

from db_dumper.cli import EXIT_ERROR, EXIT_INTERRUPTED, EXIT_OK, build_parser, main
from db_dumper.exceptions import DumpConnectionError, SerializationError
from db_dumper.orchestrator import DumpResult

BASE_ARGS = ["-h", "db.local", "-d", "shop", "-u", "dumper", "-p", "s3cret"]


# ============================================================
# Test: Argument parsing
# ============================================================


class TestArgumentParsing:
    """Flags, defaults and required arguments."""

    def test_short_flags(self) -> None:
        args = build_parser().parse_args(BASE_ARGS + ["-P", "6432", "-o", "x.sql", "-v"])
        assert args.host == "db.local"
        assert args.port == 6432
        assert args.dbname == "shop"
        assert args.user == "dumper"
        assert args.password == "s3cret"
        assert args.output == "x.sql"
        assert args.verbose is True

    def test_long_flags_and_defaults(self) -> None:
        args = build_parser().parse_args(
            ["--host", "db", "--dbname", "shop", "--user", "u", "--password", "p"]
        )
        assert args.port == 5432
        assert args.output is None
        assert args.config is None
        assert args.verbose is False

    def test_dash_h_is_host_not_help(self) -> None:
        args = build_parser().parse_args(BASE_ARGS)
        assert args.host == "db.local"

    def test_help_flag(self, capsys: pytest.CaptureFixture) -> None:
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args(["--help"])
        assert exc_info.value.code == 0
        assert "--dbname" in capsys.readouterr().out

    @pytest.mark.parametrize("missing", ["-h", "-d", "-u", "-p"])
    def test_required_arguments(self, missing: str) -> None:
        args = list(BASE_ARGS)
        i = args.index(missing)
        del args[i : i + 2]
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args(args)
        assert exc_info.value.code == 2

    def test_non_integer_port_rejected(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args(BASE_ARGS + ["-P", "abc"])


# ============================================================
# Test: main() exit codes
# ============================================================


class TestMain:
    """Exit codes and messages."""

    def test_success(self, tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
        result = DumpResult(path=tmp_path / "shop-dump.sql", roles=["alice"], objects=3, rows=10)
        with patch("db_dumper.cli.dump_database", return_value=result) as mock_dump:
            assert main(BASE_ARGS) == EXIT_OK

        options, settings = mock_dump.call_args.args
        assert options.host == "db.local"
        assert options.port == 5432
        assert options.dbname == "shop"
        assert settings.batch_size == 1000
        assert "Dump written to" in capsys.readouterr().out

    def test_config_file_applied(self, tmp_path: Path) -> None:
        config_file = tmp_path / "db-dumper.toml"
        config_file.write_text("[dump]\nbatch_size = 7\n")
        result = DumpResult(path=tmp_path / "x.sql")

        with patch("db_dumper.cli.dump_database", return_value=result) as mock_dump:
            assert main(BASE_ARGS + ["--config", str(config_file)]) == EXIT_OK

        assert mock_dump.call_args.args[1].batch_size == 7

    def test_missing_config_file(self, tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
        with patch("db_dumper.cli.dump_database") as mock_dump:
            code = main(BASE_ARGS + ["--config", str(tmp_path / "nope.toml")])

        assert code == EXIT_ERROR
        mock_dump.assert_not_called()
        assert "Config file not found" in capsys.readouterr().err

    def test_invalid_port(self, capsys: pytest.CaptureFixture) -> None:
        with patch("db_dumper.cli.dump_database") as mock_dump:
            assert main(BASE_ARGS + ["-P", "99999"]) == EXIT_ERROR
        mock_dump.assert_not_called()

    def test_connection_error(self, capsys: pytest.CaptureFixture) -> None:
        error = DumpConnectionError("Could not connect to database: [refused]")
        with patch("db_dumper.cli.dump_database", side_effect=error):
            assert main(BASE_ARGS) == EXIT_ERROR
        assert "Could not connect to database: [refused]" in capsys.readouterr().err

    def test_serialization_error(self) -> None:
        with patch("db_dumper.cli.dump_database", side_effect=SerializationError("bad value")):
            assert main(BASE_ARGS) == EXIT_ERROR

    def test_output_error(self) -> None:
        with patch("db_dumper.cli.dump_database", side_effect=PermissionError("read-only")):
            assert main(BASE_ARGS) == EXIT_ERROR

    def test_interrupt(self, capsys: pytest.CaptureFixture) -> None:
        with patch("db_dumper.cli.dump_database", side_effect=KeyboardInterrupt):
            assert main(BASE_ARGS) == EXIT_INTERRUPTED
        assert "Interrupted" in capsys.readouterr().err
