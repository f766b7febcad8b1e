"""
Tests for apmagent.cli_parser module.

Tests cover:
- Default values and option parsing
- Mutually exclusive workload sources
- YAML config file overrides
"""

import pytest

from apmagent import VERSION
from apmagent.cli_parser import build_parser, parse_arguments, positive_float
from apmagent.config import DEFAULT_RATE_WINDOW, SAMPLING_INTERVAL
from apmagent.errors import ConfigurationError, ErrorCode


class TestParseArguments:
    """Tests for command line parsing."""

    def test_defaults(self):
        args = parse_arguments([])
        assert args.input == "."
        assert args.output == "."
        assert args.executables is None
        assert args.interval == SAMPLING_INTERVAL
        assert args.rate_window == DEFAULT_RATE_WINDOW
        assert args.metrics_source == "procfs"
        assert args.compiler == "gcc"
        assert args.duration is None
        assert args.exit_when_idle is False
        assert args.stream_log_level is None

    def test_short_options(self):
        args = parse_arguments(["-i", "src", "-o", "metrics"])
        assert args.input == "src"
        assert args.output == "metrics"

    def test_executables(self):
        args = parse_arguments(["-e", "./burn", "./io", "--interval", "2"])
        assert args.executables == ["./burn", "./io"]
        assert args.interval == 2.0

    def test_input_and_executables_exclusive(self, capsys):
        with pytest.raises(SystemExit):
            parse_arguments(["-i", "src", "-e", "./burn"])

    def test_rejects_non_positive_interval(self, capsys):
        with pytest.raises(SystemExit):
            parse_arguments(["--interval", "0"])

    def test_rejects_unknown_metrics_source(self, capsys):
        with pytest.raises(SystemExit):
            parse_arguments(["--metrics-source", "snmp"])

    def test_stop_options(self):
        args = parse_arguments(["--duration", "60", "--exit-when-idle"])
        assert args.duration == 60.0
        assert args.exit_when_idle is True

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args(["--version"])
        assert exc_info.value.code == 0
        assert VERSION in capsys.readouterr().out


class TestPositiveFloat:
    """Tests for positive_float."""

    def test_accepts_positive(self):
        assert positive_float("2.5") == 2.5

    @pytest.mark.parametrize("value", ["0", "-3", "abc"])
    def test_rejects(self, value):
        import argparse
        with pytest.raises(argparse.ArgumentTypeError):
            positive_float(value)


class TestYamlConfigOverrides:
    """Tests for --config-file handling."""

    def test_overrides_applied(self, tmp_path, mock_logger):
        config_file = tmp_path / "monitor.yaml"
        config_file.write_text("interval: 10\nrate-window: 2.5\noutput: /var/lib/apm\nexit_when_idle: true\n")

        args = parse_arguments(["-c", str(config_file)], logger=mock_logger)

        assert args.interval == 10
        assert args.rate_window == 2.5
        assert args.output == "/var/lib/apm"
        assert args.exit_when_idle is True
        mock_logger.warning.assert_not_called()

    def test_single_executable_string(self, tmp_path):
        config_file = tmp_path / "monitor.yaml"
        config_file.write_text("executables: /opt/burn\n")
        assert parse_arguments(["-c", str(config_file)]).executables == ["/opt/burn"]

    def test_unknown_key_warned(self, tmp_path, capturing_logger):
        logger, messages = capturing_logger
        config_file = tmp_path / "monitor.yaml"
        config_file.write_text("intervall: 3\n")

        args = parse_arguments(["-c", str(config_file)], logger=logger)

        assert args.interval == SAMPLING_INTERVAL
        assert "intervall" in messages['warning'][0]

    def test_null_values_ignored(self, tmp_path):
        config_file = tmp_path / "monitor.yaml"
        config_file.write_text("interval:\n")
        assert parse_arguments(["-c", str(config_file), "--interval", "3"]).interval == 3.0

    def test_empty_file(self, tmp_path):
        config_file = tmp_path / "empty.yaml"
        config_file.write_text("")
        assert parse_arguments(["-c", str(config_file)]).interval == SAMPLING_INTERVAL

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError) as exc_info:
            parse_arguments(["-c", str(tmp_path / "nope.yaml")])
        assert exc_info.value.code is ErrorCode.CONFIG_FILE_NOT_FOUND

    def test_invalid_yaml(self, tmp_path):
        config_file = tmp_path / "broken.yaml"
        config_file.write_text("interval: [1, 2\n")
        with pytest.raises(ConfigurationError) as exc_info:
            parse_arguments(["-c", str(config_file)])
        assert exc_info.value.code is ErrorCode.CONFIG_PARSE_ERROR

    def test_not_a_mapping(self, tmp_path):
        config_file = tmp_path / "list.yaml"
        config_file.write_text("- interval\n- 5\n")
        with pytest.raises(ConfigurationError) as exc_info:
            parse_arguments(["-c", str(config_file)])
        assert exc_info.value.code is ErrorCode.CONFIG_PARSE_ERROR
