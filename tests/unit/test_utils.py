"""
Tests for apmagent.utils module.

Tests cover:
- YAML file loading
- Output folder preparation
- CommandExecutor output capture, timeouts and failures
"""

import subprocess
import sys

import pytest
import yaml

from apmagent.utils import CommandExecutor, prepare_output_dir, read_yaml_file


class TestReadYamlFile:
    """Tests for read_yaml_file."""

    def test_reads_mapping(self, tmp_path):
        path = tmp_path / "c.yaml"
        path.write_text("interval: 5\nexecutables:\n  - ./a\n  - ./b\n")
        assert read_yaml_file(str(path)) == {"interval": 5, "executables": ["./a", "./b"]}

    def test_empty_file(self, tmp_path):
        path = tmp_path / "c.yaml"
        path.write_text("")
        assert read_yaml_file(str(path)) == {}

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_yaml_file(str(tmp_path / "nope.yaml"))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "c.yaml"
        path.write_text("a: [1,\n")
        with pytest.raises(yaml.YAMLError):
            read_yaml_file(str(path))

    def test_scalar_document(self, tmp_path):
        path = tmp_path / "c.yaml"
        path.write_text("just a string\n")
        with pytest.raises(ValueError):
            read_yaml_file(str(path))


class TestPrepareOutputDir:
    """Tests for prepare_output_dir."""

    def test_creates_missing_folder(self, tmp_path):
        target = tmp_path / "a" / "b"
        assert prepare_output_dir(str(target)) == []
        assert target.is_dir()

    def test_removes_only_metrics_files(self, tmp_path, mock_logger):
        for name in ("burn_metrics.csv", "system_metrics.csv", "notes.txt", "metrics.csv"):
            (tmp_path / name).write_text("old\n")

        removed = prepare_output_dir(str(tmp_path), logger=mock_logger)

        assert sorted(p.rsplit("/", 1)[-1] for p in removed) == ["burn_metrics.csv", "system_metrics.csv"]
        assert sorted(p.name for p in tmp_path.iterdir()) == ["metrics.csv", "notes.txt"]
        mock_logger.verbose.assert_called_once()

    def test_leaves_directories_alone(self, tmp_path):
        (tmp_path / "old_metrics.csv").mkdir()
        assert prepare_output_dir(str(tmp_path)) == []
        assert (tmp_path / "old_metrics.csv").is_dir()


class TestCommandExecutor:
    """Tests for CommandExecutor."""

    def test_captures_output_and_return_code(self, mock_logger):
        executor = CommandExecutor(mock_logger)
        stdout, stderr, return_code = executor.execute(
            [sys.executable, "-c", "import sys; print('out'); print('err', file=sys.stderr); sys.exit(4)"])
        assert stdout == "out\n"
        assert stderr == "err\n"
        assert return_code == 4

    def test_string_command_is_split(self, mock_logger):
        stdout, _, return_code = CommandExecutor(mock_logger).execute(f"{sys.executable} -c 'print(42)'")
        assert stdout.strip() == "42"
        assert return_code == 0

    def test_missing_executable(self, mock_logger):
        with pytest.raises(FileNotFoundError):
            CommandExecutor(mock_logger).execute(["/nonexistent/tool", "--version"])

    def test_timeout_terminates_command(self, mock_logger):
        executor = CommandExecutor(mock_logger)
        with pytest.raises(subprocess.TimeoutExpired):
            executor.execute([sys.executable, "-c", "import time; time.sleep(30)"], timeout=0.3)
        assert executor.process.poll() is not None

    def test_signal_handlers_restored(self, mock_logger):
        import signal
        original = signal.getsignal(signal.SIGTERM)
        CommandExecutor(mock_logger).execute([sys.executable, "-c", "pass"], watch_signals={signal.SIGTERM})
        assert signal.getsignal(signal.SIGTERM) == original
