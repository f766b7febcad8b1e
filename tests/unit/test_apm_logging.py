"""
Tests for apmagent.apm_logging module.

Tests cover:
- Custom log levels and their helper methods
- Formatters
- Command line logging options
"""

import io
import logging
import threading
from argparse import Namespace

from apmagent.apm_logging import (
    DEBUG,
    RESULT,
    STATUS,
    VERBOSE,
    APMLogger,
    ColoredDebugFormatter,
    ColoredStandardFormatter,
    apply_logging_options,
    get_quiet_logger,
    setup_logging,
)


def stream_logger(name, level=logging.INFO, formatter=None):
    buffer = io.StringIO()
    logger = APMLogger(name)
    logger.setLevel(1)
    handler = logging.StreamHandler(buffer)
    handler.setLevel(level)
    handler.setFormatter(formatter or ColoredStandardFormatter())
    logger.addHandler(handler)
    return logger, buffer


class TestCustomLevels:
    """Tests for the custom level helpers."""

    def test_level_ordering(self):
        assert DEBUG < VERBOSE < logging.INFO < STATUS < logging.WARNING < RESULT < logging.ERROR

    def test_level_names_registered(self):
        assert logging.getLevelName(STATUS) == 'STATUS'
        assert logging.getLevelName(RESULT) == 'RESULT'

    def test_status_and_result_shown_at_info(self):
        logger, buffer = stream_logger("levels-info")
        logger.status("launched worker")
        logger.result("worker: 3 rows")
        logger.verbose("hidden detail")

        output = buffer.getvalue()
        assert "STATUS: launched worker" in output
        assert "RESULT: worker: 3 rows" in output
        assert "hidden detail" not in output

    def test_record_points_at_caller(self):
        """Records name the calling module, not the logging module."""
        records = []
        logger = APMLogger("levels-caller")
        logger.setLevel(1)
        handler = logging.Handler()
        handler.emit = records.append
        logger.addHandler(handler)

        logger.status("from the test")

        assert records[0].module == "test_apm_logging"


class TestFormatters:
    """Tests for the colored formatters."""

    def test_debug_formatter_includes_thread_and_line(self):
        logger, buffer = stream_logger("fmt-debug", level=DEBUG, formatter=ColoredDebugFormatter())
        logger.debug("tick")
        output = buffer.getvalue()
        assert "MainThread" in output
        assert "test_apm_logging" in output

    def test_sampler_thread_records_tagged(self):
        logger, buffer = stream_logger("fmt-tag")
        worker = threading.Thread(target=logger.warning, args=("disk writes unavailable",),
                                  name="Sampler-system")
        worker.start()
        worker.join()
        logger.warning("from the supervisor")

        first, second = buffer.getvalue().splitlines()
        assert "WARNING|system: disk writes unavailable" in first
        assert "WARNING: from the supervisor" in second

    def test_exception_text_appended(self):
        logger, buffer = stream_logger("fmt-exc")
        try:
            raise RuntimeError("sampler bug")
        except RuntimeError:
            logger.error("sampler failed", exc_info=True)
        assert "Traceback" in buffer.getvalue()
        assert "sampler bug" in buffer.getvalue()


class TestLoggingOptions:
    """Tests for setup_logging and apply_logging_options."""

    def test_setup_logging_default_level(self):
        logger = setup_logging("apmagent-test-default")
        assert logger.handlers[0].level == logging.INFO

    def test_setup_logging_level_name(self):
        logger = setup_logging("apmagent-test-named", stream_log_level="warning")
        assert logger.handlers[0].level == logging.WARNING

    def test_verbose_lowers_threshold(self):
        logger = setup_logging("apmagent-test-verbose")
        apply_logging_options(logger, Namespace(verbose=True, debug=False, stream_log_level=None))
        assert logger.handlers[0].level == VERBOSE

    def test_debug_switches_formatter(self):
        logger = setup_logging("apmagent-test-debug")
        apply_logging_options(logger, Namespace(verbose=False, debug=True, stream_log_level=None))
        assert logger.handlers[0].level == DEBUG
        assert isinstance(logger.handlers[0].formatter, ColoredDebugFormatter)

    def test_explicit_level_wins(self):
        logger = setup_logging("apmagent-test-explicit")
        apply_logging_options(logger, Namespace(verbose=True, debug=False, stream_log_level="status"))
        assert logger.handlers[0].level == STATUS

    def test_none_args_is_noop(self):
        logger = setup_logging("apmagent-test-none")
        apply_logging_options(logger, None)
        assert logger.handlers[0].level == logging.INFO


class TestQuietLogger:
    """Tests for get_quiet_logger."""

    def test_has_custom_levels_and_no_output(self, capsys):
        logger = get_quiet_logger("apmagent-quiet")
        logger.status("nothing to see")
        logger.verbose("nor here")
        captured = capsys.readouterr()
        assert captured.out == ""
        assert captured.err == ""
