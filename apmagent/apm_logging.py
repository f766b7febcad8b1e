"""
Logging for the APM agent.

One logger is created in ``main`` and handed to every component. Besides the
standard levels it carries RESULT, STATUS and a ladder of verbose levels, each
with a helper method (``logger.status(...)``, ``logger.verbose(...)``).

Samplers log from their own threads, so records emitted on a sampler thread
are tagged with the stream they belong to.
"""

import datetime
import enum
import logging
import sys

RESULT = 35
STATUS = 25
VERBOSE = 19
VERBOSER = 18
VERBOSEST = 17
RIDICULOUS = 7
DEBUG = logging.DEBUG

DEFAULT_STREAM_LOG_LEVEL = logging.INFO
LOG_TIME_FORMAT = '%Y-%m-%d %H:%M:%S'

# Thread name prefix used by samplers; the rest of the name is the stream
SAMPLER_THREAD_PREFIX = "Sampler-"

custom_levels = {
    'RESULT': RESULT,
    'STATUS': STATUS,
    'VERBOSE': VERBOSE,
    'VERBOSER': VERBOSER,
    'VERBOSEST': VERBOSEST,
    'RIDICULOUS': RIDICULOUS,
}


class COLORS(enum.Enum):
    green = "\033[0;32m"
    yellow = "\033[0;33m"
    bred = "\033[1;31m"
    bblue = "\033[1;34m"
    bipurple = "\033[1;95m"
    normal = "\033[0m"


level_to_color_map = {
    logging.CRITICAL: COLORS.bred,
    logging.ERROR: COLORS.bred,
    RESULT: COLORS.green,
    logging.WARNING: COLORS.yellow,
    STATUS: COLORS.bblue,
    RIDICULOUS: COLORS.bipurple,
}


def get_level_color(level):
    return level_to_color_map.get(level, COLORS.normal).value


def log_level_factory(level_num):
    def log_func(self, message, *args, **kwargs):
        if self.isEnabledFor(level_num):
            self._log(level_num, message, args, **kwargs)
    return log_func


class APMLogger(logging.Logger):
    def _log(self, level, msg, args, exc_info=None, extra=None, stack_info=False, stacklevel=3):
        # Records are built here rather than in super()._log() so findCaller()
        # skips both the level helper and this method.
        fn, lno, func, sinfo = self.findCaller(stack_info, stacklevel)
        if exc_info:
            if isinstance(exc_info, BaseException):
                exc_info = (type(exc_info), exc_info, exc_info.__traceback__)
            elif not isinstance(exc_info, tuple):
                exc_info = sys.exc_info()

        record = self.makeRecord(self.name, level, fn, lno, msg, args, exc_info, func, extra, sinfo)
        self.handle(record)


for _name, _level in custom_levels.items():
    logging.addLevelName(_level, _name)
    setattr(APMLogger, _name.lower(), log_level_factory(_level))


def stream_tag(record) -> str:
    """Name of the metric stream a record was logged from, or ''."""
    thread_name = record.threadName or ""
    if thread_name.startswith(SAMPLER_THREAD_PREFIX):
        return thread_name[len(SAMPLER_THREAD_PREFIX):]
    return ""


class ColoredStandardFormatter(logging.Formatter):
    """``time|LEVEL: message``, with ``time|LEVEL|stream: message`` on sampler threads."""

    def prefix(self, record) -> str:
        tag = stream_tag(record)
        return f"{record.levelname}|{tag}" if tag else record.levelname

    def format(self, record):
        formatted_time = datetime.datetime.now().strftime(LOG_TIME_FORMAT)
        message = (f"{get_level_color(record.levelno)}{formatted_time}|{self.prefix(record)}: "
                   f"{record.getMessage()}{COLORS.normal.value}")
        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)
        return message


class ColoredDebugFormatter(ColoredStandardFormatter):
    """Adds thread, module and line number to every record."""

    def prefix(self, record) -> str:
        return f"{record.levelname}:{record.threadName}:{record.module}:{record.lineno}"


def setup_logging(name=__name__, stream_log_level=DEFAULT_STREAM_LOG_LEVEL):
    if isinstance(stream_log_level, str):
        stream_log_level = logging.getLevelName(stream_log_level.upper())

    _logger = APMLogger(name)
    _logger.setLevel(RIDICULOUS)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(ColoredStandardFormatter())
    stream_handler.setLevel(stream_log_level)
    _logger.addHandler(stream_handler)

    return _logger


def apply_logging_options(_logger, args):
    if args is None:
        return
    stream_handlers = [h for h in _logger.handlers if not hasattr(h, 'baseFilename')]

    # --verbose only ever lowers the threshold
    if getattr(args, "verbose", False):
        for stream_handler in stream_handlers:
            if stream_handler.level > VERBOSE:
                stream_handler.setLevel(VERBOSE)

    if getattr(args, "debug", False):
        for stream_handler in stream_handlers:
            stream_handler.setFormatter(ColoredDebugFormatter())
            if stream_handler.level > DEBUG:
                stream_handler.setLevel(DEBUG)

    if getattr(args, "stream_log_level", None):
        for stream_handler in stream_handlers:
            stream_handler.setLevel(args.stream_log_level.upper())


def get_quiet_logger(name=__name__):
    """An APMLogger with no output, for components created without a logger."""
    _logger = APMLogger(name)
    _logger.addHandler(logging.NullHandler())
    return _logger
