#!/usr/bin/env python3

"""
Severity-tagged build events and the aggregator that prints them.

Build units never print directly. They return lists of LogEvent and the
orchestrator drains those lists through one LogAggregator, which applies the
configured verbosity threshold. A FATAL event always prints and always
raises FatalBuildError.
"""

import sys
import logging
from enum import IntEnum
from dataclasses import dataclass
from typing import Iterable, Optional, TextIO

from ..errors import FatalBuildError


class Severity(IntEnum):
    DEBUG = 0
    WARN = 1
    FATAL = 2


LOG_LEVEL_THRESHOLDS = {
    'debug': Severity.DEBUG,
    'warn': Severity.WARN,
    'fatal': Severity.FATAL,
}

_RECORD_LEVELS = {
    Severity.DEBUG: logging.DEBUG,
    Severity.WARN: logging.WARNING,
    Severity.FATAL: logging.CRITICAL,
}


@dataclass(frozen=True)
class LogEvent:
    severity: Severity
    message: str

    @classmethod
    def debug(cls, message: str) -> "LogEvent":
        return cls(Severity.DEBUG, message)

    @classmethod
    def warn(cls, message: str) -> "LogEvent":
        return cls(Severity.WARN, message)

    @classmethod
    def fatal(cls, message: str) -> "LogEvent":
        return cls(Severity.FATAL, message)


def threshold_for(log_level: Optional[str]) -> int:
    """Numeric threshold for a log level; unknown or missing levels print everything"""
    return int(LOG_LEVEL_THRESHOLDS.get(log_level, Severity.DEBUG))


class _BelowLevelFilter(logging.Filter):
    def __init__(self, level: int):
        super().__init__()
        self.level = level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno < self.level


class LogAggregator:
    def __init__(self, log_level: Optional[str] = "debug", name: str = "shared_deps.build",
                 stdout: Optional[TextIO] = None, stderr: Optional[TextIO] = None):
        self.threshold = threshold_for(log_level)
        self.logger = self._create_logger(
            name,
            stdout if stdout is not None else sys.stdout,
            stderr if stderr is not None else sys.stderr,
        )

    def _create_logger(self, name: str, stdout: TextIO, stderr: TextIO) -> logging.Logger:
        """Debug records go to stdout, warnings and fatals to stderr"""
        # Not registered with logging.getLogger: every aggregator keeps its own handlers
        build_logger = logging.Logger(name, logging.DEBUG)

        formatter = logging.Formatter("%(message)s")

        out_handler = logging.StreamHandler(stdout)
        out_handler.setFormatter(formatter)
        out_handler.addFilter(_BelowLevelFilter(logging.WARNING))
        build_logger.addHandler(out_handler)

        err_handler = logging.StreamHandler(stderr)
        err_handler.setFormatter(formatter)
        err_handler.setLevel(logging.WARNING)
        build_logger.addHandler(err_handler)

        return build_logger

    def should_print(self, severity: Severity) -> bool:
        if severity == Severity.FATAL:
            return True
        return self.threshold < int(severity) + 1

    def dispatch(self, event: LogEvent) -> None:
        if self.should_print(event.severity):
            self.logger.log(_RECORD_LEVELS[event.severity], event.message)

        if event.severity == Severity.FATAL:
            raise FatalBuildError(event.message)

    def drain(self, events: Iterable[LogEvent]) -> None:
        for event in events:
            self.dispatch(event)

    def debug(self, message: str) -> None:
        self.dispatch(LogEvent.debug(message))

    def warn(self, message: str) -> None:
        self.dispatch(LogEvent.warn(message))

    def fatal(self, message: str) -> None:
        self.dispatch(LogEvent.fatal(message))
