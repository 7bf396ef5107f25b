#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Logging setup. Everything goes through the ecs-webstack logger, INFO and DEBUG to stdout,
WARNING and above to stderr.
"""

from __future__ import annotations

import logging as logthings
import sys

LOGGER_NAME = "ecs-webstack"
VALID_LEVELS = ["FATAL", "CRITICAL", "ERROR", "WARNING", "WARN", "INFO", "DEBUG"]


class WebStackFormatter(logthings.Formatter):
    default_format = "%(asctime)s [%(levelname)8s] %(message)s"
    debug_format = "%(asctime)s [%(levelname)8s] (%(threadName)s %(filename)s.%(lineno)d) %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"

    def format(self, record) -> str:
        if record.levelno == logthings.DEBUG:
            formatter = logthings.Formatter(self.debug_format, self.date_format)
        else:
            formatter = logthings.Formatter(self.default_format, self.date_format)
        return formatter.format(record)


class StdoutFilter(logthings.Filter):
    def filter(self, rec):
        return rec.levelno in (logthings.DEBUG, logthings.INFO)


class StderrFilter(logthings.Filter):
    def filter(self, rec):
        return rec.levelno not in (logthings.DEBUG, logthings.INFO)


def setup_logging() -> logthings.Logger:
    app_logger = logthings.getLogger(LOGGER_NAME)
    for handler in list(app_logger.handlers):
        app_logger.removeHandler(handler)

    stdout_handler = logthings.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(WebStackFormatter())
    stdout_handler.setLevel(logthings.INFO)
    stdout_handler.addFilter(StdoutFilter())

    stderr_handler = logthings.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(WebStackFormatter())
    stderr_handler.setLevel(logthings.WARNING)
    stderr_handler.addFilter(StderrFilter())

    app_logger.addHandler(stdout_handler)
    app_logger.addHandler(stderr_handler)
    app_logger.setLevel(logthings.INFO)
    app_logger.propagate = False
    return app_logger


def set_log_level(level: str) -> bool:
    """
    Changes the level of the logger and of its stdout handler.

    :return: whether the level was valid and applied
    """
    if not level or level.upper() not in VALID_LEVELS:
        return False
    numeric = logthings.getLevelName(level.upper())
    LOG.setLevel(numeric)
    LOG.handlers[0].setLevel(numeric)
    return True


LOG = setup_logging()
