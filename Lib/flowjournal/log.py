"""Structured logging for flowjournal.

Library modules obtain their logger with getLogger(__name__). Log events are
routed through structlog into the standard library logging module, so the
embedding application decides on levels and handlers. If the application has
configured structlog itself, that configuration is left alone.
"""

import logging
import sys

import structlog


def _configureStructlog():
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.KeyValueRenderer(key_order=["event"]),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def getLogger(name=None):
    if not structlog.is_configured():
        _configureStructlog()
    return structlog.get_logger(name)


def configureLogging(verbosity=0, stream=None):
    """Set up a handler for the flowjournal loggers. Meant for applications
    and scripts; verbosity 0 shows warnings, 1 info and 2 or more debug
    messages. Output goes to stderr unless another stream is given.
    """
    levels = {0: logging.WARNING, 1: logging.INFO}
    level = levels.get(verbosity, logging.DEBUG)
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    packageLogger = logging.getLogger("flowjournal")
    for oldHandler in list(packageLogger.handlers):
        packageLogger.removeHandler(oldHandler)
    packageLogger.addHandler(handler)
    packageLogger.setLevel(level)
