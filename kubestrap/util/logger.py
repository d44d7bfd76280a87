"""This module defines logging capabilities for kubestrap."""

import logging
import sys
import time

from kubestrap.util.hue import (bad, red, info as infomsg, yellow, run, grey,
                                good, green)

LOG_LEVELS = list(range(5))
DEFAULT_LOG_LEVEL = 3


class PrefixFormatter(logging.Formatter):
    """Prepends :attr:`Logger.PREFIX` to every record.

    The prefix is read when the record is formatted, so changing it
    after the handlers were created still applies to all loggers.
    """

    def format(self, record):
        return Logger.PREFIX + super().format(record)


def get_logger(name):
    """Returns a Python logger.

    Right now, only a single handler which logs to STDOUT can be added to a
    logger. This is because if multiple calls with the same name would add
    duplicate handlers to a logger, which lead to extra prints.

    Args:
        name (str): The name of the Logger.

    Returns:
        A Python Logger.
    """

    log = logging.getLogger(name)
    set_level(log, Logger.LOG_LEVEL)

    # If we instantiate multiple loggers with the same name,
    # we would add duplicate handlers.
    if not log.handlers:
        sh = logging.StreamHandler(sys.stdout)
        sh.setFormatter(PrefixFormatter("%(message)s"))
        log.addHandler(sh)

    return log


def set_level(logger, level):
    """Sets the logging level.

    The kubestrap levels map to the Python levels as follows: 1 is
    ``ERROR``, 2 is ``WARNING``, 3 is ``INFO`` and 4 is ``DEBUG``. 0
    disables the logger.

    Args:
        logger: A Python logger object.
        level (int): The logging level.

    Raises:
        ValueError if log level is unsupported.
    """

    if level not in LOG_LEVELS:
        raise ValueError(f"log level {level} is not supported")

    logger.disabled = False
    if level == 1:
        logger.setLevel(logging.ERROR)
    elif level == 2:
        logger.setLevel(logging.WARNING)
    elif level == 3:
        logger.setLevel(logging.INFO)
    elif level == 4:
        logger.setLevel(logging.DEBUG)
    else:
        logger.disabled = True


class Singleton(type):
    """Metaclass to implement the Singleton pattern.

    The metaclass keeps one instance per class. Calling the class again
    re-runs ``__init__`` on the existing instance and returns it, so
    every module-level ``LOGGER = Logger(__name__)`` shares the same
    object and the same level.

    Example:
        >>> log1 = Logger(__name__)
        >>> log2 = Logger("kubestrap")
        >>> id(log1) == id(log2)
        True
    """
    _instances = {}

    def __call__(cls, *args, **kwargs):
        if cls not in cls._instances:
            cls._instances[cls] = super(Singleton, cls).__call__(*args, **kwargs)
        else:
            cls._instances[cls].__init__(*args, **kwargs)

        return cls._instances[cls]


class Logger(metaclass=Singleton):
    """This class provides logging capabilities.

    This class is a singleton that returns as proxy instance of
    logging.Logger.

    Before using, make sure to set Logger.LOG_LEVEL to the desired
    level.

    The different levels are:

    .. code:: shell

        * 0 - quiet (no output)
        * 1 - error
        * 2 - warning
        * 3 - info
        * 4 - debug

    All functions support ``f``-, ``%``- and ``format``-style formatting.

    Example:
        >>> Logger.PREFIX = "[node-1 worker] "
        >>> log = Logger(__name__)
        >>> log.info("%s %s", "hello", "world")
        [node-1 worker] [~] hello world

    Attributes:
        LOG_LEVEL (int): The log level to be used across the application.
        PREFIX (str): Prepended to every message, usually host name and role.

    Args:
        name (str): The name of the logger.
    """

    LOG_LEVEL = DEFAULT_LOG_LEVEL
    PREFIX = ""

    def __init__(self, name):
        self.logger = get_logger(name)

    @property
    def level(self):
        """Returns the Python log level equivalent.

        Returns:
            The Python loglevel equivalent or None if logger not instantiated.
        """
        if not self.logger:
            return None

        if self.logger.disabled:
            return 0

        return self.logger.level

    @level.setter
    def level(self, level):
        level_to_int = {
            'quiet': 0,
            'error': 1,
            'warning': 2,
            'info': 3,
            'debug': 4}

        try:
            level = level_to_int[level]
        except KeyError:
            level = int(level)

        Logger.LOG_LEVEL = level
        set_level(self.logger, level)

    def error(self, msg, *args, color=True, **kwargs):
        """Logs a message on error level, in red with ``[-]``."""

        if color:
            msg = bad(red(msg))

        self.logger.error(msg, *args, **kwargs)

    def warning(self, msg, *args, color=True, **kwargs):
        """Logs a message on warning level, in yellow with ``[!]``."""

        if color:
            msg = infomsg(yellow(msg))

        self.logger.warning(msg, *args, **kwargs)

    def info(self, msg, *args, color=True, **kwargs):
        """Logs a message on info level, in grey with ``[~]``."""

        if color:
            msg = run(grey(msg))

        self.logger.info(msg, *args, **kwargs)

    def debug(self, msg, *args, color=True, **kwargs):
        """Logs a message on debug level.

        If color is True, will be logged in grey with the current
        timestamp in brackets as prefix, else in plain.
        """

        if color:
            now = time.strftime("%Y%m%d-%H%M%S")
            msg = grey(f"[{now}] {msg}")

        self.logger.debug(msg, *args, **kwargs)

    def success(self, msg, *args, color=True, **kwargs):
        """Indicates a success.

        Messages are printed on info level, in green with ``[+]``.
        """

        if color:
            msg = good(green(msg))

        self.logger.info(msg, *args, **kwargs)
