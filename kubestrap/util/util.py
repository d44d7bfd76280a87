"""
General purpose utilities
"""
import subprocess as sp
import time

from functools import wraps

from kubestrap.util.logger import Logger

LOGGER = Logger(__name__)


class BootstrapError(Exception):
    """A bootstrap phase failed and the host can't continue."""


class TimedOut(BootstrapError):
    """A bounded wait did not observe its condition before the deadline.

    Args:
        what (str): a description of the awaited condition
        timeout (float): the deadline in seconds
    """

    def __init__(self, what, timeout):
        super().__init__(f"timed out after {timeout}s waiting for {what}")
        self.what = what
        self.timeout = timeout


class JoinFailed(BootstrapError):
    """The join command exited non-zero on every attempt."""


class Clock:
    """Wall clock used by all polling loops.

    Tests replace it with a fake that advances on :meth:`sleep`.
    """

    @staticmethod
    def monotonic():
        return time.monotonic()

    @staticmethod
    def sleep(seconds):
        time.sleep(seconds)


def wait_for(predicate, timeout, interval, clock=None, what="condition"):
    """Poll predicate until it returns a truthy value.

    The predicate is evaluated first, then the deadline is checked, then
    the loop sleeps for interval. A wait that never succeeds therefore
    gives up no later than timeout + interval.

    Args:
        predicate: a callable without arguments
        timeout (float): seconds until giving up
        interval (float): seconds between two evaluations
        clock: an object with ``monotonic`` and ``sleep``, default
            :class:`Clock`
        what (str): used in log messages and in the exception

    Returns:
        The first truthy value returned by predicate.

    Raises:
        TimedOut if the deadline passed.
    """
    clock = clock or Clock()
    start = clock.monotonic()
    while True:
        result = predicate()
        if result:
            return result

        elapsed = clock.monotonic() - start
        if elapsed >= timeout:
            raise TimedOut(what, timeout)

        LOGGER.debug("Waiting for %s ... (%ds elapsed)", what, elapsed)
        clock.sleep(interval)


def retry(exceptions, tries=4, delay=3, backoff=2, logger=None, sleep=None):
    """
    Retry calling the decorated function using an exponential backoff.

    Args:
        exceptions: The exception to check. may be a tuple of exceptions to check.
        tries: Number of times to try (not retry) before giving up.
        delay: Initial delay between retries in seconds.
        backoff: Backoff multiplier (e.g. value of 2 will double the delay each retry).
        logger: Logger to use. If None, print.
        sleep: callable used for waiting, defaults to ``time.sleep``
    """
    sleep = sleep or time.sleep

    def deco_retry(f):  # pylint: disable=invalid-name

        @wraps(f)
        def f_retry(*args, **kwargs):
            mtries, mdelay = tries, delay
            while mtries > 1:
                try:
                    return f(*args, **kwargs)
                except exceptions as e:  # pylint: disable=invalid-name
                    msg = '{}, Retrying in {} seconds...'.format(e,
                                                                 int(mdelay))
                    if logger:
                        logger(msg)
                    else:
                        print(msg)
                    sleep(mdelay)
                    mtries -= 1
                    mdelay *= backoff
            return f(*args, **kwargs)

        return f_retry  # true decorator

    return deco_retry


def run_command(cmd, capture=False, check=False, **kwargs):
    """Run a command and log its output.

    Args:
        cmd (list): the command and its arguments
        capture (bool): collect stdout and stderr instead of letting them
            go to the terminal
        check (bool): raise BootstrapError on a non-zero exit code

    Returns:
        A ``subprocess.CompletedProcess``. If the executable does not
        exist, returncode is 127 like in a shell.
    """
    LOGGER.debug("Running: %s", " ".join(cmd))
    if capture:
        kwargs.setdefault("stdout", sp.PIPE)
        kwargs.setdefault("stderr", sp.PIPE)
    try:
        proc = sp.run(cmd, encoding="utf-8", **kwargs)
    except FileNotFoundError as exc:
        LOGGER.debug("%s", exc)
        proc = sp.CompletedProcess(cmd, 127, stdout="", stderr=str(exc))

    if capture:
        LOGGER.debug("STDOUT: %s (Exit code %s)", proc.stdout, proc.returncode)
        if proc.stderr:
            LOGGER.debug("STDERR: %s", proc.stderr)

    if check and proc.returncode:
        raise BootstrapError("error calling '%s' (exit code %s)" % (
            " ".join(cmd), proc.returncode))

    return proc
