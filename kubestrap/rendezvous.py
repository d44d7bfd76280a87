"""
rendezvous
==========

The hosts of a cluster can't talk to each other before the control plane
is up. The control plane host hands the join command to the workers via
a directory every host mounts, usually the ``/vagrant`` share.

The channel is write-once: the control plane publishes the join command
and later writes a ready marker. Workers only read, and files are never
deleted, so no locking is needed.

Only one host may ever run as control plane for a given shared directory.
Nothing here enforces that, it is up to whoever starts the hosts.
"""
import os
import shutil
import tempfile
import threading

from kubestrap import ADMIN_CONF_FILE, MASTER_READY_FILE
from kubestrap.util.logger import Logger
from kubestrap.util.util import TimedOut, wait_for

LOGGER = Logger(__name__)


def strip_cr(content):
    """Remove carriage returns of Windows line endings"""
    return content.replace(b"\r\n", b"\n").replace(b"\r", b"")


class RendezvousChannel:
    """The contract between the control plane and the workers.

    Subclasses implement the storage, see :class:`SharedDirChannel` and
    :class:`MemoryChannel`.
    """

    def publish(self, content, exec_perm=False):
        """Publish the join credential."""
        raise NotImplementedError

    def read(self):
        """Return the join credential or None if it was not published yet."""
        raise NotImplementedError

    def signal_ready(self, content=b"MASTER_READY=1\n"):
        """Mark the control plane initialization as completed."""
        raise NotImplementedError

    def is_ready(self):
        raise NotImplementedError

    def export(self, src, name=ADMIN_CONF_FILE):
        """Hand a credential file of this host to the operator."""
        raise NotImplementedError

    def await_and_read(self, poll_interval, timeout, clock=None):
        """Block until the join credential was published.

        Args:
            poll_interval (float): seconds between two checks
            timeout (float): seconds until giving up

        Returns:
            The content as bytes.

        Raises:
            :class:`kubestrap.util.util.TimedOut`
        """
        return wait_for(self.read, timeout, poll_interval, clock=clock,
                        what="the join script")

    def normalize(self, content):
        """Make a published join script safe to execute."""
        return strip_cr(content)


class SharedDirChannel(RendezvousChannel):
    """A channel backed by a directory shared between the hosts.

    Args:
        root (str): the shared directory, e.g. ``/vagrant``
        join_script (str): name of the join script inside root
        owner (tuple): uid and gid of the host operator, or None to
            keep root as owner
    """

    def __init__(self, root, join_script="join.sh", owner=(1000, 1000)):
        self.root = root
        self.owner = owner
        self.join_script_path = os.path.join(root, join_script)
        self.ready_path = os.path.join(root, MASTER_READY_FILE)
        self.admin_conf_path = os.path.join(root, ADMIN_CONF_FILE)

    def _chown(self, path):
        if not self.owner:
            return
        try:
            os.chown(path, *self.owner)
        except OSError as exc:
            LOGGER.warning("Could not change owner of %s: %s", path, exc)

    def _write(self, path, content, mode):
        """Write content via a temporary file in the same directory.

        A reader polling for path never sees a partially written file.
        """
        fd, tmp = tempfile.mkstemp(dir=self.root, prefix=".kubestrap-")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(content)
            os.chmod(tmp, mode)
            os.replace(tmp, path)
        except OSError:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
        self._chown(path)

    def publish(self, content, exec_perm=False):
        if os.path.exists(self.join_script_path):
            LOGGER.warning("Replacing %s, workers which joined with the old "
                           "token belong to a previous cluster",
                           self.join_script_path)
        self._write(self.join_script_path, content,
                    0o700 if exec_perm else 0o600)
        LOGGER.info("Wrote join script to %s", self.join_script_path)

    def read(self):
        try:
            with open(self.join_script_path, "rb") as fh:
                return fh.read()
        except FileNotFoundError:
            return None

    def normalize(self, content):
        """Strip CRs and set the executable bit of the shared script.

        Rewriting the shared file is best effort, the cleaned content is
        returned in any case.
        """
        cleaned = strip_cr(content)
        try:
            mode = os.stat(self.join_script_path).st_mode & 0o7777
            if cleaned == content:
                os.chmod(self.join_script_path, mode | 0o111)
            else:
                self._write(self.join_script_path, cleaned, mode | 0o111)
        except OSError as exc:
            LOGGER.warning("Could not normalize %s: %s",
                           self.join_script_path, exc)
        return cleaned

    def signal_ready(self, content=b"MASTER_READY=1\n"):
        self._write(self.ready_path, content, 0o644)
        LOGGER.info("Master ready file written to %s", self.ready_path)

    def is_ready(self):
        return os.path.exists(self.ready_path)

    def export(self, src, name=ADMIN_CONF_FILE):
        """Copy a credential file from this host into the shared directory.

        Args:
            src (str): the file to copy
            name (str): the file name inside the shared directory

        Returns:
            The destination path or None if src does not exist.
        """
        if not os.path.exists(src):
            LOGGER.warning("%s not found, nothing to export", src)
            return None

        dest = os.path.join(self.root, name)
        shutil.copyfile(src, dest)
        os.chmod(dest, 0o600)
        self._chown(dest)
        LOGGER.info("Wrote %s to %s", name, dest)
        return dest


class MemoryChannel(RendezvousChannel):
    """An in-process channel, e.g. for running both roles in one test."""

    def __init__(self):
        self._cond = threading.Condition()
        self._content = None
        self._ready = None
        self.exec_perm = False

    def publish(self, content, exec_perm=False):
        with self._cond:
            self._content = bytes(content)
            self.exec_perm = exec_perm
            self._cond.notify_all()

    def read(self):
        with self._cond:
            return self._content

    def signal_ready(self, content=b"MASTER_READY=1\n"):
        with self._cond:
            self._ready = bytes(content)
            self._cond.notify_all()

    def is_ready(self):
        with self._cond:
            return self._ready is not None

    def export(self, src, name=ADMIN_CONF_FILE):
        LOGGER.debug("Not exporting %s as %s, channel is in memory", src, name)
        return None

    def await_and_read(self, poll_interval, timeout, clock=None):
        """Wait on the condition variable instead of polling.

        With a clock given, the polling implementation of the base class
        is used so tests stay deterministic.
        """
        if clock is not None:
            return super().await_and_read(poll_interval, timeout, clock=clock)

        with self._cond:
            if not self._cond.wait_for(lambda: self._content is not None,
                                       timeout=timeout):
                raise TimedOut("the join script", timeout)
            return self._content
