"""
tests for kubestrap.rendezvous
"""
import os
import stat
import threading

import pytest

from kubestrap.rendezvous import MemoryChannel, SharedDirChannel, strip_cr
from kubestrap.util.util import TimedOut

from .testdata import FakeClock, JOIN_COMMAND


@pytest.fixture
def channel(tmp_path):
    return SharedDirChannel(str(tmp_path), owner=None)


def mode(path):
    return stat.S_IMODE(os.stat(path).st_mode)


def test_strip_cr():
    assert strip_cr(b"kubeadm join \\\r\n  --token x\r\n") == \
        b"kubeadm join \\\n  --token x\n"
    assert strip_cr(b"no change\n") == b"no change\n"


def test_publish_and_read(channel):
    assert channel.read() is None

    channel.publish(JOIN_COMMAND.encode(), exec_perm=True)

    assert channel.read() == JOIN_COMMAND.encode()
    assert mode(channel.join_script_path) == 0o700
    assert channel.join_script_path.endswith("join.sh")


def test_publish_without_exec(channel):
    channel.publish(b"secret")
    assert mode(channel.join_script_path) == 0o600


def test_publish_leaves_no_temporary_files(channel, tmp_path):
    channel.publish(b"one")
    channel.publish(b"two")

    assert sorted(os.listdir(str(tmp_path))) == ["join.sh"]
    assert channel.read() == b"two"


def test_publish_to_missing_directory(tmp_path):
    channel = SharedDirChannel(str(tmp_path / "missing"), owner=None)
    with pytest.raises(OSError):
        channel.publish(b"x")


def test_chown_failure_is_not_fatal(tmp_path, monkeypatch):
    def deny(*args):
        raise PermissionError("not root")

    monkeypatch.setattr(os, "chown", deny)
    channel = SharedDirChannel(str(tmp_path), owner=(1000, 1000))

    channel.publish(b"x", exec_perm=True)

    assert channel.read() == b"x"


def test_await_and_read_times_out(channel):
    clock = FakeClock()

    with pytest.raises(TimedOut):
        channel.await_and_read(2, 600, clock=clock)

    assert 600 <= clock.now <= 602


def test_await_and_read_sees_late_publish(tmp_path):
    channel = SharedDirChannel(str(tmp_path), owner=None)

    def publish_late(now):
        if now >= 30 and channel.read() is None:
            channel.publish(b"late", exec_perm=True)

    clock = FakeClock(on_sleep=publish_late)

    assert channel.await_and_read(2, 600, clock=clock) == b"late"
    assert clock.now == 30


def test_normalize(channel):
    channel.publish(b"kubeadm join 10.0.0.5:6443\r\n")

    content = channel.normalize(channel.read())

    assert content == b"kubeadm join 10.0.0.5:6443\n"
    assert channel.read() == content
    assert mode(channel.join_script_path) & 0o111


def test_signal_ready(channel):
    assert not channel.is_ready()

    channel.signal_ready()

    assert channel.is_ready()
    with open(channel.ready_path) as fh:
        assert fh.read() == "MASTER_READY=1\n"


def test_export(channel, tmp_path):
    src = tmp_path / "source.conf"
    src.write_text("apiVersion: v1\n")

    dest = channel.export(str(src))

    assert dest == channel.admin_conf_path
    assert mode(dest) == 0o600
    with open(dest) as fh:
        assert fh.read() == "apiVersion: v1\n"


def test_export_missing_source(channel, tmp_path):
    assert channel.export(str(tmp_path / "missing.conf")) is None
    assert not os.path.exists(channel.admin_conf_path)


def test_memory_channel_blocks_until_published():
    channel = MemoryChannel()
    timer = threading.Timer(0.05, channel.publish, args=(b"join",),
                            kwargs={"exec_perm": True})
    timer.start()
    try:
        assert channel.await_and_read(0.01, 5) == b"join"
    finally:
        timer.cancel()
    assert channel.exec_perm


def test_memory_channel_timeout():
    with pytest.raises(TimedOut):
        MemoryChannel().await_and_read(0.01, 0.05)

    clock = FakeClock()
    with pytest.raises(TimedOut):
        MemoryChannel().await_and_read(2, 10, clock=clock)
    assert 10 <= clock.now <= 12


def test_memory_channel_ready():
    channel = MemoryChannel()
    assert not channel.is_ready()
    channel.signal_ready()
    assert channel.is_ready()
    assert channel.export("/etc/kubernetes/admin.conf") is None


def test_normalize_without_cr_keeps_the_file(channel):
    channel.publish(JOIN_COMMAND.encode())
    inode = os.stat(channel.join_script_path).st_ino

    assert channel.normalize(channel.read()) == JOIN_COMMAND.encode()

    assert os.stat(channel.join_script_path).st_ino == inode
    assert mode(channel.join_script_path) == 0o711
    assert channel.read() == JOIN_COMMAND.encode()


def test_normalize_never_exposes_a_partial_file(channel, monkeypatch):
    """Another worker reading during the rewrite sees a complete script"""
    windows = JOIN_COMMAND.replace("\n", "\r\n").encode()
    channel.publish(windows, exec_perm=True)
    seen = []
    real_replace = os.replace

    def replace_and_read(src, dst):
        seen.append(SharedDirChannel(channel.root, owner=None).read())
        real_replace(src, dst)
        seen.append(SharedDirChannel(channel.root, owner=None).read())

    monkeypatch.setattr("kubestrap.rendezvous.os.replace", replace_and_read)

    channel.normalize(channel.read())

    assert seen == [windows, JOIN_COMMAND.encode()]
    assert mode(channel.join_script_path) == 0o711
