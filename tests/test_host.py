"""
tests for kubestrap.provision.host
"""
import pytest

from kubestrap.provision.host import HostPreparer, comment_swap

from .testdata import FakeRunner

FSTAB = """UUID=1234 / ext4 defaults 0 1
/swap.img none swap sw 0 0
#/old.img none swap sw 0 0
"""


@pytest.fixture
def paths(tmp_path):
    fstab = tmp_path / "fstab"
    fstab.write_text(FSTAB)
    return dict(fstab=str(fstab),
                modules_conf=str(tmp_path / "modules-load.d" / "k8s.conf"),
                sysctl_conf=str(tmp_path / "sysctl.d" / "k8s.conf"))


def test_comment_swap():
    assert comment_swap(FSTAB) == """UUID=1234 / ext4 defaults 0 1
#/swap.img none swap sw 0 0
#/old.img none swap sw 0 0
"""
    assert comment_swap(comment_swap(FSTAB)) == comment_swap(FSTAB)


def test_prepare(paths):
    runner = FakeRunner()
    preparer = HostPreparer(runner=runner, **paths)

    assert preparer.prepare() == []

    assert runner.called("swapoff -a")
    assert runner.called("modprobe br_netfilter")
    assert runner.called("sysctl --system")
    assert runner.called("apt-get install -y kubelet kubeadm kubectl")
    assert runner.called("apt-mark hold kubelet kubeadm kubectl")
    assert runner.called("systemctl enable kubelet")

    with open(paths['fstab']) as fh:
        assert "\n#/swap.img" in fh.read()
    with open(paths['modules_conf']) as fh:
        assert fh.read() == "br_netfilter\n"
    with open(paths['sysctl_conf']) as fh:
        sysctl = fh.read()
    for key in ["net.bridge.bridge-nf-call-iptables",
                "net.ipv4.ip_forward",
                "net.bridge.bridge-nf-call-ip6tables"]:
        assert key in sysctl


def test_kubernetes_version(paths):
    runner = FakeRunner()
    HostPreparer(runner=runner, kubernetes_version="v1.30", **paths).prepare()

    repo_setup = [c for c in runner.called("bash -c") if "Release.key" in c[2]]
    assert len(repo_setup) == 1
    assert "core:/stable:/v1.30/deb/" in repo_setup[0][2]


def test_prepare_is_idempotent(paths):
    HostPreparer(runner=FakeRunner(), **paths).prepare()
    assert HostPreparer(runner=FakeRunner(), **paths).prepare() == []

    with open(paths['modules_conf']) as fh:
        assert fh.read() == "br_netfilter\n"
    with open(paths['fstab']) as fh:
        assert "##" not in fh.read()


def test_failures_are_not_fatal(paths):
    runner = FakeRunner({"modprobe": [1], "apt-get install -y containerd": [100]})
    preparer = HostPreparer(runner=runner, **paths)

    errors = preparer.prepare()

    assert len(errors) == 2
    assert "modprobe br_netfilter" in errors[0]
    # later steps still ran
    assert runner.called("sysctl --system")
    # but nothing depending on containerd
    assert not runner.called("systemctl restart containerd")
    assert not runner.called("apt-mark hold")


def test_unwritable_file(paths, tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("")
    paths['sysctl_conf'] = str(blocker / "sysctl.d" / "k8s.conf")

    errors = HostPreparer(runner=FakeRunner(), **paths).prepare()

    assert len(errors) == 1
    assert "could not write" in errors[0]
