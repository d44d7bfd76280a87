"""
Prepare a bare host for kubeadm: swap, kernel modules, sysctl and the
container runtime and kubernetes packages.

Every step is best effort. A failing step is logged and the next one
runs, a host which really misses a prerequisite fails loudly later in
``kubeadm init`` or ``kubeadm join``.
"""
import os
import re
import textwrap

from kubestrap.util.logger import Logger
from kubestrap.util.util import run_command

LOGGER = Logger(__name__)

KERNEL_MODULES = ("br_netfilter",)

SYSCTL = {
    "net.bridge.bridge-nf-call-iptables": 1,
    "net.ipv4.ip_forward": 1,
    "net.bridge.bridge-nf-call-ip6tables": 1,
}

APT_KEYRING = "/etc/apt/keyrings/kubernetes-apt-keyring.gpg"
APT_SOURCE = "/etc/apt/sources.list.d/kubernetes.list"
CONTAINERD_CONFIG = "/etc/containerd/config.toml"

BASE_PACKAGES = ["apt-transport-https", "ca-certificates", "curl", "gnupg",
                 "lsb-release", "software-properties-common"]
KUBE_PACKAGES = ["kubelet", "kubeadm", "kubectl"]


def comment_swap(fstab):
    """Comment all active swap entries of an fstab"""
    return re.sub(r"^([^#\n].*\sswap\s.*)$", r"#\1", fstab, flags=re.M)


class HostPreparer:
    """Applies the host prerequisites of a kubernetes node.

    Args:
        runner: callable with the signature of
            :func:`kubestrap.util.util.run_command`
        kubernetes_version (str): the minor release of the package
            repository, e.g. ``v1.28``
        fstab (str), modules_conf (str), sysctl_conf (str): files to edit,
            exposed for testing
    """

    def __init__(self, runner=run_command, kubernetes_version="v1.28",
                 fstab="/etc/fstab",
                 modules_conf="/etc/modules-load.d/k8s.conf",
                 sysctl_conf="/etc/sysctl.d/k8s.conf"):
        self.runner = runner
        self.kubernetes_version = kubernetes_version
        self.fstab = fstab
        self.modules_conf = modules_conf
        self.sysctl_conf = sysctl_conf
        self.errors = []

    def _run(self, *cmds, **kwargs):
        """Run commands one after another, stop at the first failure"""
        for cmd in cmds:
            proc = self.runner(cmd, **kwargs)
            if proc.returncode:
                msg = "'%s' failed (exit code %s)" % (" ".join(cmd),
                                                       proc.returncode)
                LOGGER.warning(msg)
                self.errors.append(msg)
                return False
        return True

    def _edit(self, path, func):
        try:
            try:
                with open(path) as fh:
                    content = fh.read()
            except FileNotFoundError:
                content = ""
            new = func(content)
            if new != content:
                os.makedirs(os.path.dirname(path), exist_ok=True)
                with open(path, "w") as fh:
                    fh.write(new)
        except OSError as exc:
            msg = "could not write %s: %s" % (path, exc)
            LOGGER.warning(msg)
            self.errors.append(msg)

    def disable_swap(self):
        LOGGER.info("Disabling swap")
        self._run(["swapoff", "-a"])
        self._edit(self.fstab, comment_swap)

    def load_modules(self):
        LOGGER.info("Loading kernel modules: %s", ", ".join(KERNEL_MODULES))
        for module in KERNEL_MODULES:
            self._run(["modprobe", module])

        def add_missing(content):
            lines = content.splitlines()
            missing = [m for m in KERNEL_MODULES if m not in lines]
            if not missing:
                return content
            if content and not content.endswith("\n"):
                content += "\n"
            return content + "\n".join(missing) + "\n"

        self._edit(self.modules_conf, add_missing)

    def apply_sysctl(self):
        LOGGER.info("Configuring sysctl")
        content = "".join("%-36s= %s\n" % (key, value)
                          for key, value in SYSCTL.items())
        self._edit(self.sysctl_conf, lambda _: content)
        self._run(["sysctl", "--system"], capture=True)

    def install_prerequisites(self):
        """Install containerd, kubelet, kubeadm and kubectl from apt."""
        LOGGER.info("Installing containerd and kube packages")
        env = dict(os.environ, DEBIAN_FRONTEND="noninteractive")
        repo = "https://pkgs.k8s.io/core:/stable:/%s/deb/" % (
            self.kubernetes_version)
        add_repo = textwrap.dedent("""\
            mkdir -p /etc/apt/keyrings
            curl -fsSL {repo}Release.key | gpg --dearmor --yes -o {keyring}
            echo 'deb [signed-by={keyring}] {repo} /' > {source}
            """).format(repo=repo, keyring=APT_KEYRING, source=APT_SOURCE)
        configure_containerd = textwrap.dedent("""\
            mkdir -p /etc/containerd
            containerd config default > {config}
            sed -i 's/SystemdCgroup = false/SystemdCgroup = true/' {config}
            """).format(config=CONTAINERD_CONFIG)

        if not self._run(["apt-get", "update", "-y"],
                         ["apt-get", "install", "-y"] + BASE_PACKAGES,
                         ["bash", "-c", add_repo],
                         ["apt-get", "update", "-y"],
                         ["apt-get", "install", "-y", "containerd"],
                         env=env):
            return

        self._run(["bash", "-c", configure_containerd],
                  ["systemctl", "restart", "containerd"],
                  ["systemctl", "enable", "containerd"])

        if self._run(["apt-get", "install", "-y"] + KUBE_PACKAGES, env=env):
            self._run(["apt-mark", "hold"] + KUBE_PACKAGES,
                      ["systemctl", "enable", "kubelet"])

    def prepare(self):
        """Run all steps.

        Returns:
            list of error messages, empty if every step succeeded.
        """
        self.errors = []
        self.disable_swap()
        self.load_modules()
        self.apply_sysctl()
        self.install_prerequisites()
        if self.errors:
            LOGGER.warning("Host preparation finished with %d error(s)",
                           len(self.errors))
        else:
            LOGGER.success("Host prepared")
        return self.errors
