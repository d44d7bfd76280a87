"""
fakes shared by the tests: a clock, a command runner, the API probe
and the kubernetes client
"""
import subprocess


class FakeClock:
    """A clock which only advances when sleeping.

    Args:
        on_sleep: optional callable called with the new time after
            each sleep
    """

    def __init__(self, on_sleep=None):
        self.now = 0.0
        self.sleeps = []
        self.on_sleep = on_sleep

    def monotonic(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds
        if self.on_sleep:
            self.on_sleep(self.now)


class FakeRunner:
    """Records commands and returns canned results.

    Args:
        results (dict): maps a command prefix to a list of return codes or
            (return code, stdout) tuples. They are used in order, the last
            one is repeated. Commands without a match return 0.
        clock (FakeClock): if given, the time of each call is recorded
    """

    def __init__(self, results=None, clock=None):
        self.results = {k: list(v) for k, v in (results or {}).items()}
        self.calls = []
        self.times = []
        self.clock = clock

    def __call__(self, cmd, capture=False, **kwargs):
        self.calls.append(cmd)
        if self.clock:
            self.times.append(self.clock.monotonic())
        line = " ".join(cmd)
        result = 0
        for prefix, values in self.results.items():
            if line.startswith(prefix):
                result = values.pop(0) if len(values) > 1 else values[0]
                break
        if isinstance(result, tuple):
            returncode, stdout = result
        else:
            returncode, stdout = result, ""
        return subprocess.CompletedProcess(cmd, returncode, stdout=stdout,
                                           stderr="")

    def called(self, prefix):
        """All recorded commands starting with prefix"""
        return [c for c in self.calls if " ".join(c).startswith(prefix)]


class FakeProbe:
    """An API probe answering from lists of booleans.

    The last value of each list is repeated.
    """

    def __init__(self, healthz=(True,), cluster_info=(True,)):
        self._healthz = list(healthz)
        self._cluster_info = list(cluster_info)
        self.healthz_calls = 0
        self.cluster_info_calls = 0

    @staticmethod
    def _next(values):
        return values.pop(0) if len(values) > 1 else values[0]

    def healthz(self):
        self.healthz_calls += 1
        return self._next(self._healthz)

    def cluster_info_available(self):
        self.cluster_info_calls += 1
        return self._next(self._cluster_info)


class FakeK8S:
    """Answers the control plane queries of the master.

    Args:
        core_pods (list): running core pods per poll, last one repeated
        cni_ready (bool)
    """

    def __init__(self, core_pods=(4,), cni_ready=True):
        self._core_pods = list(core_pods)
        self.cni_ready = cni_ready
        self.core_pods_calls = 0

    def core_pods_running(self):
        self.core_pods_calls += 1
        if len(self._core_pods) > 1:
            return self._core_pods.pop(0)
        return self._core_pods[0]

    def pods_ready(self, label_selector):  # pylint: disable=unused-argument
        return self.cni_ready

    @staticmethod
    def list_nodes():
        return [("master", True)]

    @staticmethod
    def list_system_pods():
        return [("etcd-master", "Running")]


class FakePreparer:  # pylint: disable=too-few-public-methods
    """Counts the calls of prepare"""

    def __init__(self):
        self.calls = 0

    def prepare(self):
        self.calls += 1
        return []


JOIN_COMMAND = ("kubeadm join 10.0.0.5:6443 --token abcdef.0123456789abcdef "
                "--discovery-token-ca-cert-hash sha256:"
                "0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef"
                "\n")
