# pylint: disable=missing-docstring
from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version('kubestrap')
except PackageNotFoundError:
    __version__ = '0.1.0'

# Defining some constants
DEFAULT_MASTER_IP = "192.168.56.10"
DEFAULT_WORKER_COUNT = 3
API_PORT = 6443
MASTER_READY_FILE = "master_ready.txt"
ADMIN_CONF_FILE = "admin.conf"
CORE_COMPONENTS = ("kube-apiserver", "kube-controller-manager",
                   "kube-scheduler", "etcd")
