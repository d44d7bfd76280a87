"""
The cluster wide values every host agrees on: the role a host plays and
the address of the control plane.
"""
import enum

from kubestrap import API_PORT
from kubestrap.util.net import is_cidr, is_hostname, is_ip, is_port


class NodeRole(enum.Enum):
    """The role of this host, fixed for the lifetime of the process."""

    CONTROL_PLANE = "master"
    WORKER = "worker"

    @classmethod
    def parse(cls, value):
        """Return the role for a command line value.

        Raises:
            ValueError for unknown roles.
        """
        try:
            return cls(value)
        except ValueError:
            allowed = " | ".join(role.value for role in cls)
            raise ValueError(f"unknown role '{value}', must be [{allowed}]") \
                from None


class ClusterEndpoint:
    """Where the API server of the cluster listens.

    Created once per run and never changed afterwards.

    Args:
        address (str): IP address or host name of the control plane
        pod_cidr (str): the pod network passed to ``kubeadm init``
        port (int): the API server port

    Raises:
        ValueError if one of the arguments is invalid.
    """

    __slots__ = ('_address', '_port', '_pod_cidr')

    def __init__(self, address, pod_cidr, port=API_PORT):
        if not (is_ip(address) or is_hostname(address)):
            raise ValueError(f"invalid control plane address '{address}'")
        if not is_port(port):
            raise ValueError(f"invalid port {port}")
        if not is_cidr(pod_cidr):
            raise ValueError(f"invalid pod network CIDR '{pod_cidr}'")

        self._address = address
        self._port = port
        self._pod_cidr = pod_cidr

    @property
    def address(self):
        return self._address

    @property
    def port(self):
        return self._port

    @property
    def pod_cidr(self):
        return self._pod_cidr

    @property
    def server(self):
        """The API server URL, e.g. ``https://192.168.56.10:6443``"""
        host = self._address
        if ":" in host:
            host = f"[{host}]"
        return f"https://{host}:{self._port}"

    @property
    def healthz_url(self):
        return self.server + "/healthz"

    @property
    def cluster_info_url(self):
        return (self.server +
                "/api/v1/namespaces/kube-public/configmaps/cluster-info")

    def __repr__(self):
        return "<ClusterEndpoint %s pod-cidr=%s>" % (self.server,
                                                     self._pod_cidr)
