"""
talk to the control plane, either anonymously over HTTPS or via the
kubernetes API client with the admin credentials
"""
import logging

import urllib3

from kubernetes import client as k8sclient
from kubernetes.config import kube_config

from kubestrap import CORE_COMPONENTS
from kubestrap.util.logger import Logger

LOGGER = Logger(__name__)


class APIProbe:
    """Anonymous HTTPS checks against the API server.

    The cluster CA is self signed and not known to the hosts at this
    point, so certificates are not verified. These requests never carry
    credentials.

    Args:
        endpoint (:class:`kubestrap.cluster.ClusterEndpoint`): the API server
        timeout (float): connect and read timeout of a single request
    """

    def __init__(self, endpoint, timeout=3):
        self.endpoint = endpoint
        self.timeout = timeout
        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
        self.http = urllib3.PoolManager(
            cert_reqs="CERT_NONE",
            retries=False,
            timeout=urllib3.Timeout(connect=timeout, read=timeout))

    def _get_ok(self, url):
        logging.getLogger("urllib3").setLevel(logging.ERROR)
        try:
            resp = self.http.request("GET", url, preload_content=True)
        except urllib3.exceptions.HTTPError as exc:
            LOGGER.debug("GET %s failed: %s", url, exc)
            return False
        finally:
            logging.getLogger("urllib3").setLevel(logging.WARNING)

        LOGGER.debug("GET %s: %s", url, resp.status)
        return resp.status == 200

    def healthz(self):
        """Check if the API server answers on ``/healthz``.

        Returns:
            True if it responded with 200.
        """
        return self._get_ok(self.endpoint.healthz_url)

    def cluster_info_available(self):
        """Check if the ``cluster-info`` ConfigMap can be read.

        Workers validate the discovery token against this ConfigMap. It
        can become readable later than ``/healthz``.
        """
        return self._get_ok(self.endpoint.cluster_info_url)


def _is_ready(pod):
    conditions = pod.status.conditions or []
    return any(c.type == 'Ready' and c.status == 'True' for c in conditions)


class K8S:
    """Queries the cluster with the admin credentials.

    The client is created on first use, since the kubeconfig only exists
    after ``kubeadm init``.

    Args:
        config (str): File path for the kubernetes configuration file
        namespace (str): the namespace of the control plane pods
    """

    def __init__(self, config, namespace="kube-system"):
        self.config = config
        self.namespace = namespace
        self._api = None

    @property
    def api(self):
        """A ``CoreV1Api`` instance.

        Raises:
            ``kubernetes.config.ConfigException`` if the kubeconfig is
                missing or invalid.
        """
        if self._api is None:
            client = kube_config.new_client_from_config(
                config_file=self.config)
            self._api = k8sclient.CoreV1Api(api_client=client)
        return self._api

    def core_pods_running(self, components=CORE_COMPONENTS):
        """Count the running control plane pods.

        A pod counts if its name contains one of the component names and
        its phase is ``Running``.

        Returns:
            int
        """
        pods = self.api.list_namespaced_pod(self.namespace).items
        running = [pod.metadata.name for pod in pods
                   if pod.status.phase == "Running" and
                   any(c in pod.metadata.name for c in components)]
        LOGGER.debug("Running control plane pods: %s", running)
        return len(running)

    def pods_ready(self, label_selector):
        """Check if all pods matching label_selector are Ready.

        Returns:
            False if there is no such pod yet.
        """
        pods = self.api.list_namespaced_pod(
            self.namespace, label_selector=label_selector).items
        return bool(pods) and all(_is_ready(pod) for pod in pods)

    def list_nodes(self):
        """Returns a list of (name, ready) tuples of all nodes"""
        return [(node.metadata.name, _is_ready(node))
                for node in self.api.list_node().items]

    def list_system_pods(self):
        """Returns a list of (name, phase) tuples in the system namespace"""
        return [(pod.metadata.name, pod.status.phase)
                for pod in self.api.list_namespaced_pod(self.namespace).items]
