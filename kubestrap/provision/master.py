"""
Initialize the control plane and publish what the workers need to join.

The steps run strictly in order:

1. ``kubeadm init``
2. export ``admin.conf`` to the shared directory
3. apply the CNI manifest
4. wait for the CNI pods
5. wait for the API server and the control plane pods
6. create a join command and publish it
7. log nodes and system pods
8. write the ready marker

Steps 1, 3 and 6 are fatal. The waits in 4 and 5 only log when they time
out, unless ``strict-health`` is set, then an unhealthy control plane is
fatal as well.
"""
from kubernetes.client.rest import ApiException
from kubernetes.config import ConfigException
import urllib3

from kubestrap import CORE_COMPONENTS
from kubestrap.deploy.k8s import APIProbe, K8S
from kubestrap.util.logger import Logger
from kubestrap.util.util import (BootstrapError, Clock, TimedOut, run_command,
                                 wait_for)

LOGGER = Logger(__name__)

# Raised by the kubernetes client while the API server is still starting
API_ERRORS = (ApiException, ConfigException, urllib3.exceptions.HTTPError)


class ControlPlaneInitializer:  # pylint: disable=too-many-instance-attributes
    """Bootstraps the first and only master of a cluster.

    Args:
        endpoint (:class:`kubestrap.cluster.ClusterEndpoint`)
        channel (:class:`kubestrap.rendezvous.RendezvousChannel`)
        config (dict): the loaded configuration
        runner: callable with the signature of
            :func:`kubestrap.util.util.run_command`
        probe (:class:`kubestrap.deploy.k8s.APIProbe`)
        k8s (:class:`kubestrap.deploy.k8s.K8S`)
        clock: see :class:`kubestrap.util.util.Clock`
    """

    def __init__(self, endpoint, channel, config, runner=run_command,
                 probe=None, k8s=None, clock=None):
        self.endpoint = endpoint
        self.channel = channel
        self.config = config
        self.timeouts = config['timeouts']
        self.runner = runner
        self.probe = probe or APIProbe(endpoint, self.timeouts['probe'])
        self.k8s = k8s or K8S(config['admin-conf'],
                              config['system-namespace'])
        self.clock = clock or Clock()
        self.admin_conf = config['admin-conf']

    def kubeadm_init(self):
        LOGGER.info("Initializing Kubernetes control plane on %s",
                    self.endpoint.address)
        cmd = ["kubeadm", "init",
               f"--apiserver-advertise-address={self.endpoint.address}",
               f"--pod-network-cidr={self.endpoint.pod_cidr}",
               "--ignore-preflight-errors=Swap"]
        if self.runner(cmd).returncode:
            raise BootstrapError("kubeadm init failed")

    def export_admin_conf(self):
        try:
            self.channel.export(self.admin_conf)
        except OSError as exc:
            LOGGER.warning("Could not export %s: %s", self.admin_conf, exc)

    def apply_cni(self):
        manifest = self.config['cni-manifest']
        LOGGER.info("Applying CNI manifest %s", manifest)
        cmd = ["kubectl", f"--kubeconfig={self.admin_conf}", "apply",
               "-f", manifest]
        if self.runner(cmd).returncode:
            raise BootstrapError("failed to apply CNI manifest %s" % manifest)

    def _cni_ready(self):
        try:
            return self.k8s.pods_ready(self.config['cni-selector'])
        except API_ERRORS as exc:
            LOGGER.debug("Listing CNI pods failed: %s", exc)
            return False

    def wait_for_cni(self):
        selector = self.config['cni-selector']
        LOGGER.info("Waiting for CNI pods (%s) to be ready ...", selector)
        try:
            wait_for(self._cni_ready, self.timeouts['cni-ready'],
                     self.timeouts['health-interval'], clock=self.clock,
                     what=f"pods {selector}")
        except TimedOut as exc:
            LOGGER.warning("%s, continuing", exc)
            return False
        LOGGER.success("CNI pods are ready")
        return True

    def control_plane_healthy(self):
        """One poll: API server reachable and all core pods running"""
        if not self.probe.healthz():
            return False
        LOGGER.info("API server /healthz is reachable")
        try:
            running = self.k8s.core_pods_running()
        except API_ERRORS as exc:
            LOGGER.debug("Listing control plane pods failed: %s", exc)
            return False
        return running >= len(CORE_COMPONENTS)

    def wait_for_control_plane(self):
        """Poll the control plane health a bounded number of times.

        Returns:
            True if the control plane became healthy.

        Raises:
            BootstrapError if it did not and ``strict-health`` is set.
        """
        attempts = self.timeouts['health-attempts']
        interval = self.timeouts['health-interval']
        LOGGER.info("Waiting for kube-apiserver, controller-manager, "
                    "scheduler and etcd pods to be running ...")
        for attempt in range(1, attempts + 1):
            if self.control_plane_healthy():
                LOGGER.success("All core control plane pods are running")
                return True
            LOGGER.info("Waiting for control plane to be ready ... "
                        "(attempt %d/%d)", attempt, attempts)
            self.clock.sleep(interval)

        if self.config['strict-health']:
            raise BootstrapError("control plane not healthy after %d attempts"
                                 % attempts)
        LOGGER.warning("Control plane not confirmed healthy after %d "
                       "attempts, continuing", attempts)
        return False

    def publish_join_command(self):
        LOGGER.info("Creating kubeadm join command")
        proc = self.runner(["kubeadm", "token", "create",
                            "--print-join-command"], capture=True)
        if proc.returncode or not proc.stdout.strip():
            raise BootstrapError("failed to create join command")
        try:
            self.channel.publish(proc.stdout.encode(), exec_perm=True)
        except OSError as exc:
            raise BootstrapError(f"failed to publish join command: {exc}")

    def validate(self):
        """Log the nodes and system pods, never fails"""
        LOGGER.info("Performing final cluster validation ...")
        try:
            for name, ready in self.k8s.list_nodes():
                LOGGER.info("node %s ready=%s", name, ready)
            for name, phase in self.k8s.list_system_pods():
                LOGGER.info("pod %s %s", name, phase)
        except API_ERRORS as exc:
            LOGGER.warning("Cluster validation failed: %s", exc)

    def run(self):
        """Run all steps.

        Raises:
            BootstrapError if a fatal step failed. The ready marker is not
                written in that case.
        """
        self.kubeadm_init()
        self.export_admin_conf()
        self.apply_cni()
        self.wait_for_cni()
        self.wait_for_control_plane()
        self.publish_join_command()
        self.validate()
        LOGGER.success("Master initialization complete.")
        try:
            self.channel.signal_ready(b"MASTER_READY=1\n")
        except OSError as exc:
            raise BootstrapError(f"failed to write ready marker: {exc}")
