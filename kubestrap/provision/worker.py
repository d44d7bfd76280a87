"""
Join a worker to the cluster published by the control plane.

Workers may boot before the control plane, so every step waits. Each
wait has its own deadline, a timeout aborts the join.
"""
from kubestrap.deploy.k8s import APIProbe
from kubestrap.util.logger import Logger
from kubestrap.util.util import (BootstrapError, Clock, JoinFailed, retry,
                                 run_command, wait_for)

LOGGER = Logger(__name__)


class WorkerJoiner:
    """Waits for the join command and runs it.

    Args:
        endpoint (:class:`kubestrap.cluster.ClusterEndpoint`)
        channel (:class:`kubestrap.rendezvous.RendezvousChannel`)
        config (dict): the loaded configuration
        runner: callable with the signature of
            :func:`kubestrap.util.util.run_command`
        probe (:class:`kubestrap.deploy.k8s.APIProbe`)
        clock: see :class:`kubestrap.util.util.Clock`
    """

    def __init__(self, endpoint, channel, config, runner=run_command,
                 probe=None, clock=None):
        self.endpoint = endpoint
        self.channel = channel
        self.timeouts = config['timeouts']
        self.runner = runner
        self.probe = probe or APIProbe(endpoint, self.timeouts['probe'])
        self.clock = clock or Clock()
        self.attempts = 0

    def await_join_script(self):
        timeout = self.timeouts['artifact']
        LOGGER.info("Waiting for join script (timeout %ss)", timeout)
        content = self.channel.await_and_read(
            self.timeouts['artifact-interval'], timeout, clock=self.clock)
        LOGGER.info("Found join script")
        return self.channel.normalize(content)

    def await_api(self):
        timeout = self.timeouts['api']
        LOGGER.info("Waiting for API server %s to be healthy (timeout %ss)",
                    self.endpoint.healthz_url, timeout)
        wait_for(self.probe.healthz, timeout, self.timeouts['api-interval'],
                 clock=self.clock, what="API server /healthz")
        LOGGER.info("API server healthy")

    def await_cluster_info(self):
        timeout = self.timeouts['api']
        LOGGER.info("Waiting for cluster-info ConfigMap (timeout %ss)",
                    timeout)
        wait_for(self.probe.cluster_info_available, timeout,
                 self.timeouts['cluster-info-interval'], clock=self.clock,
                 what="cluster-info ConfigMap")
        LOGGER.info("cluster-info ConfigMap is available")

    def _run_join(self, script):
        self.attempts += 1
        LOGGER.info("Attempt %d/%d: running join script ...", self.attempts,
                    self.timeouts['join-tries'])
        proc = self.runner(["bash", "-c", script])
        if proc.returncode:
            raise JoinFailed("join attempt %d failed (rc=%s)" % (
                self.attempts, proc.returncode))

    def join(self, script):
        """Run the join script until it exits with 0.

        Raises:
            JoinFailed after ``join-tries`` failed attempts.
        """
        tries = self.timeouts['join-tries']
        self.attempts = 0
        run_join = retry(JoinFailed, tries=tries,
                         delay=self.timeouts['join-delay'], backoff=1,
                         logger=LOGGER.warning,
                         sleep=self.clock.sleep)(self._run_join)
        try:
            run_join(script)
        except JoinFailed:
            raise JoinFailed(f"join failed after {tries} attempts") from None
        LOGGER.success("Join succeeded.")

    def run(self):
        """Run all steps.

        Raises:
            :class:`kubestrap.util.util.TimedOut` if a wait timed out,
            :class:`kubestrap.util.util.JoinFailed` if the join failed,
            :class:`kubestrap.util.util.BootstrapError` if the join script
            is not valid UTF-8.
        """
        content = self.await_join_script()
        try:
            script = content.decode()
        except UnicodeDecodeError as exc:
            raise BootstrapError(f"join script is not valid UTF-8: {exc}") \
                from None
        self.await_api()
        self.await_cluster_info()
        self.join(script)
