"""
bootstrap
=========

The main entry point, run once on every host of the cluster::

    kubestrap master 192.168.56.10 3
    kubestrap worker 192.168.56.10 3

Exactly one host may be started as ``master``, nothing detects a second
one. Exit codes are 0 on success, 1 if a phase failed and 2 for an
unknown role or an invalid address.
"""
import argparse
import socket
import sys

from kubestrap import __version__, DEFAULT_MASTER_IP, DEFAULT_WORKER_COUNT
from kubestrap.cluster import ClusterEndpoint, NodeRole
from kubestrap.config import load_config
from kubestrap.provision.host import HostPreparer
from kubestrap.provision.master import ControlPlaneInitializer
from kubestrap.provision.worker import WorkerJoiner
from kubestrap.rendezvous import SharedDirChannel
from kubestrap.util.logger import Logger
from kubestrap.util.util import BootstrapError, run_command

LOGGER = Logger(__name__)


def get_parser():
    """Create the argument parser"""
    parser = argparse.ArgumentParser(
        prog="kubestrap",
        description="Bootstrap a kubeadm cluster node. Run with role master "
                    "on exactly one host first or concurrently, then with "
                    "role worker on all other hosts.")
    parser.add_argument("role", help="one of master or worker")
    parser.add_argument("address", nargs="?", default=DEFAULT_MASTER_IP,
                        help="the address of the control plane "
                             "(default: %(default)s)")
    parser.add_argument("workers", nargs="?", type=int,
                        default=DEFAULT_WORKER_COUNT,
                        help="the number of workers (default: %(default)s)")
    parser.add_argument("--config", "-c", default=None,
                        help="YAML file overriding the default settings")

    verbosity_help = "".join([
        "set the verbosity level (",
        "0 = quiet, ",
        "1 = error, ",
        "2 = warning, ",
        "3 = info, ",
        "4 = debug)"])
    parser.add_argument("--verbosity", "-v",
                        help=verbosity_help,
                        choices=['0', '1', '2', '3', '4', 'quiet',
                                 'error', 'warning', 'info', 'debug'],
                        type=str,
                        default='3')
    parser.add_argument("--version", action="version",
                        version="%(prog)s version: " + __version__)
    return parser


def make_channel(config):
    """The shared directory channel described by config"""
    return SharedDirChannel(config['shared-root'],
                            join_script=config['join-script'],
                            owner=(config['owner-uid'], config['owner-gid']))


def bootstrap(role, endpoint, config, workers=DEFAULT_WORKER_COUNT,
              preparer=None, channel=None, **kwargs):
    """Prepare the host and run the phases of role.

    Args:
        role (:class:`kubestrap.cluster.NodeRole`)
        endpoint (:class:`kubestrap.cluster.ClusterEndpoint`)
        config (dict): the loaded configuration
        workers (int): the number of workers, only logged
        preparer (:class:`kubestrap.provision.host.HostPreparer`)
        channel (:class:`kubestrap.rendezvous.RendezvousChannel`)
        kwargs: passed to the role's class, e.g. runner, probe or clock

    Raises:
        :class:`kubestrap.util.util.BootstrapError`
    """
    LOGGER.info("Starting bootstrap for role=%s master=%s workers=%s",
                role.value, endpoint.address, workers)
    channel = channel or make_channel(config)
    preparer = preparer or HostPreparer(
        runner=kwargs.get('runner', run_command),
        kubernetes_version=config['kubernetes-version'])
    preparer.prepare()

    if role is NodeRole.CONTROL_PLANE:
        ControlPlaneInitializer(endpoint, channel, config, **kwargs).run()
    else:
        kwargs.pop('k8s', None)
        WorkerJoiner(endpoint, channel, config, **kwargs).run()


def main(argv=None):
    """
    run and execute kubestrap
    """
    args = get_parser().parse_args(argv)
    LOGGER.level = args.verbosity
    Logger.PREFIX = "[%s %s] " % (socket.gethostname(), args.role)

    try:
        role = NodeRole.parse(args.role)
    except ValueError as err:
        LOGGER.error(f"Error: {err} - exiting.")
        sys.exit(2)

    try:
        config = load_config(args.config)
    except (OSError, ValueError) as err:
        LOGGER.error(f"Error: invalid configuration: {err}")
        sys.exit(2)

    try:
        endpoint = ClusterEndpoint(args.address, config['pod-cidr'],
                                   port=config['api-port'])
    except ValueError as err:
        LOGGER.error(f"Error: {err}")
        sys.exit(2)

    try:
        bootstrap(role, endpoint, config, workers=args.workers)
    except BootstrapError as err:
        LOGGER.error(f"Error: {err}")
        LOGGER.error("%s bootstrap failed (see logs).", role.value)
        sys.exit(1)

    LOGGER.success("%s bootstrap finished successfully", role.value)
    sys.exit(0)


if __name__ == "__main__":
    main()
