"""
kubestrap.provision
-------------------

The phases run on a host:

* :mod:`kubestrap.provision.host` prepares every host, whatever its role.
* :mod:`kubestrap.provision.master` initializes the control plane and
  publishes the join command, see :class:`ControlPlaneInitializer`.
* :mod:`kubestrap.provision.worker` waits for the join command and joins
  the host, see :class:`WorkerJoiner`.
"""
