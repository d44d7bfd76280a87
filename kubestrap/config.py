"""
config
======

Default settings of a bootstrap run and loading of the optional YAML
configuration file. Keys use dashes, like in the cluster configuration
files of koris-style tools::

    shared-root: /vagrant
    pod-cidr: 10.244.0.0/16
    strict-health: true
    timeouts:
      join-tries: 10
"""
import copy

import yaml

CALICO_MANIFEST = ("https://raw.githubusercontent.com/projectcalico/calico/"
                   "v3.26.1/manifests/calico.yaml")

DEFAULTS = {
    'shared-root': '/vagrant',
    'join-script': 'join.sh',
    'admin-conf': '/etc/kubernetes/admin.conf',
    'pod-cidr': '192.168.0.0/16',
    'api-port': 6443,
    'owner-uid': 1000,
    'owner-gid': 1000,
    'cni-manifest': CALICO_MANIFEST,
    'cni-selector': 'k8s-app=calico-node',
    'system-namespace': 'kube-system',
    'kubernetes-version': 'v1.28',
    'strict-health': False,
    'timeouts': {
        'cni-ready': 300,
        'health-attempts': 120,
        'health-interval': 5,
        'probe': 3,
        'artifact': 600,
        'artifact-interval': 2,
        'api': 600,
        'api-interval': 5,
        'cluster-info-interval': 3,
        'join-tries': 6,
        'join-delay': 5,
    },
}


def merge(defaults, overrides, path=""):
    """Return a copy of defaults updated with overrides.

    Nested dicts are merged key by key.

    Raises:
        ValueError for keys not present in defaults.
    """
    result = copy.deepcopy(defaults)
    for key, value in overrides.items():
        if key not in defaults:
            raise ValueError(f"unknown configuration key '{path}{key}'")
        if isinstance(defaults[key], dict):
            if not isinstance(value, dict):
                raise ValueError(f"'{path}{key}' must be a mapping")
            result[key] = merge(defaults[key], value, path=f"{path}{key}.")
        else:
            result[key] = value
    return result


# Used as loop counts, everything else in timeouts is seconds
COUNTS = ('health-attempts', 'join-tries')


def validate(config):
    """Check values which would otherwise break the polling loops.

    Raises:
        ValueError if a timeout is not a positive number or a count is
            not a positive integer.
    """
    for key, value in config['timeouts'].items():
        kinds = int if key in COUNTS else (int, float)
        if isinstance(value, bool) or not isinstance(value, kinds) \
                or value <= 0:
            what = "integer" if key in COUNTS else "number"
            raise ValueError(f"timeouts.{key} must be a positive {what}, "
                             f"got {value!r}")
    return config


def load_config(path=None):
    """Load the configuration.

    Args:
        path (str): optional YAML file, merged over :data:`DEFAULTS`

    Returns:
        The configuration as ``dict``.
    """
    if not path:
        return validate(copy.deepcopy(DEFAULTS))

    with open(path, 'r') as stream:
        overrides = yaml.safe_load(stream) or {}

    if not isinstance(overrides, dict):
        raise ValueError(f"{path} must contain a mapping")

    return validate(merge(DEFAULTS, overrides))
