import pytest

from kubestrap.cluster import ClusterEndpoint, NodeRole


def test_node_role():
    assert NodeRole.parse("master") is NodeRole.CONTROL_PLANE
    assert NodeRole.parse("worker") is NodeRole.WORKER

    for invalid in ["bogus", "", "Master", None]:
        with pytest.raises(ValueError):
            NodeRole.parse(invalid)


def test_endpoint_urls():
    endpoint = ClusterEndpoint("10.0.0.5", "192.168.0.0/16")

    assert endpoint.port == 6443
    assert endpoint.server == "https://10.0.0.5:6443"
    assert endpoint.healthz_url == "https://10.0.0.5:6443/healthz"
    assert endpoint.cluster_info_url == (
        "https://10.0.0.5:6443/api/v1/namespaces/kube-public/"
        "configmaps/cluster-info")


def test_endpoint_hostname_and_ipv6():
    assert ClusterEndpoint("master", "10.244.0.0/16").server == \
        "https://master:6443"
    assert ClusterEndpoint("fd00::5", "10.244.0.0/16").server == \
        "https://[fd00::5]:6443"


def test_endpoint_is_read_only():
    endpoint = ClusterEndpoint("10.0.0.5", "192.168.0.0/16")
    with pytest.raises(AttributeError):
        endpoint.address = "10.0.0.6"


def test_endpoint_invalid():
    with pytest.raises(ValueError):
        ClusterEndpoint("not a host", "192.168.0.0/16")
    with pytest.raises(ValueError):
        ClusterEndpoint("10.0.0.5", "192.168.0.0")
    with pytest.raises(ValueError):
        ClusterEndpoint("10.0.0.5", "192.168.0.0/16", port=99999)
