"""
Test fixtures and configuration for pytest
"""
import pytest
from types import SimpleNamespace
from unittest.mock import MagicMock

from metrics.kube_client import KubernetesClientSet


def make_list(items, continue_token=None):
    """Typed list response as returned by CoreV1Api/AppsV1Api list calls"""
    return SimpleNamespace(items=items, metadata=SimpleNamespace(_continue=continue_token))


def make_namespace(name):
    return SimpleNamespace(metadata=SimpleNamespace(name=name))


def make_container(name, cpu=None, memory=None):
    requests = {}
    if cpu is not None:
        requests['cpu'] = cpu
    if memory is not None:
        requests['memory'] = memory
    return SimpleNamespace(name=name, resources=SimpleNamespace(requests=requests or None, limits=None))


def make_workload(name, namespace, containers, match_labels=None, match_expressions=None):
    """Deployment/StatefulSet stand-in with the attributes discovery reads"""
    selector = SimpleNamespace(
        match_labels=match_labels if match_labels is not None else {'app': name},
        match_expressions=match_expressions,
    )
    return SimpleNamespace(
        metadata=SimpleNamespace(name=name, namespace=namespace),
        spec=SimpleNamespace(
            selector=selector,
            template=SimpleNamespace(spec=SimpleNamespace(containers=containers)),
        ),
    )


def make_pod_metrics(name, *containers):
    """PodMetrics dict; each container is a (cpu, memory) tuple"""
    return {
        'metadata': {'name': name},
        'containers': [
            {'name': f'c{i}', 'usage': {'cpu': cpu, 'memory': memory}}
            for i, (cpu, memory) in enumerate(containers)
        ],
    }


@pytest.fixture(autouse=True)
def default_environment(monkeypatch):
    """Pin environment-derived config so a developer's shell cannot leak into tests"""
    import config
    monkeypatch.setattr(config, 'KUBECONFIG', None)
    monkeypatch.setattr(config, 'KUBE_CONTEXT', None)
    monkeypatch.setattr(config, 'KUBE_PAGE_SIZE', 0)
    monkeypatch.setattr(config, 'KUBE_REQUEST_TIMEOUT_SECONDS', 30)
    monkeypatch.setattr(config, 'IGNORE_NAMESPACES', 'default,kube-node-lease,kube-public,kube-system')
    monkeypatch.setattr(config, 'OVERPROVISION_THRESHOLD_PERCENT', 10)
    monkeypatch.setattr(config, 'REPORT_WORKERS', 1)
    monkeypatch.setattr(config, 'REPORT_INCLUDE_VERDICT', True)
    monkeypatch.setattr(config, 'REPORT_CONFIG_FILE', None)


@pytest.fixture
def fake_clients():
    """Client set whose APIs are MagicMocks returning empty lists by default"""
    core = MagicMock()
    apps = MagicMock()
    custom = MagicMock()
    core.list_namespace.return_value = make_list([])
    apps.list_namespaced_deployment.return_value = make_list([])
    apps.list_namespaced_stateful_set.return_value = make_list([])
    custom.list_namespaced_custom_object.return_value = {'items': [], 'metadata': {}}
    return KubernetesClientSet(core=core, apps=apps, custom=custom)


@pytest.fixture
def cluster(fake_clients):
    """
    Two namespaces:
      shop:  Deployment `api` (2 live pods, over-provisioned CPU),
             StatefulSet `db` (1 live pod, well sized)
      batch: Deployment `idle` (no live pods)
    plus kube-system, which is ignored by default
    """
    fake_clients.core.list_namespace.return_value = make_list([
        make_namespace('kube-system'),
        make_namespace('shop'),
        make_namespace('batch'),
    ])

    deployments = {
        'shop': [make_workload('api', 'shop', [make_container('app', cpu='1', memory='1Gi')])],
        'batch': [make_workload('idle', 'batch', [make_container('job', cpu='500m', memory='256Mi')])],
        'kube-system': [make_workload('coredns', 'kube-system', [make_container('dns', cpu='100m')])],
    }
    stateful_sets = {
        'shop': [make_workload('db', 'shop', [make_container('pg', cpu='1', memory='1Gi')])],
    }
    pod_metrics = {
        ('shop', 'app=api'): [
            make_pod_metrics('api-1', ('250m', '1Gi')),
            make_pod_metrics('api-2', ('250m', '1Gi')),
        ],
        ('shop', 'app=db'): [make_pod_metrics('db-0', ('950m', '1000Mi'))],
    }

    fake_clients.apps.list_namespaced_deployment.side_effect = \
        lambda ns, **kw: make_list(deployments.get(ns, []))
    fake_clients.apps.list_namespaced_stateful_set.side_effect = \
        lambda ns, **kw: make_list(stateful_sets.get(ns, []))
    fake_clients.custom.list_namespaced_custom_object.side_effect = \
        lambda group, version, ns, plural, **kw: {
            'items': pod_metrics.get((ns, kw.get('label_selector', '')), []),
            'metadata': {},
        }
    return fake_clients
