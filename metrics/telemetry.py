from typing import List, Dict, Any

from .kube_client import KubernetesClientSet, list_all

METRICS_GROUP = "metrics.k8s.io"
METRICS_VERSION = "v1beta1"


def list_pod_usage(clients: KubernetesClientSet, namespace: str, label_selector: str) -> List[Dict[str, Any]]:
    """
    Query the resource metrics API for live pods matching `label_selector`.

    Returns one entry per pod: {name, containers: [{name, cpu, memory}]}, where
    cpu/memory are the raw quantity strings from the PodMetrics object.
    """
    kwargs = {}
    if label_selector:
        kwargs['label_selector'] = label_selector
    items = list_all(
        clients,
        f"list pod metrics in {namespace} ({label_selector or 'all pods'})",
        clients.custom.list_namespaced_custom_object,
        METRICS_GROUP, METRICS_VERSION, namespace, "pods",
        **kwargs
    )
    pods = []
    for item in items:
        containers = []
        for c in item.get('containers') or []:
            usage = c.get('usage') or {}
            containers.append({'name': c.get('name'), 'cpu': usage.get('cpu'), 'memory': usage.get('memory')})
        pods.append({'name': (item.get('metadata') or {}).get('name'), 'containers': containers})
    return pods
