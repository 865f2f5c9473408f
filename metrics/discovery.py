from typing import List, Dict, Any, Optional

from analysis.workload import WorkloadKind
from .kube_client import KubernetesClientSet, list_all


def _namespace_allowed(ns: str, exclude_list: List[str]) -> bool:
    return ns not in exclude_list


def discover_namespaces(clients: KubernetesClientSet,
                        namespace_deny: Optional[List[str]] = None) -> List[str]:
    """List namespace names in API order, dropping the ignored ones."""
    exclude = list(namespace_deny or [])
    items = list_all(clients, "list namespaces", clients.core.list_namespace)
    return [ns.metadata.name for ns in items if _namespace_allowed(ns.metadata.name, exclude)]


def _selector_dict(selector: Any) -> Optional[Dict[str, Any]]:
    if selector is None:
        return None
    expressions = []
    for expr in selector.match_expressions or []:
        expressions.append({
            'key': expr.key,
            'operator': expr.operator,
            'values': list(expr.values or []),
        })
    return {
        'match_labels': dict(selector.match_labels or {}),
        'match_expressions': expressions,
    }


def _container_requests(pod_spec: Any) -> List[Dict[str, Any]]:
    containers = []
    for c in pod_spec.containers or []:
        requests = (c.resources.requests if c.resources else None) or {}
        containers.append({
            'name': c.name,
            'cpu_request': requests.get('cpu'),
            'memory_request': requests.get('memory'),
        })
    return containers


def _workload_record(kind: WorkloadKind, obj: Any) -> Dict[str, Any]:
    return {
        'kind': kind.value,
        'name': obj.metadata.name,
        'namespace': obj.metadata.namespace,
        'containers': _container_requests(obj.spec.template.spec),
        'selector': _selector_dict(obj.spec.selector),
    }


def discover_deployments(clients: KubernetesClientSet, namespace: str) -> List[Dict[str, Any]]:
    """
    Returns one record per Deployment in `namespace`:
      {kind, name, namespace, containers: [{name, cpu_request, memory_request}], selector}
    Requests are the raw quantity strings (or None when not declared).
    """
    items = list_all(clients, f"list deployments in {namespace}",
                     clients.apps.list_namespaced_deployment, namespace)
    return [_workload_record(WorkloadKind.DEPLOYMENT, d) for d in items]


def discover_stateful_sets(clients: KubernetesClientSet, namespace: str) -> List[Dict[str, Any]]:
    """Same record layout as discover_deployments, for StatefulSets."""
    items = list_all(clients, f"list statefulsets in {namespace}",
                     clients.apps.list_namespaced_stateful_set, namespace)
    return [_workload_record(WorkloadKind.STATEFUL_SET, s) for s in items]
