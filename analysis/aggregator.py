import logging
from typing import Any, Callable, Dict, List, Optional

from analysis.workload import Resources, WorkloadIdentity, WorkloadKind, WorkloadSnapshot
from normalize.quantity import Quantity

logger = logging.getLogger(__name__)

# (namespace, label query) -> live pod usage records
UsageFetcher = Callable[[str, str], List[Dict[str, Any]]]


class SelectorError(Exception):
    """Raised when a pod selector cannot be expressed as an equality label query"""
    pass


def selector_to_labels(selector: Optional[Dict[str, Any]]) -> Dict[str, str]:
    """Flatten a label selector into a plain key=value mapping.

    `selector` uses the snake_case layout of the kubernetes client
    (`match_labels`, `match_expressions`). Only `In` expressions with a
    single value have an equality form; anything else raises SelectorError.
    An absent selector selects every pod in the namespace.
    """
    if not selector:
        return {}

    labels: Dict[str, str] = dict(selector.get("match_labels") or {})
    for expr in selector.get("match_expressions") or []:
        key = expr.get("key")
        operator = expr.get("operator")
        values = expr.get("values") or []
        if operator == "In":
            if len(values) != 1:
                raise SelectorError(
                    f"operator {operator!r} without a single value cannot be converted "
                    f"into an equality label selector (key {key!r})"
                )
            labels[key] = values[0]
        elif operator in ("NotIn", "Exists", "DoesNotExist"):
            raise SelectorError(
                f"operator {operator!r} cannot be converted into an equality label selector (key {key!r})"
            )
        else:
            raise SelectorError(f"{operator!r} is not a valid selector operator (key {key!r})")
    return labels


def selector_to_query(selector: Optional[Dict[str, Any]]) -> str:
    """Render a selector as a `label_selector` query string, keys sorted."""
    labels = selector_to_labels(selector)
    return ",".join(f"{k}={labels[k]}" for k in sorted(labels))


def aggregate_requests(containers: List[Dict[str, Any]]) -> Resources:
    """Sum the declared requests of every container in a pod template.

    A container without a request adds zero.
    """
    total = Resources()
    for container in containers:
        total.add(
            Quantity.parse(container.get("cpu_request")),
            Quantity.parse(container.get("memory_request")),
        )
    return total


def aggregate_usage(pods: List[Dict[str, Any]]) -> Resources:
    """Sum the instantaneous usage of every container of every pod."""
    total = Resources()
    for pod in pods:
        for container in pod.get("containers") or []:
            total.add(
                Quantity.parse(container.get("cpu")),
                Quantity.parse(container.get("memory")),
            )
    return total


def build_snapshot(workload: Dict[str, Any], pods: List[Dict[str, Any]]) -> WorkloadSnapshot:
    identity = WorkloadIdentity(
        kind=WorkloadKind(workload["kind"]),
        namespace=workload["namespace"],
        name=workload["name"],
    )
    return WorkloadSnapshot(
        identity=identity,
        replicas=len(pods),
        requested=aggregate_requests(workload.get("containers") or []),
        observed=aggregate_usage(pods),
    )


def aggregate_workload(workload: Dict[str, Any], fetch_usage: UsageFetcher) -> WorkloadSnapshot:
    """Fetch live usage for a workload's pods and fold it into a snapshot.

    Errors from the selector conversion or from `fetch_usage` propagate;
    no partial snapshot is returned.
    """
    query = selector_to_query(workload.get("selector"))
    logger.debug(
        f"{workload['kind']} {workload['namespace']}/{workload['name']}: label selector {query!r}"
    )
    pods = fetch_usage(workload["namespace"], query)
    return build_snapshot(workload, pods)
