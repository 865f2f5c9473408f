from typing import Any, Dict, Optional

from analysis.workload import Verdict, WorkloadSnapshot
from normalize.quantity import Quantity

BASE_COLUMNS = [
    "Namespace",
    "Name",
    "Kind",
    "Replicas",
    "CPU Usage/CPU Request(m)",
    "Memory Usage/Memory Request(Mi)",
]
VERDICT_COLUMNS = ["Action", "Note"]

UNLIMITED = "unlimit"


def header(include_verdict: bool = True) -> str:
    columns = BASE_COLUMNS + VERDICT_COLUMNS if include_verdict else BASE_COLUMNS
    return ",".join(columns)


def format_cpu(usage: Quantity, request: Quantity) -> str:
    if request.is_zero():
        return f"{usage.milli_value()}m/{UNLIMITED}"
    return f"{usage.milli_value()}m/{request.milli_value()}m"


def format_memory(usage: Quantity, request: Quantity) -> str:
    if request.is_zero():
        return f"{usage.mebibytes()}Mi/{UNLIMITED}"
    return f"{usage.mebibytes()}Mi/{request.mebibytes()}Mi"


def format_row(snapshot: Optional[WorkloadSnapshot], verdict: Optional[Verdict] = None,
               include_verdict: bool = True) -> str:
    """Render one CSV line for a workload.

    Fields are joined with commas and never quoted. A missing snapshot renders
    as an empty string.
    """
    if snapshot is None:
        return ""
    fields = [
        snapshot.identity.namespace,
        snapshot.identity.name,
        snapshot.identity.kind.value,
        str(snapshot.replicas),
        format_cpu(snapshot.observed.cpu, snapshot.requested.cpu),
        format_memory(snapshot.observed.memory, snapshot.requested.memory),
    ]
    if include_verdict:
        fields.append(verdict.action.value if verdict else "")
        fields.append((verdict.note or "") if verdict else "")
    return ",".join(fields)


def row_as_dict(snapshot: WorkloadSnapshot, verdict: Verdict) -> Dict[str, Any]:
    """Structured form of a report row, used by the JSON API"""
    requested, observed = snapshot.requested, snapshot.observed
    return {
        "namespace": snapshot.identity.namespace,
        "name": snapshot.identity.name,
        "kind": snapshot.identity.kind.value,
        "replicas": snapshot.replicas,
        "cpu_usage_m": observed.cpu.milli_value(),
        "cpu_request_m": None if requested.cpu.is_zero() else requested.cpu.milli_value(),
        "memory_usage_mi": observed.memory.mebibytes(),
        "memory_request_mi": None if requested.memory.is_zero() else requested.memory.mebibytes(),
        "action": verdict.action.value,
        "note": verdict.note or "",
    }
