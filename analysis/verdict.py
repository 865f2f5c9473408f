"""Right-sizing verdict for one workload snapshot.

All arithmetic is integer arithmetic on milli-CPU and bytes with division
truncated toward zero, so the same snapshot always yields the same verdict
and tiny requests (where the truncated threshold collapses) are left alone.
"""
from typing import Optional

from analysis.workload import Action, Verdict, WorkloadSnapshot
from normalize.quantity import MEBIBYTE

DEFAULT_THRESHOLD_PERCENT = 10


def _div_trunc(a: int, b: int) -> int:
    """Integer division truncated toward zero."""
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b > 0) else -q


def percent(part: int, whole: int) -> float:
    return (float(part) / float(whole)) * 100.0


def per_pod_surplus(requested: int, observed: int, replicas: int,
                    threshold_percent: int = DEFAULT_THRESHOLD_PERCENT) -> Optional[int]:
    """Per-pod amount that can be cut, or None when the dimension is fine.

    The surplus must be positive and strictly above `threshold_percent` of
    the per-pod request.
    """
    diff = _div_trunc(requested - observed, replicas)
    threshold = _div_trunc(_div_trunc(threshold_percent * requested, replicas), 100)
    if diff > 0 and diff > threshold:
        return diff
    return None


def evaluate(snapshot: WorkloadSnapshot,
             threshold_percent: int = DEFAULT_THRESHOLD_PERCENT) -> Verdict:
    if snapshot.replicas == 0:
        return Verdict(Action.NEED_REMOVE)

    replicas = snapshot.replicas
    notes = []

    req_cpu = snapshot.requested.cpu.milli_value()
    cpu_diff = per_pod_surplus(req_cpu, snapshot.observed.cpu.milli_value(), replicas, threshold_percent)
    if cpu_diff is not None:
        pct = percent(cpu_diff, _div_trunc(req_cpu, replicas))
        notes.append(f"Need reduce CPU {pct:.2f}%({cpu_diff}m per pod)")

    req_mem = snapshot.requested.memory.value()
    mem_diff = per_pod_surplus(req_mem, snapshot.observed.memory.value(), replicas, threshold_percent)
    if mem_diff is not None:
        pct = percent(mem_diff, _div_trunc(req_mem, replicas))
        notes.append(f"Need reduce Memory {pct:.2f}%({mem_diff // MEBIBYTE}Mi per pod)")

    if notes:
        return Verdict(Action.NEED_UPDATE, "; ".join(notes))
    return Verdict(Action.GOOD)
