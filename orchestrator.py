"""Orchestrator: namespaces -> workloads -> aggregate -> verdict -> CSV rows.

Read-only: the report only lists objects and reads the resource metrics API.
Rows are written namespace by namespace in inventory order; within a
namespace Deployments come first, then StatefulSets. The first upstream or
selector error aborts the run and leaves the rows already written in place.
"""
import argparse
import logging
import sys
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Iterator, List, Optional, Sequence, TextIO, Tuple

from config import (
    setup_logging, build_report_config, ConfigValidationError, ReportConfig
)
from metrics import discovery as discovery_mod
from metrics import telemetry
from metrics.kube_client import ClusterAPIError, KubernetesClientSet, load_clients
from analysis.aggregator import SelectorError, aggregate_workload
from analysis.verdict import evaluate
from analysis.workload import Verdict, WorkloadSnapshot
from report.formatter import format_row, header

logger = logging.getLogger(__name__)

ReportRow = Tuple[WorkloadSnapshot, Verdict]

WORKLOAD_DISCOVERERS = (
    discovery_mod.discover_deployments,
    discovery_mod.discover_stateful_sets,
)


def collect_namespace(clients: KubernetesClientSet, namespace: str,
                      threshold_percent: int) -> List[ReportRow]:
    """Aggregate and judge every Deployment, then every StatefulSet, of one namespace."""
    fetch_usage = partial(telemetry.list_pod_usage, clients)
    rows: List[ReportRow] = []
    for discover in WORKLOAD_DISCOVERERS:
        for workload in discover(clients, namespace):
            snapshot = aggregate_workload(workload, fetch_usage)
            rows.append((snapshot, evaluate(snapshot, threshold_percent)))
    return rows


def _namespace_results(cfg: ReportConfig, clients: KubernetesClientSet,
                       namespaces: Sequence[str]) -> Iterator[Tuple[str, List[ReportRow]]]:
    collect = partial(collect_namespace, clients, threshold_percent=cfg.threshold_percent)
    if cfg.workers <= 1 or len(namespaces) <= 1:
        for ns in namespaces:
            yield ns, collect(ns)
        return

    # map() hands results back in submission order, so output stays deterministic
    executor = ThreadPoolExecutor(max_workers=cfg.workers)
    try:
        for ns, rows in zip(namespaces, executor.map(collect, namespaces)):
            yield ns, rows
    finally:
        executor.shutdown(wait=True, cancel_futures=True)


def iter_report(cfg: ReportConfig, clients: KubernetesClientSet,
                namespace: Optional[str] = None) -> Iterator[ReportRow]:
    """Yield (snapshot, verdict) pairs for every workload in report order.

    `namespace` restricts the run to a single namespace (still subject to the
    ignore list).
    """
    namespaces = discovery_mod.discover_namespaces(clients, list(cfg.ignore_namespaces))
    if cfg.ignore_namespaces:
        logger.debug(f"Ignoring namespaces: {', '.join(cfg.ignore_namespaces)}")
    if namespace is not None:
        namespaces = [ns for ns in namespaces if ns == namespace]
    logger.info(f"Processing {len(namespaces)} namespace(s) with {cfg.workers} worker(s)")

    for ns, rows in _namespace_results(cfg, clients, namespaces):
        logger.info(f"[{ns}] {len(rows)} workload(s)")
        yield from rows


def export(cfg: ReportConfig, clients: KubernetesClientSet, stream: TextIO) -> int:
    """Write the CSV report to `stream`. Returns the number of rows written."""
    stream.write(header(cfg.include_verdict) + "\n")
    count = 0
    for snapshot, verdict in iter_report(cfg, clients):
        stream.write(format_row(snapshot, verdict, cfg.include_verdict) + "\n")
        count += 1
    stream.flush()
    return count


def _parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="resources-usage",
        description="Compare workload resource requests with live usage and print a CSV report.",
    )
    parser.add_argument("--kubeconfig", default=None,
                        help="Kubernetes config file (default: standard loading rules, then in-cluster)")
    parser.add_argument("--context", default=None, help="kubeconfig context to use")
    parser.add_argument("--ignore-namespaces", default=None,
                        help="Comma separated namespaces to skip")
    parser.add_argument("--config", default=None, help="YAML configuration file")
    parser.add_argument("--workers", type=int, default=None,
                        help="Namespaces processed concurrently (default: 1)")
    parser.add_argument("--threshold-percent", type=int, default=None,
                        help="Surplus share of the request above which a workload is flagged (default: 10)")
    parser.add_argument("--no-verdict", dest="include_verdict", action="store_false", default=None,
                        help="Omit the Action and Note columns")
    parser.add_argument("-o", "--output", default=None, help="Write the report to this file instead of stdout")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    # Setup logging first
    setup_logging()
    args = _parse_args(argv)

    try:
        cfg = build_report_config(args.config, {
            'kubeconfig': args.kubeconfig,
            'context': args.context,
            'ignore_namespaces': args.ignore_namespaces,
            'workers': args.workers,
            'threshold_percent': args.threshold_percent,
            'include_verdict': args.include_verdict,
        })
        logger.info("Configuration validated successfully")
    except ConfigValidationError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    try:
        clients = load_clients(
            kubeconfig=cfg.kubeconfig,
            context=cfg.context,
            page_size=cfg.page_size,
            request_timeout_seconds=cfg.request_timeout_seconds,
        )
        if args.output:
            with open(args.output, 'w', encoding='utf-8') as f:
                count = export(cfg, clients, f)
        else:
            count = export(cfg, clients, sys.stdout)
    except (ClusterAPIError, SelectorError) as e:
        logger.error(f"Report aborted, output is incomplete: {e}")
        return 1
    except OSError as e:
        logger.error(f"Cannot write report: {e}")
        return 1

    logger.info(f"Report complete: {count} workload(s)")
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
