#!/usr/bin/env python3
"""
Web UI for the workload right-sizing report

Every request loads cluster credentials and runs the report from scratch;
nothing is cached between requests.

Endpoints:
- /report.csv: the CSV report exactly as the CLI prints it
- /api/report: the same rows as JSON (optional ?namespace=)
- /health: liveness probe
"""
import io
import logging
from datetime import datetime, timezone
from flask import Flask, jsonify, Response, request

from config import setup_logging, build_report_config, ConfigValidationError
from metrics.kube_client import ClusterAPIError, load_clients
from analysis.aggregator import SelectorError
from orchestrator import export, iter_report
from report.formatter import row_as_dict

# Setup logging
setup_logging()
logger = logging.getLogger(__name__)

app = Flask(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')


def _clients(cfg):
    return load_clients(
        kubeconfig=cfg.kubeconfig,
        context=cfg.context,
        page_size=cfg.page_size,
        request_timeout_seconds=cfg.request_timeout_seconds,
    )


@app.errorhandler(ClusterAPIError)
def handle_cluster_error(e):
    logger.error(f"Cluster API failure: {e}")
    return jsonify({"error": str(e)}), 502


@app.errorhandler(SelectorError)
def handle_selector_error(e):
    logger.error(f"Selector conversion failure: {e}")
    return jsonify({"error": str(e)}), 500


@app.errorhandler(ConfigValidationError)
def handle_config_error(e):
    logger.error(f"Configuration error: {e}")
    return jsonify({"error": str(e)}), 500


@app.route('/report.csv')
def report_csv():
    """CSV report for all namespaces"""
    cfg = build_report_config()
    buf = io.StringIO()
    export(cfg, _clients(cfg), buf)
    return Response(buf.getvalue(), mimetype='text/csv')


@app.route('/api/report')
def report_json():
    """JSON report, optionally for a single namespace"""
    cfg = build_report_config()
    namespace = request.args.get('namespace')
    rows = [row_as_dict(s, v) for s, v in iter_report(cfg, _clients(cfg), namespace=namespace)]
    return jsonify({
        "generated_at": _now_iso(),
        "rows": rows,
    })


@app.route('/health')
def health():
    """Health check endpoint for liveness probes"""
    return jsonify({
        "status": "healthy",
        "timestamp": _now_iso()
    })


if __name__ == '__main__':
    logger.info("Workload right-sizing report UI")
    logger.info("Report: http://127.0.0.1:8080/report.csv")
    logger.info("Health: http://127.0.0.1:8080/health")
    app.run(debug=False, host='127.0.0.1', port=8080)
