# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""HTTP diagnostics surface for an ErrorAggregator."""

import json
import logging

from flask import Flask, Response, request
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from .aggregator import ErrorAggregator
from .models import Severity
from .prometheus_metrics import PrometheusMetricsCollector

logger = logging.getLogger(__name__)

MAX_LIMIT = 100
DEFAULT_LIMIT = 10


def _parse_int(name: str, default: int, minimum: int, maximum: int) -> int:
    raw = request.args.get(name, str(default))
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid '{name}' parameter, must be an integer")
    if value < minimum or value > maximum:
        raise ValueError(f"'{name}' must be between {minimum} and {maximum}")
    return value


def _payload(record) -> dict:
    # Tag values that are not JSON types are rendered as text
    return json.loads(record.to_json())


def create_app(aggregator: ErrorAggregator) -> Flask:
    """Create the diagnostics Flask application.

    Args:
        aggregator: The aggregator to expose

    Returns:
        Flask application
    """
    app = Flask(__name__)

    @app.route("/", methods=["GET"])
    def health():
        """Health check endpoint."""
        status = "closed" if aggregator.closed else "ok"
        return {"status": status, "service": "error-aggregator"}, 200

    @app.route("/api/errors", methods=["POST"])
    def report_error():
        """
        Report a new error.

        Expected JSON body:
        {
            "message": "Error message",       # or "cause"
            "context": "Network: /api/sync",  # optional
            "severity": "low|medium|high|critical",  # optional, default medium
            "tags": {...},                    # optional
            "trace": "..."                    # optional
        }
        """
        try:
            data = request.get_json(silent=True)

            if not data or not isinstance(data, dict):
                return {"error": "No JSON data provided"}, 400

            message = data.get("message", data.get("cause"))
            if message is None:
                return {"error": "Missing required field: message"}, 400

            try:
                severity = Severity.parse(data.get("severity", "medium"))
            except ValueError as e:
                return {"error": str(e)}, 400

            tags = data.get("tags") or {}
            if not isinstance(tags, dict):
                return {"error": "'tags' must be an object"}, 400

            record = aggregator.report(
                message,
                trace=data.get("trace") or "",
                context=data.get("context"),
                tags=tags,
                severity=severity,
            )

            return {"status": "ok", "error_id": record.id}, 201

        except Exception as e:
            logger.error(f"Failed to process error report: {str(e)}")
            return {"error": "Internal server error"}, 500

    @app.route("/api/errors", methods=["GET"])
    def get_errors():
        """
        Get retained errors, oldest first.

        Query parameters:
        - severity: Filter by severity
        - service: Filter by service tag
        - limit: Maximum number of errors to return, most recent kept (default: 10, max: 100)
        """
        try:
            try:
                limit = _parse_int("limit", DEFAULT_LIMIT, 1, MAX_LIMIT)
            except ValueError as e:
                return {"error": str(e)}, 400

            severity = request.args.get("severity")
            service = request.args.get("service")

            if severity:
                try:
                    records = aggregator.by_severity(severity)
                except ValueError as e:
                    return {"error": str(e)}, 400
            else:
                records = list(aggregator.all())

            if service:
                records = [r for r in records if r.tags.get("service") == service]

            records = records[-limit:]

            return {
                "errors": [_payload(r) for r in records],
                "count": len(records),
                "limit": limit,
            }, 200

        except Exception as e:
            logger.error(f"Failed to retrieve errors: {str(e)}")
            return {"error": "Internal server error"}, 500

    @app.route("/api/errors", methods=["DELETE"])
    def clear_errors():
        """Clear retained history."""
        aggregator.clear()
        return {"status": "ok"}, 200

    @app.route("/api/errors/<error_id>", methods=["GET"])
    def get_error(error_id):
        """Get a specific error by ID."""
        record = aggregator.get(error_id)

        if record is None:
            return {"error": "Error not found"}, 404

        return _payload(record), 200

    @app.route("/api/stats", methods=["GET"])
    def get_stats():
        """Get error statistics."""
        return aggregator.stats(), 200

    @app.route("/metrics", methods=["GET"])
    def metrics():
        """Prometheus metrics endpoint for the aggregator's collector registry."""
        collector = aggregator.metrics
        if not isinstance(collector, PrometheusMetricsCollector):
            return {"error": "Prometheus metrics are not enabled"}, 404
        return generate_latest(collector.registry), 200, {"Content-Type": CONTENT_TYPE_LATEST}

    @app.route("/api/errors/stream", methods=["GET"])
    def stream_errors():
        """
        Stream newly reported errors as Server-Sent Events.

        Query parameters:
        - max_events: Close the stream after this many events (default: unlimited)
        - timeout: Seconds between keep-alive comments (default: 15)
        """
        try:
            max_events = _parse_int("max_events", 0, 0, 1_000_000)
            timeout = _parse_int("timeout", 15, 1, 300)
        except ValueError as e:
            return {"error": str(e)}, 400

        # Subscribe before returning so nothing reported after this request is missed
        subscription = aggregator.subscribe()

        def generate():
            sent = 0
            try:
                yield ": connected\n\n"
                while not max_events or sent < max_events:
                    record = subscription.get(timeout=timeout)
                    if record is None:
                        if subscription.closed:
                            break
                        yield ": keep-alive\n\n"
                        continue
                    yield f"id: {record.id}\ndata: {record.to_json()}\n\n"
                    sent += 1
            finally:
                subscription.cancel()

        return Response(generate(), mimetype="text/event-stream", headers={"Cache-Control": "no-cache"})

    return app
