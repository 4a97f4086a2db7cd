"""Flask HTTP and WebSocket surface for log ingestion and querying."""

import json
import logging
from datetime import datetime, timezone

from flask import Flask, jsonify, request
from flask_sock import Sock
from simple_websocket import ConnectionClosed

from log_ingestor.config import Config
from log_ingestor.context import AppContext, build_context
from log_ingestor.errors import PersistenceError, ValidationError
from log_ingestor.models import format_timestamp
from log_ingestor.query import FilterCriteria, query

logger = logging.getLogger(__name__)


def create_app(config=None, context: AppContext | None = None) -> Flask:
    """Flask application factory."""
    app = Flask(__name__)
    sock = Sock(app)

    if context is None:
        if config is None:
            config = Config.from_env()
        context = build_context(config)

    app.config["context"] = context
    cors_origin = context.config["server"]["cors_origin"]
    poll_interval = context.config["broadcast"]["poll_interval_seconds"]

    @app.after_request
    def after_request(response):
        response.headers["Access-Control-Allow-Origin"] = cors_origin
        response.headers["Access-Control-Allow-Headers"] = "Content-Type"
        response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "SAMEORIGIN"
        logger.info("%s %s -> %d", request.method, request.path, response.status_code)
        return response

    # --- Routes ---

    @app.route("/health")
    def health():
        return jsonify({
            "status": "OK",
            "timestamp": format_timestamp(datetime.now(timezone.utc)),
        })

    @app.route("/logs", methods=["POST"])
    def ingest_log():
        candidate = request.get_json(silent=True)
        try:
            record = context.coordinator.ingest(candidate)
        except ValidationError as exc:
            return jsonify({"error": str(exc), "kind": exc.kind}), 400
        except PersistenceError:
            return jsonify({"error": "Internal server error during log ingestion or persistence"}), 500

        return jsonify({"message": "Log ingested successfully", "log": record.to_dict()}), 201

    @app.route("/logs", methods=["GET"])
    def list_logs():
        criteria = FilterCriteria.from_args(request.args)
        try:
            records = context.store.load()
        except PersistenceError:
            logger.exception("Failed to read logs for query")
            return jsonify({"error": "Internal server error during data retrieval or filtering"}), 500

        return jsonify([r.to_dict() for r in query(records, criteria)])

    @app.route("/stats")
    def stats():
        try:
            current_size = context.store.count()
        except PersistenceError:
            logger.exception("Failed to read logs for stats")
            return jsonify({"error": "Internal server error during data retrieval or filtering"}), 500

        return jsonify({
            "store": {
                "current_size": current_size,
                "max_records": context.store.max_records,
            },
            "ingestion": context.metrics.snapshot(),
            "validation": context.validator.get_stats(),
            "broadcast": context.broadcaster.stats(),
        })

    @sock.route("/ws")
    def live_logs(ws):
        subscription = context.broadcaster.subscribe()
        logger.info("Client connected: %s", subscription.id)
        try:
            while ws.connected:
                # client frames carry nothing; discard them
                while ws.receive(timeout=0) is not None:
                    pass
                event = subscription.get(timeout=poll_interval)
                if event is not None:
                    ws.send(json.dumps(event))
        except ConnectionClosed:
            logger.debug("Connection closed by client: %s", subscription.id)
        finally:
            context.broadcaster.unsubscribe(subscription)
            logger.info("Client disconnected: %s", subscription.id)

    return app
