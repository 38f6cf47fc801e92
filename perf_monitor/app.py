"""
Status HTTP endpoints served from the engine's published state
"""

import logging
import threading

from flask import Flask, Response, jsonify

from .status_report import render_status

logger = logging.getLogger(__name__)


def create_app(engine) -> Flask:
    """
    Build the status application

    Args:
        engine: MonitorEngine whose latest snapshot and alert states are served

    Returns:
        Flask app
    """
    app = Flask(__name__)

    @app.route('/health')
    def health():
        """Liveness plus alert states"""
        snapshot = engine.latest_snapshot
        records = engine.alert_manager.state_tracker.get_all_records()
        return jsonify({
            'status': 'ok' if snapshot is not None else 'starting',
            'last_cycle': snapshot.timestamp.isoformat() if snapshot is not None else None,
            'alerts': {key: record.state.value for key, record in records.items()},
        })

    @app.route('/status')
    def status():
        """Text status report of the latest cycle"""
        snapshot = engine.latest_snapshot
        if snapshot is None:
            return Response("No sampling cycle completed yet\n", status=503, mimetype='text/plain')
        report = render_status(snapshot, engine.thresholds.status_top_n)
        return Response(report + "\n", mimetype='text/plain')

    return app


def start_status_server(engine, host: str, port: int) -> threading.Thread:
    """
    Serve the status app on a daemon thread

    Args:
        engine: MonitorEngine
        host: Bind address
        port: Bind port

    Returns:
        The server thread
    """
    app = create_app(engine)
    thread = threading.Thread(
        target=app.run,
        kwargs={'host': host, 'port': port, 'debug': False, 'use_reloader': False},
        name='status-server',
        daemon=True,
    )
    thread.start()
    logger.info("Status server listening on http://%s:%d", host, port)
    return thread
