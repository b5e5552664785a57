#!/usr/bin/env python3
"""
KP Layout — Application Entry Point
Creates Flask app and registers the KP Blueprint.
"""

import os
import time
import logging

from flask import Flask, request

from logging_config import setup_logging

log = logging.getLogger("kp")


def create_app(config: dict = None):
    """Application factory."""
    app = Flask(__name__)
    app.secret_key = os.environ.get("SECRET_KEY", "kp-layout")
    if config:
        app.config.update(config)

    if not app.config.get("TESTING"):
        setup_logging()

    from kp_layout.core.paths import validate_paths
    checks = validate_paths()
    for err in checks["errors"]:
        log.error("STARTUP: %s", err)
    for warn in checks["warnings"]:
        log.warning("STARTUP: %s", warn)

    from kp_layout.api.routes_kp import bp
    app.register_blueprint(bp)

    # ── Request-level structured logging ────────────────────────────────────
    @app.before_request
    def _log_request_start():
        request._start_time = time.time()

    @app.after_request
    def _log_request_end(response):
        if hasattr(request, "_start_time"):
            duration_ms = round((time.time() - request._start_time) * 1000, 1)
            log.info("%s %s → %d (%.0fms)",
                     request.method, request.path, response.status_code, duration_ms,
                     extra={"route": request.path, "method": request.method,
                            "status": response.status_code, "duration_ms": duration_ms})
        return response

    @app.route("/api/health")
    def health():
        return {"ok": True}

    return app


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5000))
    create_app().run(host="0.0.0.0", port=port, debug=False)
