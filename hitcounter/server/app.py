from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from flask import Flask, Response, jsonify, request

from ..config import Config
from .events import RawEvent, normalize_event
from .privacy import is_private


logger = logging.getLogger("hitcounter.server")

# Preferred order of proxy headers carrying the original client address.
CLIENT_IP_HEADERS = ("X-Forwarded-For", "X-Real-IP", "CF-Connecting-IP")

ALLOWED_METHODS = "GET, POST"
ALLOWED_HEADERS = "Content-Type"


def client_ip_from_headers(headers: Mapping[str, str]) -> str:
    for name in CLIENT_IP_HEADERS:
        v = headers.get(name)
        if v:
            # XFF can be a comma-separated list; first is the original client.
            first = v.split(",")[0].strip()
            if first:
                return first
    return "unknown"


def _header_referrer() -> Optional[str]:
    return request.headers.get("Referer") or request.headers.get("Referrer")


def create_app(cfg: Config, store: Any) -> Flask:
    """
    Build the beacon receiver.

    `store` must provide insert_event(doc); it is owned by the caller, which
    opens it before serving and closes it on shutdown.
    """
    app = Flask(__name__)

    @app.after_request
    def add_cors_headers(resp: Response) -> Response:
        origin = request.headers.get("Origin")
        if cfg.cors.allows(origin):
            resp.headers["Access-Control-Allow-Origin"] = origin
            resp.headers["Access-Control-Allow-Methods"] = ALLOWED_METHODS
            resp.headers["Access-Control-Allow-Headers"] = ALLOWED_HEADERS
            resp.headers["Access-Control-Max-Age"] = "600"
        resp.headers.add("Vary", "Origin")
        return resp

    @app.get("/ping")
    def ping() -> Response:
        return Response("hello", mimetype="text/plain")

    @app.get("/")
    def index() -> Response:
        return jsonify({"message": "hitcounter is running", "endpoints": ["/ping", "/log"]})

    @app.post("/log")
    def log_event() -> Any:
        ip = client_ip_from_headers(request.headers)
        if is_private(ip):
            logger.debug("ignoring request from private address")
            return jsonify({"success": True, "message": "Localhost request ignored"})

        try:
            # An empty body carries no project; anything else must parse as JSON.
            body = request.get_json(force=True) if request.get_data() else {}
            if not isinstance(body, dict):
                body = {}
            raw = RawEvent.from_request(
                body,
                client_ip=ip,
                header_user_agent=request.headers.get("User-Agent"),
                header_referrer=_header_referrer(),
            )
            event = normalize_event(raw, ipv4_masked_octets=cfg.privacy.ipv4_masked_octets)
            if not event.project:
                logger.debug("rejected event without project")
                return jsonify({"error": "Missing required field: project is required"}), 400
            store.insert_event(event.to_document())
        except Exception:
            logger.exception("failed to save log entry")
            return jsonify({"error": "Failed to save log data"}), 500

        return jsonify({"success": True, "message": "Log entry created successfully"})

    return app
