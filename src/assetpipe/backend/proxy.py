"""Reverse proxy in front of the application server, with live reload.

The Flask app forwards every request to the upstream server. livereload wraps
it, injects its client script into HTML responses and pushes changes from the
static root to connected browsers: stylesheets are swapped in place, any other
file triggers a full page reload.
"""

from __future__ import annotations

import asyncio
import threading
from pathlib import Path
from typing import Optional

import httpx
from flask import Flask, Response, request
from livereload import Server

from ..orchestrator.logging import get_logger

METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

HOP_BY_HOP = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
}

# httpx already decoded the body, so length and encoding must be recomputed
DROPPED_RESPONSE_HEADERS = HOP_BY_HOP | {"content-encoding", "content-length"}

log = get_logger("serve.proxy")


def create_proxy_app(upstream: str, client: Optional[httpx.Client] = None) -> Flask:
    app = Flask(__name__)
    upstream = upstream.rstrip("/")
    client = client or httpx.Client(base_url=upstream, follow_redirects=False, timeout=None)
    app.config["UPSTREAM"] = upstream
    app.extensions["proxy_client"] = client

    @app.route("/", defaults={"path": ""}, methods=METHODS)
    @app.route("/<path:path>", methods=METHODS)
    def forward(path: str):
        url = "/" + path
        if request.query_string:
            url += "?" + request.query_string.decode("latin-1")
        headers = {
            k: v for k, v in request.headers.items() if k.lower() not in HOP_BY_HOP and k.lower() != "host"
        }
        try:
            upstream_resp = client.request(
                request.method, url, headers=headers, content=request.get_data()
            )
        except httpx.TransportError as e:
            log.warning("Upstream %s unavailable: %s", upstream, e)
            return Response(f"Upstream server unavailable: {e}\n", status=502, mimetype="text/plain")

        resp_headers = []
        for k, v in upstream_resp.headers.multi_items():
            if k.lower() in DROPPED_RESPONSE_HEADERS:
                continue
            if k.lower() == "location" and v.startswith(upstream):
                v = request.host_url.rstrip("/") + v[len(upstream) :]
            resp_headers.append((k, v))
        return Response(upstream_resp.content, status=upstream_resp.status_code, headers=resp_headers)

    return app


def serve_proxy(
    app: Flask,
    static_dir: Path,
    port: int,
    host: str = "localhost",
    open_browser: bool = False,
) -> None:
    """Serve ``app`` through livereload; blocks until the IO loop stops."""
    static_dir.mkdir(parents=True, exist_ok=True)
    server = Server(app.wsgi_app)
    server.watch(str(static_dir))
    log.info("Proxying %s on http://%s:%d", app.config["UPSTREAM"], host, port)
    server.serve(
        port=port,
        host=host,
        debug=False,
        open_url_delay=1 if open_browser else None,
    )


def start_proxy_thread(
    app: Flask,
    static_dir: Path,
    port: int,
    host: str = "localhost",
    open_browser: bool = False,
) -> threading.Thread:
    def target() -> None:
        # Tornado needs an event loop bound to this thread
        asyncio.set_event_loop(asyncio.new_event_loop())
        serve_proxy(app, static_dir, port, host=host, open_browser=open_browser)

    thread = threading.Thread(target=target, name="livereload-proxy", daemon=True)
    thread.start()
    return thread
