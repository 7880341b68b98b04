#!/usr/bin/env python3
"""
Minimal HTTP endpoint serving the rendered metrics snapshot.
"""

import logging
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Callable

logger = logging.getLogger(__name__)

CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"


def make_handler(render: Callable[[], str], metrics_path: str = "/"):
    class MetricsHandler(BaseHTTPRequestHandler):
        def do_GET(self):
            if self.path.split("?", 1)[0] != metrics_path:
                self.send_error(404)
                return

            try:
                body = render().encode("utf-8")
            except Exception as e:
                logger.exception(f"Failed to render metrics: {e}")
                self.send_error(500)
                return

            self.send_response(200)
            self.send_header("Content-Type", CONTENT_TYPE)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, format, *args):
            logger.debug(f"{self.address_string()} - {format % args}")

    return MetricsHandler


class MetricsServer:
    def __init__(self, host: str, port: int, render: Callable[[], str], metrics_path: str = "/"):
        self.server = ThreadingHTTPServer((host, port), make_handler(render, metrics_path))
        self.server.daemon_threads = True
        self.thread = threading.Thread(target=self.server.serve_forever, name="metrics-server", daemon=True)

    @property
    def address(self):
        return self.server.server_address

    def start(self) -> None:
        self.thread.start()

    def stop(self) -> None:
        self.server.shutdown()
        self.server.server_close()
