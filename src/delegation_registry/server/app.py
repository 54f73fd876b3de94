"""HTTP server for the delegation registry using stdlib http.server.

Routes:
    POST   /resources              — register an owner's resource under a scope
    DELETE /resources              — remove an owner's resource
    POST   /delegations            — grant a delegation (requester is the owner)
    DELETE /delegations            — revoke a delegation (requester is the owner)
    GET    /delegations/status     — expiry, activity and state of one key
    GET    /health                 — health check

The requesting identity is read from the ``X-Requesting-Identity`` header.

Usage:
    python -m delegation_registry.server.app --port 8080
    python -m delegation_registry.server.app --unit-length 60 --max-duration 30
"""
from __future__ import annotations

import argparse
import json
import logging
import urllib.parse
from collections.abc import Iterable
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

from delegation_registry.audit import DelegationAuditLogger
from delegation_registry.config import RegistryConfig
from delegation_registry.directory import ResourceDirectory
from delegation_registry.registry import DelegationRegistry
from delegation_registry.server import routes
from delegation_registry.service import DelegationService

logger = logging.getLogger(__name__)


class DelegationServer(ThreadingHTTPServer):
    """HTTP server owning the service instance its handlers dispatch to."""

    def __init__(
        self,
        server_address: tuple[str, int],
        service: DelegationService,
    ) -> None:
        super().__init__(server_address, DelegationRequestHandler)
        self.service = service


class DelegationRequestHandler(BaseHTTPRequestHandler):
    """HTTP request handler for the delegation server.

    All request bodies and responses use JSON.
    """

    server: DelegationServer

    def log_message(self, format: str, *args: object) -> None:
        """Route access logs through the Python logging system."""
        logger.debug(format, *args)

    @property
    def service(self) -> DelegationService:
        return self.server.service

    @property
    def requesting_identity(self) -> str | None:
        value = self.headers.get(routes.IDENTITY_HEADER)
        return value.strip() if value and value.strip() else None

    # ── GET ───────────────────────────────────────────────────────────────────

    def do_GET(self) -> None:
        parsed = urllib.parse.urlparse(self.path)
        path = parsed.path.rstrip("/")

        if path == "/health":
            status, data = routes.handle_health(self.service)
        elif path == "/delegations/status":
            params = urllib.parse.parse_qs(parsed.query)
            status, data = routes.handle_status(
                self.service,
                owner=self._first_param(params, "owner"),
                delegate=self._first_param(params, "delegate"),
                scope=self._first_param(params, "scope"),
            )
        else:
            status, data = 404, {"error": "Not found", "detail": f"No route for GET {path}"}
        self._send_json(status, data)

    # ── POST ──────────────────────────────────────────────────────────────────

    def do_POST(self) -> None:
        parsed = urllib.parse.urlparse(self.path)
        path = parsed.path.rstrip("/")

        body = self._read_json_body()
        if body is None:
            return

        if path == "/resources":
            status, data = routes.handle_create_resource(self.service, body, self.requesting_identity)
        elif path == "/delegations":
            status, data = routes.handle_grant(self.service, body, self.requesting_identity)
        else:
            status, data = 404, {"error": "Not found", "detail": f"No route for POST {path}"}
        self._send_json(status, data)

    # ── DELETE ────────────────────────────────────────────────────────────────

    def do_DELETE(self) -> None:
        parsed = urllib.parse.urlparse(self.path)
        path = parsed.path.rstrip("/")

        body = self._read_json_body()
        if body is None:
            return

        if path == "/resources":
            status, data = routes.handle_remove_resource(self.service, body, self.requesting_identity)
        elif path == "/delegations":
            status, data = routes.handle_revoke(self.service, body, self.requesting_identity)
        else:
            status, data = 404, {"error": "Not found", "detail": f"No route for DELETE {path}"}
        self._send_json(status, data)

    # ── Helpers ───────────────────────────────────────────────────────────────

    def _send_json(self, status: int, data: dict[str, object]) -> None:
        """Serialize *data* to JSON and send an HTTP response with *status*."""
        body = json.dumps(data, default=str).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _read_json_body(self) -> dict[str, object] | None:
        """Read and parse the JSON request body.

        Returns None (and sends a 400 error response) if parsing fails.
        """
        content_length = int(self.headers.get("Content-Length", 0))
        if content_length == 0:
            return {}

        raw = self.rfile.read(content_length)
        try:
            parsed = json.loads(raw.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            self._send_json(400, {"error": "Invalid JSON", "detail": str(exc)})
            return None
        if not isinstance(parsed, dict):
            self._send_json(400, {"error": "Invalid JSON", "detail": "Body must be a JSON object."})
            return None
        return parsed

    @staticmethod
    def _first_param(params: dict[str, list[str]], key: str) -> str | None:
        values = params.get(key)
        return values[0] if values else None


def build_service(
    config: RegistryConfig | None = None,
    audit: DelegationAuditLogger | None = None,
    administrators: Iterable[str] = (),
) -> DelegationService:
    """Wire a directory, registry and service together.

    *administrators* are the identities allowed to add and remove resources
    over HTTP.
    """
    directory = ResourceDirectory()
    registry = DelegationRegistry(directory, config=config)
    return DelegationService(registry, directory, audit=audit, administrators=administrators)


def create_server(
    host: str = "127.0.0.1",
    port: int = 8080,
    service: DelegationService | None = None,
) -> DelegationServer:
    """Create (but do not start) the delegation HTTP server.

    Parameters
    ----------
    host:
        Bind address.
    port:
        TCP port to listen on; 0 picks a free port.
    service:
        Service to dispatch to. A fresh in-memory one is built if omitted.
    """
    server = DelegationServer((host, port), service or build_service())
    logger.info("delegation server created at http://%s:%d", host, server.server_address[1])
    return server


def run_server(
    host: str = "127.0.0.1",
    port: int = 8080,
    service: DelegationService | None = None,
) -> None:
    """Create and run the delegation HTTP server (blocking)."""
    server = create_server(host=host, port=port, service=service)
    logger.info("Serving delegations on http://%s:%d, press Ctrl-C to stop", host, port)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Shutting down delegation server.")
    finally:
        server.server_close()


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="decryption-delegation HTTP server",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    parser.add_argument("--port", type=int, default=8080, help="TCP port")
    parser.add_argument("--unit-length", type=int, default=None, help="Seconds per duration unit")
    parser.add_argument("--max-duration", type=int, default=None, help="Maximum units per grant")
    parser.add_argument(
        "--admin",
        action="append",
        default=[],
        metavar="IDENTITY",
        help="Identity allowed to add and remove resources (repeatable)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    return parser


if __name__ == "__main__":
    args = _build_arg_parser().parse_args()
    logging.basicConfig(level=getattr(logging, args.log_level))
    overrides = {
        k: v
        for k, v in (("unit_length", args.unit_length), ("max_duration", args.max_duration))
        if v is not None
    }
    config = RegistryConfig.model_validate({**RegistryConfig.from_env().model_dump(), **overrides})
    run_server(
        host=args.host,
        port=args.port,
        service=build_service(config=config, administrators=args.admin),
    )
