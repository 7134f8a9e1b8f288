"""
HTTP transport for the pass assembler.

Routes:
- GET /                 - greeting
- GET /gen/<type>[/]    - build and stream a signed package (201)
- GET /models           - available package types
- GET /health           - full health status
- GET /health/live      - liveness probe
- GET /health/ready     - readiness probe

Errors are returned as JSON: {"ecode", "status": false, "error", "message"}.
"""

import argparse
import json
import os
import re
import shutil
import sys
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, List, Optional
from urllib.parse import unquote, urlsplit

from ..config import PasskitConfig, load_config
from ..constants import BufferSizes, MediaTypes, Timeouts
from ..errors import PasskitError
from ..logging_config import configure_from_environment, get_logger
from ..pipeline import PackageResult, PassAssembler
from .health import HealthChecker, HealthStatus

logger = get_logger(__name__)

GEN_ROUTE = re.compile(r"^/gen/([^/]+)/?$")
GREETING = "Pass package assembler. Request /gen/<type> to build a signed package.\n"


class PassRequestHandler(BaseHTTPRequestHandler):
    """HTTP request handler for package and health endpoints."""

    server_version = "passkit"

    def __init__(self, *args, assembler: PassAssembler, checker: HealthChecker, **kwargs):
        self.assembler = assembler
        self.checker = checker
        super().__init__(*args, **kwargs)

    def log_message(self, format: str, *args) -> None:
        logger.verbose(f"{self.address_string()} - {format % args}")

    def _send_json_response(self, status_code: int, data: Any) -> None:
        body = json.dumps(data).encode('utf-8')
        self.send_response(status_code)
        self.send_header('Content-Type', MediaTypes.JSON)
        self.send_header('Content-Length', str(len(body)))
        self.send_header('Cache-Control', 'no-cache, no-store')
        self.end_headers()
        self.wfile.write(body)

    def _send_error_response(self, error: PasskitError) -> None:
        self._send_json_response(error.http_status, error.to_dict())

    def do_GET(self) -> None:
        path = urlsplit(self.path).path

        match = GEN_ROUTE.match(path)
        if match:
            self._handle_generate(unquote(match.group(1)))
        elif path == '/':
            self._handle_root()
        elif path in ('/models', '/models/'):
            self._handle_models()
        elif path == '/health':
            self._handle_health()
        elif path == '/health/live':
            self._handle_liveness()
        elif path == '/health/ready':
            self._handle_readiness()
        else:
            self._send_json_response(404, {
                'ecode': 404,
                'status': False,
                'error': 'not_found',
                'message': f"No route for {path}",
            })

    def _handle_root(self) -> None:
        body = GREETING.encode('utf-8')
        self.send_response(200)
        self.send_header('Content-Type', MediaTypes.TEXT)
        self.send_header('Content-Length', str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _handle_generate(self, package_type: str) -> None:
        try:
            result = self.assembler.assemble_sync(package_type)
        except PasskitError as e:
            if e.client_error:
                logger.info(f"Rejected /gen/{package_type}: {e.message}")
            else:
                logger.error(f"Failed to build '{package_type}': {e.message}")
            self._send_error_response(e)
            return
        except Exception as e:
            logger.exception(f"Unexpected failure building '{package_type}'")
            self._send_json_response(500, {
                'ecode': 500,
                'status': False,
                'error': 'internal_error',
                'message': str(e),
            })
            return

        self._stream_package(result)

    def _stream_package(self, result: PackageResult) -> None:
        # The fd stays valid if a concurrent request replaces the file
        with open(result.path, 'rb') as f:
            size = os.fstat(f.fileno()).st_size
            self.send_response(201)
            self.send_header('Content-Type', result.media_type)
            self.send_header('Content-Length', str(size))
            self.send_header('Content-Disposition', f'attachment; filename="{result.filename}"')
            self.send_header('Cache-Control', 'no-cache')
            self.end_headers()
            try:
                shutil.copyfileobj(f, self.wfile, BufferSizes.HTTP_CHUNK)
            except (BrokenPipeError, ConnectionResetError) as e:
                logger.warning(f"Client disconnected while sending {result.filename}: {e}")

    def _handle_models(self) -> None:
        self._send_json_response(200, {
            'status': True,
            'models': self.assembler.repository.list_types(),
        })

    def _handle_health(self) -> None:
        result = self.checker.run_checks()
        status_code = 200 if result.status != HealthStatus.UNHEALTHY else 503
        self._send_json_response(status_code, result.to_dict())

    def _handle_liveness(self) -> None:
        is_alive, message = self.checker.check_liveness()
        self._send_json_response(200 if is_alive else 503, {
            'status': 'ok' if is_alive else 'fail',
            'message': message,
        })

    def _handle_readiness(self) -> None:
        is_ready, message = self.checker.check_readiness()
        self._send_json_response(200 if is_ready else 503, {
            'status': 'ok' if is_ready else 'fail',
            'message': message,
        })


class PassServer:
    """
    Threaded HTTP server around a PassAssembler.

    Every request runs its own pipeline; archives are published by atomic
    rename so concurrent requests for one type never see a torn file.
    """

    def __init__(self, config: PasskitConfig, assembler: Optional[PassAssembler] = None):
        self.config = config
        self.assembler = assembler or PassAssembler(config)
        self.checker = HealthChecker(config, self.assembler.signer)
        self._server: Optional[ThreadingHTTPServer] = None
        self._thread: Optional[threading.Thread] = None
        self._running = False

    def _make_server(self, host: str, port: int) -> ThreadingHTTPServer:
        def handler_factory(*args, **kwargs):
            return PassRequestHandler(*args, assembler=self.assembler,
                                      checker=self.checker, **kwargs)

        server = ThreadingHTTPServer((host, port), handler_factory)
        server.daemon_threads = True
        return server

    def start(self, host: Optional[str] = None, port: Optional[int] = None) -> bool:
        """Start serving on a background thread."""
        if self._running:
            return True

        host = self.config.server.host if host is None else host
        port = self.config.server.port if port is None else port

        try:
            self._server = self._make_server(host, port)
        except OSError as e:
            logger.error(f"Failed to start pass server on {host}:{port}: {e}")
            return False

        self._running = True
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()
        logger.info(f"Pass server started on {host}:{self.port}")
        return True

    def serve_forever(self, host: Optional[str] = None, port: Optional[int] = None) -> None:
        """Serve on the calling thread until interrupted."""
        host = self.config.server.host if host is None else host
        port = self.config.server.port if port is None else port

        self._server = self._make_server(host, port)
        self._running = True
        logger.info(f"Pass server listening on {host}:{self.port}")
        try:
            self._server.serve_forever()
        finally:
            self._running = False
            self._server.server_close()
            self._server = None

    def stop(self) -> None:
        self._running = False

        if self._server:
            self._server.shutdown()
            self._server.server_close()
            self._server = None

        if self._thread:
            self._thread.join(timeout=Timeouts.THREAD_JOIN_DEFAULT)
            self._thread = None

        logger.info("Pass server stopped")

    @property
    def port(self) -> int:
        """Bound port (resolves port 0 to the one actually assigned)."""
        if self._server:
            return self._server.server_address[1]
        return self.config.server.port


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for passkit-server."""
    parser = argparse.ArgumentParser(
        prog='passkit-server',
        description='Serve signed pass packages over HTTP',
    )
    parser.add_argument('--config', '-c', help='Configuration file (JSON or YAML)')
    parser.add_argument('--host', help='Bind address (overrides server.host)')
    parser.add_argument('--port', '-p', type=int, help='Port (overrides server.port)')
    parser.add_argument('--verbose', '-v', action='store_true', help='Verbose logging')
    parser.add_argument('--json-logs', action='store_true', help='Log as JSON lines')
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except PasskitError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    configure_from_environment(
        verbose=args.verbose or config.logging.verbose,
        json_format=args.json_logs or config.logging.json_format,
        log_file=config.logging.log_file,
    )

    try:
        server = PassServer(config)
    except PasskitError as e:
        logger.error(f"Cannot start: {e.message}")
        return 1

    try:
        server.serve_forever(args.host, args.port)
    except OSError as e:
        logger.error(f"Cannot bind: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    return 0


if __name__ == '__main__':
    sys.exit(main())
