"""Short-lived local HTTP listener that captures the OAuth redirect."""

from __future__ import annotations

import hmac
import logging
import queue
import threading
import time
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Optional
from urllib.parse import parse_qs, urlsplit

from gdriveupload.errors import (
    AuthorizationError,
    AuthorizationTimeoutError,
    OperationCancelledError,
)

from .oauth_client import CALLBACK_PATH

logger = logging.getLogger(__name__)

SUCCESS_PAGE = b"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>gdriveupload</title></head>
<body>
Authorization successful. You can close this window.
</body>
</html>
"""

_POLL_INTERVAL = 0.25


def parse_host_port(host_port: str) -> tuple[str, int]:
    """Split "host:port" into its parts; the port defaults to 80."""
    if not isinstance(host_port, str) or not host_port.strip():
        raise ValueError("host_port must be a non-empty string")
    parts = urlsplit(f"http://{host_port.strip()}")
    if not parts.hostname:
        raise ValueError(f"host_port has no host: {host_port!r}")
    return parts.hostname, parts.port if parts.port is not None else 80


class _CallbackServer(HTTPServer):
    allow_reuse_address = True


class CallbackListener:
    """
    One listener per authorization attempt, with its own route table.

    The first callback whose state matches fills a single-slot queue; any
    later request is answered but does not replace the captured code.
    """

    def __init__(self, host_port: str, expected_state: str, *, path: str = CALLBACK_PATH) -> None:
        if not expected_state:
            raise ValueError("expected_state must be a non-empty string")

        host, port = parse_host_port(host_port)
        self._expected_state = expected_state
        self._path = path
        self._results: "queue.Queue[tuple[Optional[str], Optional[str]]]" = queue.Queue(maxsize=1)
        self._thread: Optional[threading.Thread] = None
        self._closed = False
        self._lock = threading.Lock()

        try:
            self._server = _CallbackServer((host, port), _make_handler(self))
        except OSError as exc:
            raise AuthorizationError(
                "Failed to bind OAuth callback listener",
                details={"host": host, "port": port},
                cause=exc,
            ) from exc

    @property
    def server_address(self) -> tuple[str, int]:
        host, port = self._server.server_address[:2]
        return str(host), int(port)

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> "CallbackListener":
        if self._thread is not None:
            return self
        self._thread = threading.Thread(
            target=self._serve,
            name="oauth-callback-listener",
            daemon=True,
        )
        self._thread.start()
        logger.info("Waiting for authorization on %s:%d", *self.server_address)
        return self

    def wait_for_code(
        self,
        timeout: float,
        *,
        deadline: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> str:
        """
        Block until a valid callback arrives, then shut the listener down.

        Args:
            timeout: Seconds to wait at most.
            deadline: Optional absolute time.monotonic() value that also bounds the wait.
            cancel: Optional event that aborts the wait when set.

        Raises:
            AuthorizationTimeoutError: if nothing arrived in time.
            AuthorizationError: if the provider redirected with an error.
            OperationCancelledError: if cancel was set.
        """
        limit = time.monotonic() + timeout
        if deadline is not None:
            limit = min(limit, deadline)

        try:
            while True:
                if cancel is not None and cancel.is_set():
                    raise OperationCancelledError("Authorization wait was cancelled")

                remaining = limit - time.monotonic()
                if remaining <= 0:
                    raise AuthorizationTimeoutError(
                        f"Timed out waiting for authorization ({timeout:g} seconds)",
                        details={"timeout": timeout},
                    )

                try:
                    code, error = self._results.get(timeout=min(remaining, _POLL_INTERVAL))
                except queue.Empty:
                    continue

                if error:
                    raise AuthorizationError(
                        "Authorization was denied",
                        details={"error": error},
                    )
                logger.info("Authorization code received")
                return code  # type: ignore[return-value]
        finally:
            self.shutdown()

    def shutdown(self) -> None:
        """Stop serving and release the socket. Safe to call more than once."""
        with self._lock:
            if self._closed:
                return
            self._closed = True

        if self._thread is not None:
            self._server.shutdown()
            self._thread.join()
        self._server.server_close()

    def __enter__(self) -> "CallbackListener":
        return self.start()

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()

    # ----------------------------
    # Internals
    # ----------------------------
    def _serve(self) -> None:
        try:
            self._server.serve_forever(poll_interval=_POLL_INTERVAL)
        except Exception:
            logger.exception("OAuth callback listener failed")

    def _offer(self, code: Optional[str], error: Optional[str]) -> bool:
        try:
            self._results.put_nowait((code, error))
        except queue.Full:
            return False
        return True

    def _check_state(self, state: str) -> bool:
        return bool(state) and hmac.compare_digest(
            state.encode("utf-8"), self._expected_state.encode("utf-8")
        )


def _make_handler(listener: CallbackListener) -> type[BaseHTTPRequestHandler]:
    class _CallbackHandler(BaseHTTPRequestHandler):
        def do_GET(self) -> None:  # noqa: N802
            parsed = urlsplit(self.path)
            if parsed.path != listener._path:
                self._reply(404, b"Not found", "text/plain; charset=utf-8")
                return

            params = parse_qs(parsed.query)
            state = params.get("state", [""])[0]
            code = params.get("code", [""])[0]
            error = params.get("error", [""])[0]

            if not listener._check_state(state):
                self._reply(400, b"Invalid state parameter", "text/plain; charset=utf-8")
                return

            if error:
                self._reply(400, b"Authorization was denied", "text/plain; charset=utf-8")
                listener._offer(None, error)
                return

            if not code:
                self._reply(400, b"Authorization code missing", "text/plain; charset=utf-8")
                return

            self._reply(200, SUCCESS_PAGE, "text/html; charset=utf-8")
            if not listener._offer(code, None):
                logger.debug("Ignoring extra authorization callback")

        def _reply(self, status: int, body: bytes, content_type: str) -> None:
            self.send_response(status)
            self.send_header("Content-Type", content_type)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, format: str, *args: object) -> None:  # noqa: A002
            logger.debug("callback listener: " + format, *args)

    return _CallbackHandler
