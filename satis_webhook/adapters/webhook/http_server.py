"""HTTP server adapter for webhook receiver.

Provides a threaded HTTP server using Python's built-in http.server module,
hosted from asyncio so it can be started and stopped alongside other tasks.

Every POST is a webhook delivery. Responses are plaintext; accepted
deliveries stream build progress as it happens, so the body has no
Content-Length and ends when the connection closes.
"""

import asyncio
import json
import logging
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any

from satis_webhook.adapters.webhook.receiver import WebhookReceiver
from satis_webhook.core.errors import InvalidContentLength, PayloadTooLarge
from satis_webhook.core.models import WebhookRequest

logger = logging.getLogger(__name__)

MAX_BODY_SIZE = 1024 * 1024


def make_webhook_handler(
    webhook_receiver: WebhookReceiver,
    trust_proxy_headers: bool,
    max_body_size: int = MAX_BODY_SIZE,
) -> type[BaseHTTPRequestHandler]:
    """Factory to create a WebhookHTTPHandler class with instance-specific state.

    Implements proper dependency injection by creating a handler class with
    closure-captured dependencies instead of using class-level mutable state.

    Args:
        webhook_receiver: Receiver for webhook deliveries
        trust_proxy_headers: Take the client IP from X-Forwarded-For
        max_body_size: Largest request body accepted, in bytes

    Returns:
        A WebhookHTTPHandler class configured with the provided dependencies
    """

    class WebhookHTTPHandler(BaseHTTPRequestHandler):
        """HTTP request handler for webhook deliveries."""

        def _client_ip(self) -> str:
            if trust_proxy_headers:
                forwarded = self.headers.get("X-Forwarded-For", "")
                first = forwarded.split(",")[0].strip()
                if first:
                    return first
            return self.client_address[0]

        def _read_body(self) -> bytes:
            raw_length = self.headers.get("Content-Length") or "0"
            try:
                content_length = int(raw_length)
            except ValueError:
                raise InvalidContentLength(raw_length) from None
            if content_length < 0:
                raise InvalidContentLength(raw_length)
            if content_length > max_body_size:
                raise PayloadTooLarge(content_length, max_body_size)
            return self.rfile.read(content_length) if content_length > 0 else b""

        def _discard_body(self) -> None:
            # Drain an unread body so closing the socket does not reset the connection
            try:
                content_length = int(self.headers.get("Content-Length") or 0)
            except ValueError:
                return
            if 0 < content_length <= max_body_size:
                self.rfile.read(content_length)

        def do_POST(self) -> None:
            """Handle a webhook delivery."""
            request = WebhookRequest(
                client_ip=self._client_ip(),
                headers=self.headers,
                body_reader=self._read_body,
            )
            response = _StreamingResponse(self)
            try:
                webhook_receiver.handle_delivery(request, response)
            except Exception as e:
                # Log full exception server-side for debugging
                logger.error(f"Error handling webhook request: {e}", exc_info=True)
                if not response.started:
                    self.send_error(500, "Internal server error")
            finally:
                if not request.body_read:
                    self._discard_body()

        def do_GET(self) -> None:
            """Handle GET requests.

            Only the health check is served.
            """
            if self.path == "/health":
                self._send_json(webhook_receiver.handle_health())
            else:
                self.send_error(404, "Not found")

        def _send_json(self, data: dict[str, Any]) -> None:
            """Send JSON response."""
            body = json.dumps(data).encode()
            self.send_response(200)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, format: str, *args: Any) -> None:
            """Log HTTP request."""
            logger.debug(f"HTTP {self.client_address[0]}: {format % args}")

    return WebhookHTTPHandler


class _StreamingResponse:
    """ResponseWriter over a BaseHTTPRequestHandler.

    Once the client goes away, further writes are dropped so the build
    still runs to completion.
    """

    def __init__(self, handler: BaseHTTPRequestHandler):
        self.handler = handler
        self.started = False
        self.disconnected = False

    def start(self, status: int) -> None:
        self.handler.send_response(status)
        self.handler.send_header("Content-Type", "text/plain; charset=utf-8")
        self.handler.send_header("Cache-Control", "no-cache")
        self.handler.send_header("Connection", "close")
        self.handler.end_headers()
        self.started = True

    def write(self, text: str) -> None:
        if self.disconnected:
            return
        try:
            self.handler.wfile.write(text.encode("utf-8"))
            self.handler.wfile.flush()
        except (BrokenPipeError, ConnectionResetError) as e:
            logger.warning(f"Client disconnected during build output: {e}")
            self.disconnected = True


class WebhookHTTPServer:
    """Webhook HTTP server adapter.

    Serves webhook deliveries and a health check.
    """

    def __init__(
        self,
        webhook_receiver: WebhookReceiver,
        host: str = "0.0.0.0",
        port: int = 8080,
        trust_proxy_headers: bool = False,
    ):
        """Initialize the HTTP server.

        Args:
            webhook_receiver: WebhookReceiver instance to handle requests.
            host: Host to listen on (default 0.0.0.0).
            port: Port to listen on (default 8080, 0 picks a free port).
            trust_proxy_headers: Take the client IP from X-Forwarded-For.
                Only enable behind a reverse proxy that sets it.
        """
        self.webhook_receiver = webhook_receiver
        self.host = host
        self.port = port
        self.trust_proxy_headers = trust_proxy_headers
        self.server: ThreadingHTTPServer | None = None
        self._server_task: asyncio.Task[None] | None = None

        if trust_proxy_headers:
            logger.warning(
                "Trusting X-Forwarded-For for client IPs. "
                "authorized_ips can be bypassed unless a proxy sets this header."
            )

    @property
    def bound_port(self) -> int | None:
        """Port actually listened on, once started."""
        if self.server is None:
            return None
        return self.server.server_address[1]

    async def start(self) -> None:
        """Start the HTTP server."""
        logger.info(f"Starting webhook HTTP server on {self.host}:{self.port}")

        # Create handler class with factory pattern (proper dependency injection)
        handler_class = make_webhook_handler(
            webhook_receiver=self.webhook_receiver,
            trust_proxy_headers=self.trust_proxy_headers,
        )

        self.server = ThreadingHTTPServer((self.host, self.port), handler_class)

        # Run server in a separate thread to avoid blocking
        self._server_task = asyncio.create_task(self._run_server())
        logger.info(f"Webhook HTTP server listening on port {self.bound_port}")

    async def _run_server(self) -> None:
        """Run the HTTP server loop in a thread pool."""
        if not self.server:
            return

        try:
            # Run the blocking server loop in a thread pool to avoid blocking the event loop
            await asyncio.to_thread(self.server.serve_forever)
        except asyncio.CancelledError:
            # Normal shutdown
            pass
        except Exception as e:
            logger.error(f"Webhook HTTP server error: {e}", exc_info=True)

    async def stop(self) -> None:
        """Stop the HTTP server."""
        if self.server:
            await asyncio.to_thread(self.server.shutdown)
            self.server.server_close()
        if self._server_task:
            self._server_task.cancel()
            try:
                await self._server_task
            except asyncio.CancelledError:
                pass
        logger.info("Webhook HTTP server stopped")
