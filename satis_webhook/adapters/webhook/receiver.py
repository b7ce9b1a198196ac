"""Webhook receiver for rebuild deliveries.

Translates an inbound delivery into RebuildPort calls and writes the
outcome through a ResponseWriter, independent of the HTTP server.
"""

import logging
from typing import Any, Protocol

from satis_webhook.core.errors import SatisWebhookError
from satis_webhook.core.models import WebhookRequest
from satis_webhook.core.ports import RebuildPort

logger = logging.getLogger(__name__)


class ResponseWriter(Protocol):
    """Sink for a plaintext response whose status is committed first."""

    def start(self, status: int) -> None:
        """Commit the response status and headers."""

    def write(self, text: str) -> None:
        """Append text to the response body."""


class WebhookReceiver:
    """Handles webhook deliveries by delegating to RebuildPort.

    Rejections are written with their status and message and nothing
    else; accepted deliveries get a 200 followed by streamed build output.
    """

    def __init__(self, rebuild_port: RebuildPort):
        """Initialize the webhook receiver.

        Args:
            rebuild_port: RebuildPort implementation that plans and runs builds.
        """
        self.rebuild_port = rebuild_port

    def handle_delivery(self, request: WebhookRequest, response: ResponseWriter) -> int:
        """Handle one webhook delivery.

        Args:
            request: The inbound delivery.
            response: Where the status and body go.

        Returns:
            Exit code: the build's, or -1 when the delivery was rejected
            before a build could start.
        """
        try:
            plan = self.rebuild_port.plan_delivery(request)
        except SatisWebhookError as e:
            logger.info(
                f"Delivery rejected with {e.status_code}: {type(e).__name__}",
                extra={"client_ip": request.client_ip},
            )
            response.start(e.status_code)
            if e.message:
                response.write(e.message)
            return -1

        response.start(200)
        result = self.rebuild_port.execute(plan, response.write)
        return result.exit_code

    def handle_health(self) -> dict[str, Any]:
        """Report liveness."""
        return {"status": "healthy"}
