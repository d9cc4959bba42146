"""Webhook Client - Outbound webhook delivery"""
from typing import Any, Dict, Optional
import httpx

from ..domain.errors import WebhookError
from ..config.settings import settings
from ..utils.logger import get_logger

logger = get_logger(__name__)


class WebhookClient:
    """POST JSON payloads to configured webhook URLs"""

    def __init__(self, timeout: Optional[float] = None, transport: Optional[httpx.BaseTransport] = None):
        self.timeout = timeout or settings.webhook_timeout_seconds
        self._transport = transport

    def post(self, url: str, payload: Dict[str, Any]) -> int:
        """
        Deliver a webhook

        Returns:
            Response status code

        Raises:
            WebhookError: Network failure or non-2xx/3xx response
        """
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(url, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Webhook delivery to {url} failed: {e}")
            raise WebhookError(f"Webhook delivery failed: {e}", details={"url": url})

        if response.status_code >= 400:
            logger.error(f"Webhook {url} returned {response.status_code}")
            raise WebhookError(
                f"Webhook returned {response.status_code}",
                details={"url": url, "status_code": response.status_code}
            )

        logger.info(f"Webhook delivered to {url}")
        return response.status_code
