"""Messaging gateway HTTP client for the conversational channel"""

import httpx
from typing import Any, Dict, List, Optional
from loan_origination.domain.exceptions import ExternalDeliveryFailedError
from loan_origination.config import settings


class MessagingClient:
    """Client for the outbound messaging gateway (text and template messages)"""

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url or settings.messaging_api_base
        self.token = token if token is not None else settings.messaging_api_token
        self.timeout = timeout or settings.http_timeout_seconds
        self.transport = transport

    def send_text(self, destination: str, text: str) -> None:
        """
        Send a free-form text message.

        Raises:
            ExternalDeliveryFailedError: On timeout, HTTP errors, or network failure
        """
        self._post({"to": destination, "type": "text", "text": {"body": text}}, destination)

    def send_template(self, destination: str, template_name: str, params: List[str]) -> None:
        """
        Send a pre-approved template message with positional parameters.

        Raises:
            ExternalDeliveryFailedError: On timeout, HTTP errors, or network failure
        """
        payload = {
            "to": destination,
            "type": "template",
            "template": {
                "name": template_name,
                "parameters": [{"type": "text", "text": p} for p in params],
            },
        }
        self._post(payload, destination)

    def _post(self, payload: Dict[str, Any], destination: str) -> None:
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = client.post(f"{self.base_url}/messages", json=payload, headers=headers)
                response.raise_for_status()
            except httpx.TimeoutException as e:
                raise ExternalDeliveryFailedError(
                    f"Messaging gateway timeout after {self.timeout}s", destination
                ) from e
            except httpx.HTTPStatusError as e:
                raise ExternalDeliveryFailedError(
                    f"Messaging gateway error: {e.response.status_code}", destination
                ) from e
            except httpx.RequestError as e:
                raise ExternalDeliveryFailedError(f"Messaging gateway unreachable: {e}", destination) from e
