"""
Push gateway REST client
"""
import httpx
from typing import Dict, Any, Optional
from leadflow.core.config import settings
from leadflow.utils.logging import get_logger

logger = get_logger(__name__)


class PushClient:
    """
    Client for the HTTP push gateway that fans notifications out to devices.
    Handles authentication, requests, and error handling.
    """

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = settings.notifications.gateway_url
        self.api_key = settings.notifications.api_key
        self.timeout = settings.notifications.timeout
        self.enabled = settings.notifications.enabled and bool(self.base_url)
        self._transport = transport

    def _get_headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
        }
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def send(self, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Deliver one notification payload to the gateway.

        Args:
            payload: Notification body (user_ids, title, body, tag, data)

        Returns:
            Gateway response, or None when delivery is disabled

        Raises:
            httpx.HTTPError: If the request fails
        """
        if not self.enabled:
            logger.debug(f"[dim]Push delivery disabled, dropping:[/dim] {payload.get('tag')}")
            return None

        url = f"{self.base_url.rstrip('/')}/notifications"

        try:
            logger.debug(f"[cyan]Sending push notification:[/cyan] {url}")
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url, json=payload, headers=self._get_headers())
                logger.debug(f"[dim]Response status:[/dim] {response.status_code}")
                response.raise_for_status()

                result = response.json() if response.content else {}
                logger.info(
                    f"[green]✅ Push notification delivered:[/green] "
                    f"[cyan]{payload.get('tag')}[/cyan] to {len(payload.get('user_ids', []))} user(s)"
                )
                return result

        except httpx.HTTPStatusError as e:
            logger.error(
                f"[red]❌ Push gateway rejected notification:[/red] "
                f"[yellow]{e.response.status_code}[/yellow] - {e.response.text}"
            )
            raise
        except httpx.HTTPError as e:
            logger.error(f"[red]❌ HTTP error sending push notification:[/red] {str(e)}")
            raise
