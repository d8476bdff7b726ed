"""
Realtime Notifier: publishes order updates to the Centrifugo HTTP API.

Channels:
  order:{user_id}              every order update for the user
  order:{user_id}:{order_id}   updates for one order

Publishing is best-effort: failures are logged and NEVER raise, and
notify() schedules the publish in the background so callers never wait on it.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

import httpx

from config import Settings

logger = logging.getLogger(__name__)


class RealtimeNotifier:
    def __init__(self, settings: Settings):
        self.api_url = settings.CENTRIFUGO_API_URL.rstrip("/")
        self.api_key = settings.CENTRIFUGO_API_KEY
        self._pending: set[asyncio.Task] = set()

    async def _publish(self, client: httpx.AsyncClient, channel: str, data: dict) -> bool:
        resp = await client.post(
            f"{self.api_url}/publish",
            json={"channel": channel, "data": data},
            headers={"X-API-Key": self.api_key},
        )
        if resp.status_code != 200:
            logger.warning(
                "Realtime publish failed: channel=%s, status=%s, body=%s",
                channel,
                resp.status_code,
                resp.text[:200],
            )
            return False
        return True

    async def publish_order_update(
        self,
        user_id,
        order_id: int,
        status: str,
        message: str,
        data: dict[str, Any] | None = None,
    ) -> bool:
        """
        Publish an order_status_update message to the user and order channels.

        Returns:
            True if both channels accepted the message, False otherwise.
        """
        if not self.api_key:
            logger.error("CENTRIFUGO_API_KEY not configured, cannot publish order update")
            return False

        update = {
            "type": "order_status_update",
            "order_id": order_id,
            "status": status,
            "message": message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "data": data,
        }
        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                ok = await self._publish(client, f"order:{user_id}", update)
                ok = await self._publish(client, f"order:{user_id}:{order_id}", update) and ok
        except Exception as e:
            logger.error(
                "Realtime publish error: user_id=%s, order_id=%s, error=%s",
                user_id,
                order_id,
                str(e),
            )
            return False

        if ok:
            logger.info("Published order update: user=%s, order=%s, status=%s", user_id, order_id, status)
        return ok

    def notify(self, user_id, order_id: int, status: str, message: str, data: dict | None = None) -> None:
        """Fire-and-forget publish on the running event loop."""
        task = asyncio.get_running_loop().create_task(
            self.publish_order_update(user_id, order_id, status, message, data)
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for in-flight publishes (shutdown)."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)


STATUS_MESSAGES = {
    "pending": "Order created",
    "scheduled": "Order scheduled for pickup",
    "picked_up": "Laundry picked up by driver",
    "in_process": "Laundry being processed",
    "ready": "Laundry ready for delivery",
    "out_for_delivery": "Out for delivery",
    "delivered": "Delivered successfully",
    "failed": "Order could not be completed",
    "cancelled": "Order cancelled",
}


def status_message(status: str) -> str:
    return STATUS_MESSAGES.get(status, "Order status updated")
