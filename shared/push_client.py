"""
Push client for delivering notifications to client devices.

This module provides the PushClient class, which forwards a push message
to the web-push relay endpoint. The relay resolves the audience selector
to stored subscriptions and fans the message out.
"""

import logging
from typing import Any

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from shared.config import get_settings

logger = logging.getLogger(__name__)

MODE_ADMIN_TO_CLIENT = "admin_to_client"
MODE_CLIENT_TO_ADMIN = "client_to_admin"


class PushClient:
    """
    Client for the web-push relay API.

    A message carries an audience selector (e.g. {"client_id": "..."}),
    a title and a body.
    """

    def __init__(self):
        """Initialize push client with credentials from settings."""
        settings = get_settings()
        self.api_url = settings.PUSH_API_URL.rstrip("/")
        self.api_token = settings.PUSH_API_TOKEN
        self.timeout = settings.PUSH_TIMEOUT_SECONDS

        self.headers = {
            "Authorization": f"Bearer {self.api_token}",
            "Content-Type": "application/json",
        }

        logger.info(f"PushClient initialized: {self.api_url}")

    @staticmethod
    def build_payload(message: dict[str, Any]) -> dict[str, Any]:
        """
        Translate a push message into the relay request body.

        Raises:
            ValueError: If the message has no audience or title
        """
        audience = message.get("audience") or {}
        title = message.get("title")
        if not audience or not title:
            raise ValueError("Push message needs an audience and a title")

        payload: dict[str, Any] = {
            "title": title,
            "body": message.get("body") or "",
        }
        if "client_id" in audience:
            payload["mode"] = MODE_ADMIN_TO_CLIENT
            payload["client_id"] = str(audience["client_id"])
        else:
            # No client selector: admins (one, or all when admin_id is absent)
            payload["mode"] = MODE_CLIENT_TO_ADMIN
            if audience.get("admin_id") is not None:
                payload["admin_id"] = str(audience["admin_id"])
        return payload

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(httpx.HTTPError),
        reraise=True,
    )
    async def send(self, message: dict[str, Any]) -> None:
        """
        Send one push message through the relay.

        Args:
            message: Dict with audience, title and body

        Raises:
            httpx.HTTPError: After 3 failed attempts
        """
        payload = self.build_payload(message)

        async with httpx.AsyncClient() as client:
            response = await client.post(
                self.api_url,
                json=payload,
                headers=self.headers,
                timeout=self.timeout,
            )
            response.raise_for_status()

        logger.info(f"Push sent ({payload['mode']}): {payload['title']}")
