"""
Client-facing API endpoints.

Provides the per-client notification feed shown in the client portal.
"""

import logging
from uuid import UUID

from fastapi import APIRouter

from api.dependencies import ClientStoreDep, NotificationStoreDep, SettingsStoreDep
from scheduling.services.notification_service import NOTIFICATION_CATEGORY, client_feed

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/clients", tags=["clients"])


@router.get("/{client_id}/notifications")
async def list_client_notifications(
    client_id: UUID,
    notification_store: NotificationStoreDep,
    client_store: ClientStoreDep,
    settings_store: SettingsStoreDep,
):
    """
    Notifications addressed to one client, newest first.

    Rows without a configured message template are left out.
    """
    notifications = await notification_store.list(client_id=client_id)
    templates = await settings_store.get_all(NOTIFICATION_CATEGORY)
    names = await client_store.names({client_id})

    feed = client_feed(notifications, templates, names, client_id)
    logger.debug(f"Client {client_id} notification feed: {len(feed)} items")
    return {"data": feed}
