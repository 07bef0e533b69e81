"""
Notification service - Renders the admin and client notification feeds.

Messages are not stored on notification rows. They are rendered at read
time from the template settings (category "notification"), where "{0}" is
replaced by the client's name.
"""

import logging
from datetime import UTC, datetime
from typing import Iterable
from uuid import UUID

from scheduling.models import NotificationRecord

logger = logging.getLogger(__name__)

NOTIFICATION_CATEGORY = "notification"
TEMPLATE_CONFIRMED = "notif_confirmed"
TEMPLATE_COMPLETED = "notif_completed"
TEMPLATE_REFERRAL = "notif_referral"

DEFAULT_CLIENT_NAME = "Client"

_OLDEST = datetime.min


def render_template(template: str | None, client_name: str | None) -> str:
    """Fill "{0}" with the client name; missing templates render empty."""
    if not template:
        return ""
    return template.replace("{0}", client_name or DEFAULT_CLIENT_NAME)


def client_template_key(is_referral: bool) -> str:
    return TEMPLATE_REFERRAL if is_referral else TEMPLATE_COMPLETED


def _newest_first(notifications: Iterable[NotificationRecord]) -> list[NotificationRecord]:
    def key(n: NotificationRecord):
        created = n.created_at
        if created is None:
            return (0, _OLDEST)
        if created.tzinfo is not None:
            created = created.astimezone(UTC).replace(tzinfo=None)
        return (1, created)

    return sorted(notifications, key=key, reverse=True)


def _feed_item(notification: NotificationRecord, client_name: str, message: str) -> dict:
    return {
        **notification.model_dump(mode="json"),
        "client_name": client_name,
        "display_message": message,
    }


def admin_feed(
    notifications: Iterable[NotificationRecord],
    templates: dict[str, str | None],
    client_names: dict[UUID, str],
) -> list[dict]:
    """
    Notifications addressed to the admin panel, newest first.

    Args:
        notifications: Candidate notification rows
        templates: Template settings keyed by setting_key
        client_names: Client names keyed by client id

    Returns:
        Feed items with client_name and display_message
    """
    feed = []
    for n in _newest_first(notifications):
        if not (n.send_to_admin and not n.send_to_client):
            continue
        name = client_names.get(n.client_id) or DEFAULT_CLIENT_NAME
        feed.append(_feed_item(n, name, render_template(templates.get(TEMPLATE_CONFIRMED), name)))
    return feed


def client_feed(
    notifications: Iterable[NotificationRecord],
    templates: dict[str, str | None],
    client_names: dict[UUID, str],
    client_id: UUID,
) -> list[dict]:
    """
    Notifications addressed to one client, newest first.

    Items whose rendered message is empty (template not configured) are
    left out of the feed.
    """
    feed = []
    for n in _newest_first(notifications):
        if n.client_id != client_id or n.send_to_admin or not n.send_to_client:
            continue
        name = client_names.get(n.client_id) or DEFAULT_CLIENT_NAME
        message = render_template(templates.get(client_template_key(n.is_referral)), name)
        if not message:
            continue
        feed.append(_feed_item(n, name, message))
    return feed
