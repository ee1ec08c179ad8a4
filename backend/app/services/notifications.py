"""
Push notifications surfaced by the worker.
Thin passthrough: payload in, notification out, click opens the app.
"""
import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..models.base import generate_uuid

logger = logging.getLogger(__name__)

ACTION_EXPLORE = "explore"
ACTION_CLOSE = "close"
VIBRATE_PATTERN = [100, 50, 100]

# Oldest unclicked notifications are dropped past this many
MAX_NOTIFICATIONS = 100
MAX_OPENED_WINDOWS = 50


@dataclass
class NotificationAction:
    action: str
    title: str
    icon: str


@dataclass
class Notification:
    id: str
    title: str
    body: str
    icon: str
    badge: str
    vibrate: List[int]
    data: Dict[str, Any]
    actions: List[NotificationAction]
    closed: bool = False


class NotificationCenter:
    def __init__(self, icon: str, badge: str, app_root_url: str = "/"):
        self.icon = icon
        self.badge = badge
        self.app_root_url = app_root_url
        self._notifications: Dict[str, Notification] = {}
        self.opened_windows = deque(maxlen=MAX_OPENED_WINDOWS)

    def show(self, payload: Optional[Dict[str, Any]]) -> Optional[Notification]:
        """Turn a push payload into a notification. Empty payloads show nothing."""
        if not payload:
            return None
        notification = Notification(
            id=generate_uuid(),
            title=payload.get("title", ""),
            body=payload.get("body", ""),
            icon=self.icon,
            badge=self.badge,
            vibrate=list(VIBRATE_PATTERN),
            data={
                "date_of_arrival": datetime.now(timezone.utc).isoformat(),
                "primary_key": payload.get("primaryKey"),
            },
            actions=[
                NotificationAction(ACTION_EXPLORE, "View Details", self.icon),
                NotificationAction(ACTION_CLOSE, "Close", self.icon),
            ],
        )
        self._notifications[notification.id] = notification
        while len(self._notifications) > MAX_NOTIFICATIONS:
            del self._notifications[next(iter(self._notifications))]
        logger.info("Showing notification %s: %s", notification.id, notification.title)
        return notification

    def get(self, notification_id: str) -> Optional[Notification]:
        return self._notifications.get(notification_id)

    def active(self) -> List[Notification]:
        return [n for n in self._notifications.values() if not n.closed]

    def click(self, notification_id: str, action: Optional[str] = None) -> Optional[str]:
        """Close and forget the notification; "View Details" opens the app root. Returns the opened URL."""
        notification = self._notifications.pop(notification_id, None)
        if notification is None:
            raise KeyError(notification_id)
        notification.closed = True
        if action == ACTION_EXPLORE:
            self.opened_windows.append(self.app_root_url)
            return self.app_root_url
        return None
