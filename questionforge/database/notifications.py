"""
Notification Service

Insert-only storage for user notifications shown in the web app.
"""

from typing import Optional, Dict, Any

from supabase import Client

from questionforge.errors import PersistenceError
from .client import get_supabase_admin_client


NOTIFICATIONS_TABLE = "user_notifications"


class NotificationService:
    def __init__(self, client: Optional[Client] = None):
        self._client = client

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = get_supabase_admin_client()
        return self._client

    async def create(
        self,
        user_email: str,
        notification_type: str,
        title: str,
        message: str,
        metadata: Dict[str, Any],
        link: Optional[str] = None,
        icon: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Insert a notification.

        Raises:
            PersistenceError: if the insert fails
        """
        notification_data = {
            "user_email": user_email,
            "type": notification_type,
            "title": title,
            "message": message,
            "metadata": metadata,
        }
        if link:
            notification_data["link"] = link
        if icon:
            notification_data["icon"] = icon

        try:
            result = self.client.table(NOTIFICATIONS_TABLE).insert(notification_data).execute()
        except Exception as e:
            raise PersistenceError(f"Failed to create notification: {e}", table=NOTIFICATIONS_TABLE) from e

        return result.data[0] if result.data else notification_data
