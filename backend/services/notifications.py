"""In-app notifications.

Notifications are persisted to the notifications table and logged.
Match notifications are a fire-and-forget side channel: failures are
logged and never reach the caller.
"""

from __future__ import annotations

import uuid
from enum import Enum
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.logging_config import get_logger
from app.metrics import NOTIFICATIONS_SENT
from db.models import Notification
from services.matcher import Matcher
from services.scoring import ProjectSnapshot

logger = get_logger(__name__)


class NotificationType(str, Enum):
    NEW_PROJECT_MATCH = "NEW_PROJECT_MATCH"
    NEW_APPLICATION = "NEW_APPLICATION"
    APPLICATION_UPDATE = "APPLICATION_UPDATE"
    APPLICATION_WITHDRAWN = "APPLICATION_WITHDRAWN"
    PROJECT_DELETED = "PROJECT_DELETED"


class NotificationService:
    """Records notifications for users."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def send(
        self,
        recipient_id: uuid.UUID,
        type: NotificationType | str,
        title: str,
        message: str,
        data: dict[str, Any] | None = None,
    ) -> Notification:
        """Persist a notification and log its dispatch."""
        type_value = type.value if isinstance(type, NotificationType) else type
        notification = Notification(
            user_id=recipient_id,
            type=type_value,
            title=title,
            message=message,
            data=data or {},
        )
        self._session.add(notification)
        await self._session.flush()

        NOTIFICATIONS_SENT.labels(type=type_value, status="sent").inc()
        logger.info(
            "notification_sent",
            recipient_id=str(recipient_id),
            notification_type=type_value,
        )
        return notification

    async def notify_top_matches(
        self,
        project: ProjectSnapshot,
        matcher: Matcher,
        top_k: int | None = None,
        pool_size: int | None = None,
    ) -> int:
        """Tell the best-matching volunteers about a new project.

        Returns the number of notifications sent. Never raises.
        """
        settings = get_settings()
        top_k = top_k if top_k is not None else settings.notify_top_k
        pool_size = pool_size if pool_size is not None else settings.candidate_pool_size

        sent = 0
        try:
            # Savepoint: a failed lookup or send must not roll back the caller's work
            async with self._session.begin_nested():
                matches = await matcher.recommend_volunteers_for_project(project.id, pool_size)
                for match in matches[:top_k]:
                    await self.send(
                        recipient_id=match.entity.user_id,
                        type=NotificationType.NEW_PROJECT_MATCH,
                        title="New Project Match!",
                        message=(
                            f'A new project "{project.title}" matches your skills and interests!'
                        ),
                        data={"project_id": str(project.id), "match_score": round(match.score)},
                    )
                    sent += 1
        except Exception as exc:
            NOTIFICATIONS_SENT.labels(
                type=NotificationType.NEW_PROJECT_MATCH.value, status="error"
            ).inc()
            logger.error(
                "match_notification_failed",
                project_id=str(project.id),
                error=type(exc).__name__,
            )
            return 0
        return sent
