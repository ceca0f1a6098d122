"""Redis pub/sub notifications for streak changes."""

from __future__ import annotations

import json
import logging
from typing import Any

from fitstreak.streaks.constants import STREAK_EVENTS_CHANNEL

logger = logging.getLogger(__name__)


async def publish_streak_event(redis: object, user_id: str, event: str, **payload: Any) -> None:
    """Publish a streak event. Delivery is best-effort; failures are logged."""
    if redis is None:
        return
    try:
        await redis.publish(  # type: ignore[attr-defined]
            STREAK_EVENTS_CHANNEL,
            json.dumps({"user_id": user_id, "event": event, **payload}),
        )
    except Exception:
        logger.warning("Failed to publish %s event for user %s", event, user_id, exc_info=True)
