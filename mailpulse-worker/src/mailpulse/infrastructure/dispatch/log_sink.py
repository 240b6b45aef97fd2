"""Dispatch sink that writes the notification as a log block."""

from __future__ import annotations

from loguru import logger

from mailpulse.domain.entities.notification import Notification

RULE = "=" * 60
MAX_LISTED_EVENTS = 20


class LoggingDispatchSink:
    def __init__(self, max_listed_events: int = MAX_LISTED_EVENTS) -> None:
        self.max_listed_events = max_listed_events

    def render(self, notification: Notification) -> str:
        lines = [
            RULE,
            f"[NOTIFICATION] {notification.created_at}",
            f"Scope: {notification.scope}",
            f"Threshold reached: score {notification.final_score} from {len(notification.events)} emails",
        ]
        for event in notification.events[: self.max_listed_events]:
            priority = (event.priority or "?").upper()
            lines.append(f"  - [{priority}] {event.sender}: {event.subject}")
        hidden = len(notification.events) - self.max_listed_events
        if hidden > 0:
            lines.append(f"  ... and {hidden} more")
        lines.append(RULE)
        return "\n".join(lines)

    def dispatch(self, notification: Notification) -> None:
        logger.info("\n" + self.render(notification))
