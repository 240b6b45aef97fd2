"""Durable hand-off for notifications whose dispatch failed.

A failed winner cannot simply retry inline: the lock is already held, so the
gate would never fire again this window. Instead the notification is parked
in a store-backed list and retried between intake batches, independent of
any gate state.
"""

from __future__ import annotations

import json
from typing import Optional

from loguru import logger

from mailpulse.application.ports.dispatch_sink import DispatchSink
from mailpulse.application.ports.key_value_store import KeyValueStore
from mailpulse.application.scopes import ScopeKeys
from mailpulse.domain.entities.notification import Notification
from mailpulse.domain.errors import StoreUnavailableError


class DispatchOutbox:
    def __init__(
        self,
        store: KeyValueStore,
        keys: Optional[ScopeKeys] = None,
        max_attempts: int = 5,
    ) -> None:
        self.store = store
        self.keys = keys or ScopeKeys()
        self.max_attempts = max_attempts

    def stash(self, notification: Notification, error: str, attempts: int = 1) -> None:
        entry = json.dumps(
            {
                "notification": notification.to_dict(),
                "attempts": attempts,
                "last_error": error,
            }
        )
        try:
            self.store.push(self.keys.outbox, entry)
        except StoreUnavailableError:
            # last copy of the batch; keep it in the log before propagating
            logger.critical(f"Could not park notification in outbox: {entry}")
            raise

    def pending(self) -> int:
        return self.store.list_length(self.keys.outbox)

    def dead(self) -> int:
        return self.store.list_length(self.keys.dead_outbox)

    def _bury(self, raw: str) -> None:
        try:
            self.store.push(self.keys.dead_outbox, raw)
        except StoreUnavailableError:
            # popped from the outbox already; the log holds the last copy
            logger.critical(f"Could not move notification to dead list: {raw}")
            raise

    def retry_pending(self, sink: DispatchSink, limit: int = 10) -> int:
        """Retry up to ``limit`` parked notifications. Returns how many were delivered.

        Stops at the first failure so a down sink is not hammered; the failed
        entry goes to the back of the outbox, or to the dead list once it has
        used ``max_attempts``.
        """
        delivered = 0
        for _ in range(limit):
            raw = self.store.pop(self.keys.outbox)
            if raw is None:
                break

            try:
                entry = json.loads(raw)
                notification = Notification.from_dict(entry["notification"])
                attempts = int(entry.get("attempts", 1)) + 1
            except (ValueError, KeyError, TypeError) as e:
                logger.error(f"Unreadable outbox entry moved to dead list: {e}")
                self._bury(raw)
                continue

            try:
                sink.dispatch(notification)
            except Exception as e:
                if attempts >= self.max_attempts:
                    entry.update(attempts=attempts, last_error=str(e))
                    self._bury(json.dumps(entry))
                    logger.error(
                        f"Giving up on notification for scope {notification.scope} "
                        f"after {attempts} attempts: {e}"
                    )
                else:
                    logger.warning(
                        f"Retry {attempts}/{self.max_attempts} for scope {notification.scope} failed: {e}"
                    )
                    self.stash(notification, str(e), attempts=attempts)
                break

            delivered += 1
            logger.info(f"Delivered parked notification for scope {notification.scope} (attempt {attempts})")

        return delivered
