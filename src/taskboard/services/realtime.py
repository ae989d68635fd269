# Rev 0.1.0
"""Realtime bridge: forwards table change notifications to subscribers.

Adapters publish a ChangePayload on the feed once a write is committed. The
bridge filters by table and an optional row predicate (the backend-level
`project_id` filter) and hands the raw payload to the callback.
"""
from __future__ import annotations

import logging
from typing import Callable, Optional

from PySide6.QtCore import QObject, Signal

from taskboard.repositories.backend import ChangePayload, Filter, Subscription

logger = logging.getLogger(__name__)


class ChangeFeed(QObject):
    changed = Signal(object)

    def publish(self, payload: ChangePayload) -> None:
        logger.debug("change %s %s id=%s", payload.event, payload.table,
                      (payload.record or {}).get("id"))
        self.changed.emit(payload)


class RealtimeBridge:
    def __init__(self, feed: ChangeFeed):
        self._feed = feed

    def subscribe(
        self,
        table: str,
        callback: Callable[[ChangePayload], None],
        filter: Optional[Filter] = None,
    ) -> Subscription:
        def _slot(payload: ChangePayload) -> None:
            if payload.table != table:
                return
            if filter is not None and not filter.matches(payload.record):
                return
            try:
                callback(payload)
            except Exception:
                # one broken subscriber must not starve the others
                logger.exception("realtime callback failed for %s %s", payload.event, table)

        self._feed.changed.connect(_slot)
        logger.debug("subscribed to %s filter=%s", table, filter)
        return Subscription(lambda: self._feed.changed.disconnect(_slot))
