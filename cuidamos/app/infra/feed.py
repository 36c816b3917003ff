"""In-process change feed standing in for live-query subscriptions.

Subscribers register per (collection, key), e.g. ("shifts", organization_id),
and receive the full current snapshot each time a writer publishes one.
Writers inside a database transaction use ``publish_on_commit`` so that
subscribers never see rows that are later rolled back.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from threading import Lock
from typing import Any, Callable, DefaultDict, List, Sequence, Tuple

from sqlalchemy import event
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

Snapshot = Sequence[Any]
Callback = Callable[[Snapshot], None]

_PENDING = "cuidamos.feed.pending"


class ChangeFeed:
    def __init__(self) -> None:
        self._subscribers: DefaultDict[Tuple[str, str], List[Callback]] = defaultdict(list)
        self._lock = Lock()

    def subscribe(self, collection: str, key: str, callback: Callback) -> Callable[[], None]:
        topic = (collection, key)
        with self._lock:
            self._subscribers[topic].append(callback)

        def unsubscribe() -> None:
            with self._lock:
                callbacks = self._subscribers.get(topic, [])
                if callback in callbacks:
                    callbacks.remove(callback)
                if not callbacks:
                    self._subscribers.pop(topic, None)

        return unsubscribe

    def publish(self, collection: str, key: str, snapshot: Snapshot) -> int:
        """Deliver ``snapshot``; returns how many subscribers received it."""
        with self._lock:
            callbacks = list(self._subscribers.get((collection, key), ()))
        delivered = 0
        for callback in callbacks:
            try:
                callback(list(snapshot))
                delivered += 1
            except Exception:
                logger.exception("subscriber failed on %s/%s", collection, key)
        return delivered

    def subscriber_count(self, collection: str, key: str) -> int:
        with self._lock:
            return len(self._subscribers.get((collection, key), ()))


def publish_on_commit(
    session: Session,
    feed: ChangeFeed,
    collection: str,
    key: str,
    snapshot: Snapshot,
) -> None:
    """Queue ``snapshot`` until ``session`` commits; a rollback drops it.

    Only the latest snapshot per topic is kept. ``snapshot`` must not hold
    objects that expire on commit.
    """
    if not session.in_transaction():
        session.begin()
    pending = session.info.setdefault(_PENDING, {})
    pending[(id(feed), collection, key)] = (feed, collection, key, list(snapshot))
    if not event.contains(session, "after_commit", _deliver_pending):
        event.listen(session, "after_commit", _deliver_pending)
        event.listen(session, "after_transaction_end", _drop_pending)


def _deliver_pending(session: Session) -> None:
    # releasing a savepoint also fires after_commit
    if session.in_nested_transaction():
        return
    pending = session.info.pop(_PENDING, {})
    for feed, collection, key, snapshot in pending.values():
        delivered = feed.publish(collection, key, snapshot)
        logger.debug("published %s/%s to %d subscriber(s)", collection, key, delivered)


def _drop_pending(session: Session, transaction) -> None:
    if transaction.parent is not None:
        return
    dropped = session.info.pop(_PENDING, None)
    if dropped:
        logger.debug("discarded %d unpublished snapshot(s) on rollback", len(dropped))
