"""Keyword deduplication shared best-effort across concurrent workers."""

import logging
from typing import Optional

from .models import SerpResult

logger = logging.getLogger(__name__)


def normalize_keyword(keyword: str) -> str:
    """
    Normalize a keyword for identity comparison.

    Args:
        keyword: Raw keyword or suggestion text

    Returns:
        Casefolded keyword with collapsed whitespace

    Examples:
        "  Coffee   Beans " -> "coffee beans"
        "" -> ""
    """
    if not keyword:
        return ""
    return " ".join(keyword.split()).casefold()


class BroadcastHub:
    """
    Fan-out channel between workers.

    Every worker's dedup replica subscribes; a completed SerpResult published
    by one worker is delivered to every other subscriber. The hub also keeps
    every keyword it has broadcast, so a replica subscribing later starts
    caught up. Delivery is append-only and lock-free, so two workers may
    still race past the same keyword before either broadcast lands.
    """

    def __init__(self):
        self._subscribers: list["KeywordDedupSet"] = []
        self._completed: set[str] = set()

    @property
    def completed(self) -> frozenset[str]:
        """Normalized keywords broadcast so far."""
        return frozenset(self._completed)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, replica: "KeywordDedupSet") -> None:
        if replica not in self._subscribers:
            self._subscribers.append(replica)

    def unsubscribe(self, replica: "KeywordDedupSet") -> None:
        if replica in self._subscribers:
            self._subscribers.remove(replica)

    def broadcast(self, serp_result: SerpResult, sender: Optional["KeywordDedupSet"] = None) -> int:
        """Deliver a completed harvest to every subscriber except the sender."""
        key = normalize_keyword(serp_result.keyword)
        if key:
            self._completed.add(key)

        delivered = 0
        for replica in list(self._subscribers):
            if replica is sender:
                continue
            replica.receive_broadcast(serp_result)
            delivered += 1
        logger.debug("Broadcast '%s' to %d workers", serp_result.keyword, delivered)
        return delivered


class KeywordDedupSet:
    """
    One worker's replica of which keywords are already harvested or claimed.

    ``local`` grows as this worker claims keywords, ``external`` grows as
    sibling workers broadcast completed harvests. Neither ever shrinks.
    """

    def __init__(self, hub: Optional[BroadcastHub] = None):
        self._local: set[str] = set()
        self._external: set[str] = set()
        self._hub = hub
        if hub is not None:
            self._external.update(hub.completed)
            hub.subscribe(self)

    def __contains__(self, keyword: str) -> bool:
        return self.is_claimed(keyword)

    def __len__(self) -> int:
        return len(self._local | self._external)

    def is_claimed(self, keyword: str) -> bool:
        key = normalize_keyword(keyword)
        return key in self._local or key in self._external

    def mark_or_claim(self, keyword: str) -> bool:
        """
        Claim a keyword for this worker.

        Returns:
            True if the keyword was already claimed (locally or by a sibling),
            False if this call claimed it.
        """
        key = normalize_keyword(keyword)
        if key in self._local or key in self._external:
            return True
        self._local.add(key)
        return False

    def receive_broadcast(self, serp_result: SerpResult) -> None:
        """Record a keyword a sibling worker finished harvesting."""
        key = normalize_keyword(serp_result.keyword)
        if key and key not in self._external:
            self._external.add(key)
            logger.debug("Received broadcast for '%s'", serp_result.keyword)

    def publish(self, serp_result: SerpResult) -> None:
        """Mark a completed harvest locally and broadcast it to siblings."""
        self._local.add(normalize_keyword(serp_result.keyword))
        if self._hub is not None:
            self._hub.broadcast(serp_result, sender=self)

    def close(self) -> None:
        """Stop receiving broadcasts."""
        if self._hub is not None:
            self._hub.unsubscribe(self)
            self._hub = None
