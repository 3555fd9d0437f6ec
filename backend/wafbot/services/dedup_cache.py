"""
Dedup Cache
Bounded, time-windowed idempotency guard for at-least-once webhook delivery

Best effort and single-process: state is lost on restart and a hard clear
forgets every key but the current one. Treat suppression as a cost
optimization, never as a safety mechanism.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from wafbot.core.prometheus_metrics import dedup_suppressed_total

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


@dataclass(frozen=True)
class DedupPolicy:
    """
    window: seconds a key suppresses repeats; None means presence-only
    capacity: size above which eviction runs
    retention: entries older than this are purged during eviction; None skips the purge
    hard_limit: size above which, after the purge, the cache is cleared; None never clears
    """
    window: Optional[float]
    capacity: int
    retention: Optional[float] = None
    hard_limit: Optional[int] = None


INBOUND_EVENT_POLICY = DedupPolicy(window=None, capacity=100, hard_limit=100)
RECENT_QUERY_POLICY = DedupPolicy(window=5.0, capacity=200, retention=600.0, hard_limit=150)
OUTBOUND_NOTIFICATION_POLICY = DedupPolicy(window=180.0, capacity=50, retention=600.0)


class DedupCache:
    """Map of key -> last-seen time with size-triggered eviction"""

    def __init__(self, name: str, policy: DedupPolicy, clock: Clock = time.monotonic):
        self.name = name
        self.policy = policy
        self._clock = clock
        self._entries: Dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def age_of(self, key: str) -> Optional[float]:
        seen = self._entries.get(key)
        if seen is None:
            return None
        return self._clock() - seen

    def should_process(self, key: str) -> bool:
        """
        True (and the key is recorded) when the key is new or its window has
        elapsed; False when it is a duplicate.
        """
        now = self._clock()
        seen = self._entries.get(key)
        if seen is not None:
            if self.policy.window is None or now - seen < self.policy.window:
                logger.info(
                    f"[{self.name}] duplicate suppressed (seen {now - seen:.2f}s ago): {key[:80]}"
                )
                dedup_suppressed_total.labels(cache=self.name).inc()
                return False

        self._entries[key] = now
        self._evict(key, now)
        return True

    def _evict(self, current_key: str, now: float) -> None:
        policy = self.policy
        if len(self._entries) <= policy.capacity:
            return

        before = len(self._entries)
        if policy.retention is not None:
            self._entries = {
                k: seen for k, seen in self._entries.items()
                if now - seen <= policy.retention
            }
        logger.info(
            f"[{self.name}] cache cleanup: {before - len(self._entries)} entries deleted "
            f"({len(self._entries)} remaining)"
        )

        if policy.hard_limit is not None and len(self._entries) > policy.hard_limit:
            logger.info(f"[{self.name}] clearing cache (size={len(self._entries)})")
            self._entries = {current_key: now}

    def clear(self) -> None:
        self._entries = {}


def create_inbound_event_cache(clock: Clock = time.monotonic) -> DedupCache:
    """Keyed by event id + text + channel; presence only"""
    return DedupCache("inbound_event", INBOUND_EVENT_POLICY, clock)


def create_recent_query_cache(clock: Clock = time.monotonic) -> DedupCache:
    """Keyed by channel + normalized question; 5s window"""
    return DedupCache("recent_query", RECENT_QUERY_POLICY, clock)


def create_outbound_notification_cache(clock: Clock = time.monotonic) -> DedupCache:
    """Keyed by channel + message signature; 3min window"""
    return DedupCache("outbound_notification", OUTBOUND_NOTIFICATION_POLICY, clock)
