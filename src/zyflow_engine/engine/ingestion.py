"""Trigger ingestion: decide once whether an upstream notification warrants work.

Change-notification providers deliver the same message more than once and
often emit bursts of messages for a single user action. Ingestion drops:

- synchronization handshakes,
- exact re-deliveries of an already accepted (resource, sequence) pair,
- further messages for a resource inside the debounce window.

Accepted notifications are handed off to a background dispatch; ingestion
itself never waits on connectors so the caller can be acknowledged at once.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

import redis
from cachetools import TTLCache

from zyflow_engine.engine.config import EngineSettings
from zyflow_engine.engine.workflow.events import TriggerNotification

logger = logging.getLogger(__name__)


class IngestDecision(str, Enum):
    ACCEPTED = "accepted"
    SYNC = "sync"
    DUPLICATE = "duplicate"
    BURST = "burst"
    MISSING_RESOURCE = "missing_resource"


class DedupStore(Protocol):
    def check_and_record(self, notification: TriggerNotification) -> IngestDecision:
        """Return DUPLICATE or BURST, or record the notification and return ACCEPTED."""
        ...


class InMemoryDedupStore:
    """Process-local store; entries expire on their own.

    Only suppresses duplicates seen by this process. Each cache holds at most
    `maxsize` keys; past that the oldest are evicted before their TTL.
    """

    def __init__(
        self,
        *,
        dedup_ttl_seconds: float,
        debounce_seconds: float,
        maxsize: int = 10_000,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._lock = threading.Lock()
        self._processed: TTLCache[str, bool] = TTLCache(
            maxsize=maxsize, ttl=dedup_ttl_seconds, timer=timer
        )
        self._recent: TTLCache[str, bool] = TTLCache(
            maxsize=maxsize, ttl=debounce_seconds, timer=timer
        )

    def check_and_record(self, notification: TriggerNotification) -> IngestDecision:
        with self._lock:
            if notification.dedup_key in self._processed:
                return IngestDecision.DUPLICATE
            if notification.resource_id in self._recent:
                return IngestDecision.BURST
            self._processed[notification.dedup_key] = True
            self._recent[notification.resource_id] = True
            return IngestDecision.ACCEPTED


class RedisDedupStore:
    """Shared store so suppression holds across service instances.

    Key pattern:
        zyflow:trigger:processed:{resource_id}:{sequence}
        zyflow:trigger:recent:{resource_id}
    """

    PREFIX = "zyflow:trigger"

    def __init__(
        self,
        client: redis.Redis,
        *,
        dedup_ttl_seconds: float,
        debounce_seconds: float,
    ) -> None:
        self._redis = client
        self._dedup_ttl_ms = int(dedup_ttl_seconds * 1000)
        self._debounce_ms = int(debounce_seconds * 1000)

    def check_and_record(self, notification: TriggerNotification) -> IngestDecision:
        processed_key = f"{self.PREFIX}:processed:{notification.dedup_key}"
        recent_key = f"{self.PREFIX}:recent:{notification.resource_id}"

        if self._redis.exists(processed_key):
            return IngestDecision.DUPLICATE
        # SET NX is the atomic claim: only one instance wins the debounce window.
        if not self._redis.set(recent_key, "1", nx=True, px=self._debounce_ms):
            return IngestDecision.BURST
        self._redis.set(processed_key, "1", px=self._dedup_ttl_ms)
        return IngestDecision.ACCEPTED


def build_dedup_store(settings: EngineSettings) -> DedupStore:
    if settings.redis_url.strip():
        logger.info("Using Redis for trigger deduplication")
        return RedisDedupStore(
            redis.Redis.from_url(settings.redis_url),
            dedup_ttl_seconds=settings.dedup_ttl_seconds,
            debounce_seconds=settings.debounce_seconds,
        )
    return InMemoryDedupStore(
        dedup_ttl_seconds=settings.dedup_ttl_seconds,
        debounce_seconds=settings.debounce_seconds,
        maxsize=settings.dedup_max_entries,
    )


@dataclass(frozen=True, slots=True)
class IngestResult:
    decision: IngestDecision
    job_id: str | None = None

    @property
    def accepted(self) -> bool:
        return self.decision is IngestDecision.ACCEPTED


Handoff = Callable[[TriggerNotification], str]


class TriggerIngestion:
    """Filters notifications and hands accepted ones to `handoff`.

    `handoff` must return promptly (it starts the background dispatch and
    returns its job id).
    """

    def __init__(self, *, dedup: DedupStore, handoff: Handoff) -> None:
        self._dedup = dedup
        self._handoff = handoff

    def accept(self, notification: TriggerNotification) -> IngestResult:
        log_extra = {
            "resource_id": notification.resource_id,
            "message_sequence": notification.message_sequence,
        }
        if not notification.resource_id.strip():
            logger.info("Notification without resource id ignored", extra=log_extra)
            return IngestResult(IngestDecision.MISSING_RESOURCE)
        if notification.is_sync:
            logger.debug("Sync notification ignored", extra=log_extra)
            return IngestResult(IngestDecision.SYNC)

        decision = self._dedup.check_and_record(notification)
        if decision is not IngestDecision.ACCEPTED:
            logger.info("Notification suppressed", extra={**log_extra, "decision": decision.value})
            return IngestResult(decision)

        job_id = self._handoff(notification)
        logger.info("Notification accepted", extra={**log_extra, "job_id": job_id})
        return IngestResult(IngestDecision.ACCEPTED, job_id=job_id)
