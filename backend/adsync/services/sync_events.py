"""
Per-job progress fan-out for SSE connections.

The broker keeps a map of job id → subscriber queues. A subscription lives
exactly as long as one SSE connection (async context manager), and closing a
job delivers the one-shot done signal to every subscriber and drops the entry.
"""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Union

from adsync.utils import isoformat_utc

logger = logging.getLogger(__name__)


class _Done:
    def __repr__(self):
        return "DONE"


DONE = _Done()


@dataclass
class SyncProgressEvent:
    type: str
    job_id: str
    campaign_set_id: str
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "jobId": self.job_id,
            "campaignSetId": self.campaign_set_id,
            "data": self.data,
            "timestamp": isoformat_utc(self.timestamp),
        }


def format_sse(event: str, data: Any) -> str:
    return f"event: {event}\ndata: {json.dumps(data, default=str)}\n\n"


SubscriberItem = Union[SyncProgressEvent, _Done]


class SyncEventBroker:
    def __init__(self):
        self._subscribers: dict[str, set[asyncio.Queue]] = {}

    def subscriber_count(self, job_id: str) -> int:
        return len(self._subscribers.get(job_id, ()))

    @asynccontextmanager
    async def subscribe(self, job_id: str) -> AsyncIterator[asyncio.Queue]:
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers.setdefault(job_id, set()).add(queue)
        try:
            yield queue
        finally:
            subscribers = self._subscribers.get(job_id)
            if subscribers is not None:
                subscribers.discard(queue)
                if not subscribers:
                    del self._subscribers[job_id]

    def publish(self, event: SyncProgressEvent) -> None:
        for queue in list(self._subscribers.get(event.job_id, ())):
            queue.put_nowait(event)

    def close(self, job_id: str) -> None:
        """Send the done signal to every subscriber of job_id and forget the job."""
        subscribers = self._subscribers.pop(job_id, set())
        for queue in subscribers:
            queue.put_nowait(DONE)
        if subscribers:
            logger.info(f"Closed {len(subscribers)} stream(s) for job {job_id}")
