"""Traffic history contract.

The traffic log store lives outside this package. The scoring pipeline
only needs to ask it one question: which requests arrived between two
instants, optionally for one source IP. ``HistoryLookup`` is that
capability; ``InMemoryHistory`` is a small reference implementation used
by the CLI simulation and the tests.
"""

import threading
from datetime import datetime, timezone
from typing import Any, Protocol

from pydantic import BaseModel, Field

from honeyguard.detection.models import ThreatLabel, ThreatLevel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TrafficRecord(BaseModel):
    """A persisted, scored request as the store returns it."""

    timestamp: datetime = Field(default_factory=utcnow)
    source_ip: str
    method: str
    endpoint: str
    user_agent: str | None = None
    payload: str | None = None
    response_code: int | None = None
    threat_level: ThreatLevel = ThreatLevel.LOW
    classification: ThreatLabel = ThreatLabel.NORMAL
    attack_type: str | None = None
    is_blocked: bool = False
    anomaly_score: float | None = Field(default=0.0, ge=0.0, le=1.0)
    ml_prediction: dict[str, Any] | None = None


class HistoryLookup(Protocol):
    """Read access to previously persisted requests."""

    async def query(
        self,
        start: datetime,
        end: datetime,
        source_ip: str | None = None,
    ) -> list[TrafficRecord]:
        """Return records with start <= timestamp <= end, oldest first."""
        ...


class InMemoryHistory:
    """List-backed HistoryLookup with an append method.

    Usage:
        history = InMemoryHistory()
        history.append(record)
        recent = await history.query(start, end, source_ip="10.0.0.1")
    """

    def __init__(self, max_records: int = 50_000) -> None:
        self._records: list[TrafficRecord] = []
        self._max_records = max_records
        self._lock = threading.Lock()

    def append(self, record: TrafficRecord) -> None:
        with self._lock:
            self._records.append(record)
            if len(self._records) > self._max_records:
                self._records = self._records[-self._max_records:]

    async def query(
        self,
        start: datetime,
        end: datetime,
        source_ip: str | None = None,
    ) -> list[TrafficRecord]:
        with self._lock:
            records = list(self._records)
        return sorted(
            (
                r for r in records
                if start <= r.timestamp <= end
                and (source_ip is None or r.source_ip == source_ip)
            ),
            key=lambda r: r.timestamp,
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
