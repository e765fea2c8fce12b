"""Long-running service: a ThreatEngine plus its periodic jobs.

Two jobs run on the event loop next to request handling:

- anomaly sweep every ``sweep_interval`` seconds (also prunes idle IPs
  from the timing history)
- honeypot flush every ``honeypot_flush_interval`` seconds
"""

import time
from datetime import timedelta
from typing import Optional

from honeyguard.core.config import Settings, get_settings
from honeyguard.core.logging import get_logger
from honeyguard.detection.anomaly import AnomalyFinding
from honeyguard.detection.models import RequestSample
from honeyguard.engine import ScoredRequest, ThreatEngine
from honeyguard.events.bus import EventBus
from honeyguard.history import HistoryLookup
from honeyguard.honeypot.models import HoneypotSummary
from honeyguard.scheduler import PeriodicTask

logger = get_logger(__name__)


class HoneyGuardService:
    """Owns the engine, the event bus and the periodic jobs.

    Usage:
        async with HoneyGuardService(history) as service:
            scored = await service.score(sample)
    """

    def __init__(
        self,
        history: HistoryLookup,
        settings: Optional[Settings] = None,
        event_bus: Optional[EventBus] = None,
        engine: Optional[ThreatEngine] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.history = history
        self.event_bus = event_bus or EventBus(history_size=self.settings.event_history_size)
        self.engine = engine or ThreatEngine(settings=self.settings, event_bus=self.event_bus)

        self.last_findings: list[AnomalyFinding] = []
        self.last_summary: Optional[HoneypotSummary] = None

        self._sweep_task = PeriodicTask("anomaly_sweep", self.settings.sweep_interval, self.run_sweep)
        self._flush_task = PeriodicTask(
            "honeypot_flush", self.settings.honeypot_flush_interval, self.run_flush
        )

    @property
    def running(self) -> bool:
        return self._sweep_task.running or self._flush_task.running

    async def start(self) -> None:
        self._sweep_task.start()
        self._flush_task.start()
        logger.info(
            "service_started",
            sweep_interval=self.settings.sweep_interval,
            flush_interval=self.settings.honeypot_flush_interval,
        )

    async def stop(self) -> None:
        await self._sweep_task.stop()
        await self._flush_task.stop()
        logger.info("service_stopped")

    async def __aenter__(self) -> "HoneyGuardService":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    async def score(self, sample: RequestSample) -> ScoredRequest:
        return await self.engine.score_request(sample, self.history)

    async def run_sweep(self) -> list[AnomalyFinding]:
        findings = await self.engine.sweep_anomalies(
            self.history,
            lookback=timedelta(seconds=self.settings.sweep_lookback_seconds),
        )
        dropped = self.engine.patterns.timing_history.prune(time.time())
        if dropped:
            logger.debug("timing_history_pruned", dropped=dropped)
        self.last_findings = findings
        return findings

    async def run_flush(self) -> HoneypotSummary:
        self.last_summary = await self.engine.flush_honeypot()
        return self.last_summary
