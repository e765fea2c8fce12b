"""Threat engine: the three entry points the outer layers call.

- score_request: once per inbound request, before the caller persists it
- sweep_anomalies: on a fixed interval, read-only over history
- ingest_honeypot_event: once per upstream honeypot log record

The engine owns all cross-request state (signature memory, timing
history, honeypot buffer). Persistence and delivery stay with the
caller: ``ScoredRequest.to_traffic_record()`` and ``to_alert()`` give it
what to store, and the optional EventBus tells subscribers what happened.
"""

import random
from datetime import datetime, timedelta
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from honeyguard.core.config import Settings, get_settings
from honeyguard.core.logging import get_logger
from honeyguard.detection.anomaly import AnomalyAggregator, AnomalyFinding
from honeyguard.detection.ensemble import EnsembleClassifier, PathLengthEstimate
from honeyguard.detection.features import FeatureExtractor
from honeyguard.detection.models import (
    LABEL_THREAT_LEVELS,
    AnomalyResult,
    ClassificationResult,
    RequestSample,
    ThreatLabel,
    ThreatLevel,
)
from honeyguard.detection.patterns import IpTimingHistory, PatternAnalyzer, SignatureMemory
from honeyguard.detection.signatures import RequestSignatureMatcher, SignatureMatch
from honeyguard.events.bus import EventBus, EventType
from honeyguard.history import HistoryLookup, TrafficRecord, utcnow
from honeyguard.honeypot.models import CanonicalHoneypotEvent, HoneypotOrigin, HoneypotSummary
from honeyguard.honeypot.normalizer import HoneypotNormalizer

logger = get_logger(__name__)

EVENT_SOURCE = "threat_engine"

ALERT_TITLES: dict[ThreatLabel, str] = {
    ThreatLabel.NORMAL: "Anomalous Traffic Pattern",
    ThreatLabel.SUSPICIOUS: "Suspicious Request Detected",
    ThreatLabel.ANOMALOUS: "Anomalous Traffic Pattern",
    ThreatLabel.MALICIOUS: "Malicious Request Detected",
    ThreatLabel.NOVEL_ATTACK: "Novel Attack Pattern Detected",
}


def threat_level_for(
    label: ThreatLabel,
    signature: SignatureMatch | None = None,
) -> ThreatLevel:
    """Derive the coarse threat level: the higher of the label's tier and the signature's."""
    level = LABEL_THREAT_LEVELS[label]
    if signature is not None and signature.threat_level.rank > level.rank:
        return signature.threat_level
    return level


class AlertDraft(BaseModel):
    """Alert fields the caller persists when a request should alert."""

    title: str
    description: str
    severity: ThreatLevel
    source_ip: str
    attack_type: str


class ScoredRequest(BaseModel):
    """Classification, anomaly and signature results for one request, merged."""

    model_config = ConfigDict(frozen=True)

    sample: RequestSample
    classification: ClassificationResult
    anomaly: AnomalyResult
    threat_level: ThreatLevel
    signature: SignatureMatch | None = None
    scored_at: datetime = Field(default_factory=utcnow)

    @property
    def should_alert(self) -> bool:
        return self.threat_level is not ThreatLevel.LOW

    @property
    def attack_type(self) -> str:
        if self.signature is not None:
            return self.signature.attack_type
        return self.classification.label.value

    @property
    def is_blocked(self) -> bool:
        return self.signature is not None and self.signature.is_blocked

    def to_traffic_record(self, response_code: int | None = None) -> TrafficRecord:
        return TrafficRecord(
            timestamp=self.scored_at,
            source_ip=self.sample.source_ip,
            method=self.sample.method,
            endpoint=self.sample.endpoint,
            user_agent=self.sample.user_agent,
            payload=self.sample.payload,
            response_code=response_code,
            threat_level=self.threat_level,
            classification=self.classification.label,
            attack_type=self.signature.attack_type if self.signature is not None else None,
            is_blocked=self.is_blocked,
            anomaly_score=self.anomaly.score,
            ml_prediction=self.classification.model_dump(mode="json"),
        )

    def to_alert(self) -> AlertDraft | None:
        if not self.should_alert:
            return None
        label = self.classification.label
        signature = self.signature
        # A signature at least as severe as the label names the alert.
        if signature is not None and signature.threat_level.rank >= LABEL_THREAT_LEVELS[label].rank:
            return AlertDraft(
                title=signature.title,
                description=signature.description,
                severity=self.threat_level,
                source_ip=self.sample.source_ip,
                attack_type=signature.attack_type,
            )

        description = (
            f"{label.value} request from {self.sample.source_ip} on {self.sample.endpoint} "
            f"(confidence: {self.classification.confidence:.2f}, "
            f"anomaly score: {self.anomaly.score:.2f})"
        )
        if self.classification.detected_patterns:
            description += f"; patterns: {', '.join(self.classification.detected_patterns)}"
        return AlertDraft(
            title=ALERT_TITLES[label],
            description=description,
            severity=self.threat_level,
            source_ip=self.sample.source_ip,
            attack_type=self.attack_type,
        )


class ThreatEngine:
    """Scoring pipeline plus the state it shares across requests.

    Usage:
        engine = ThreatEngine()
        scored = await engine.score_request(sample, history)
        if scored.should_alert:
            store.save_alert(scored.to_alert())
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        event_bus: Optional[EventBus] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.event_bus = event_bus

        isolation = PathLengthEstimate(rng=rng or random.Random(self.settings.isolation_seed))
        self.extractor = FeatureExtractor()
        self.patterns = PatternAnalyzer(
            signature_memory=SignatureMemory(self.settings.signature_memory_capacity),
            timing_history=IpTimingHistory(
                max_size=self.settings.timing_history_size,
                window_seconds=self.settings.timing_window_seconds,
            ),
        )
        self.classifier = EnsembleClassifier(isolation=isolation)
        self.anomaly = AnomalyAggregator(
            isolation=isolation,
            extractor=self.extractor,
            sweep_threshold=self.settings.sweep_threshold,
        )
        self.signatures = RequestSignatureMatcher(
            anomaly_threshold=self.settings.alert_anomaly_threshold,
        )
        self.honeypot = HoneypotNormalizer(buffer_size=self.settings.honeypot_buffer_size)

    async def score_request(
        self,
        sample: RequestSample,
        history: HistoryLookup,
        now: datetime | None = None,
    ) -> ScoredRequest:
        """Classify, anomaly-score and signature-check one request.

        Args:
            sample: The inbound request
            history: Lookup over previously persisted requests
            now: Arrival time (defaults to current UTC time)
        """
        now = now or utcnow()
        features = self.extractor.extract(sample)
        analysis = self.patterns.analyze(sample, now=now.timestamp())
        anomaly = await self.anomaly.score(sample, history, features=features, now=now)
        classification = self.classifier.classify(
            features,
            sample,
            pattern_score=analysis.score,
            novelty_score=analysis.novelty_score,
            isolation_score=anomaly.isolation,
            detected_patterns=analysis.tags,
        )
        signature = self.signatures.inspect(sample, anomaly.score)
        scored = ScoredRequest(
            sample=sample,
            classification=classification,
            anomaly=anomaly,
            threat_level=threat_level_for(classification.label, signature),
            signature=signature,
            scored_at=now,
        )

        logger.debug(
            "request_scored",
            source_ip=sample.source_ip,
            endpoint=sample.endpoint,
            label=classification.label.value,
            confidence=round(classification.confidence, 3),
            anomaly_score=round(anomaly.score, 3),
            threat_level=scored.threat_level.value,
            attack_type=scored.attack_type,
            blocked=scored.is_blocked,
            patterns=analysis.tags,
        )

        await self._emit(EventType.REQUEST_SCORED, {
            "source_ip": sample.source_ip,
            "endpoint": sample.endpoint,
            "label": classification.label.value,
            "confidence": classification.confidence,
            "anomaly_score": anomaly.score,
            "threat_level": scored.threat_level.value,
            "attack_type": scored.attack_type,
            "is_blocked": scored.is_blocked,
        })
        if "novel_attack_pattern" in analysis.tags:
            await self._emit(EventType.NOVEL_PATTERN, {
                "source_ip": sample.source_ip,
                "patterns": analysis.tags,
                "novelty_score": analysis.novelty_score,
            })
        alert = scored.to_alert()
        if alert is not None:
            await self._emit(EventType.ALERT_RAISED, alert.model_dump(mode="json"))

        return scored

    async def sweep_anomalies(
        self,
        history: HistoryLookup,
        lookback: timedelta = timedelta(hours=1),
        now: datetime | None = None,
    ) -> list[AnomalyFinding]:
        """Flag source IPs with a high mean anomaly score over the lookback window."""
        findings = await self.anomaly.sweep(history, lookback=lookback, now=now)
        await self._emit(EventType.ANOMALY_SWEEP, {
            "lookback_seconds": lookback.total_seconds(),
            "flagged": [f.model_dump(mode="json") for f in findings],
        })
        return findings

    async def ingest_honeypot_event(
        self,
        raw: Any,
        origin: HoneypotOrigin | str,
    ) -> CanonicalHoneypotEvent | None:
        """Normalize one honeypot record into the buffer. Returns None if malformed."""
        event = self.honeypot.ingest(raw, origin)
        if event is not None:
            await self._emit(EventType.HONEYPOT_EVENT, event.model_dump(mode="json", exclude={"raw"}))
        return event

    async def flush_honeypot(self) -> HoneypotSummary:
        """Summarise and trim the honeypot buffer."""
        summary = self.honeypot.flush()
        await self._emit(EventType.HONEYPOT_FLUSH, summary.model_dump(mode="json", exclude={"features"}))
        return summary

    async def _emit(self, event_type: EventType, data: dict[str, Any]) -> None:
        if self.event_bus is not None:
            await self.event_bus.emit(event_type, data, source=EVENT_SOURCE)
