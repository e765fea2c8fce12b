"""Anomaly aggregation over a request and its source IP's recent history.

Per request, four sub-scores are combined with fixed weights:

    isolation (0.4)    path-length estimate over the feature vector
    frequency (0.2)    requests from this IP in the last minute / 100
    payload   (0.2)    payload length / 10 000
    behavior  (0.2)    endpoint/method diversity and sensitive access in the last hour

The periodic sweep groups the lookback window by source IP and flags
every IP whose mean stored anomaly score is above the threshold.
"""

import re
from collections import defaultdict
from datetime import datetime, timedelta

from pydantic import BaseModel, Field

from honeyguard.core.logging import get_logger
from honeyguard.detection.ensemble import PathLengthEstimate
from honeyguard.detection.features import FeatureExtractor
from honeyguard.detection.models import (
    AnomalyResult,
    FeatureVector,
    RequestSample,
    clamp,
)
from honeyguard.history import HistoryLookup, TrafficRecord, utcnow

logger = get_logger(__name__)

ANOMALY_WEIGHTS = (0.4, 0.2, 0.2, 0.2)

FREQUENCY_WINDOW = timedelta(minutes=1)
BEHAVIOR_WINDOW = timedelta(hours=1)
REQUEST_FREQUENCY_LIMIT = 100
PAYLOAD_SIZE_LIMIT = 10_000
NEW_IP_BEHAVIOR_SCORE = 0.3

SENSITIVE_ACCESS_RE = re.compile(r"admin|login|auth|config", re.IGNORECASE)

# Sweep reason thresholds
SWEEP_HIGH_FREQUENCY = 50
SWEEP_LARGE_PAYLOAD = 5000
SWEEP_DIVERSE_ENDPOINTS = 10


class AnomalyFinding(BaseModel):
    """A source IP flagged by the periodic sweep."""

    source_ip: str
    mean_score: float = Field(ge=0.0, le=1.0)
    reason: str
    request_count: int


def combine_scores(
    isolation: float,
    frequency: float,
    payload_size: float,
    behavioral: float,
) -> float:
    """Weighted average of the four anomaly sub-scores."""
    scores = (isolation, frequency, payload_size, behavioral)
    weighted = sum(s * w for s, w in zip(scores, ANOMALY_WEIGHTS))
    return clamp(weighted / sum(ANOMALY_WEIGHTS))


def frequency_score(request_count: int) -> float:
    return min(request_count / REQUEST_FREQUENCY_LIMIT, 1.0)


def payload_size_score(payload_length: int) -> float:
    return min(payload_length / PAYLOAD_SIZE_LIMIT, 1.0)


def behavioral_score(records: list[TrafficRecord]) -> float:
    """Score how erratic an IP's last hour looks."""
    if not records:
        # never seen: moderate baseline
        return NEW_IP_BEHAVIOR_SCORE

    score = 0.0
    endpoint_diversity = len({r.endpoint for r in records}) / len(records)
    if endpoint_diversity > 0.8:
        score += 0.3
    if len({r.method for r in records}) > 3:
        score += 0.3
    if any(SENSITIVE_ACCESS_RE.search(r.endpoint) for r in records):
        score += 0.4
    return min(score, 1.0)


def sweep_reason(records: list[TrafficRecord]) -> str:
    reason = "High anomaly score detected"
    if len(records) > SWEEP_HIGH_FREQUENCY:
        reason += ", High request frequency"
    if any(len(r.payload or "") > SWEEP_LARGE_PAYLOAD for r in records):
        reason += ", Large payloads"
    if len({r.endpoint for r in records}) > SWEEP_DIVERSE_ENDPOINTS:
        reason += ", Diverse endpoint access"
    return reason


class AnomalyAggregator:
    """Per-request anomaly scoring and the cross-IP sweep.

    Usage:
        aggregator = AnomalyAggregator()
        result = await aggregator.score(sample, history)
        flagged = await aggregator.sweep(history)
    """

    def __init__(
        self,
        isolation: PathLengthEstimate | None = None,
        extractor: FeatureExtractor | None = None,
        sweep_threshold: float = 0.7,
    ) -> None:
        self.isolation = isolation or PathLengthEstimate()
        self.extractor = extractor or FeatureExtractor()
        self.sweep_threshold = sweep_threshold

    async def score(
        self,
        sample: RequestSample,
        history: HistoryLookup,
        features: FeatureVector | None = None,
        now: datetime | None = None,
    ) -> AnomalyResult:
        """Compute the composite anomaly score for one request.

        Args:
            sample: The request being scored (not yet in history)
            history: Lookup over previously persisted requests
            features: Pre-extracted features, if the caller has them
            now: Reference time (defaults to current UTC time)
        """
        now = now or utcnow()
        features = features or self.extractor.extract(sample)

        recent = await history.query(now - BEHAVIOR_WINDOW, now, source_ip=sample.source_ip)
        last_minute = [r for r in recent if r.timestamp >= now - FREQUENCY_WINDOW]

        isolation = self.isolation.estimate(features)
        frequency = frequency_score(len(last_minute))
        payload = payload_size_score(len(sample.payload_text))
        behavior = behavioral_score(recent)

        return AnomalyResult(
            score=combine_scores(isolation, frequency, payload, behavior),
            isolation=isolation,
            frequency=frequency,
            payload_size=payload,
            behavioral=behavior,
        )

    async def sweep(
        self,
        history: HistoryLookup,
        lookback: timedelta = timedelta(hours=1),
        now: datetime | None = None,
    ) -> list[AnomalyFinding]:
        """Flag source IPs whose mean anomaly score over the lookback is high.

        Returns:
            Flagged IPs, highest mean score first
        """
        now = now or utcnow()
        records = await history.query(now - lookback, now)

        by_ip: dict[str, list[TrafficRecord]] = defaultdict(list)
        for record in records:
            by_ip[record.source_ip].append(record)

        findings: list[AnomalyFinding] = []
        for source_ip, ip_records in by_ip.items():
            mean = sum(r.anomaly_score or 0.0 for r in ip_records) / len(ip_records)
            if mean > self.sweep_threshold:
                findings.append(
                    AnomalyFinding(
                        source_ip=source_ip,
                        mean_score=clamp(mean),
                        reason=sweep_reason(ip_records),
                        request_count=len(ip_records),
                    )
                )

        findings.sort(key=lambda f: f.mean_score, reverse=True)
        logger.info(
            "anomaly_sweep_complete",
            records_scanned=len(records),
            source_ips=len(by_ip),
            flagged=len(findings),
        )
        return findings
