"""Request signature rules for well-known attack shapes.

The pattern analyzer scores what it has not seen before. These rules
name what it has: SQL injection and cross-site scripting in the body or
URL, credential posts against authentication endpoints, and traffic
whose anomaly score is already past the alert threshold.
"""

import re
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict

from honeyguard.core.logging import get_logger
from honeyguard.detection.models import RequestSample, ThreatLevel

logger = get_logger(__name__)


@dataclass(frozen=True)
class SignatureRule:
    """A request signature and the alert it produces when it matches."""

    name: str
    threat_level: ThreatLevel
    title: str
    description: str  # str.format template with {ip}, {url} and {score}
    blocked: bool
    patterns: tuple[re.Pattern[str], ...] = ()
    target: str = "payload_or_url"  # payload_or_url, url
    methods: frozenset[str] | None = None

    def matches(self, sample: RequestSample) -> bool:
        if self.methods is not None and sample.method.upper() not in self.methods:
            return False
        if self.target == "url":
            texts = (sample.endpoint,)
        else:
            texts = (sample.payload_text, sample.endpoint)
        return any(p.search(text) for p in self.patterns for text in texts)


class SignatureMatch(BaseModel):
    """The rule that fired for one request."""

    model_config = ConfigDict(frozen=True)

    attack_type: str
    threat_level: ThreatLevel
    title: str
    description: str
    is_blocked: bool


def _compile(*patterns: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


# Checked in order; the first rule that matches wins.
SIGNATURE_RULES: tuple[SignatureRule, ...] = (
    SignatureRule(
        name="SQL Injection",
        threat_level=ThreatLevel.HIGH,
        title="SQL Injection Detected",
        description="Malicious SQL injection attempt from {ip} on {url}",
        blocked=True,
        patterns=_compile(
            r"\bUNION\b.*\bSELECT\b",
            r"\bDROP\b.*\bTABLE\b",
            r"\bINSERT\b.*\bINTO\b",
            r"'\s*OR\s*'\d*'\s*=\s*'\d*",
            r"\bSELECT\b.*\bFROM\b.*\bWHERE\b",
        ),
    ),
    SignatureRule(
        name="XSS Attempt",
        threat_level=ThreatLevel.MEDIUM,
        title="XSS Attack Blocked",
        description="Cross-site scripting attempt detected from {ip}",
        blocked=True,
        patterns=_compile(
            r"<script[^>]*>.*?</script>",
            r"<iframe[^>]*>.*?</iframe>",
            r"javascript:",
            r"on\w+\s*=",
            r"<img[^>]*onerror\s*=",
        ),
    ),
    SignatureRule(
        name="Brute Force",
        threat_level=ThreatLevel.MEDIUM,
        title="Brute Force Attempt",
        description="Multiple authentication attempts detected from {ip}",
        blocked=False,
        patterns=_compile(r"admin", r"login", r"password", r"auth"),
        target="url",
        methods=frozenset({"POST"}),
    ),
)

ANOMALY_RULE = SignatureRule(
    name="Anomalous Behavior",
    threat_level=ThreatLevel.MEDIUM,
    title="Anomalous Traffic Pattern",
    description="Unusual traffic pattern detected from {ip} (Score: {score:.2f})",
    blocked=False,
)


class RequestSignatureMatcher:
    """Checks a request against the signature rules.

    Usage:
        matcher = RequestSignatureMatcher(anomaly_threshold=0.7)
        match = matcher.inspect(sample, anomaly_score)
        if match is not None and match.is_blocked:
            ...
    """

    def __init__(
        self,
        rules: tuple[SignatureRule, ...] = SIGNATURE_RULES,
        anomaly_threshold: float = 0.7,
    ) -> None:
        self.rules = rules
        self.anomaly_threshold = anomaly_threshold

    def inspect(self, sample: RequestSample, anomaly_score: float = 0.0) -> SignatureMatch | None:
        """Return the first matching rule, or the anomaly rule if the score is past the threshold."""
        for rule in self.rules:
            if rule.matches(sample):
                return self._build(rule, sample, anomaly_score)
        if anomaly_score > self.anomaly_threshold:
            return self._build(ANOMALY_RULE, sample, anomaly_score)
        return None

    def _build(self, rule: SignatureRule, sample: RequestSample, anomaly_score: float) -> SignatureMatch:
        logger.debug(
            "signature_matched",
            rule=rule.name,
            source_ip=sample.source_ip,
            endpoint=sample.endpoint,
            blocked=rule.blocked,
        )
        return SignatureMatch(
            attack_type=rule.name,
            threat_level=rule.threat_level,
            title=rule.title,
            description=rule.description.format(
                ip=sample.source_ip, url=sample.endpoint, score=anomaly_score
            ),
            is_blocked=rule.blocked,
        )
