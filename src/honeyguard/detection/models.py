"""Data models shared by the request scoring pipeline.

RequestSample and FeatureVector are lightweight frozen dataclasses that
live only for the duration of one scoring call. The results that leave
the pipeline (ClassificationResult, AnomalyResult) are frozen Pydantic
models so the caller can persist them with ``model_dump()``.
"""

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ThreatLabel(str, Enum):
    """Classification label produced by the ensemble."""

    NORMAL = "Normal"
    SUSPICIOUS = "Suspicious"
    MALICIOUS = "Malicious"
    NOVEL_ATTACK = "Novel Attack Pattern"
    ANOMALOUS = "Anomalous Behavior"


class ThreatLevel(str, Enum):
    """Coarse severity tier. Also used as honeypot event severity."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return _LEVEL_ORDER.index(self)


_LEVEL_ORDER = (ThreatLevel.LOW, ThreatLevel.MEDIUM, ThreatLevel.HIGH, ThreatLevel.CRITICAL)


@dataclass(frozen=True)
class RequestSample:
    """One inbound request aimed at the decoy site."""

    source_ip: str
    method: str
    endpoint: str
    payload: str | None = None
    user_agent: str | None = None

    @property
    def payload_text(self) -> str:
        return self.payload or ""

    @property
    def agent_text(self) -> str:
        return self.user_agent or ""


@dataclass(frozen=True)
class FeatureVector:
    """Five normalized features, each in [0, 1]."""

    ip_hash: float
    method_weight: float
    endpoint_sensitivity: float
    payload_length: float
    agent_suspicion: float

    def as_list(self) -> list[float]:
        return [
            self.ip_hash,
            self.method_weight,
            self.endpoint_sensitivity,
            self.payload_length,
            self.agent_suspicion,
        ]


@dataclass(frozen=True)
class PatternFinding:
    """A detector that fired, with the score it contributed."""

    tag: str
    score: float = 0.0
    novelty: float = 0.0


@dataclass(frozen=True)
class PatternAnalysis:
    """Output of the pattern analyzer for one request."""

    score: float
    novelty_score: float
    findings: tuple[PatternFinding, ...] = ()

    @property
    def tags(self) -> list[str]:
        return [f.tag for f in self.findings]


class ModelVerdict(BaseModel):
    """Label and confidence from a single scoring strategy."""

    model_config = ConfigDict(frozen=True)

    model: str
    label: ThreatLabel
    confidence: float = Field(ge=0.0, le=1.0)
    score: float = Field(ge=0.0, le=1.0)


class ClassificationResult(BaseModel):
    """Final ensemble classification for one request."""

    model_config = ConfigDict(frozen=True)

    label: ThreatLabel
    confidence: float = Field(ge=0.0, le=1.0)
    model: str = "GradientStyle + Multi-Model Ensemble"
    contributing_models: list[str] = Field(default_factory=list)
    agreeing_models: list[str] = Field(default_factory=list)
    features: list[float] = Field(min_length=5, max_length=5)
    novelty_score: float = Field(ge=0.0, le=1.0)
    pattern_score: float = Field(default=0.0, ge=0.0, le=1.0)
    detected_patterns: list[str] = Field(default_factory=list)
    verdicts: list[ModelVerdict] = Field(default_factory=list)


class AnomalyResult(BaseModel):
    """Composite anomaly score and the four sub-scores behind it."""

    model_config = ConfigDict(frozen=True)

    score: float = Field(ge=0.0, le=1.0)
    isolation: float = Field(ge=0.0, le=1.0)
    frequency: float = Field(ge=0.0, le=1.0)
    payload_size: float = Field(ge=0.0, le=1.0)
    behavioral: float = Field(ge=0.0, le=1.0)


LABEL_THREAT_LEVELS: dict[ThreatLabel, ThreatLevel] = {
    ThreatLabel.NORMAL: ThreatLevel.LOW,
    ThreatLabel.SUSPICIOUS: ThreatLevel.MEDIUM,
    ThreatLabel.ANOMALOUS: ThreatLevel.MEDIUM,
    ThreatLabel.MALICIOUS: ThreatLevel.HIGH,
    ThreatLabel.NOVEL_ATTACK: ThreatLevel.HIGH,
}


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    """Clamp a value into [low, high]."""
    return max(low, min(high, value))
