"""Request scoring: features, pattern analysis, ensemble and anomaly scoring."""

from honeyguard.detection.models import (
    AnomalyResult,
    ClassificationResult,
    FeatureVector,
    PatternAnalysis,
    PatternFinding,
    RequestSample,
    ThreatLabel,
    ThreatLevel,
)
from honeyguard.detection.features import FeatureExtractor
from honeyguard.detection.patterns import (
    IpTimingHistory,
    PatternAnalyzer,
    SignatureMemory,
    shannon_entropy,
)
from honeyguard.detection.signatures import RequestSignatureMatcher, SignatureMatch
from honeyguard.detection.ensemble import (
    EnsembleClassifier,
    GradientStyle,
    PathLengthEstimate,
    ScoringStrategy,
    WeightedFeature,
)

__all__ = [
    "AnomalyResult",
    "ClassificationResult",
    "FeatureVector",
    "PatternAnalysis",
    "PatternFinding",
    "RequestSample",
    "ThreatLabel",
    "ThreatLevel",
    "FeatureExtractor",
    "IpTimingHistory",
    "PatternAnalyzer",
    "SignatureMemory",
    "shannon_entropy",
    "RequestSignatureMatcher",
    "SignatureMatch",
    "EnsembleClassifier",
    "GradientStyle",
    "PathLengthEstimate",
    "ScoringStrategy",
    "WeightedFeature",
]
