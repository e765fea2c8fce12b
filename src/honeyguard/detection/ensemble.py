"""Three-strategy ensemble classifier.

None of the strategies here is a trained model. Each is a fixed-weight
arithmetic procedure named after the estimator family it imitates:

- GradientStyle: bounded boosted-tree gain accumulation plus payload
  heuristics. Primary label source.
- WeightedFeature: weighted dot product with five sinusoidal "tree"
  passes. Only used to confirm the primary label.
- PathLengthEstimate: randomized feature elimination; short isolation
  paths mean an anomalous point. Computed by the anomaly aggregator and
  handed to the classifier as ``isolation_score``.

The classifier starts from the GradientStyle verdict and applies the
override rules in priority order: novelty, pattern score, isolation,
then the agreement boost.
"""

import math
import random
import re
import threading
from abc import ABC, abstractmethod
from dataclasses import fields
from typing import Any

from honeyguard.detection.models import (
    ClassificationResult,
    FeatureVector,
    ModelVerdict,
    RequestSample,
    ThreatLabel,
    clamp,
)

SPECIAL_CHARS_RE = re.compile(r"[<>'\"`;]")
SQL_KEYWORDS_RE = re.compile(r"union|select|drop|insert|update|delete", re.IGNORECASE)

PATTERN_ANALYZER_NAME = "PatternAnalyzer"
FEATURE_NAMES = [f.name for f in fields(FeatureVector)]


class ScoringStrategy(ABC):
    """Common interface for the ensemble's scoring procedures."""

    name: str = ""
    model_type: str = ""

    def parameters(self) -> dict[str, Any]:
        return {}

    def describe(self) -> dict[str, Any]:
        """Name, family, input features and tuning parameters, for listings."""
        return {
            "name": self.name,
            "type": self.model_type,
            "features": list(FEATURE_NAMES),
            "parameters": self.parameters(),
        }

    @abstractmethod
    def evaluate(self, features: FeatureVector, sample: RequestSample) -> ModelVerdict:
        """Score one request and map the score to a label."""


class GradientStyle(ScoringStrategy):
    """Gradient-boosting-style gain accumulation over a bounded tree budget."""

    name = "GradientStyle"
    model_type = "gradient_boosting"

    def __init__(
        self,
        weights: tuple[float, ...] = (0.25, 0.25, 0.2, 0.15, 0.15),
        n_estimators: int = 20,
        max_depth: int = 6,
        learning_rate: float = 0.1,
        reg_lambda: float = 1.0,
        gamma: float = 0.1,
    ) -> None:
        self.weights = weights
        self.n_estimators = n_estimators
        self.max_depth = max_depth
        self.learning_rate = learning_rate
        self.reg_lambda = reg_lambda
        self.gamma = gamma

    def parameters(self) -> dict[str, Any]:
        return {
            "n_estimators": self.n_estimators,
            "max_depth": self.max_depth,
            "learning_rate": self.learning_rate,
            "weights": list(self.weights),
        }

    def base_score(self, features: FeatureVector) -> float:
        values = features.as_list()
        total = 0.0
        for estimator in range(self.n_estimators):
            tree_score = 0.0
            for depth in range(self.max_depth):
                for value, weight in zip(values, self.weights):
                    gradient = value * weight
                    hessian = abs(value - 0.5)
                    gain = gradient * gradient / (hessian + self.reg_lambda) - self.gamma
                    tree_score += gain * 0.9 ** depth
            total += tree_score * self.learning_rate * 0.95 ** estimator
        return clamp(total / 10)

    def score(self, features: FeatureVector, sample: RequestSample) -> float:
        payload = sample.payload_text
        score = self.base_score(features)
        if len(payload) > 100:
            score += 0.05
        if SPECIAL_CHARS_RE.search(payload):
            score += 0.1
        if SQL_KEYWORDS_RE.search(payload):
            score += 0.15
        return score

    def evaluate(self, features: FeatureVector, sample: RequestSample) -> ModelVerdict:
        score = self.score(features, sample)
        if score > 0.75:
            label, confidence = ThreatLabel.MALICIOUS, min(score + 0.2, 0.99)
        elif score > 0.5:
            label, confidence = ThreatLabel.SUSPICIOUS, score + 0.15
        elif score > 0.3:
            label, confidence = ThreatLabel.SUSPICIOUS, score + 0.1
        else:
            label, confidence = ThreatLabel.NORMAL, 0.88
        return ModelVerdict(
            model=self.name,
            label=label,
            confidence=clamp(confidence),
            score=clamp(score),
        )


class WeightedFeature(ScoringStrategy):
    """Weighted dot product plus a small ensemble of sinusoidally weighted passes."""

    name = "WeightedFeature"
    model_type = "weighted_ensemble"

    def __init__(
        self,
        weights: tuple[float, ...] = (0.3, 0.2, 0.25, 0.15, 0.1),
        n_trees: int = 5,
    ) -> None:
        self.weights = weights
        self.n_trees = n_trees

    def parameters(self) -> dict[str, Any]:
        return {"n_trees": self.n_trees, "weights": list(self.weights)}

    def score(self, features: FeatureVector) -> float:
        values = features.as_list()
        score = sum(v * w for v, w in zip(values, self.weights))
        for tree in range(self.n_trees):
            tree_score = 0.0
            for i, value in enumerate(values):
                tree_score += value * (math.sin(tree + i) * 0.1 + 0.1)
            score += tree_score * 0.1
        return score

    def evaluate(self, features: FeatureVector, sample: RequestSample) -> ModelVerdict:
        score = self.score(features)
        if score > 0.7:
            label, confidence = ThreatLabel.MALICIOUS, min(score + 0.15, 1.0)
        elif score > 0.4:
            label, confidence = ThreatLabel.SUSPICIOUS, score + 0.1
        else:
            label, confidence = ThreatLabel.NORMAL, 0.85
        return ModelVerdict(
            model=self.name,
            label=label,
            confidence=clamp(confidence),
            score=clamp(score),
        )


class PathLengthEstimate(ScoringStrategy):
    """Isolation-forest-style anomaly estimate by randomized feature elimination.

    Each simulated tree repeatedly picks a random remaining feature and a
    random split in [0, 1); a feature below the split is isolated and
    removed. Trees that run out of features quickly have short paths,
    which score higher.
    """

    name = "PathLengthEstimate"
    model_type = "isolation"

    def __init__(
        self,
        n_trees: int = 10,
        max_rounds: int = 15,
        max_path_length: int = 12,
        average_path_length: float = 10.0,
        anomaly_threshold: float = 0.8,
        rng: random.Random | None = None,
    ) -> None:
        self.n_trees = n_trees
        self.max_rounds = max_rounds
        self.max_path_length = max_path_length
        self.average_path_length = average_path_length
        self.anomaly_threshold = anomaly_threshold
        self._rng = rng or random.Random()
        self._rng_lock = threading.Lock()

    def parameters(self) -> dict[str, Any]:
        return {
            "n_trees": self.n_trees,
            "max_path_length": self.max_path_length,
            "anomaly_threshold": self.anomaly_threshold,
        }

    def estimate(self, features: FeatureVector) -> float:
        total = 0.0
        with self._rng_lock:
            for _ in range(self.n_trees):
                total += 2 ** (-self._path_length(features.as_list()) / self.average_path_length)
        return clamp(total / self.n_trees)

    def _path_length(self, remaining: list[float]) -> int:
        path_length = 0
        for _ in range(self.max_rounds):
            if not remaining:
                break
            index = self._rng.randrange(len(remaining))
            split = self._rng.random()
            path_length += 1
            if remaining[index] < split:
                del remaining[index]
            if path_length >= self.max_path_length:
                break
        return path_length

    def verdict(self, isolation_score: float) -> ModelVerdict:
        """Map an already computed estimate to a verdict."""
        anomalous = isolation_score > self.anomaly_threshold
        return ModelVerdict(
            model=self.name,
            label=ThreatLabel.ANOMALOUS if anomalous else ThreatLabel.NORMAL,
            confidence=clamp(isolation_score if anomalous else 1.0 - isolation_score),
            score=clamp(isolation_score),
        )

    def evaluate(self, features: FeatureVector, sample: RequestSample) -> ModelVerdict:
        return self.verdict(self.estimate(features))


class EnsembleClassifier:
    """Combines the scoring strategies and pattern signals into one label.

    Usage:
        classifier = EnsembleClassifier()
        result = classifier.classify(features, sample, pattern_score,
                                     novelty_score, isolation_score)
    """

    def __init__(
        self,
        primary: ScoringStrategy | None = None,
        secondary: ScoringStrategy | None = None,
        isolation: PathLengthEstimate | None = None,
    ) -> None:
        self.primary = primary or GradientStyle()
        self.secondary = secondary or WeightedFeature()
        self.isolation = isolation or PathLengthEstimate()

    def catalog(self) -> list[dict[str, Any]]:
        return [m.describe() for m in (self.primary, self.secondary, self.isolation)]

    def classify(
        self,
        features: FeatureVector,
        sample: RequestSample,
        pattern_score: float,
        novelty_score: float,
        isolation_score: float,
        detected_patterns: list[str] | None = None,
    ) -> ClassificationResult:
        primary = self.primary.evaluate(features, sample)
        secondary = self.secondary.evaluate(features, sample)
        isolation = self.isolation.verdict(isolation_score)

        label = primary.label
        confidence = primary.confidence
        contributing = [primary.model]

        # Each override may replace the label but never lowers confidence.
        if novelty_score > 0.3:
            label = ThreatLabel.NOVEL_ATTACK
            confidence = max(confidence, 0.7 + 0.3 * novelty_score)
            contributing.append(PATTERN_ANALYZER_NAME)
        elif pattern_score > 0.5:
            label = ThreatLabel.MALICIOUS
            confidence = max(confidence, pattern_score)
            contributing.append(PATTERN_ANALYZER_NAME)

        if isolation_score > self.isolation.anomaly_threshold:
            label = ThreatLabel.ANOMALOUS
            confidence = max(confidence, isolation_score)
            contributing.append(isolation.model)

        agreeing: list[str] = []
        if primary.label == secondary.label:
            agreeing = [primary.model, secondary.model]
            confidence = min(confidence * 1.1, 1.0)

        return ClassificationResult(
            label=label,
            confidence=min(confidence, 1.0),
            contributing_models=contributing,
            agreeing_models=agreeing,
            features=features.as_list(),
            novelty_score=clamp(novelty_score),
            pattern_score=clamp(pattern_score),
            detected_patterns=list(detected_patterns or []),
            verdicts=[primary, secondary, isolation],
        )
