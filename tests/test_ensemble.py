"""Tests for the scoring strategies and the ensemble classifier."""

import random

import pytest

from honeyguard.detection.ensemble import (
    EnsembleClassifier,
    GradientStyle,
    PathLengthEstimate,
    WeightedFeature,
)
from honeyguard.detection.models import FeatureVector, RequestSample, ThreatLabel

ZEROS = FeatureVector(0.0, 0.0, 0.0, 0.0, 0.0)
ONES = FeatureVector(1.0, 1.0, 1.0, 1.0, 1.0)
BENIGN = RequestSample("172.16.0.1", "GET", "/dashboard", payload="", user_agent="Mozilla/5.0")


class TestGradientStyle:
    def setup_method(self):
        self.model = GradientStyle()

    def test_base_score_never_positive_gain(self):
        assert self.model.base_score(ZEROS) == 0.0
        assert self.model.base_score(ONES) == 0.0

    def test_payload_boosts(self):
        sqlish = RequestSample("1.1.1.1", "POST", "/", payload="' OR 1=1; SELECT *")
        assert self.model.score(ZEROS, sqlish) == pytest.approx(0.25)

        long_payload = RequestSample("1.1.1.1", "POST", "/", payload="a" * 101)
        assert self.model.score(ZEROS, long_payload) == pytest.approx(0.05)

    def test_low_score_is_normal(self):
        verdict = self.model.evaluate(ZEROS, BENIGN)
        assert verdict.label == ThreatLabel.NORMAL
        assert verdict.confidence == 0.88


class TestWeightedFeature:
    def setup_method(self):
        self.model = WeightedFeature()

    def test_zero_vector_is_normal(self):
        verdict = self.model.evaluate(ZEROS, BENIGN)
        assert verdict.label == ThreatLabel.NORMAL
        assert verdict.confidence == 0.85

    def test_saturated_vector_is_malicious(self):
        verdict = self.model.evaluate(ONES, BENIGN)
        assert verdict.label == ThreatLabel.MALICIOUS
        assert verdict.confidence == 1.0
        assert verdict.score == 1.0


class TestPathLengthEstimate:
    def setup_method(self):
        self.model = PathLengthEstimate(rng=random.Random(42))

    def test_zero_features_isolate_in_five_steps(self):
        assert self.model.estimate(ZEROS) == pytest.approx(2 ** -0.5)

    def test_saturated_features_hit_path_cap(self):
        assert self.model.estimate(ONES) == pytest.approx(2 ** -1.2)

    def test_estimate_bounded(self):
        features = FeatureVector(0.3, 0.1, 0.5, 0.0, 0.4)
        for _ in range(50):
            assert 2 ** -1.2 - 1e-9 <= self.model.estimate(features) <= 2 ** -0.5 + 1e-9

    def test_seeded_estimates_reproducible(self):
        features = FeatureVector(0.3, 0.1, 0.5, 0.0, 0.4)
        a = PathLengthEstimate(rng=random.Random(7))
        b = PathLengthEstimate(rng=random.Random(7))
        assert [a.estimate(features) for _ in range(5)] == [b.estimate(features) for _ in range(5)]

    def test_verdict(self):
        anomalous = self.model.verdict(0.9)
        assert anomalous.label == ThreatLabel.ANOMALOUS
        assert anomalous.confidence == 0.9

        normal = self.model.verdict(0.5)
        assert normal.label == ThreatLabel.NORMAL
        assert normal.confidence == 0.5


class TestEnsembleClassifier:
    def setup_method(self):
        self.classifier = EnsembleClassifier(isolation=PathLengthEstimate(rng=random.Random(1)))

    def classify(self, pattern=0.0, novelty=0.0, isolation=0.5, features=ZEROS):
        return self.classifier.classify(
            features,
            BENIGN,
            pattern_score=pattern,
            novelty_score=novelty,
            isolation_score=isolation,
        )

    def test_agreement_boosts_confidence(self):
        result = self.classify()
        assert result.label == ThreatLabel.NORMAL
        assert result.confidence == pytest.approx(0.88 * 1.1)
        assert result.agreeing_models == ["GradientStyle", "WeightedFeature"]
        assert result.contributing_models == ["GradientStyle"]
        assert [v.model for v in result.verdicts] == [
            "GradientStyle",
            "WeightedFeature",
            "PathLengthEstimate",
        ]

    def test_no_agreement_no_boost(self):
        result = self.classify(features=ONES)
        assert result.agreeing_models == []
        assert result.confidence == 0.88

    def test_novelty_override(self):
        result = self.classify(novelty=0.7)
        assert result.label == ThreatLabel.NOVEL_ATTACK
        assert result.confidence == 1.0  # (0.7 + 0.21) * 1.1, capped
        assert "PatternAnalyzer" in result.contributing_models

    def test_novelty_beats_pattern_score(self):
        result = self.classify(pattern=0.9, novelty=0.4)
        assert result.label == ThreatLabel.NOVEL_ATTACK

    def test_pattern_score_override(self):
        result = self.classify(pattern=0.6, novelty=0.2)
        assert result.label == ThreatLabel.MALICIOUS
        assert result.confidence == pytest.approx(0.88 * 1.1)

    def test_isolation_override_wins(self):
        result = self.classify(novelty=0.9, isolation=0.85)
        assert result.label == ThreatLabel.ANOMALOUS
        assert result.contributing_models == ["GradientStyle", "PatternAnalyzer", "PathLengthEstimate"]

    def test_result_carries_inputs(self):
        result = self.classifier.classify(
            ZEROS,
            BENIGN,
            pattern_score=0.3,
            novelty_score=0.0,
            isolation_score=0.5,
            detected_patterns=["ldap_injection"],
        )
        assert result.features == [0.0] * 5
        assert result.pattern_score == 0.3
        assert result.detected_patterns == ["ldap_injection"]
        assert result.model == "GradientStyle + Multi-Model Ensemble"


def test_catalog_describes_each_strategy():
    catalog = EnsembleClassifier().catalog()

    assert [m["name"] for m in catalog] == ["GradientStyle", "WeightedFeature", "PathLengthEstimate"]
    assert [m["type"] for m in catalog] == ["gradient_boosting", "weighted_ensemble", "isolation"]
    for entry in catalog:
        assert entry["features"] == [
            "ip_hash",
            "method_weight",
            "endpoint_sensitivity",
            "payload_length",
            "agent_suspicion",
        ]
    assert catalog[0]["parameters"]["n_estimators"] == 20
    assert catalog[2]["parameters"]["anomaly_threshold"] == 0.8
