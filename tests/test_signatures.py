"""Tests for the request signature rules."""

import pytest

from honeyguard.detection.models import RequestSample, ThreatLevel
from honeyguard.detection.signatures import RequestSignatureMatcher
from honeyguard.simulation import REQUEST_SCENARIOS


@pytest.fixture
def matcher():
    return RequestSignatureMatcher(anomaly_threshold=0.7)


def test_sql_injection_scenario(matcher):
    sample = REQUEST_SCENARIOS["sql_injection"]
    match = matcher.inspect(sample)

    assert match.attack_type == "SQL Injection"
    assert match.threat_level == ThreatLevel.HIGH
    assert match.title == "SQL Injection Detected"
    assert match.description == f"Malicious SQL injection attempt from {sample.source_ip} on /login"
    assert match.is_blocked


def test_xss_scenario(matcher):
    sample = REQUEST_SCENARIOS["xss"]
    match = matcher.inspect(sample)

    assert match.attack_type == "XSS Attempt"
    assert match.threat_level == ThreatLevel.MEDIUM
    assert match.title == "XSS Attack Blocked"
    assert match.description == f"Cross-site scripting attempt detected from {sample.source_ip}"
    assert match.is_blocked


def test_brute_force_scenario(matcher):
    sample = REQUEST_SCENARIOS["brute_force"]
    match = matcher.inspect(sample)

    assert match.attack_type == "Brute Force"
    assert match.threat_level == ThreatLevel.MEDIUM
    assert match.title == "Brute Force Attempt"
    assert not match.is_blocked


def test_normal_scenario_matches_nothing(matcher):
    assert matcher.inspect(REQUEST_SCENARIOS["normal"], anomaly_score=0.2) is None


def test_sql_injection_outranks_brute_force(matcher):
    # POST /login also fits the brute force rule
    sample = RequestSample("10.0.0.5", "POST", "/login", payload="' OR '1'='1")
    assert matcher.inspect(sample).attack_type == "SQL Injection"


@pytest.mark.parametrize("endpoint", [
    "/search?q=1 UNION SELECT password FROM users",
    "/items?id=1; DROP TABLE items",
])
def test_sql_injection_in_url(matcher, endpoint):
    sample = RequestSample("10.0.0.5", "GET", endpoint)
    assert matcher.inspect(sample).attack_type == "SQL Injection"


@pytest.mark.parametrize("payload", [
    "<iframe src=x></iframe>",
    "link=javascript:alert(1)",
    "<img src=x onerror=alert(1)>",
    "<body onload = run()>",
])
def test_xss_variants(matcher, payload):
    sample = RequestSample("10.0.0.5", "POST", "/comment", payload=payload)
    assert matcher.inspect(sample).attack_type == "XSS Attempt"


def test_brute_force_needs_post(matcher):
    sample = RequestSample("10.0.0.5", "GET", "/admin")
    assert matcher.inspect(sample) is None


def test_brute_force_ignores_payload_keywords(matcher):
    sample = RequestSample("10.0.0.5", "POST", "/profile", payload="password=hunter2")
    assert matcher.inspect(sample) is None


def test_anomaly_above_threshold(matcher):
    sample = RequestSample("10.0.0.5", "GET", "/dashboard")
    match = matcher.inspect(sample, anomaly_score=0.81)

    assert match.attack_type == "Anomalous Behavior"
    assert match.threat_level == ThreatLevel.MEDIUM
    assert match.title == "Anomalous Traffic Pattern"
    assert match.description == "Unusual traffic pattern detected from 10.0.0.5 (Score: 0.81)"
    assert not match.is_blocked


def test_anomaly_at_threshold_does_not_match(matcher):
    sample = RequestSample("10.0.0.5", "GET", "/dashboard")
    assert matcher.inspect(sample, anomaly_score=0.7) is None


def test_rule_beats_anomaly(matcher):
    match = matcher.inspect(REQUEST_SCENARIOS["xss"], anomaly_score=0.95)
    assert match.attack_type == "XSS Attempt"
