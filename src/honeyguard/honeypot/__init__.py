"""Honeypot ingestion: Cowrie/Dionaea normalization and periodic summaries."""

from honeyguard.honeypot.models import (
    CanonicalHoneypotEvent,
    HoneypotFeatureRecord,
    HoneypotOrigin,
    HoneypotSummary,
)
from honeyguard.honeypot.normalizer import HoneypotNormalizer, severity_for
from honeyguard.honeypot.sources import read_log_records

__all__ = [
    "CanonicalHoneypotEvent",
    "HoneypotFeatureRecord",
    "HoneypotOrigin",
    "HoneypotSummary",
    "HoneypotNormalizer",
    "severity_for",
    "read_log_records",
]
