"""Honeypot log normalization and buffering.

Cowrie records describe SSH/Telnet sessions; Dionaea records describe
connections to emulated network services. Each is validated, assigned
an attack type by origin-specific rules, given a severity by
priority-ordered keyword matching, and appended to a buffer that is
summarised and trimmed on every flush.

Malformed records never raise out of ``normalize``/``ingest``; they are
logged and dropped.
"""

import re
import threading
from collections import Counter
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from honeyguard.core.exceptions import MalformedRecordError
from honeyguard.core.logging import get_logger
from honeyguard.detection.models import ThreatLevel
from honeyguard.honeypot.models import (
    CanonicalHoneypotEvent,
    CowrieRecord,
    DionaeaRecord,
    HoneypotFeatureRecord,
    HoneypotOrigin,
    HoneypotSummary,
)

logger = get_logger(__name__)

# Severity keyword sets, highest priority first.
SEVERITY_KEYWORDS: tuple[tuple[ThreatLevel, tuple[str, ...]], ...] = (
    (ThreatLevel.CRITICAL, ("malware", "botnet", "ransomware", "smb exploit")),
    (ThreatLevel.HIGH, ("command injection", "sql injection", "rce")),
    (ThreatLevel.MEDIUM, ("brute force", "xss", "directory traversal")),
)
SEVERITY_PATTERNS: tuple[tuple[ThreatLevel, re.Pattern[str]], ...] = tuple(
    (level, re.compile(r"\b(?:" + "|".join(re.escape(k) for k in keywords) + r")\b"))
    for level, keywords in SEVERITY_KEYWORDS
)

COWRIE_COMMAND_RE = re.compile(r"wget|curl|nc|bash|python|perl", re.IGNORECASE)
COWRIE_BOTNET_RE = re.compile(r"mirai|gafgyt|bashlite", re.IGNORECASE)
COWRIE_MINER_RE = re.compile(r"xmrig|minerd|cpuminer", re.IGNORECASE)

# (protocol, ports, attack type), checked in order
DIONAEA_SERVICE_ATTACKS: tuple[tuple[str | None, tuple[int, ...], str], ...] = (
    ("smb", (445,), "SMB Exploit Attempt"),
    ("ftp", (21,), "FTP Attack"),
    ("http", (80, 8080), "HTTP Exploit"),
    (None, (1433,), "MSSQL Attack"),
    (None, (3306,), "MySQL Attack"),
)

# Structural payload flags for the flush feature rows
SPECIAL_CHARS_RE = re.compile(r"[<>'\"`;]")
COMMAND_TOKENS_RE = re.compile(r"wget|curl|nc|bash", re.IGNORECASE)
SQL_TOKENS_RE = re.compile(r"union|select|drop|insert", re.IGNORECASE)


def severity_for(attack_type: str) -> ThreatLevel:
    """Map an attack type to a severity.

    Keywords match whole words only ("rce" does not fire on "brute force").
    Hyphens, underscores and spaces are equivalent.
    """
    normalized = re.sub(r"[\s_-]+", " ", attack_type.lower())
    for level, pattern in SEVERITY_PATTERNS:
        if pattern.search(normalized):
            return level
    return ThreatLevel.LOW


def cowrie_attack_type(record: CowrieRecord) -> str:
    text = record.input or record.message or ""
    if record.username and record.password:
        return "SSH Brute Force"
    if COWRIE_COMMAND_RE.search(text):
        return "Command Injection"
    if COWRIE_BOTNET_RE.search(text):
        return "Botnet Activity"
    if COWRIE_MINER_RE.search(text):
        return "Crypto Mining Attempt"
    return "SSH Intrusion Attempt"


def dionaea_attack_type(record: DionaeaRecord) -> str:
    protocol = record.protocol.lower()
    for service, ports, attack_type in DIONAEA_SERVICE_ATTACKS:
        if protocol == service or record.dst_port in ports:
            return attack_type
    if "download" in record.connection_type.lower() or record.md5:
        return "Malware Download"
    return "Network Exploit"


def extract_features(event: CanonicalHoneypotEvent) -> HoneypotFeatureRecord:
    return HoneypotFeatureRecord(
        source_ip=event.source_ip,
        destination_port=event.destination_port,
        protocol=event.protocol,
        attack_type=event.attack_type,
        payload_length=len(event.payload),
        severity=event.severity,
        timestamp=event.timestamp,
        honeypot_source=event.origin,
        has_special_chars=bool(SPECIAL_CHARS_RE.search(event.payload)),
        has_command_injection=bool(COMMAND_TOKENS_RE.search(event.payload)),
        has_sql_patterns=bool(SQL_TOKENS_RE.search(event.payload)),
    )


class HoneypotNormalizer:
    """Normalizes Cowrie/Dionaea records and owns the event buffer.

    Usage:
        normalizer = HoneypotNormalizer()
        event = normalizer.ingest(raw_record, "cowrie")
        summary = normalizer.flush()
    """

    def __init__(self, buffer_size: int = 1000) -> None:
        self.buffer_size = buffer_size
        self._events: list[CanonicalHoneypotEvent] = []
        self._lock = threading.Lock()

    def parse(self, raw: Any, origin: HoneypotOrigin | str) -> CanonicalHoneypotEvent:
        """Validate and normalize one record.

        Raises:
            MalformedRecordError: unknown origin, non-object record, or missing fields
        """
        try:
            origin = HoneypotOrigin(origin)
        except ValueError:
            raise MalformedRecordError(str(origin), "unknown honeypot origin") from None

        if not isinstance(raw, Mapping):
            raise MalformedRecordError(
                origin.value, "record is not an object", {"type": type(raw).__name__}
            )
        raw = dict(raw)

        try:
            if origin is HoneypotOrigin.COWRIE:
                return self._from_cowrie(CowrieRecord.model_validate(raw), raw)
            return self._from_dionaea(DionaeaRecord.model_validate(raw), raw)
        except ValidationError as e:
            raise MalformedRecordError(
                origin.value,
                "record failed validation",
                {"errors": [err["loc"] for err in e.errors()]},
            ) from e

    def normalize(
        self, raw: Any, origin: HoneypotOrigin | str
    ) -> CanonicalHoneypotEvent | None:
        """Normalize a record, returning None (and logging) if it is malformed."""
        try:
            return self.parse(raw, origin)
        except MalformedRecordError as e:
            logger.warning(
                "honeypot_record_malformed",
                origin=e.origin,
                error=e.message,
                **e.details,
            )
            return None

    def ingest(
        self, raw: Any, origin: HoneypotOrigin | str
    ) -> CanonicalHoneypotEvent | None:
        """Normalize a record and append it to the buffer."""
        event = self.normalize(raw, origin)
        if event is None:
            return None
        with self._lock:
            self._events.append(event)
        logger.debug(
            "honeypot_event_captured",
            origin=event.origin.value,
            attack_type=event.attack_type,
            source_ip=event.source_ip,
        )
        return event

    def flush(self) -> HoneypotSummary:
        """Summarise the buffer, then trim it to the most recent ``buffer_size`` events.

        The buffer is copied under the lock and summarised outside it, so
        ingestion is only blocked for the copy and the trim.
        """
        with self._lock:
            snapshot = list(self._events)

        if not snapshot:
            logger.info("honeypot_flush_empty")
            return HoneypotSummary()

        attack_types = Counter(e.attack_type for e in snapshot)
        summary = HoneypotSummary(
            total_events=len(snapshot),
            unique_source_ips=len({e.source_ip for e in snapshot}),
            attack_types=dict(attack_types),
            severity_counts=dict(Counter(e.severity.value for e in snapshot)),
            origin_counts=dict(Counter(e.origin.value for e in snapshot)),
            features=[extract_features(e) for e in snapshot],
        )

        with self._lock:
            if len(self._events) > self.buffer_size:
                self._events = self._events[-self.buffer_size:]
            summary.retained_events = len(self._events)

        logger.info(
            "honeypot_flush_complete",
            total_events=summary.total_events,
            unique_source_ips=summary.unique_source_ips,
            attack_types=summary.attack_types,
            feature_rows=len(summary.features),
            retained=summary.retained_events,
        )
        return summary

    def captured(self, limit: int = 100) -> list[CanonicalHoneypotEvent]:
        """Most recent buffered events, oldest first."""
        with self._lock:
            return self._events[-limit:] if limit > 0 else []

    def stats(self) -> dict[str, Any]:
        with self._lock:
            events = list(self._events)
        return {
            "total_logs": len(events),
            "cowrie_logs": sum(1 for e in events if e.origin is HoneypotOrigin.COWRIE),
            "dionaea_logs": sum(1 for e in events if e.origin is HoneypotOrigin.DIONAEA),
            "critical_attacks": sum(1 for e in events if e.severity is ThreatLevel.CRITICAL),
            "high_attacks": sum(1 for e in events if e.severity is ThreatLevel.HIGH),
            "unique_ips": len({e.source_ip for e in events}),
            "attack_types": dict(Counter(e.attack_type for e in events)),
        }

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def _from_cowrie(self, record: CowrieRecord, raw: dict[str, Any]) -> CanonicalHoneypotEvent:
        attack_type = cowrie_attack_type(record)
        return CanonicalHoneypotEvent(
            origin=HoneypotOrigin.COWRIE,
            timestamp=record.timestamp,
            source_ip=record.src_ip,
            destination_port=record.dst_port,
            protocol="SSH/Telnet",
            attack_type=attack_type,
            payload=record.input or record.message or "",
            severity=severity_for(attack_type),
            raw=raw,
        )

    def _from_dionaea(self, record: DionaeaRecord, raw: dict[str, Any]) -> CanonicalHoneypotEvent:
        attack_type = dionaea_attack_type(record)
        return CanonicalHoneypotEvent(
            origin=HoneypotOrigin.DIONAEA,
            timestamp=record.timestamp,
            source_ip=record.src_ip,
            destination_port=record.dst_port,
            protocol=record.protocol.upper(),
            attack_type=attack_type,
            payload=record.payload or "",
            severity=severity_for(attack_type),
            raw=raw,
        )
