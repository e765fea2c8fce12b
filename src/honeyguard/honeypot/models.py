"""Data models for honeypot ingestion.

CowrieRecord and DionaeaRecord validate the two upstream JSON log
shapes. Both normalize into CanonicalHoneypotEvent, which is what the
buffer holds and what the flush summary is computed from.
"""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from honeyguard.detection.models import ThreatLevel
from honeyguard.history import utcnow


class HoneypotOrigin(str, Enum):
    """Upstream honeypot that produced a record."""

    COWRIE = "cowrie"  # SSH/Telnet
    DIONAEA = "dionaea"  # SMB, FTP, HTTP, databases


class CowrieRecord(BaseModel):
    """One Cowrie JSON log line."""

    model_config = ConfigDict(extra="allow")

    eventid: str
    timestamp: datetime
    src_ip: str
    dst_port: int = 22
    message: str = ""
    input: str | None = None
    username: str | None = None
    password: str | None = None
    session: str | None = None


class DionaeaRecord(BaseModel):
    """One Dionaea JSON log line."""

    model_config = ConfigDict(extra="allow")

    timestamp: datetime
    src_ip: str
    src_port: int | None = None
    dst_port: int
    protocol: str
    connection_type: str = ""
    payload: str | None = None
    md5: str | None = None


class CanonicalHoneypotEvent(BaseModel):
    """Origin-independent representation of a honeypot log record."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid4().hex)
    origin: HoneypotOrigin
    timestamp: datetime
    source_ip: str
    destination_port: int
    protocol: str
    attack_type: str
    payload: str = ""
    severity: ThreatLevel
    raw: dict[str, Any] = Field(default_factory=dict)


class HoneypotFeatureRecord(BaseModel):
    """Flat per-event feature row derived at flush time."""

    source_ip: str
    destination_port: int
    protocol: str
    attack_type: str
    payload_length: int
    severity: ThreatLevel
    timestamp: datetime
    honeypot_source: HoneypotOrigin
    has_special_chars: bool
    has_command_injection: bool
    has_sql_patterns: bool


class HoneypotSummary(BaseModel):
    """Result of one periodic flush of the honeypot buffer."""

    flushed_at: datetime = Field(default_factory=utcnow)
    total_events: int = 0
    unique_source_ips: int = 0
    attack_types: dict[str, int] = Field(default_factory=dict)
    severity_counts: dict[str, int] = Field(default_factory=dict)
    origin_counts: dict[str, int] = Field(default_factory=dict)
    features: list[HoneypotFeatureRecord] = Field(default_factory=list)
    retained_events: int = 0
