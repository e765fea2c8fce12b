"""Signature and heuristic pattern analysis.

The analyzer runs a fixed sequence of detectors over the request. Every
detector is evaluated (no early exit) and each one that fires appends a
PatternFinding carrying its score and novelty contribution. Three
composite detectors follow the simple ones:

- polyglot_attack: three or more injection detectors fired at once
- high_entropy_payload: payload looks packed or encrypted
- timing_attack: the source IP is hammering the decoy

Finally the sorted, pipe-joined tag signature is checked against the
process-wide SignatureMemory. A signature never seen before adds the
novel_attack_pattern finding and is remembered.

Two pieces of state are shared across requests and across threads:
SignatureMemory and IpTimingHistory. Each owns its own lock; the
analyzer never touches their internals directly.
"""

import math
import re
import threading
import time
from collections import Counter, OrderedDict, deque
from dataclasses import dataclass

from honeyguard.core.logging import get_logger
from honeyguard.detection.models import (
    PatternAnalysis,
    PatternFinding,
    RequestSample,
    clamp,
)

logger = get_logger(__name__)

ENTROPY_THRESHOLD = 6.5
POLYGLOT_MIN_TAGS = 3
TIMING_REQUEST_BASELINE = 30
TIMING_RATIO_THRESHOLD = 0.7


def shannon_entropy(text: str) -> float:
    """Shannon entropy of the character distribution, in bits per symbol."""
    if not text:
        return 0.0
    length = len(text)
    entropy = 0.0
    for count in Counter(text).values():
        probability = count / length
        entropy -= probability * math.log2(probability)
    return entropy


@dataclass(frozen=True)
class _Detector:
    """A named set of regexes; fires if any of them matches."""

    tag: str
    score: float
    patterns: tuple[re.Pattern[str], ...]

    def matches(self, text: str) -> bool:
        return any(p.search(text) for p in self.patterns)


def _compile(*patterns: str, flags: int = 0) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p, flags) for p in patterns)


# Evaluation order is part of the output contract (findings keep it).
DETECTORS: tuple[_Detector, ...] = (
    _Detector(
        "excessive_url_encoding", 0.30,
        _compile(r"(%[0-9a-f]{2}){3,}", flags=re.IGNORECASE),
    ),
    _Detector(
        "suspicious_unicode", 0.25,
        _compile(r"[\x00-\x1f\x7f-\x9f]"),
    ),
    _Detector(
        "obfuscated_sql_injection", 0.40,
        _compile(
            r"concat\s*\(", r"char\s*\(", r"ascii\s*\(",
            r"substring\s*\(", r"hex\s*\(", r"unhex\s*\(",
            flags=re.IGNORECASE,
        ),
    ),
    _Detector(
        "nosql_injection", 0.35,
        _compile(r"\$\w+:", r'\{\s*"\$\w+"'),
    ),
    _Detector(
        "command_injection", 0.45,
        _compile(r"[;&|`$]\s*\w+", r"\$\(.*\)", r"\$\{.*\}")
        + _compile(
            r"\b(wget|curl|nc|netcat|bash|sh|powershell|cmd)\b",
            flags=re.IGNORECASE,
        ),
    ),
    _Detector(
        "ldap_injection", 0.30,
        _compile(r"[()&|!].*[=<>]"),
    ),
    _Detector(
        "xxe_injection", 0.40,
        _compile(r"<!ENTITY.*>", r"SYSTEM.*file:", flags=re.IGNORECASE),
    ),
    _Detector(
        "template_injection", 0.35,
        _compile(r"\{\{.*\}\}", r"\$\{.*\}", r"@\{.*\}"),
    ),
    _Detector(
        "deserialization_attack", 0.40,
        _compile(r"\brO0AB", r"__reduce__") + _compile(r"aced00", flags=re.IGNORECASE),
    ),
)


class SignatureMemory:
    """Capacity-bounded set of tag signatures seen by this process.

    Size grows with every new signature until ``capacity`` is reached,
    then the least recently seen signature is evicted to make room.
    """

    def __init__(self, capacity: int = 10_000) -> None:
        self.capacity = capacity
        self._seen: OrderedDict[str, None] = OrderedDict()
        self._lock = threading.Lock()

    def remember(self, signature: str) -> bool:
        """Record a signature. Returns True if it had not been seen before."""
        with self._lock:
            if signature in self._seen:
                self._seen.move_to_end(signature)
                return False
            self._seen[signature] = None
            if len(self._seen) > self.capacity:
                self._seen.popitem(last=False)
            return True

    def __contains__(self, signature: object) -> bool:
        with self._lock:
            return signature in self._seen

    def __len__(self) -> int:
        with self._lock:
            return len(self._seen)

    def snapshot(self) -> list[str]:
        """Signatures currently remembered, least recently seen first."""
        with self._lock:
            return list(self._seen)


class IpTimingHistory:
    """Per-source-IP bounded timeline of request timestamps."""

    def __init__(self, max_size: int = 100, window_seconds: float = 60.0) -> None:
        self.max_size = max_size
        self.window_seconds = window_seconds
        self._history: dict[str, deque[float]] = {}
        self._lock = threading.Lock()

    def record(self, identifier: str, timestamp: float) -> int:
        """Append a timestamp and return the request count in the trailing window.

        Old timestamps are evicted after the window count is taken.
        """
        with self._lock:
            history = self._history.get(identifier)
            if history is None:
                history = deque(maxlen=self.max_size)
                self._history[identifier] = history
            if history and timestamp < history[-1]:
                # keep the timeline ordered by arrival
                timestamp = history[-1]
            history.append(timestamp)

            cutoff = timestamp - self.window_seconds
            recent = sum(1 for t in history if t > cutoff)
            while history and history[0] <= cutoff:
                history.popleft()
            return recent

    def timeline(self, identifier: str) -> tuple[float, ...]:
        with self._lock:
            return tuple(self._history.get(identifier, ()))

    def prune(self, now: float) -> int:
        """Forget identifiers with no request inside the window. Returns count dropped."""
        cutoff = now - self.window_seconds
        with self._lock:
            stale = [ip for ip, h in self._history.items() if not h or h[-1] <= cutoff]
            for ip in stale:
                del self._history[ip]
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._history)


class PatternAnalyzer:
    """Runs every detector over a request and tracks pattern novelty.

    Usage:
        analyzer = PatternAnalyzer()
        analysis = analyzer.analyze(sample)
        analysis.score, analysis.novelty_score, analysis.tags
    """

    def __init__(
        self,
        signature_memory: SignatureMemory | None = None,
        timing_history: IpTimingHistory | None = None,
    ) -> None:
        self.signature_memory = (
            signature_memory if signature_memory is not None else SignatureMemory()
        )
        self.timing_history = (
            timing_history if timing_history is not None else IpTimingHistory()
        )

    def analyze(self, sample: RequestSample, now: float | None = None) -> PatternAnalysis:
        """Analyze one request.

        Args:
            sample: The request to inspect
            now: Arrival time in epoch seconds (defaults to time.time())

        Returns:
            PatternAnalysis with clamped score, novelty and ordered findings
        """
        now = time.time() if now is None else now
        # Detectors see the body only; endpoint and agent feed the feature vector.
        payload = sample.payload_text

        findings: list[PatternFinding] = [
            PatternFinding(detector.tag, detector.score)
            for detector in DETECTORS
            if detector.matches(payload)
        ]

        tag_count = len(findings)
        if tag_count >= POLYGLOT_MIN_TAGS:
            findings.append(PatternFinding("polyglot_attack", 0.2 * tag_count, 0.3))

        if shannon_entropy(payload) > ENTROPY_THRESHOLD:
            findings.append(PatternFinding("high_entropy_payload", 0.25, 0.2))

        timing_ratio = self._timing_ratio(sample.source_ip, now)
        if timing_ratio > TIMING_RATIO_THRESHOLD:
            findings.append(PatternFinding("timing_attack", timing_ratio * 0.3, 0.15))

        if findings:
            signature = "|".join(sorted(f.tag for f in findings))
            if self.signature_memory.remember(signature):
                findings.append(PatternFinding("novel_attack_pattern", 0.0, 0.4))
                logger.info(
                    "novel_pattern_learned",
                    signature=signature,
                    source_ip=sample.source_ip,
                    endpoint=sample.endpoint,
                )

        return PatternAnalysis(
            score=clamp(sum(f.score for f in findings)),
            novelty_score=clamp(sum(f.novelty for f in findings)),
            findings=tuple(findings),
        )

    def _timing_ratio(self, identifier: str, now: float) -> float:
        recent = self.timing_history.record(identifier, now)
        return min(recent / TIMING_REQUEST_BASELINE, 1.0)
