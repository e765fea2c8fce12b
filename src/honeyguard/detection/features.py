"""Feature extraction: RequestSample -> 5-dimensional FeatureVector."""

from honeyguard.detection.models import FeatureVector, RequestSample

METHOD_WEIGHTS: dict[str, float] = {
    "GET": 0.1,
    "POST": 0.3,
    "PUT": 0.2,
    "DELETE": 0.4,
    "PATCH": 0.25,
}
DEFAULT_METHOD_WEIGHT = 0.5

SENSITIVE_ENDPOINT_KEYWORDS = ("admin", "login", "auth", "api", "config")
SUSPICIOUS_AGENT_TOKENS = ("bot", "crawler", "scanner", "curl", "wget")

_INT32_MAX = 2147483647


def identifier_hash(identifier: str) -> float:
    """Fold a string through a 32-bit ``h*31 + c`` rolling hash, scaled to [0, 1]."""
    h = 0
    for char in identifier:
        h = (h * 31 + ord(char)) & 0xFFFFFFFF
    if h > _INT32_MAX:
        h -= 1 << 32
    # abs(-2**31) is one past INT32_MAX
    return min(abs(h) / _INT32_MAX, 1.0)


def method_weight(method: str) -> float:
    return METHOD_WEIGHTS.get(method, DEFAULT_METHOD_WEIGHT)


def endpoint_sensitivity(endpoint: str) -> float:
    lowered = endpoint.lower()
    score = 0.1
    for keyword in SENSITIVE_ENDPOINT_KEYWORDS:
        if keyword in lowered:
            score += 0.2
    return min(score, 1.0)


def agent_suspicion(user_agent: str) -> float:
    lowered = user_agent.lower()
    score = 0.1
    for token in SUSPICIOUS_AGENT_TOKENS:
        if token in lowered:
            score += 0.3
    return min(score, 1.0)


class FeatureExtractor:
    """Maps a request into the fixed feature space used by every model.

    Pure and total: the same sample always yields the same vector and no
    input raises.
    """

    def extract(self, sample: RequestSample) -> FeatureVector:
        return FeatureVector(
            ip_hash=identifier_hash(sample.source_ip),
            method_weight=method_weight(sample.method),
            endpoint_sensitivity=endpoint_sensitivity(sample.endpoint),
            payload_length=min(len(sample.payload_text) / 1000, 1.0),
            agent_suspicion=agent_suspicion(sample.agent_text),
        )
