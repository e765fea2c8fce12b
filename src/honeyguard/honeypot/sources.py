"""Readers for honeypot JSON-lines log files (cowrie.json, dionaea.json)."""

import json
from collections.abc import Iterator
from pathlib import Path
from typing import Any

from honeyguard.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_LOG_PATHS = {
    "cowrie": Path("/opt/cowrie/var/log/cowrie/cowrie.json"),
    "dionaea": Path("/opt/dionaea/var/log/dionaea.json"),
}


def read_log_records(path: Path | str) -> Iterator[Any]:
    """Yield one decoded JSON value per non-blank line. Undecodable lines are skipped."""
    path = Path(path)
    with path.open(encoding="utf-8", errors="replace") as fh:
        for line_number, line in enumerate(fh, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                yield json.loads(line)
            except json.JSONDecodeError as e:
                logger.warning(
                    "honeypot_log_line_undecodable",
                    path=str(path),
                    line=line_number,
                    error=str(e),
                )
