"""
=============================================================================
ACCESS LOG
=============================================================================

One line per request on the ``staticserver.access`` logger, in one of two
formats:

    text (Apache-like):
        127.0.0.1 - - [15/Jan/2026:12:30:45 +0000] "GET /index.html" 200 1234 0.84ms file_sent

    json (for log aggregators):
        {"request_id": "a1b2c3d4", "method": "GET", "path": "/index.html", ...}

The logger is namespaced so it can be routed or silenced on its own:

    logging.getLogger("staticserver.access").setLevel(logging.WARNING)

=============================================================================
"""

import json
import logging
import time
import uuid
from dataclasses import asdict, dataclass, field

access_logger = logging.getLogger("staticserver.access")


@dataclass
class RequestLog:
    method: str
    path: str
    query: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    state: str = "-"
    request_id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    timestamp: str = field(default_factory=lambda: time.strftime("%d/%b/%Y:%H:%M:%S %z"))

    def to_dict(self) -> dict:
        data = asdict(self)
        data["duration_ms"] = round(self.duration_ms, 2)
        return data

    def to_text(self) -> str:
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {self.path}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms {self.state}'
        )


def emit(entry: RequestLog, log_format: str = "text", level: int = logging.INFO) -> None:
    if log_format == "json":
        access_logger.log(level, json.dumps(entry.to_dict()))
    else:
        access_logger.log(level, entry.to_text())
