"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Centralized, immutable configuration for the static file server.

=============================================================================
WHY FROZEN?
=============================================================================

The configuration is the ONLY state shared between concurrent requests.
Every worker thread reads it, none may write it. A frozen dataclass makes
that a property of the type instead of a convention:

    config = ServerConfig(port=3000)
    config.port = 4000          # dataclasses.FrozenInstanceError

To derive a variant (for example when retrying on the next port) use
dataclasses.replace():

    config = replace(config, port=config.port + 1)

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    Priority (highest to lowest):

    1. Command-line arguments     python -m staticserver --port 8000
    2. Environment variables      HTTP_PORT=8000 python -m staticserver
    3. Defaults below

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ServerConfig:
    """
    Configuration for the static file server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    CORE
    - host, port, root_directory

    NETWORK
    - backlog, buffer_size, timeout, port_retries

    HTTP
    - keep_alive, keep_alive_timeout, max_request_size

    THREADING
    - min_workers, max_workers, queue_size

    SERVING
    - index_file, mock_prefix, cache_max_age, chunk_size, compression_level

    LOGGING
    - log_level, log_format

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # CORE SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "localhost"
    """Interface to bind. Use "0.0.0.0" to accept LAN connections."""

    port: int = 3000
    """TCP port. 0 lets the OS pick a free one (handy in tests)."""

    root_directory: str = "."
    """Directory being served. Made absolute on construction."""

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    backlog: int = 128
    buffer_size: int = 8192
    timeout: Optional[float] = 30.0

    port_retries: int = 0
    """
    How many successive ports to try when the configured one is in use.
    0 = fail immediately.
    """

    # ─────────────────────────────────────────────────────────────────────
    # HTTP SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    keep_alive: bool = True
    keep_alive_timeout: float = 5.0

    max_request_size: int = 10 * 1024 * 1024  # 10 MB
    """
    Upper bound on headers + body accumulated from one request.
    Mock requests read their body into memory, so this is what keeps a
    slow or hostile client from growing the buffer without limit.
    """

    # ─────────────────────────────────────────────────────────────────────
    # THREAD POOL SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    min_workers: int = 4
    max_workers: int = 16
    queue_size: int = 100

    # ─────────────────────────────────────────────────────────────────────
    # SERVING
    # ─────────────────────────────────────────────────────────────────────

    index_file: str = "index.html"

    mock_prefix: str = "/mock/"
    """Requests whose path starts with this go to the mock handler first."""

    cache_max_age: int = 10
    """Client-side freshness window in seconds (Expires / max-age)."""

    chunk_size: int = 64 * 1024
    """Bytes read from disk per streamed chunk."""

    compression_level: int = 6

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    log_format: str = "text"
    """Access log format: 'text' (Apache-like) or 'json'."""

    server_name: str = "StaticServer/1.0"

    def __post_init__(self):
        # Frozen dataclasses need object.__setattr__ to normalize fields.
        object.__setattr__(
            self, "root_directory", os.path.abspath(self.root_directory)
        )

    @property
    def address(self) -> tuple[str, int]:
        return (self.host, self.port)

    @classmethod
    def from_env(cls, **overrides) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        HTTP_HOST       Server host (default: localhost)
        HTTP_PORT       Server port (default: 3000)
        HTTP_ROOT       Directory to serve (default: current directory)
        HTTP_WORKERS    Max worker threads (default: 16)
        HTTP_TIMEOUT    Socket timeout in seconds (default: 30)
        HTTP_LOG_LEVEL  Logging level (default: INFO)

        Keyword overrides win over the environment.
        =====================================================================
        """
        workers = int(os.getenv("HTTP_WORKERS", "16"))
        values = dict(
            host=os.getenv("HTTP_HOST", "localhost"),
            port=int(os.getenv("HTTP_PORT", "3000")),
            root_directory=os.getenv("HTTP_ROOT", os.getcwd()),
            min_workers=min(4, workers),
            max_workers=workers,
            timeout=float(os.getenv("HTTP_TIMEOUT", "30")),
            log_level=os.getenv("HTTP_LOG_LEVEL", "INFO"),
        )
        values.update(overrides)
        return cls(**values)

    def validate(self) -> None:
        """
        Validate configuration values (fail fast, at startup).

        Raises:
            ValueError: On the first invalid value found.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if not os.path.isdir(self.root_directory):
            raise ValueError(f"Root directory does not exist: {self.root_directory}")

        if self.min_workers < 1:
            raise ValueError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ValueError("max_workers must be >= min_workers")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.port_retries < 0:
            raise ValueError("port_retries must be >= 0")

        if not self.mock_prefix.startswith("/"):
            raise ValueError(f"mock_prefix must start with '/': {self.mock_prefix!r}")

        if not 1 <= self.compression_level <= 9:
            raise ValueError("compression_level must be between 1 and 9")

        if self.chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")

        if self.log_format not in ("text", "json"):
            raise ValueError(f"log_format must be 'text' or 'json': {self.log_format!r}")
