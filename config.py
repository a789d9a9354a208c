"""Settings for running the API process."""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass
class ServerConfig:
    """Where and how the Flask server listens."""

    host: str
    port: int
    debug: bool

    @classmethod
    def load(cls) -> "ServerConfig":
        """Build from environment variables."""

        host = os.environ.get("COMMERCE_HOST", "0.0.0.0")
        try:
            port = int(os.environ.get("COMMERCE_PORT", "5000"))
        except ValueError:
            raise ValueError("COMMERCE_PORT must be an integer")
        debug = os.environ.get("COMMERCE_DEBUG", "").strip().lower() in {"1", "true", "yes"}
        return cls(host=host, port=port, debug=debug)
