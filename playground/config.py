"""Client configuration."""

import os
from dataclasses import dataclass

DEFAULT_ENDPOINT = "http://localhost:7777"


def normalize_endpoint(endpoint: str) -> str:
    """Return the endpoint with a scheme and without a trailing slash."""
    endpoint = endpoint.strip()
    if not endpoint.startswith(("http://", "https://")):
        endpoint = f"http://{endpoint}"
    return endpoint.rstrip("/")


@dataclass
class PlaygroundConfig:
    """Configuration for the playground backend client."""

    endpoint: str = DEFAULT_ENDPOINT
    timeout: float = 60.0
    user_id: str | None = None

    def __post_init__(self) -> None:
        self.endpoint = normalize_endpoint(self.endpoint)

    @classmethod
    def from_env(cls) -> "PlaygroundConfig":
        """Build a configuration from PLAYGROUND_* environment variables."""
        return cls(
            endpoint=os.getenv("PLAYGROUND_ENDPOINT", DEFAULT_ENDPOINT),
            timeout=float(os.getenv("PLAYGROUND_TIMEOUT", "60")),
            user_id=os.getenv("PLAYGROUND_USER_ID") or None,
        )
