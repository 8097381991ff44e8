"""
ConnectorConfig Schema - Where and how to reach an AFS web service

Design decisions:
1. JSON/YAML-serializable (no code in configs)
2. Immutable once a connector is built from it
3. Caller identity (IP, user agent) is NOT part of the config, see context.py
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Union
import json

import yaml


SUPPORTED_SCHEMES = ("http", "https")


@dataclass(frozen=True)
class Service:
    """AFS service to query."""
    id: Union[int, str]  # Service identifier (e.g., 42)
    status: str = "stable"  # Service status (e.g., "stable", "rc", "1")


@dataclass(frozen=True)
class ConnectorConfig:
    """
    Complete configuration for connecting to an AFS web service.

    The connector only needs this to build URLs; the web service name
    (search, acp...) is supplied by each concrete connector.
    """
    host: str  # AFS host, without scheme (e.g., "eu1-afs.antidot.net")
    service: Service

    scheme: str = "http"
    timeout_seconds: int = 30

    def __post_init__(self):
        if self.scheme not in SUPPORTED_SCHEMES:
            raise ValueError(
                f"Unsupported scheme '{self.scheme}', expected one of {SUPPORTED_SCHEMES}"
            )

    def to_dict(self) -> dict:
        """Serialize to JSON-compatible dict."""
        return {
            "host": self.host,
            "scheme": self.scheme,
            "service": {
                "id": self.service.id,
                "status": self.service.status,
            },
            "timeout_seconds": self.timeout_seconds,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ConnectorConfig":
        """Deserialize from JSON-compatible dict."""
        service = Service(
            id=data["service"]["id"],
            status=str(data["service"].get("status", "stable")),
        )
        return cls(
            host=data["host"],
            service=service,
            scheme=data.get("scheme", "http"),
            timeout_seconds=data.get("timeout_seconds", 30),
        )

    @classmethod
    def from_json_file(cls, path: str) -> "ConnectorConfig":
        """Load config from JSON file."""
        with open(path, "r") as f:
            return cls.from_dict(json.load(f))

    @classmethod
    def from_yaml_file(cls, path: str) -> "ConnectorConfig":
        """Load config from YAML file."""
        with open(path, "r") as f:
            return cls.from_dict(yaml.safe_load(f) or {})

    @classmethod
    def from_file(cls, path: str) -> "ConnectorConfig":
        """Load config from a JSON or YAML file, based on its extension."""
        suffix = Path(path).suffix.lower()
        if suffix in (".yaml", ".yml"):
            return cls.from_yaml_file(path)
        if suffix == ".json":
            return cls.from_json_file(path)
        raise ValueError(f"Unsupported config file type: {path}")

    def to_json_file(self, path: str) -> None:
        """Save config to JSON file."""
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)
