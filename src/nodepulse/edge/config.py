"""
Agent Configuration.
"""

import dataclasses
import os
import socket
from dataclasses import dataclass, field
from typing import Optional
import yaml


@dataclass
class AgentConfig:
    """Main agent configuration."""
    # Agent identity
    agent_id: str = field(default_factory=lambda: socket.gethostname())

    # Collection endpoint
    host: str = "127.0.0.1"
    primary_port: int = 3000  # HTTP and WebSocket
    datagram_port: int = 41234  # UDP
    websocket_path: str = "/"

    # Scheduling (milliseconds)
    sampling_interval_ms: int = 10000
    transport_timeout_ms: int = 5000

    # Retry queue
    max_retries: int = 3
    retry_drain_period_ms: int = 10000
    retry_redelivery_delay_ms: int = 2000
    retry_capacity: int = 1000
    dead_letter_path: Optional[str] = None

    # Collectors
    disk_usage_path: str = "/"
    collect_docker: bool = True
    docker_socket: str = "/var/run/docker.sock"

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Reject values the scheduler and retry queue cannot work with."""
        for name in ("sampling_interval_ms", "transport_timeout_ms", "retry_drain_period_ms"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        if self.retry_redelivery_delay_ms < 0:
            raise ValueError("retry_redelivery_delay_ms must not be negative")
        if self.max_retries < 1:
            raise ValueError(f"max_retries must be at least 1, got {self.max_retries}")
        if self.retry_capacity < 1:
            raise ValueError(f"retry_capacity must be at least 1, got {self.retry_capacity}")
        for name in ("primary_port", "datagram_port"):
            port = getattr(self, name)
            if not 0 < port < 65536:
                raise ValueError(f"{name} out of range: {port}")

    @property
    def sampling_interval(self) -> float:
        return self.sampling_interval_ms / 1000

    @property
    def transport_timeout(self) -> float:
        return self.transport_timeout_ms / 1000

    @property
    def retry_drain_period(self) -> float:
        return self.retry_drain_period_ms / 1000

    @property
    def retry_redelivery_delay(self) -> float:
        return self.retry_redelivery_delay_ms / 1000

    @classmethod
    def from_yaml(cls, path: str) -> "AgentConfig":
        """Load configuration from YAML file."""
        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}
        return cls._from_dict(data)

    @classmethod
    def from_env(cls) -> "AgentConfig":
        """Load configuration from environment variables."""
        data = {}

        for f in dataclasses.fields(cls):
            value = os.getenv(f"NODEPULSE_{f.name.upper()}")
            if value is None:
                continue
            if f.type in (int, "int"):
                data[f.name] = int(value)
            elif f.type in (bool, "bool"):
                data[f.name] = value.strip().lower() in ("1", "true", "yes", "on")
            else:
                data[f.name] = value

        return cls(**data)

    @classmethod
    def _from_dict(cls, data: dict) -> "AgentConfig":
        """Create config from dictionary, ignoring unknown keys."""
        known = {f.name for f in dataclasses.fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def to_dict(self) -> dict:
        return dataclasses.asdict(self)

    def to_yaml(self, path: str) -> None:
        """Save configuration to YAML file."""
        with open(path, 'w') as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)
