"""Data models for the SSH jump helper."""

import enum
from dataclasses import dataclass, field, replace
from typing import List, Optional


@dataclass
class ConnectionOptions:
    """Connection options for reaching a node; every field may be unset."""

    ssh_user: Optional[str] = None
    identity: Optional[str] = None
    pubkey: Optional[str] = None
    port: Optional[int] = None

    def __post_init__(self):
        """Validate the connection options."""
        if self.port is not None and (self.port < 1 or self.port > 65535):
            raise ValueError(f"Invalid port: {self.port}")

    def merged_over(self, other: "ConnectionOptions") -> "ConnectionOptions":
        """Return a copy where each unset field is taken from ``other``."""
        return replace(
            self,
            ssh_user=self.ssh_user or other.ssh_user,
            identity=self.identity or other.identity,
            pubkey=self.pubkey or other.pubkey,
            port=self.port if self.port is not None else other.port,
        )


@dataclass
class AgentHandle:
    """A running ssh-agent managed by sshjump."""

    pid: int
    socket_path: str

    def env(self) -> dict:
        return {
            "SSH_AUTH_SOCK": self.socket_path,
            "SSH_AGENT_PID": str(self.pid),
        }


class PodPhase(enum.Enum):
    PENDING = "Pending"
    RUNNING = "Running"
    OTHER = "Other"

    @classmethod
    def parse(cls, value: Optional[str]) -> "PodPhase":
        for phase in (cls.PENDING, cls.RUNNING):
            if value == phase.value:
                return phase
        return cls.OTHER


@dataclass
class JumpPod:
    """The singleton jump pod as last observed."""

    name: str
    phase: PodPhase = PodPhase.OTHER
    created: bool = False

    @property
    def ready(self) -> bool:
        return self.phase is PodPhase.RUNNING


@dataclass
class KeyPair:
    """A private key path and its public half."""

    identity: str
    pubkey: str


@dataclass
class WaitPolicy:
    """Bounded readiness polling: fixed attempt count, fixed interval."""

    max_attempts: int = 10
    interval: float = 1.0

    def __post_init__(self):
        """Validate the wait policy."""
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.interval < 0:
            raise ValueError("interval must not be negative")


@dataclass
class SessionRequest:
    """Everything one invocation asks the orchestrator to do."""

    destination: str
    overrides: ConnectionOptions = field(default_factory=ConnectionOptions)
    ssh_args: List[str] = field(default_factory=list)
    skip_agent: bool = False
    cleanup_agent: bool = False
    cleanup_jump: bool = False
    pod_template: Optional[str] = None

    def __post_init__(self):
        """Validate the session request."""
        if not self.destination:
            raise ValueError("Destination node is required")
