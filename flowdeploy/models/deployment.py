"""
Deployment Models

Dataclass models for server-owned deployments and the local deploy session.
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List
from enum import Enum


class DeploymentStatus(Enum):
    """Persisted status of a deployment on the platform."""

    DEPLOYING = "deploying"
    DEPLOYED = "deployed"
    FAILED = "failed"
    STOPPED = "stopped"
    SUSPENDED = "suspended"

    @classmethod
    def parse(cls, value: Optional[str]) -> "DeploymentStatus":
        try:
            return cls(value)
        except ValueError:
            return cls.DEPLOYING


class DeployStatus(Enum):
    """Status of the local deploy session."""

    IDLE = "idle"
    DEPLOYING = "deploying"
    SUCCESS = "success"
    FAILED = "failed"


def _pick(data: Dict[str, Any], *keys: str) -> Any:
    """First non-None value among snake_case / camelCase spellings."""
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


@dataclass
class Deployment:
    """Authoritative deployment record. Only ever built from server payloads."""

    id: str
    name: str
    subdomain: str = ""
    frontend_repo: Optional[str] = None
    backend_repo: Optional[str] = None
    frontend_url: Optional[str] = None
    backend_url: Optional[str] = None
    frontend_port: Optional[int] = None
    backend_port: Optional[int] = None
    status: DeploymentStatus = DeploymentStatus.DEPLOYING
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    suspension_reason: Optional[str] = None
    delete_scheduled_at: Optional[str] = None

    @property
    def url(self) -> Optional[str]:
        """Public URL, preferring the frontend."""
        return self.frontend_url or self.backend_url

    @property
    def is_live(self) -> bool:
        return self.status == DeploymentStatus.DEPLOYED

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "subdomain": self.subdomain,
            "frontend_repo": self.frontend_repo,
            "backend_repo": self.backend_repo,
            "frontend_url": self.frontend_url,
            "backend_url": self.backend_url,
            "frontend_port": self.frontend_port,
            "backend_port": self.backend_port,
            "status": self.status.value,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "suspension_reason": self.suspension_reason,
            "delete_scheduled_at": self.delete_scheduled_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Deployment":
        """Create from a server payload."""
        return cls(
            id=str(_pick(data, "id", "_id", "deployment_id") or ""),
            name=data.get("name", ""),
            subdomain=data.get("subdomain", "") or "",
            frontend_repo=_pick(data, "frontend_repo", "frontendRepo"),
            backend_repo=_pick(data, "backend_repo", "backendRepo"),
            frontend_url=_pick(data, "frontend_url", "frontendUrl"),
            backend_url=_pick(data, "backend_url", "backendUrl"),
            frontend_port=_pick(data, "frontend_port", "frontendPort"),
            backend_port=_pick(data, "backend_port", "backendPort"),
            status=DeploymentStatus.parse(data.get("status")),
            created_at=_pick(data, "created_at", "createdAt"),
            updated_at=_pick(data, "updated_at", "updatedAt"),
            suspension_reason=_pick(data, "suspension_reason", "suspensionReason"),
            delete_scheduled_at=_pick(data, "delete_scheduled_at", "deleteScheduledAt"),
        )

    def __repr__(self) -> str:
        return f"Deployment(id={self.id}, name={self.name}, status={self.status.value})"


@dataclass
class DeployRequest:
    """Everything needed to submit a deployment."""

    name: str
    frontend_repo: Optional[str] = None
    backend_repo: Optional[str] = None
    env_vars: Dict[str, str] = field(default_factory=dict)
    frontend_description: Optional[str] = None
    backend_description: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        """Body for POST /deployments."""
        payload: Dict[str, Any] = {"name": self.name.strip(), "env_vars": dict(self.env_vars)}
        if self.frontend_repo:
            payload["frontend_repo"] = self.frontend_repo.strip()
        if self.backend_repo:
            payload["backend_repo"] = self.backend_repo.strip()
        if self.frontend_description:
            payload["frontend_description"] = self.frontend_description
        if self.backend_description:
            payload["backend_description"] = self.backend_description
        return payload


@dataclass
class DeploySession:
    """Local, ephemeral view of the deployment currently being watched."""

    deployment_id: Optional[str] = None
    status: DeployStatus = DeployStatus.IDLE
    log_lines: List[str] = field(default_factory=list)
    deployment: Optional[Deployment] = None
    url: Optional[str] = None
    last_status: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (DeployStatus.SUCCESS, DeployStatus.FAILED)

    def append_log(self, line: str) -> None:
        self.log_lines.append(line)

    def __repr__(self) -> str:
        return f"DeploySession(deployment_id={self.deployment_id}, status={self.status.value}, lines={len(self.log_lines)})"
