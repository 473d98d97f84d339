"""
Session Models

The authenticated user profile and the persisted credential pair.
"""

from dataclasses import dataclass
from typing import Optional, Dict, Any

from flowdeploy.constants import FREE_PLAN, FREE_PLAN_MAX_DEPLOYMENTS


@dataclass
class User:
    """Profile of the logged-in user as returned by /auth/profile."""

    id: str
    username: str
    email: str
    plan: str = FREE_PLAN
    max_deployments: int = FREE_PLAN_MAX_DEPLOYMENTS
    api_key: str = ""
    created_at: Optional[str] = None

    @property
    def is_free_plan(self) -> bool:
        """Check if the user is on the free tier."""
        return self.plan == FREE_PLAN

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "plan": self.plan,
            "max_deployments": self.max_deployments,
            "api_key": self.api_key,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "User":
        """Create from dictionary (server payload or credential cache)."""
        max_deployments = data.get("max_deployments", data.get("maxDeployments"))
        return cls(
            id=str(data.get("id", data.get("_id", ""))),
            username=data.get("username", ""),
            email=data.get("email", ""),
            plan=data.get("plan") or FREE_PLAN,
            max_deployments=int(max_deployments)
            if max_deployments is not None
            else FREE_PLAN_MAX_DEPLOYMENTS,
            api_key=data.get("api_key", data.get("apiKey", "")) or "",
            created_at=data.get("createdAt", data.get("created_at")),
        )

    def __repr__(self) -> str:
        return f"User(username={self.username}, plan={self.plan})"


@dataclass
class Credential:
    """Bearer token and the user snapshot it belongs to. Always stored as a pair."""

    token: str
    user: User

    def to_dict(self) -> Dict[str, Any]:
        return {"token": self.token, "user": self.user.to_dict()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional["Credential"]:
        """Create from dictionary; None unless both halves are present."""
        token = data.get("token")
        user = data.get("user")
        if not token or not isinstance(user, dict):
            return None
        return cls(token=token, user=User.from_dict(user))

    def __repr__(self) -> str:
        return f"Credential(user={self.user.username})"
