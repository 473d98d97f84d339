"""
Result Models

Dataclass models for operation results. Network-facing layers return these
instead of raising, so callers always get a success/failure discriminated value.
"""

from dataclasses import dataclass, field
from typing import Optional, Any
from enum import Enum

from flowdeploy.exceptions import FlowDeployError


@dataclass
class ApiResult:
    """Result of a single API Gateway call."""

    ok: bool
    data: Any = None
    error: Optional[FlowDeployError] = None
    status_code: Optional[int] = None

    @classmethod
    def success(cls, data: Any = None, status_code: Optional[int] = 200) -> "ApiResult":
        return cls(ok=True, data=data, status_code=status_code)

    @classmethod
    def failure(
        cls, error: FlowDeployError, status_code: Optional[int] = None
    ) -> "ApiResult":
        return cls(ok=False, error=error, status_code=status_code)

    @property
    def is_success(self) -> bool:
        """Check if the call succeeded."""
        return self.ok

    @property
    def is_failure(self) -> bool:
        """Check if the call failed."""
        return not self.ok

    @property
    def message(self) -> str:
        """Error message, empty on success."""
        return self.error.message if self.error else ""

    def __repr__(self) -> str:
        if self.ok:
            return f"ApiResult(ok=True, status_code={self.status_code})"
        return f"ApiResult(ok=False, error={type(self.error).__name__}, status_code={self.status_code})"


class SubmitStatus(Enum):
    """Outcome of a deployment submission."""

    ACCEPTED = "accepted"
    BUSY = "busy"
    INVALID = "invalid"
    LIMIT_REACHED = "limit_reached"
    UNAUTHENTICATED = "unauthenticated"
    FAILED = "failed"
    DISCARDED = "discarded"


@dataclass
class SubmitOutcome:
    """Result of DeploymentSessionController.submit()."""

    status: SubmitStatus
    deployment_id: Optional[str] = None
    error: Optional[FlowDeployError] = None

    @property
    def is_accepted(self) -> bool:
        return self.status == SubmitStatus.ACCEPTED

    @property
    def message(self) -> str:
        return self.error.message if self.error else ""

    def __repr__(self) -> str:
        return f"SubmitOutcome(status={self.status.value}, deployment_id={self.deployment_id})"


@dataclass
class ValidationResult:
    """Result of a local validation pass."""

    is_valid: bool = True
    errors: list[dict] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Check if validation has errors."""
        return len(self.errors) > 0

    def add_error(self, field_name: str, message: str) -> None:
        """Add a field error to the validation result."""
        self.errors.append({"field": field_name, "message": message})
        self.is_valid = False

    def summary(self) -> str:
        """Join all error messages into a single line."""
        return ", ".join(err["message"] for err in self.errors)

    def __repr__(self) -> str:
        return f"ValidationResult(valid={self.is_valid}, errors={len(self.errors)})"
