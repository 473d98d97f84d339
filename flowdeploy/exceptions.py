"""
FlowDeploy CLI Exception Hierarchy

Errors are carried as values across the API and stream boundaries
(see ApiResult) and raised only inside the local layers.
"""

from typing import Dict, List, Optional


class FlowDeployError(Exception):
    """Base exception for all FlowDeploy errors."""

    def __init__(self, message: str, context: Optional[str] = None):
        self.message = message
        self.context = context
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format error message with optional context."""
        if self.context:
            return f"{self.message}\nContext: {self.context}"
        return self.message


class ConfigurationError(FlowDeployError):
    """Raised when client configuration is invalid."""

    pass


class StateError(FlowDeployError):
    """Raised when local state (credentials, session) is inconsistent."""

    pass


class ValidationError(FlowDeployError):
    """Missing or invalid fields, either checked locally or reported by the server."""

    def __init__(
        self,
        message: str,
        field_errors: Optional[List[Dict[str, str]]] = None,
        context: Optional[str] = None,
    ):
        self.field_errors = field_errors or []
        super().__init__(message, context)

    @property
    def fields(self) -> List[str]:
        """Names of the fields that failed validation."""
        return [err.get("field", "") for err in self.field_errors]


class AuthError(FlowDeployError):
    """Raised when the bearer token is missing, expired or invalid."""

    def __init__(self, message: str = "Session expired, please log in again"):
        super().__init__(message, context="Run: flowdeploy auth:login")


class LimitReachedError(FlowDeployError):
    """Raised when the current plan does not allow another deployment."""

    def __init__(self, plan: Optional[str] = None, limit: Optional[int] = None, message: Optional[str] = None):
        self.plan = plan
        self.limit = limit
        if message is None:
            if plan and limit is not None:
                message = f"The '{plan}' plan allows {limit} deployment(s)"
            else:
                message = "Deployment limit reached for your plan"
        super().__init__(message, context="Upgrade with: flowdeploy billing:order <plan>")


class TransportError(FlowDeployError):
    """Raised when the network or the real-time channel fails."""

    pass


class ServerRejection(FlowDeployError):
    """A well-formed request rejected by the platform's business rules."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)
