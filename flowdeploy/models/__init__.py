"""
FlowDeploy CLI Domain Models

Clean dataclass-based models for type-safe data handling.
"""

from .results import (
    ApiResult,
    SubmitOutcome,
    SubmitStatus,
    ValidationResult,
)
from .session import (
    User,
    Credential,
)
from .deployment import (
    Deployment,
    DeploymentStatus,
    DeployRequest,
    DeploySession,
    DeployStatus,
)
from .env import EnvVarEntry
from .events import (
    EventKind,
    StreamEvent,
    LogEvent,
    StatusEvent,
    DeploymentCompleteEvent,
    DeploymentFailedEvent,
    ConnectErrorEvent,
    DisconnectEvent,
    StreamExhaustedEvent,
    decode_event,
)
from .billing import (
    SubscriptionWarning,
    SubscriptionWarnings,
    PaymentOrder,
)

__all__ = [
    # Results
    "ApiResult",
    "SubmitOutcome",
    "SubmitStatus",
    "ValidationResult",
    # Session
    "User",
    "Credential",
    # Deployment
    "Deployment",
    "DeploymentStatus",
    "DeployRequest",
    "DeploySession",
    "DeployStatus",
    "EnvVarEntry",
    # Events
    "EventKind",
    "StreamEvent",
    "LogEvent",
    "StatusEvent",
    "DeploymentCompleteEvent",
    "DeploymentFailedEvent",
    "ConnectErrorEvent",
    "DisconnectEvent",
    "StreamExhaustedEvent",
    "decode_event",
    # Billing
    "SubscriptionWarning",
    "SubscriptionWarnings",
    "PaymentOrder",
]
