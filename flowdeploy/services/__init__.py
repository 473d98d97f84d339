"""
FlowDeploy Services Layer

Network clients, credential persistence and the session/deployment state
that CLI commands build on.
"""

from .credential_store import CredentialStore
from .api_client import ApiGatewayClient
from .event_stream import EventStreamClient
from .session_context import SessionContext
from .deploy_controller import DeploymentSessionController

__all__ = [
    "CredentialStore",
    "ApiGatewayClient",
    "EventStreamClient",
    "SessionContext",
    "DeploymentSessionController",
]
