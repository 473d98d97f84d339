"""
Stream Event Models

Closed taxonomy of events delivered by the real-time channel. Wire payloads
are decoded once, at the channel boundary, by decode_event().
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Optional
from enum import Enum

from flowdeploy.models.deployment import Deployment


class EventKind(Enum):
    """Kinds of events the controller can receive."""

    LOG = "log"
    STATUS = "status"
    DEPLOYMENT_COMPLETE = "deployment_complete"
    DEPLOYMENT_FAILED = "deployment_failed"
    CONNECT_ERROR = "connect_error"
    DISCONNECT = "disconnect"
    STREAM_EXHAUSTED = "stream_exhausted"


@dataclass(frozen=True)
class StreamEvent:
    """Base class for all stream events."""

    kind: ClassVar[EventKind]

    @property
    def is_terminal(self) -> bool:
        return False


@dataclass(frozen=True)
class LogEvent(StreamEvent):
    """Incidental progress text."""

    kind: ClassVar[EventKind] = EventKind.LOG
    message: str = ""
    timestamp: Optional[str] = None


@dataclass(frozen=True)
class StatusEvent(StreamEvent):
    """Generic status payload."""

    kind: ClassVar[EventKind] = EventKind.STATUS
    status: Optional[str] = None
    message: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DeploymentCompleteEvent(StreamEvent):
    """Terminal success carrying the final deployment record."""

    kind: ClassVar[EventKind] = EventKind.DEPLOYMENT_COMPLETE
    deployment: Optional[Deployment] = None
    url: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return True


@dataclass(frozen=True)
class DeploymentFailedEvent(StreamEvent):
    """Terminal failure."""

    kind: ClassVar[EventKind] = EventKind.DEPLOYMENT_FAILED
    error: str = "Deployment failed"
    payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return True


@dataclass(frozen=True)
class ConnectErrorEvent(StreamEvent):
    """The channel could not be (re)established."""

    kind: ClassVar[EventKind] = EventKind.CONNECT_ERROR
    reason: str = ""


@dataclass(frozen=True)
class DisconnectEvent(StreamEvent):
    """The transport dropped."""

    kind: ClassVar[EventKind] = EventKind.DISCONNECT
    reason: str = ""


@dataclass(frozen=True)
class StreamExhaustedEvent(StreamEvent):
    """Automatic reconnection gave up."""

    kind: ClassVar[EventKind] = EventKind.STREAM_EXHAUSTED
    attempts: int = 0


def _as_dict(data: Any) -> Dict[str, Any]:
    if isinstance(data, dict):
        return data
    return {}


def decode_event(name: str, data: Any = None) -> StreamEvent:
    """
    Decode a wire event into its typed variant.

    Args:
        name: Socket event name
        data: Event payload (dict, string or None)

    Returns:
        StreamEvent subclass instance

    Raises:
        ValueError: If the event name is not part of the taxonomy
    """
    kind = EventKind(name)
    payload = _as_dict(data)

    if kind == EventKind.LOG:
        if isinstance(data, str):
            return LogEvent(message=data)
        return LogEvent(
            message=str(payload.get("message", "")),
            timestamp=payload.get("timestamp"),
        )

    if kind == EventKind.STATUS:
        return StatusEvent(
            status=payload.get("status"),
            message=payload.get("message"),
            payload=dict(payload),
        )

    if kind == EventKind.DEPLOYMENT_COMPLETE:
        record = payload.get("deployment")
        if isinstance(record, dict):
            deployment = Deployment.from_dict(record)
            url = deployment.url
        else:
            deployment = None
            url = None
        return DeploymentCompleteEvent(deployment=deployment, url=url or payload.get("url"))

    if kind == EventKind.DEPLOYMENT_FAILED:
        error = payload.get("error") or payload.get("message") or "Deployment failed"
        return DeploymentFailedEvent(error=str(error), payload=dict(payload))

    if kind == EventKind.CONNECT_ERROR:
        return ConnectErrorEvent(reason=str(data) if data is not None else "")

    if kind == EventKind.DISCONNECT:
        return DisconnectEvent(reason=str(data) if data is not None else "")

    return StreamExhaustedEvent(attempts=int(payload.get("attempts", 0)))
