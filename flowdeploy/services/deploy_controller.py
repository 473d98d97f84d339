"""
Deployment Session Controller

Drives one deployment from submission to a terminal outcome:

    idle --submit--> deploying --deployment_complete--> success
                         |
                         +--deployment_failed / stream exhausted--> idle

The controller exclusively owns the Event Stream Client handle of the
active deploy session. All state changes happen synchronously inside a
single event (user call, timer, inbound message); follow-up I/O such as
the list refresh and the delayed disconnect runs as owned asyncio tasks
that are cancelled on teardown.
"""

import asyncio
import functools
import logging
from typing import Awaitable, Callable, List, Optional, Set

from flowdeploy.constants import FREE_PLAN_MAX_DEPLOYMENTS, STREAM_DISCONNECT_GRACE
from flowdeploy.exceptions import (
    AuthError,
    FlowDeployError,
    LimitReachedError,
    StateError,
    ValidationError,
)
from flowdeploy.models.deployment import Deployment, DeployRequest, DeploySession, DeployStatus
from flowdeploy.models.events import (
    ConnectErrorEvent,
    DeploymentCompleteEvent,
    DeploymentFailedEvent,
    DisconnectEvent,
    LogEvent,
    StatusEvent,
    StreamEvent,
    StreamExhaustedEvent,
)
from flowdeploy.models.results import ApiResult, SubmitOutcome, SubmitStatus, ValidationResult
from flowdeploy.services.api_client import ApiGatewayClient
from flowdeploy.services.event_stream import EventStreamClient
from flowdeploy.services.session_context import SessionContext

logger = logging.getLogger(__name__)

StreamFactory = Callable[[], EventStreamClient]
ChangeListener = Callable[["DeploymentSessionController"], None]


class DeploymentSessionController:
    """
    Deployment lifecycle state machine.

    Responsibilities:
    - Validate and submit deployment requests (with free-plan fast path)
    - Own the single live stream handle (close-before-open)
    - Interpret stream events into idle / deploying / success
    - Reconcile with the authoritative deployment list after success
    - Tear everything down on logout, cancel or close
    """

    def __init__(
        self,
        api: ApiGatewayClient,
        session: SessionContext,
        stream_factory: StreamFactory,
        disconnect_grace: float = STREAM_DISCONNECT_GRACE,
    ):
        self.api = api
        self.session = session
        self.disconnect_grace = disconnect_grace
        self._stream_factory = stream_factory

        self.state = DeployStatus.IDLE
        self.deploy_session: Optional[DeploySession] = None
        self.deployments: List[Deployment] = []
        self.last_error: Optional[FlowDeployError] = None
        self.refresh_error: Optional[FlowDeployError] = None
        self.streams_opened = 0
        self.streams_released = 0

        self._stream: Optional[EventStreamClient] = None
        self._submission_seq = 0
        self._grace_task: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()
        self._settled: Optional[asyncio.Event] = None
        self._listeners: List[ChangeListener] = []
        self._closed = False
        self._unsubscribe = session.subscribe(self._on_auth_changed)

    # =========================================================================
    # Read-only view for the presentation layer
    # =========================================================================

    @property
    def is_deploying(self) -> bool:
        return self.state == DeployStatus.DEPLOYING

    @property
    def has_stream(self) -> bool:
        return self._stream is not None

    @property
    def log_lines(self) -> List[str]:
        if self.deploy_session is None:
            return []
        return self.deploy_session.log_lines

    def add_listener(self, listener: ChangeListener) -> None:
        """Call listener after every state or log mutation."""
        self._listeners.append(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    def _set_state(self, state: DeployStatus) -> None:
        self.state = state
        if self._settled is not None:
            if state == DeployStatus.DEPLOYING:
                self._settled.clear()
            else:
                self._settled.set()

    # =========================================================================
    # Submission
    # =========================================================================

    def validate(self, request: DeployRequest) -> ValidationResult:
        """Local preconditions; failures never reach the network."""
        result = ValidationResult()
        if not request.name or not request.name.strip():
            result.add_error("name", "Deployment name is required")
        if not (request.frontend_repo or "").strip() and not (request.backend_repo or "").strip():
            result.add_error("repository", "A frontend or backend repository is required")
        return result

    def plan_limit_reached(self) -> bool:
        """Client-side fast path for the free tier ceiling."""
        user = self.session.user
        if user is None or not user.is_free_plan:
            return False
        return len(self.deployments) >= FREE_PLAN_MAX_DEPLOYMENTS

    async def submit(self, request: DeployRequest) -> SubmitOutcome:
        """
        Submit a deployment and start watching it.

        Args:
            request: Deployment request (env vars already collapsed)

        Returns:
            SubmitOutcome; ACCEPTED means the stream for the new deployment is open
        """
        if self._closed:
            return SubmitOutcome(SubmitStatus.FAILED, error=StateError("Controller is closed"))

        if self.is_deploying:
            return SubmitOutcome(
                SubmitStatus.BUSY, error=StateError("A deployment is already in progress")
            )

        validation = self.validate(request)
        if not validation.is_valid:
            error = ValidationError(validation.summary(), field_errors=validation.errors)
            self.last_error = error
            return SubmitOutcome(SubmitStatus.INVALID, error=error)

        if not self.session.authenticated:
            error = AuthError("You must be logged in to deploy")
            self.last_error = error
            return SubmitOutcome(SubmitStatus.UNAUTHENTICATED, error=error)

        if self.plan_limit_reached():
            user = self.session.user
            error = LimitReachedError(plan=user.plan, limit=FREE_PLAN_MAX_DEPLOYMENTS)
            self.last_error = error
            return SubmitOutcome(SubmitStatus.LIMIT_REACHED, error=error)

        self._submission_seq += 1
        seq = self._submission_seq
        self.last_error = None
        self.deploy_session = DeploySession(status=DeployStatus.DEPLOYING)
        self._set_state(DeployStatus.DEPLOYING)
        self._notify()

        await self._release_stream()

        result = await self.api.create_deployment(request.to_payload())

        if seq != self._submission_seq or not self.is_deploying:
            logger.info("Discarding create-deployment response, session moved on")
            return SubmitOutcome(SubmitStatus.DISCARDED)

        if result.is_failure:
            return self._reject_submission(result.error)

        deployment_id = result.data
        self.deploy_session.deployment_id = deployment_id

        stream = self._stream_factory()
        self._stream = stream
        self.streams_opened += 1
        self._notify()

        await stream.connect(
            self.session.token,
            deployment_id,
            functools.partial(self._on_stream_event, stream),
        )

        if self._stream is not stream:
            # Torn down while the channel was opening; whoever detached it disconnects it
            return SubmitOutcome(SubmitStatus.DISCARDED, deployment_id=deployment_id)

        return SubmitOutcome(SubmitStatus.ACCEPTED, deployment_id=deployment_id)

    def _reject_submission(self, error: FlowDeployError) -> SubmitOutcome:
        """Request-level rejection: back to idle with a typed outcome."""
        self.last_error = error
        self.deploy_session.status = DeployStatus.FAILED
        self.deploy_session.error = error.message
        self._set_state(DeployStatus.IDLE)
        self._notify()

        if isinstance(error, LimitReachedError):
            return SubmitOutcome(SubmitStatus.LIMIT_REACHED, error=error)

        if isinstance(error, AuthError):
            self.session.expire(error)
            return SubmitOutcome(SubmitStatus.UNAUTHENTICATED, error=error)

        return SubmitOutcome(SubmitStatus.FAILED, error=error)

    # =========================================================================
    # Stream events
    # =========================================================================

    def _on_stream_event(self, stream: EventStreamClient, event: StreamEvent) -> None:
        if stream is not self._stream:
            logger.debug("Ignoring %s from a released stream", event.kind.value)
            return

        session = self.deploy_session

        if isinstance(event, LogEvent):
            session.append_log(event.message)

        elif isinstance(event, StatusEvent):
            if event.status:
                session.last_status = event.status

        elif isinstance(event, DeploymentCompleteEvent):
            if not self.is_deploying:
                return
            session.status = DeployStatus.SUCCESS
            session.deployment = event.deployment
            session.url = event.url
            self._set_state(DeployStatus.SUCCESS)
            self._schedule_release(stream)
            self._spawn(self.refresh_deployments())

        elif isinstance(event, DeploymentFailedEvent):
            if not self.is_deploying:
                return
            session.status = DeployStatus.FAILED
            session.error = event.error
            self._set_state(DeployStatus.IDLE)
            self._schedule_release(stream)

        elif isinstance(event, StreamExhaustedEvent):
            if not self.is_deploying:
                return
            message = f"Lost connection to deployment stream after {event.attempts} attempts"
            session.append_log(f"FATAL: {message}")
            session.status = DeployStatus.FAILED
            session.error = message
            self._set_state(DeployStatus.IDLE)
            self._spawn(self._release_stream())

        elif isinstance(event, (ConnectErrorEvent, DisconnectEvent)):
            logger.info("Stream %s: %s", event.kind.value, event.reason or "-")

        self._notify()

    # =========================================================================
    # Stream handle ownership
    # =========================================================================

    def _detach_stream(self) -> Optional[EventStreamClient]:
        """Forget the current handle synchronously; caller must disconnect it."""
        self._cancel_grace()
        stream = self._stream
        if stream is None:
            return None
        self._stream = None
        self.streams_released += 1
        return stream

    async def _release_stream(self) -> None:
        stream = self._detach_stream()
        if stream is not None:
            await stream.disconnect()

    def _schedule_release(self, stream: EventStreamClient) -> None:
        """Disconnect after the grace delay so trailing log lines still arrive."""
        self._cancel_grace()
        self._grace_task = self._spawn(self._release_after_grace(stream))

    async def _release_after_grace(self, stream: EventStreamClient) -> None:
        await asyncio.sleep(self.disconnect_grace)
        if self._stream is stream:
            self._grace_task = None
            await self._release_stream()

    def _cancel_grace(self) -> None:
        task = self._grace_task
        self._grace_task = None
        if task is not None and not task.done():
            try:
                current = asyncio.current_task()
            except RuntimeError:
                current = None
            if task is not current:
                task.cancel()

    def _spawn(self, coro: Awaitable) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Background task failed: %s", error, exc_info=error)

    # =========================================================================
    # Authoritative list & management operations
    # =========================================================================

    async def refresh_deployments(self) -> ApiResult:
        """Fetch the authoritative deployment list; keep the old one on failure."""
        if not self.session.authenticated:
            return ApiResult.failure(AuthError("You must be logged in"))

        result = await self.api.list_deployments()

        if result.is_success:
            if self.session.authenticated:
                self.deployments = result.data
                self.refresh_error = None
        else:
            self.refresh_error = result.error
            logger.warning("Could not refresh deployments: %s", result.message)
            if isinstance(result.error, AuthError):
                self.session.expire(result.error)

        self._notify()
        return result

    async def _manage(
        self, call: Callable[[str], Awaitable[ApiResult]], deployment_id: str
    ) -> ApiResult:
        result = await call(deployment_id)
        if result.is_success:
            await self.refresh_deployments()
        else:
            self.last_error = result.error
            if isinstance(result.error, AuthError):
                self.session.expire(result.error)
        return result

    async def stop(self, deployment_id: str) -> ApiResult:
        return await self._manage(self.api.stop_deployment, deployment_id)

    async def restart(self, deployment_id: str) -> ApiResult:
        return await self._manage(self.api.restart_deployment, deployment_id)

    async def delete(self, deployment_id: str) -> ApiResult:
        return await self._manage(self.api.delete_deployment, deployment_id)

    # =========================================================================
    # Cancellation & teardown
    # =========================================================================

    def _on_auth_changed(self, authenticated: bool) -> None:
        if authenticated:
            return

        # Any in-flight submission response is now stale
        self._submission_seq += 1
        if self.deploy_session is not None and self.deploy_session.status == DeployStatus.DEPLOYING:
            self.deploy_session.status = DeployStatus.IDLE
        self._set_state(DeployStatus.IDLE)
        self.deployments = []

        stream = self._detach_stream()
        if stream is not None:
            self._spawn(stream.disconnect())
        self._notify()

    async def cancel(self) -> None:
        """Stop watching the active deployment and return to idle."""
        self._submission_seq += 1
        if self.deploy_session is not None and self.deploy_session.status == DeployStatus.DEPLOYING:
            self.deploy_session.status = DeployStatus.IDLE
        self._set_state(DeployStatus.IDLE)
        await self._release_stream()
        self._notify()

    async def wait_until_settled(self, timeout: Optional[float] = None) -> DeployStatus:
        """
        Wait until the controller leaves `deploying`.

        Raises:
            asyncio.TimeoutError: If timeout elapses first
        """
        if self._settled is None:
            self._settled = asyncio.Event()
            if not self.is_deploying:
                self._settled.set()
        await asyncio.wait_for(self._settled.wait(), timeout)
        return self.state

    async def drain(self) -> None:
        """Wait for all owned background tasks (refresh, delayed disconnect)."""
        while self._tasks:
            await asyncio.wait(set(self._tasks))

    async def close(self) -> None:
        """Teardown: cancel timers and tasks, release the handle, unsubscribe."""
        if self._closed:
            return
        self._closed = True
        self._unsubscribe()
        self._submission_seq += 1

        self._cancel_grace()
        pending = [task for task in self._tasks if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.wait(pending)

        await self._release_stream()
        self._set_state(DeployStatus.IDLE)
