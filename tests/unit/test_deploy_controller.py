"""
tests/unit/test_deploy_controller.py - Deployment Session Controller Tests

State machine, stream handle ownership, plan gating and teardown.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from flowdeploy.exceptions import AuthError, LimitReachedError, TransportError
from flowdeploy.models.deployment import Deployment, DeployRequest, DeployStatus
from flowdeploy.models.events import (
    ConnectErrorEvent,
    DeploymentCompleteEvent,
    DeploymentFailedEvent,
    LogEvent,
    StatusEvent,
    StreamExhaustedEvent,
)
from flowdeploy.models.results import ApiResult, SubmitStatus
from flowdeploy.services.deploy_controller import DeploymentSessionController
from tests.conftest import FakeStream, make_user


def _request(**overrides) -> DeployRequest:
    data = {"name": "shop", "frontend_repo": "https://github.com/octocat/shop"}
    data.update(overrides)
    return DeployRequest(**data)


def _deployment(**overrides) -> Deployment:
    data = {
        "id": "dep-1",
        "name": "shop",
        "frontend_url": "https://shop.flowdeploy.cloud",
        "backend_url": "https://api-shop.flowdeploy.cloud",
    }
    data.update(overrides)
    return Deployment(**data)


def _complete(deployment=None) -> DeploymentCompleteEvent:
    deployment = deployment or _deployment()
    return DeploymentCompleteEvent(deployment=deployment, url=deployment.url)


class GatedStream(FakeStream):
    """Stream whose connect() blocks until the gate is opened."""

    def __init__(self):
        super().__init__()
        self.gate = asyncio.Event()
        self.connecting = asyncio.Event()

    async def connect(self, token, deployment_id, on_event) -> bool:
        self.connects.append((token, deployment_id))
        self.on_event = on_event
        self.connecting.set()
        await self.gate.wait()
        return True


# =============================================================================
# SUBMISSION
# =============================================================================

class TestSubmit:
    """Test submit() outcomes and preconditions."""

    @pytest.mark.asyncio
    async def test_accepted_submission_opens_stream(self, controller, api, streams):
        outcome = await controller.submit(_request(env_vars={"A": "1"}))

        assert outcome.status == SubmitStatus.ACCEPTED
        assert outcome.deployment_id == "dep-1"
        assert controller.state == DeployStatus.DEPLOYING
        assert controller.deploy_session.deployment_id == "dep-1"
        assert controller.has_stream
        assert streams.last.connects == [("tok-1", "dep-1")]

        payload = api.create_deployment.await_args.args[0]
        assert payload["name"] == "shop"
        assert payload["env_vars"] == {"A": "1"}

    @pytest.mark.asyncio
    async def test_missing_name_is_invalid_without_network(self, controller, api):
        outcome = await controller.submit(_request(name="  "))

        assert outcome.status == SubmitStatus.INVALID
        assert "name" in outcome.error.fields
        assert controller.state == DeployStatus.IDLE
        api.create_deployment.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_repositories_is_invalid(self, controller, api):
        outcome = await controller.submit(_request(frontend_repo=None, backend_repo=""))

        assert outcome.status == SubmitStatus.INVALID
        assert outcome.error.fields == ["repository"]
        api.create_deployment.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_backend_only_is_valid(self, controller):
        outcome = await controller.submit(
            _request(frontend_repo=None, backend_repo="https://github.com/octocat/api")
        )
        assert outcome.is_accepted

    @pytest.mark.asyncio
    async def test_logged_out_submission_is_unauthenticated(self, controller, session, api):
        session.logout()

        outcome = await controller.submit(_request())

        assert outcome.status == SubmitStatus.UNAUTHENTICATED
        api.create_deployment.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_submit_while_deploying_is_busy(self, controller, api, streams):
        await controller.submit(_request())

        outcome = await controller.submit(_request(name="other"))

        assert outcome.status == SubmitStatus.BUSY
        assert len(streams.created) == 1
        assert api.create_deployment.await_count == 1
        assert controller.deploy_session.deployment_id == "dep-1"

    @pytest.mark.asyncio
    async def test_free_plan_at_ceiling_never_calls_create(self, controller, api):
        controller.deployments = [_deployment(id="existing")]

        outcome = await controller.submit(_request())

        assert outcome.status == SubmitStatus.LIMIT_REACHED
        assert isinstance(outcome.error, LimitReachedError)
        assert controller.state == DeployStatus.IDLE
        api.create_deployment.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_paid_plan_skips_client_side_ceiling(self, api, store, streams):
        from flowdeploy.services.session_context import SessionContext

        store.save("tok-2", make_user("pro"))
        session = SessionContext(api, store)
        session.restore()
        controller = DeploymentSessionController(api, session, streams, disconnect_grace=0.01)
        controller.deployments = [_deployment(id="a"), _deployment(id="b")]

        outcome = await controller.submit(_request())

        assert outcome.is_accepted

    @pytest.mark.asyncio
    async def test_server_limit_rejection(self, controller, api, streams):
        api.create_deployment.return_value = ApiResult.failure(
            LimitReachedError(plan="free", limit=1), status_code=403
        )

        outcome = await controller.submit(_request())

        assert outcome.status == SubmitStatus.LIMIT_REACHED
        assert controller.state == DeployStatus.IDLE
        assert streams.created == []

    @pytest.mark.asyncio
    async def test_server_auth_rejection_logs_out(self, controller, session, api):
        api.create_deployment.return_value = ApiResult.failure(AuthError(), status_code=401)

        outcome = await controller.submit(_request())

        assert outcome.status == SubmitStatus.UNAUTHENTICATED
        assert not session.authenticated
        assert session.store.load() is None

    @pytest.mark.asyncio
    async def test_transport_failure_returns_to_idle(self, controller, api):
        api.create_deployment.return_value = ApiResult.failure(TransportError("Network error: refused"))

        outcome = await controller.submit(_request())

        assert outcome.status == SubmitStatus.FAILED
        assert outcome.message == "Network error: refused"
        assert controller.state == DeployStatus.IDLE
        assert controller.deploy_session.status == DeployStatus.FAILED

    @pytest.mark.asyncio
    async def test_response_after_cancel_is_discarded(self, controller, api, streams):
        release = asyncio.Event()

        async def slow_create(payload):
            await release.wait()
            return ApiResult.success("dep-late")

        api.create_deployment = AsyncMock(side_effect=slow_create)

        submit_task = asyncio.create_task(controller.submit(_request()))
        await asyncio.sleep(0)
        assert controller.state == DeployStatus.DEPLOYING

        await controller.cancel()
        release.set()
        outcome = await submit_task

        assert outcome.status == SubmitStatus.DISCARDED
        assert controller.state == DeployStatus.IDLE
        assert streams.created == []

    @pytest.mark.asyncio
    async def test_resubmit_after_failure_releases_previous_stream(self, controller, streams, api):
        await controller.submit(_request())
        first = streams.last
        first.emit(DeploymentFailedEvent(error="build failed"))

        api.create_deployment.return_value = ApiResult.success("dep-2")
        outcome = await controller.submit(_request())

        assert outcome.deployment_id == "dep-2"
        assert first.disconnect_calls == 1
        assert len(streams.created) == 2
        assert controller.log_lines == []

        await controller.drain()
        assert first.disconnect_calls == 1


# =============================================================================
# STREAM EVENTS
# =============================================================================

class TestStreamEvents:
    """Test event interpretation while a deploy session is live."""

    @pytest.mark.asyncio
    async def test_log_lines_keep_arrival_order(self, controller, streams):
        await controller.submit(_request())
        for line in ("L1", "L2", "L3"):
            streams.last.emit(LogEvent(message=line))

        assert controller.log_lines == ["L1", "L2", "L3"]

    @pytest.mark.asyncio
    async def test_status_event_updates_last_status(self, controller, streams):
        await controller.submit(_request())
        streams.last.emit(StatusEvent(status="building"))

        assert controller.deploy_session.last_status == "building"
        assert controller.state == DeployStatus.DEPLOYING

    @pytest.mark.asyncio
    async def test_complete_scenario(self, controller, streams, api):
        await controller.submit(_request())
        stream = streams.last
        stream.emit(LogEvent(message="Cloning"))
        stream.emit(_complete())

        assert controller.state == DeployStatus.SUCCESS
        assert controller.deploy_session.url == "https://shop.flowdeploy.cloud"
        assert controller.deploy_session.deployment.id == "dep-1"
        assert stream.disconnect_calls == 0

        # Trailing lines during the grace window are still recorded
        stream.emit(LogEvent(message="Serving"))

        await controller.drain()

        assert controller.log_lines == ["Cloning", "Serving"]
        assert stream.disconnect_calls == 1
        assert not controller.has_stream
        assert api.list_deployments.await_count == 1

    @pytest.mark.asyncio
    async def test_complete_refreshes_authoritative_list(self, controller, streams, api):
        api.list_deployments.return_value = ApiResult.success([_deployment()])
        await controller.submit(_request())
        streams.last.emit(_complete())

        await controller.drain()

        assert [d.id for d in controller.deployments] == ["dep-1"]

    @pytest.mark.asyncio
    async def test_duplicate_complete_refreshes_once(self, controller, streams, api):
        await controller.submit(_request())
        streams.last.emit(_complete())
        streams.last.emit(_complete())

        await controller.drain()

        assert api.list_deployments.await_count == 1
        assert streams.last.disconnect_calls == 1

    @pytest.mark.asyncio
    async def test_failed_keeps_logs_and_skips_refresh(self, controller, streams, api):
        await controller.submit(_request())
        stream = streams.last
        stream.emit(LogEvent(message="npm ERR!"))
        stream.emit(DeploymentFailedEvent(error="Build failed"))

        assert controller.state == DeployStatus.IDLE
        assert controller.deploy_session.status == DeployStatus.FAILED
        assert controller.deploy_session.error == "Build failed"

        await controller.drain()

        assert controller.log_lines == ["npm ERR!"]
        assert stream.disconnect_calls == 1
        api.list_deployments.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_late_complete_while_idle_is_ignored(self, controller, streams, api):
        await controller.submit(_request())
        stream = streams.last
        stream.emit(DeploymentFailedEvent(error="Build failed"))

        # Still inside the grace window, handle not yet released
        stream.emit(_complete())

        assert controller.state == DeployStatus.IDLE
        assert controller.deploy_session.url is None
        await controller.drain()
        api.list_deployments.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_events_from_released_stream_are_ignored(self, controller, streams, api):
        await controller.submit(_request())
        stream = streams.last
        handler = stream.on_event
        await controller.cancel()

        handler(LogEvent(message="late"))
        handler(_complete())

        assert controller.log_lines == []
        assert controller.state == DeployStatus.IDLE
        api.list_deployments.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_exhausted_stream_is_fatal(self, controller, streams):
        await controller.submit(_request())
        stream = streams.last
        stream.emit(LogEvent(message="Installing"))
        stream.emit(StreamExhaustedEvent(attempts=5))

        assert controller.state == DeployStatus.IDLE
        assert controller.log_lines[-1].startswith("FATAL:")
        assert "5 attempts" in controller.log_lines[-1]

        await controller.drain()
        assert stream.disconnect_calls == 1

    @pytest.mark.asyncio
    async def test_connect_error_does_not_change_state(self, controller, streams):
        await controller.submit(_request())
        streams.last.emit(ConnectErrorEvent(reason="xhr poll error"))

        assert controller.state == DeployStatus.DEPLOYING

    @pytest.mark.asyncio
    async def test_listeners_see_every_log_line(self, controller, streams):
        seen = []
        controller.add_listener(lambda c: seen.append(list(c.log_lines)))

        await controller.submit(_request())
        streams.last.emit(LogEvent(message="one"))
        streams.last.emit(LogEvent(message="two"))

        assert ["one"] in seen
        assert seen[-1] == ["one", "two"]

    @pytest.mark.asyncio
    async def test_wait_until_settled(self, controller, streams):
        await controller.submit(_request())
        waiter = asyncio.create_task(controller.wait_until_settled(timeout=1))
        await asyncio.sleep(0)

        streams.last.emit(_complete())

        assert await waiter == DeployStatus.SUCCESS
        await controller.drain()


# =============================================================================
# TEARDOWN
# =============================================================================

class TestTeardown:
    """Test logout, cancel and close."""

    @pytest.mark.asyncio
    async def test_logout_while_deploying_closes_handle_once(self, controller, session, streams):
        await controller.submit(_request())
        stream = streams.last

        session.logout()
        await controller.drain()

        assert stream.disconnect_calls == 1
        assert controller.state == DeployStatus.IDLE
        assert not controller.has_stream
        assert controller.deployments == []
        assert not session.authenticated
        assert session.store.load() is None

    @pytest.mark.asyncio
    async def test_logout_while_stream_is_connecting_closes_handle_once(self, api, session):
        stream = GatedStream()
        controller = DeploymentSessionController(api, session, lambda: stream, disconnect_grace=0.01)

        submission = asyncio.ensure_future(controller.submit(_request()))
        await stream.connecting.wait()
        session.logout()
        stream.gate.set()
        outcome = await submission
        await controller.drain()

        assert outcome.status == SubmitStatus.DISCARDED
        assert outcome.deployment_id == "dep-1"
        assert stream.disconnect_calls == 1
        assert controller.streams_opened == controller.streams_released == 1
        assert not controller.has_stream

    @pytest.mark.asyncio
    async def test_cancel_while_stream_is_connecting_closes_handle_once(self, api, session):
        stream = GatedStream()
        controller = DeploymentSessionController(api, session, lambda: stream, disconnect_grace=0.01)

        submission = asyncio.ensure_future(controller.submit(_request()))
        await stream.connecting.wait()
        await controller.cancel()
        stream.gate.set()
        outcome = await submission

        assert outcome.status == SubmitStatus.DISCARDED
        assert stream.disconnect_calls == 1
        assert controller.state == DeployStatus.IDLE

    @pytest.mark.asyncio
    async def test_logout_during_grace_window(self, controller, session, streams):
        await controller.submit(_request())
        stream = streams.last
        stream.emit(_complete())

        session.logout()
        await controller.drain()

        assert stream.disconnect_calls == 1

    @pytest.mark.asyncio
    async def test_cancel_releases_stream(self, controller, streams):
        await controller.submit(_request())

        await controller.cancel()

        assert controller.state == DeployStatus.IDLE
        assert streams.last.disconnect_calls == 1

    @pytest.mark.asyncio
    async def test_close_cancels_grace_timer(self, api, session, streams):
        controller = DeploymentSessionController(api, session, streams, disconnect_grace=30)
        await controller.submit(_request())
        streams.last.emit(_complete())

        await controller.close()

        assert streams.last.disconnect_calls == 1
        assert not controller.has_stream

    @pytest.mark.asyncio
    async def test_close_unsubscribes_from_session(self, controller, session):
        await controller.close()
        controller.deployments = [_deployment()]

        session.logout()

        assert controller.deployments == [_deployment()]

    @pytest.mark.asyncio
    async def test_closed_controller_rejects_submissions(self, controller, api):
        await controller.close()

        outcome = await controller.submit(_request())

        assert outcome.status == SubmitStatus.FAILED
        api.create_deployment.assert_not_awaited()


# =============================================================================
# LIST & MANAGEMENT
# =============================================================================

class TestManagement:
    """Test refresh_deployments and stop/restart/delete."""

    @pytest.mark.asyncio
    async def test_refresh_failure_keeps_previous_list(self, controller, api):
        controller.deployments = [_deployment()]
        api.list_deployments.return_value = ApiResult.failure(TransportError("Request timed out"))

        result = await controller.refresh_deployments()

        assert result.is_failure
        assert [d.id for d in controller.deployments] == ["dep-1"]
        assert controller.refresh_error.message == "Request timed out"

    @pytest.mark.asyncio
    async def test_refresh_auth_failure_expires_session(self, controller, session, api):
        api.list_deployments.return_value = ApiResult.failure(AuthError(), status_code=401)

        await controller.refresh_deployments()

        assert not session.authenticated
        assert isinstance(session.last_error, AuthError)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("action", ["stop", "restart", "delete"])
    async def test_successful_action_refreshes_list(self, controller, api, action):
        result = await getattr(controller, action)("dep-1")

        assert result.is_success
        getattr(api, f"{action}_deployment").assert_awaited_once_with("dep-1")
        assert api.list_deployments.await_count == 1

    @pytest.mark.asyncio
    async def test_failed_action_does_not_refresh(self, controller, api):
        api.stop_deployment.return_value = ApiResult.failure(TransportError("Network error"))

        result = await controller.stop("dep-1")

        assert result.is_failure
        api.list_deployments.assert_not_awaited()
