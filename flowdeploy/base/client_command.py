"""
Client Command Base Class

Base class for commands that talk to the FlowDeploy platform.
Provides automatic service wiring and an asyncio entry point.
"""

import asyncio
from abc import abstractmethod
from typing import Any, Callable, Optional

import httpx

from .base_command import BaseCommand
from flowdeploy.exceptions import AuthError, FlowDeployError, ValidationError
from flowdeploy.services import (
    ApiGatewayClient,
    CredentialStore,
    DeploymentSessionController,
    EventStreamClient,
    SessionContext,
)


class ClientCommand(BaseCommand):
    """
    Base class for platform commands.

    Provides:
    - Credential store, API client, session and deployment controller
    - Session restore/refresh before execution (when requires_auth)
    - Teardown of network resources after execution
    """

    requires_auth = True

    # Overridable transports (tests swap in fakes)
    api_transport: Optional[httpx.AsyncBaseTransport] = None
    socket_client_factory: Optional[Callable[[], Any]] = None

    def __init__(self, verbose: bool = False, json_output: bool = False, **kwargs):
        super().__init__(verbose=verbose, json_output=json_output, **kwargs)
        self.store: Optional[CredentialStore] = None
        self.api: Optional[ApiGatewayClient] = None
        self.session: Optional[SessionContext] = None
        self.controller: Optional[DeploymentSessionController] = None

    def build_services(self) -> None:
        """Wire the service graph from the resolved config."""
        config = self.config
        self.store = CredentialStore(config.config_dir)
        self.api = ApiGatewayClient(
            config.api_url,
            self.store,
            timeout=config.request_timeout,
            transport=self.api_transport,
        )
        self.session = SessionContext(self.api, self.store)
        self.controller = DeploymentSessionController(
            self.api,
            self.session,
            self.create_stream,
            disconnect_grace=config.disconnect_grace,
        )

    def create_stream(self) -> EventStreamClient:
        """Stream factory handed to the controller (one client per deploy session)."""
        config = self.config
        return EventStreamClient(
            config.socket_url,
            reconnection_attempts=config.reconnection_attempts,
            reconnection_delay=config.reconnection_delay,
            client_factory=self.socket_client_factory,
        )

    def fail(self, message: str, code: int = 1) -> int:
        """Print an error from async code and return the exit code."""
        if self.json_output:
            self.output_json({"error": message})
        else:
            self.print_error(message)
        return code

    async def _main(self) -> int:
        self.build_services()
        try:
            if self.requires_auth:
                await self.session.initialize()
                if not self.session.authenticated:
                    return self.fail("Not logged in. Run: flowdeploy auth:login")
            return await self.execute_async() or 0
        finally:
            await self.controller.close()
            await self.api.close()

    def execute(self) -> None:
        exit_code = asyncio.run(self._main())
        if exit_code:
            raise SystemExit(exit_code)

    @abstractmethod
    async def execute_async(self) -> Optional[int]:
        """
        Command logic, run inside the event loop.

        Returns:
            Exit code (None or 0 for success)
        """

    def fail_with(self, error: Optional[FlowDeployError]) -> int:
        """Report a failed operation's error (with field errors) and return 1."""
        error = error or FlowDeployError("Operation failed")
        if isinstance(error, AuthError) and self.session is not None and self.session.authenticated:
            self.session.expire(error)
        self.report_error(error)
        if isinstance(error, ValidationError) and not self.json_output:
            for field_error in error.field_errors:
                self.console.print(
                    f"  [yellow]{field_error.get('field', '?')}[/yellow]: {field_error.get('message', '')}"
                )
        return 1
