"""
Session/Auth Context

Process-wide authentication state. Startup runs in two explicit phases:
restore() loads the cached session from the credential store, then
initialize() reconciles it with the server profile. `initializing` and
`stale` make the window between the two observable.
"""

import logging
from typing import Callable, List, Optional

from flowdeploy.constants import FREE_PLAN
from flowdeploy.exceptions import AuthError, FlowDeployError, ValidationError
from flowdeploy.models.results import ApiResult
from flowdeploy.models.session import User
from flowdeploy.services.api_client import ApiGatewayClient
from flowdeploy.services.credential_store import CredentialStore

logger = logging.getLogger(__name__)

AuthListener = Callable[[bool], None]


class SessionContext:
    """
    Current user + authenticated flag.

    Invariant: authenticated == (user is not None). Listeners are called
    synchronously whenever the flag flips.
    """

    def __init__(self, api: ApiGatewayClient, store: CredentialStore):
        self.api = api
        self.store = store
        self.user: Optional[User] = None
        self.initializing = False
        self.stale = False
        self.last_error: Optional[FlowDeployError] = None
        self._listeners: List[AuthListener] = []

    @property
    def authenticated(self) -> bool:
        return self.user is not None

    @property
    def token(self) -> Optional[str]:
        """Bearer token of the current session."""
        if self.user is None:
            return None
        return self.store.token

    @property
    def field_errors(self) -> list:
        """Field-level validation errors of the last failed signup/login."""
        if isinstance(self.last_error, ValidationError):
            return self.last_error.field_errors
        return []

    def subscribe(self, listener: AuthListener) -> Callable[[], None]:
        """
        Register a listener for authenticated-flag changes.

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _set_user(self, user: Optional[User]) -> None:
        was_authenticated = self.authenticated
        self.user = user
        if was_authenticated != self.authenticated:
            for listener in list(self._listeners):
                listener(self.authenticated)

    # =========================================================================
    # Startup
    # =========================================================================

    def restore(self) -> bool:
        """
        Phase 1: optimistic restore from the credential store.

        Returns:
            True if a cached session was restored
        """
        credential = self.store.load()
        if credential is None:
            return False

        self._set_user(credential.user)
        self.stale = True
        return True

    async def initialize(self) -> bool:
        """
        Restore the cached session, then refresh it from the server.

        A failed refresh keeps the cached session usable (stale).

        Returns:
            True if a session is available afterwards
        """
        self.initializing = True
        try:
            if not self.restore():
                return False
            if not await self.refresh():
                logger.warning(
                    "Profile refresh failed, using cached session for %s: %s",
                    self.user.username if self.user else "?",
                    self.last_error.message if self.last_error else "unknown error",
                )
            return self.authenticated
        finally:
            self.initializing = False

    # =========================================================================
    # Auth operations
    # =========================================================================

    def _accept(self, result: ApiResult) -> bool:
        if result.is_failure:
            self.last_error = result.error
            return False

        credential = result.data
        self.store.save(credential.token, credential.user)
        self.last_error = None
        self.stale = False
        self._set_user(credential.user)
        return True

    async def login(self, email: str, password: str) -> bool:
        """Log in; on failure the current session is left untouched."""
        return self._accept(await self.api.login(email, password))

    async def signup(self, username: str, email: str, password: str, plan: str = FREE_PLAN) -> bool:
        """Create an account; field errors are exposed through field_errors."""
        return self._accept(await self.api.signup(username, email, password, plan))

    async def login_with_github(self, code: str) -> bool:
        """Exchange a GitHub OAuth code for a session."""
        return self._accept(await self.api.github_callback(code))

    def logout(self) -> None:
        """Clear credentials and session synchronously."""
        self.store.clear()
        self.stale = False
        self._set_user(None)

    def expire(self, error: Optional[AuthError] = None) -> None:
        """Forced logout after the server rejected the token."""
        logger.warning("Session expired, logging out")
        self.logout()
        self.last_error = error or AuthError()

    async def refresh(self) -> bool:
        """
        Re-fetch the profile and update the cache.

        Never changes whether the user is authenticated.

        Returns:
            True if the profile was updated
        """
        if not self.authenticated:
            return False

        token = self.store.token
        result = await self.api.get_profile()

        if result.is_failure:
            self.last_error = result.error
            return False

        # Logged out or switched accounts while the request was in flight
        if not self.authenticated or self.store.token != token:
            logger.debug("Discarding profile refresh for a session that moved on")
            return False

        self.user = result.data
        self.store.save(token, result.data)
        self.stale = False
        return True

    async def regenerate_api_key(self) -> ApiResult:
        """Rotate the API key and update the cached profile."""
        result = await self.api.regenerate_api_key()
        if result.is_success and self.user is not None and self.store.token:
            self.user.api_key = result.data
            self.store.save(self.store.token, self.user)
        elif result.is_failure:
            self.last_error = result.error
        return result

    async def change_password(self, old_password: str, new_password: str) -> ApiResult:
        result = await self.api.change_password(old_password, new_password)
        if result.is_failure:
            self.last_error = result.error
        return result
