"""
API Gateway Client

Async wrapper around the platform's REST API. Attaches the bearer token from
the credential store, shapes every failure into a typed error and returns
ApiResult values instead of raising.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

import httpx

from flowdeploy.constants import DEFAULT_REQUEST_TIMEOUT, LIMIT_ERROR_CODES, PURCHASABLE_PLANS
from flowdeploy.exceptions import (
    AuthError,
    FlowDeployError,
    LimitReachedError,
    ServerRejection,
    TransportError,
    ValidationError,
)
from flowdeploy.models.billing import PaymentOrder, SubscriptionWarnings
from flowdeploy.models.deployment import Deployment
from flowdeploy.models.results import ApiResult
from flowdeploy.models.session import Credential, User
from flowdeploy.services.credential_store import CredentialStore

logger = logging.getLogger(__name__)


def _payload(body: Any) -> Any:
    """Unwrap the {success, data} envelope when present."""
    if isinstance(body, dict) and "data" in body:
        return body["data"]
    return body


def classify_error(status_code: int, body: Any) -> FlowDeployError:
    """
    Map a failed response to the error taxonomy.

    Args:
        status_code: HTTP status
        body: Decoded JSON body (or None)

    Returns:
        AuthError, LimitReachedError, ValidationError or ServerRejection
    """
    body = body if isinstance(body, dict) else {}
    message = body.get("message") or body.get("error") or f"Request failed with status {status_code}"
    message = str(message)
    code = str(body.get("code", "")).upper()
    field_errors = body.get("errors") or []

    if status_code == 401:
        return AuthError(message)

    if status_code == 402 or code in LIMIT_ERROR_CODES:
        return LimitReachedError(message=message)

    if status_code == 403 and "limit" in message.lower():
        return LimitReachedError(message=message)

    if isinstance(field_errors, list) and field_errors:
        joined = ", ".join(
            str(err.get("message", err)) if isinstance(err, dict) else str(err)
            for err in field_errors
        )
        normalized = [
            err if isinstance(err, dict) else {"field": "", "message": str(err)}
            for err in field_errors
        ]
        return ValidationError(joined, field_errors=normalized)

    return ServerRejection(message, status_code=status_code)


class ApiGatewayClient:
    """
    REST client for the FlowDeploy platform.

    Responsibilities:
    - Credential attachment (Authorization: Bearer <token>)
    - Uniform error shaping into ApiResult
    - Auth, deployments, user, subscription and payment endpoints
    """

    def __init__(
        self,
        base_url: str,
        credentials: CredentialStore,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize API client.

        Args:
            base_url: API root, e.g. http://localhost:4000/api
            credentials: Store providing the bearer token
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.credentials = credentials
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "ApiGatewayClient":
        return self

    async def __aexit__(self, exc_type, exc_val, _exc_tb) -> None:
        await self.close()

    async def request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        authenticated: bool = True,
    ) -> ApiResult:
        """
        Perform one request.

        Returns:
            ApiResult whose data is the decoded JSON body
        """
        headers = {"Content-Type": "application/json"}
        token = self.credentials.token if authenticated else None
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            response = await self._get_client().request(
                method, path, json=json, params=params, headers=headers
            )
        except httpx.TimeoutException as e:
            logger.warning("%s %s timed out: %s", method, path, e)
            return ApiResult.failure(TransportError("Request timed out", context=f"{method} {path}"))
        except httpx.RequestError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            return ApiResult.failure(TransportError(f"Network error: {e}", context=f"{method} {path}"))

        status = response.status_code
        if status == 204 or not response.content:
            body = None
        else:
            try:
                body = response.json()
            except ValueError:
                if response.is_success:
                    return ApiResult.failure(
                        TransportError("Invalid response from server", context=f"{method} {path}"),
                        status_code=status,
                    )
                body = None

        if not response.is_success:
            logger.debug("%s %s -> %s", method, path, status)
            return ApiResult.failure(classify_error(status, body), status_code=status)

        if isinstance(body, dict) and body.get("success") is False:
            return ApiResult.failure(classify_error(status, body), status_code=status)

        return ApiResult.success(body, status_code=status)

    def _map(self, result: ApiResult, mapper: Callable[[Any], Any]) -> ApiResult:
        """Convert a successful body into a typed value."""
        if result.is_failure:
            return result
        try:
            return ApiResult.success(mapper(result.data), status_code=result.status_code)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning("Unexpected response shape: %s", e)
            return ApiResult.failure(
                TransportError("Unexpected response from server", context=str(e)),
                status_code=result.status_code,
            )

    # =========================================================================
    # Auth
    # =========================================================================

    @staticmethod
    def _to_credential(body: Any) -> Credential:
        data = _payload(body)
        return Credential(token=data["token"], user=User.from_dict(data["user"]))

    @staticmethod
    def _to_user(body: Any) -> User:
        data = _payload(body)
        return User.from_dict(data.get("user", data))

    async def login(self, email: str, password: str) -> ApiResult:
        """POST /auth/login -> Credential"""
        result = await self.request(
            "POST", "/auth/login", json={"email": email, "password": password}, authenticated=False
        )
        return self._map(result, self._to_credential)

    async def signup(self, username: str, email: str, password: str, plan: str) -> ApiResult:
        """POST /auth/signup -> Credential"""
        result = await self.request(
            "POST",
            "/auth/signup",
            json={"username": username, "email": email, "password": password, "plan": plan},
            authenticated=False,
        )
        return self._map(result, self._to_credential)

    async def github_callback(self, code: str) -> ApiResult:
        """POST /auth/github/callback -> Credential"""
        result = await self.request(
            "POST", "/auth/github/callback", json={"code": code}, authenticated=False
        )
        return self._map(result, self._to_credential)

    async def get_profile(self) -> ApiResult:
        """GET /auth/profile -> User"""
        result = await self.request("GET", "/auth/profile")
        return self._map(result, self._to_user)

    async def regenerate_api_key(self) -> ApiResult:
        """POST /auth/regenerate-api-key -> new api key"""
        result = await self.request("POST", "/auth/regenerate-api-key")

        def _key(body: Any) -> str:
            data = _payload(body)
            return data.get("api_key") or data["apiKey"]

        return self._map(result, _key)

    async def change_password(self, old_password: str, new_password: str) -> ApiResult:
        """POST /auth/change-password"""
        return await self.request(
            "POST",
            "/auth/change-password",
            json={"oldPassword": old_password, "newPassword": new_password},
        )

    # =========================================================================
    # Deployments
    # =========================================================================

    async def create_deployment(self, payload: Dict[str, Any]) -> ApiResult:
        """POST /deployments -> deployment id"""
        result = await self.request("POST", "/deployments", json=payload)

        def _deployment_id(body: Any) -> str:
            data = _payload(body)
            if data.get("deployment_id"):
                return str(data["deployment_id"])
            if isinstance(data.get("deployment"), dict):
                return str(data["deployment"]["id"])
            return str(data["id"])

        return self._map(result, _deployment_id)

    async def list_deployments(
        self, limit: Optional[int] = None, offset: Optional[int] = None
    ) -> ApiResult:
        """GET /deployments -> List[Deployment]"""
        params = {}
        if limit is not None:
            params["limit"] = limit
        if offset is not None:
            params["offset"] = offset
        result = await self.request("GET", "/deployments", params=params or None)

        def _deployments(body: Any) -> List[Deployment]:
            data = _payload(body)
            if isinstance(data, dict):
                data = data["deployments"]
            return [Deployment.from_dict(item) for item in data]

        return self._map(result, _deployments)

    async def get_deployment(self, deployment_id: str) -> ApiResult:
        """GET /deployments/{id} -> Deployment"""
        result = await self.request("GET", f"/deployments/{deployment_id}")

        def _deployment(body: Any) -> Deployment:
            data = _payload(body)
            return Deployment.from_dict(data.get("deployment", data))

        return self._map(result, _deployment)

    async def stop_deployment(self, deployment_id: str) -> ApiResult:
        """POST /deployments/{id}/stop"""
        return await self.request("POST", f"/deployments/{deployment_id}/stop")

    async def restart_deployment(self, deployment_id: str) -> ApiResult:
        """POST /deployments/{id}/restart"""
        return await self.request("POST", f"/deployments/{deployment_id}/restart")

    async def delete_deployment(self, deployment_id: str) -> ApiResult:
        """DELETE /deployments/{id}"""
        return await self.request("DELETE", f"/deployments/{deployment_id}")

    @staticmethod
    def _to_lines(body: Any) -> List[str]:
        data = _payload(body)
        if isinstance(data, dict):
            data = data.get("logs", [])
        if isinstance(data, str):
            return data.splitlines()
        lines = []
        for item in data:
            if isinstance(item, dict):
                lines.append(str(item.get("message", "")))
            else:
                lines.append(str(item))
        return lines

    async def get_deployment_logs(self, deployment_id: str) -> ApiResult:
        """GET /deployments/{id}/logs -> List[str]"""
        result = await self.request("GET", f"/deployments/{deployment_id}/logs")
        return self._map(result, self._to_lines)

    async def get_pm2_logs(self, deployment_id: str) -> ApiResult:
        """GET /deployments/{id}/pm2-logs -> List[str]"""
        result = await self.request("GET", f"/deployments/{deployment_id}/pm2-logs")
        return self._map(result, self._to_lines)

    # =========================================================================
    # User & subscription
    # =========================================================================

    async def get_stats(self) -> ApiResult:
        """GET /user/stats -> dict"""
        result = await self.request("GET", "/user/stats")
        return self._map(result, lambda body: dict(_payload(body) or {}))

    async def update_plan(self, plan: str) -> ApiResult:
        """POST /user/plan"""
        return await self.request("POST", "/user/plan", json={"plan": plan})

    async def get_subscription_warnings(self) -> ApiResult:
        """GET /subscription/warnings -> SubscriptionWarnings"""
        result = await self.request("GET", "/subscription/warnings")
        return self._map(result, lambda body: SubscriptionWarnings.from_dict(_payload(body)))

    # =========================================================================
    # Payments (pass-through to the external checkout)
    # =========================================================================

    async def create_order(self, plan: str) -> ApiResult:
        """POST /payments/create-order -> PaymentOrder"""
        if plan not in PURCHASABLE_PLANS:
            return ApiResult.failure(
                ValidationError(
                    f"Plan '{plan}' cannot be purchased online",
                    field_errors=[{"field": "plan", "message": "Contact sales for enterprise plans"}],
                    context=f"Purchasable plans: {', '.join(PURCHASABLE_PLANS)}",
                )
            )
        result = await self.request("POST", "/payments/create-order", json={"plan": plan})
        return self._map(
            result,
            lambda body: PaymentOrder.from_dict(
                body if "order_id" in body else _payload(body), plan=plan
            ),
        )

    async def verify_payment(
        self, order_id: str, payment_id: str, signature: str, plan: str
    ) -> ApiResult:
        """POST /payments/verify-payment -> bool"""
        result = await self.request(
            "POST",
            "/payments/verify-payment",
            json={
                "razorpay_order_id": order_id,
                "razorpay_payment_id": payment_id,
                "razorpay_signature": signature,
                "plan": plan,
            },
        )
        return self._map(result, lambda body: True)
