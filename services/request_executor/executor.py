"""
Request Executor
Single choke point for remote calls: attaches the bearer credential, enforces a
per-attempt deadline, classifies failures and retries transient ones.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from shared.config import settings
from shared.error_models import (
    ApiError,
    AuthExpired,
    AuthRequired,
    NetworkError,
    ServerErrorBody,
    Timeout,
    error_for_status,
)
from realtime.subscribers import SubscriberRegistry
from .cancellation import current_scope

logger = logging.getLogger(__name__)

IDEMPOTENCY_HEADER = "Idempotency-Key"


def _parse_body(response: httpx.Response) -> Any:
    """JSON when the server says so, text otherwise."""
    content_type = response.headers.get("content-type", "")
    if "application/json" in content_type:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            logger.warning(f"⚠️ Response declared JSON but could not be parsed ({response.status_code})")
            return response.text
    return response.text


class RequestExecutor:
    """Authenticated HTTP executor with bounded retry."""

    def __init__(
        self,
        store,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Args:
            store: CredentialStore providing and clearing the bearer token
            base_url: API root; endpoints are joined onto it
            timeout: Per-attempt deadline in seconds
            max_retries: Retries after the first attempt for transient failures
            backoff_seconds: Linear backoff step (attempt n waits n * step)
            transport: Optional httpx transport (tests, fake backends)
            sleep: Backoff sleep function
        """
        self.store = store
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.REQUEST_TIMEOUT_SECONDS
        self.max_retries = settings.MAX_RETRIES if max_retries is None else max_retries
        self.backoff_seconds = settings.RETRY_BACKOFF_SECONDS if backoff_seconds is None else backoff_seconds
        self._sleep = sleep
        self._auth_expired = SubscriberRegistry("auth-expired")
        self.client = httpx.AsyncClient(
            timeout=self.timeout,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
            transport=transport,
        )

    def on_auth_expired(self, callback: Callable) -> Callable[[], None]:
        """Register a callback fired after a 401 has cleared the credential."""
        return self._auth_expired.subscribe(callback)

    def _url(self, endpoint: str) -> str:
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        if not endpoint.startswith("/"):
            endpoint = f"/{endpoint}"
        return f"{self.base_url}{endpoint}"

    async def execute(
        self,
        endpoint: str,
        method: str = "GET",
        *,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
        authenticated: bool = True,
        idempotency_key: Optional[str] = None,
        retry: Optional[bool] = None,
    ) -> Any:
        """
        Perform a request and return the parsed response body.

        Args:
            endpoint: Path relative to the API root, or an absolute URL
            method: HTTP method
            json: JSON body
            params: Query parameters (None values are dropped)
            authenticated: Attach the bearer token; fail fast without one
            idempotency_key: Sent as Idempotency-Key; makes a POST retryable
            retry: Force retry on/off; by default POST retries only with a key

        Raises:
            AuthRequired, AuthExpired, Forbidden, NotFound, Conflict,
            RequestRejected, ServerUnavailable, NetworkError, Timeout,
            RequestCancelled
        """
        method = method.upper()
        headers: Dict[str, str] = {}

        if authenticated:
            token = await self.store.get_token()
            if not token:
                raise AuthRequired()
            headers["Authorization"] = f"Bearer {token}"
        if idempotency_key:
            headers[IDEMPOTENCY_HEADER] = idempotency_key
        if params:
            params = {k: v for k, v in params.items() if v is not None}

        if retry is None:
            retry = method != "POST" or bool(idempotency_key)
        attempts = 1 + self.max_retries if retry else 1
        url = self._url(endpoint)

        for attempt in range(1, attempts + 1):
            try:
                return await self._run_attempt(method, url, headers, json, params, authenticated)
            except ApiError as e:
                if not e.transient or attempt >= attempts:
                    if e.transient:
                        logger.error(f"❌ {method} {endpoint} failed after {attempt} attempt(s): {e.message}")
                    raise
                delay = self.backoff_seconds * attempt
                logger.warning(
                    f"⚠️ {method} {endpoint} attempt {attempt}/{attempts} failed ({e.error_code.value}), "
                    f"retrying in {delay:.1f}s"
                )
                await self._sleep(delay)

    async def _run_attempt(self, method, url, headers, json, params, authenticated=True) -> Any:
        scope = current_scope()
        attempt = self._attempt(method, url, headers, json, params, authenticated)
        if scope is not None:
            return await scope.run(attempt)
        return await attempt

    async def _attempt(self, method, url, headers, json, params, authenticated=True) -> Any:
        try:
            response = await asyncio.wait_for(
                self.client.request(method, url, headers=headers, json=json, params=params),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            raise Timeout()
        except httpx.TransportError as e:
            raise NetworkError(detail={"reason": str(e)})

        body = _parse_body(response)
        if response.is_success:
            return body

        message = ServerErrorBody.extract_message(body)
        error = error_for_status(response.status_code, message)
        if authenticated and isinstance(error, AuthExpired):
            # Credential is gone before anyone sees the error
            await self.store.remove()
            logger.warning("⚠️ Authentication expired, stored credential cleared")
            await self._auth_expired.publish(error)
        raise error

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()
