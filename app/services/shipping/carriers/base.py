import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Tuple, Type

import httpx
from loguru import logger

from app.enums.carrier import CarrierCode
from app.schemas.shipping import CarrierRate, LabelResult, ShipmentDetails, TrackingInfo
from app.services.shipping.errors import (
    AuthenticationFailed,
    CarrierError,
    CarrierUnavailable,
)

DEFAULT_TIMEOUT_SECONDS = 15.0
# Tokens are treated as expired this many seconds before the provider says so
TOKEN_SAFETY_MARGIN_SECONDS = 60


class CarrierAdapter(ABC):
    """
    One shipping provider behind a common capability set:
    authenticate, get_rates, create_shipping_label, track_package,
    is_configured.

    Each instance owns an httpx client and a cached OAuth bearer token.
    Concurrent refreshes are harmless; the worst case is one extra token
    request.
    """

    code: CarrierCode
    name: str

    def __init__(
        self,
        base_url: str,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout or DEFAULT_TIMEOUT_SECONDS
        self._client = client
        self._owns_client = client is None
        self._clock = clock

        self._access_token: Optional[str] = None
        self._token_expires_at: Optional[float] = None

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.base_url} configured={self.is_configured()}>"

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------
    # Capability set
    # ------------------------------------------------------------------

    @abstractmethod
    def is_configured(self) -> bool:
        ...

    @abstractmethod
    async def get_rates(self, details: ShipmentDetails) -> List[CarrierRate]:
        ...

    @abstractmethod
    async def create_shipping_label(self, details: ShipmentDetails) -> LabelResult:
        ...

    @abstractmethod
    async def track_package(self, tracking_number: str) -> TrackingInfo:
        ...

    @abstractmethod
    def _token_request(self) -> Tuple[str, Dict[str, str], Dict[str, str]]:
        """(path, form data, headers) for the OAuth client-credentials call"""

    def _default_headers(self) -> Dict[str, str]:
        return {}

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    @property
    def has_valid_token(self) -> bool:
        return (
            self._access_token is not None
            and self._token_expires_at is not None
            and self._clock() < self._token_expires_at
        )

    def invalidate_token(self) -> None:
        self._access_token = None
        self._token_expires_at = None

    async def authenticate(self) -> str:
        """Return a bearer token, requesting a new one only when the cached one expired."""
        if self.has_valid_token:
            return self._access_token

        if not self.is_configured():
            raise AuthenticationFailed(self.code.value, "credentials are not configured")

        path, data, headers = self._token_request()
        try:
            response = await self.client.post(path, data=data, headers=headers)
        except httpx.TimeoutException as e:
            raise CarrierUnavailable(self.code.value, "authentication timed out") from e
        except httpx.HTTPError as e:
            raise CarrierUnavailable(self.code.value, f"authentication network error: {e}") from e

        if response.is_error:
            raise AuthenticationFailed(
                self.code.value,
                f"authentication failed: {response.text[:500]}",
                response.status_code,
            )

        try:
            payload = response.json()
            token = payload["access_token"]
            expires_in = int(payload.get("expires_in", 3600))
        except (ValueError, KeyError, TypeError) as e:
            raise AuthenticationFailed(self.code.value, "malformed token response") from e

        self._access_token = token
        self._token_expires_at = self._clock() + expires_in - TOKEN_SAFETY_MARGIN_SECONDS
        logger.info(f"{self.name} authentication successful (token valid for {expires_in}s)")
        return token

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------

    async def _api_request(
        self,
        method: str,
        path: str,
        error_cls: Type[CarrierError],
        json: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """Authorized JSON call. A 401 drops the cached token and retries once."""
        for attempt in range(2):
            token = await self.authenticate()
            request_headers = {
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
                **self._default_headers(),
                **(headers or {}),
            }
            try:
                response = await self.client.request(method, path, json=json, headers=request_headers)
            except httpx.TimeoutException as e:
                raise CarrierUnavailable(self.code.value, f"{method} {path} timed out") from e
            except httpx.HTTPError as e:
                raise CarrierUnavailable(self.code.value, f"{method} {path} network error: {e}") from e

            if response.status_code == 401 and attempt == 0:
                logger.warning(f"{self.name} rejected cached token, re-authenticating")
                self.invalidate_token()
                continue

            if response.is_error:
                raise error_cls(
                    self.code.value,
                    f"{method} {path} failed ({response.status_code}): {response.text[:500]}",
                    response.status_code,
                )

            try:
                payload = response.json()
            except ValueError as e:
                raise error_cls(self.code.value, f"{method} {path} returned invalid JSON") from e
            if not isinstance(payload, dict):
                raise error_cls(self.code.value, f"{method} {path} returned {type(payload).__name__}, expected an object")
            return payload

        raise error_cls(self.code.value, f"{method} {path} unauthorized after re-authentication", 401)

    def _parse(self, error_cls: Type[CarrierError], parser: Callable[[Dict[str, Any]], Any], data: Dict[str, Any]):
        try:
            return parser(data)
        except CarrierError:
            raise
        except (KeyError, IndexError, AttributeError, TypeError, ValueError, ArithmeticError) as e:
            raise error_cls(self.code.value, f"malformed response: {e!r}") from e
