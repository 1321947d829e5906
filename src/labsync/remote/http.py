"""HTTP remote store adapter.

Talks to a REST document service laid out as one resource per collection:

    GET    {base}/{collection}          -> list of wire records
    PUT    {base}/{collection}/{id}     create or overwrite a record
    PATCH  {base}/{collection}/{id}     apply a partial record
    DELETE {base}/{collection}/{id}     remove a record
    GET    {base}/health                reachability probe
    POST   {base}/auth/signin|signup|signout
"""

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote, urljoin

import httpx

from ..models import EntityKind
from .base import (
    AuthenticationError,
    AuthUser,
    NetworkError,
    RemoteNotFoundError,
    RemoteStore,
    RemoteStoreError,
)


logger = logging.getLogger(__name__)


class HttpRemoteStore(RemoteStore):
    """Remote store backed by a REST document service."""

    def __init__(self, base_url: str, api_key: Optional[str] = None,
                 timeout: float = 30.0, client: Optional[httpx.AsyncClient] = None):
        """Initialize the HTTP adapter.

        Args:
            base_url: Root URL of the document service
            api_key: Bearer token sent with every request until a sign-in replaces it
            timeout: Per-request transport timeout in seconds
            client: Preconfigured client (tests pass one with a mock transport)
        """
        super().__init__()
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.token = api_key
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self) -> None:
        await self.client.aclose()

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "User-Agent": "labsync/0.1",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _url(self, *parts: str) -> str:
        return urljoin(self.base_url, "/".join(quote(part, safe="") for part in parts))

    async def _make_request(self, method: str, *parts: str,
                            data: Optional[Dict[str, Any]] = None) -> Any:
        """Make an HTTP request to the document service.

        Returns:
            Decoded JSON body, or None for empty responses

        Raises:
            AuthenticationError: On 401/403
            RemoteNotFoundError: On 404
            NetworkError: On other error statuses and transport failures
        """
        url = self._url(*parts)
        try:
            response = await self.client.request(method, url, headers=self._headers(), json=data)
        except httpx.TimeoutException:
            raise NetworkError(f"{method} {url} timed out")
        except httpx.RequestError as e:
            raise NetworkError(f"{method} {url} failed: {e}")

        if response.status_code in (401, 403):
            raise AuthenticationError(f"{method} {url} rejected with {response.status_code}")
        if response.status_code == 404:
            raise RemoteNotFoundError(f"{method} {url} not found")
        if response.status_code >= 400:
            raise NetworkError(f"{method} {url} failed with {response.status_code}: {response.text}")

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise RemoteStoreError(f"{method} {url} returned invalid JSON: {e}")

    async def fetch_collection(self, kind: EntityKind) -> List[Any]:
        body = await self._make_request("GET", kind.value)
        if isinstance(body, dict):
            body = body.get("items", [])
        try:
            return [kind.entity_type.from_dict(record) for record in body or []]
        except (TypeError, ValueError) as e:
            raise RemoteStoreError(f"Malformed {kind.value} record from remote: {e}")

    async def create_entity(self, kind: EntityKind, entity: Any) -> None:
        await self._make_request("PUT", kind.value, entity.id, data=entity.to_dict())

    async def update_entity(self, kind: EntityKind, entity_id: str, partial: Dict[str, Any]) -> None:
        await self._make_request("PATCH", kind.value, entity_id, data=partial)

    async def delete_entity(self, kind: EntityKind, entity_id: str) -> None:
        try:
            await self._make_request("DELETE", kind.value, entity_id)
        except RemoteNotFoundError:
            self.logger.debug(f"{kind.value}/{entity_id} already absent remotely")

    async def test_connection(self) -> bool:
        try:
            await self._make_request("GET", "health")
            return True
        except RemoteStoreError as e:
            self.logger.debug(f"Remote health check failed: {e}")
            return False

    async def _authenticate(self, action: str, email: str, password: str) -> AuthUser:
        body = await self._make_request("POST", "auth", action,
                                        data={"email": email, "password": password})
        if not isinstance(body, dict) or "uid" not in body:
            raise AuthenticationError(f"Unexpected {action} response from remote")
        user = AuthUser(uid=str(body["uid"]), email=body.get("email", email), token=body.get("token"))
        if user.token:
            self.token = user.token
        return user

    async def _sign_in(self, email: str, password: str) -> AuthUser:
        return await self._authenticate("signin", email, password)

    async def _sign_up(self, email: str, password: str) -> AuthUser:
        return await self._authenticate("signup", email, password)

    async def _sign_out(self) -> None:
        await self._make_request("POST", "auth", "signout")
