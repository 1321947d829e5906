"""In-process remote store.

Keeps wire records in memory, so entities read back are fresh objects just
as they would be after a network round trip. Used for local demos and as a
test double; ``reachable`` toggles simulated outages.
"""

import uuid
from typing import Any, Dict, List, Optional, Tuple

from ..models import EntityKind, SystemData
from .base import AuthenticationError, AuthUser, NetworkError, RemoteNotFoundError, RemoteStore


class InMemoryRemoteStore(RemoteStore):
    """Dict-backed remote store."""

    def __init__(self, snapshot: Optional[SystemData] = None):
        super().__init__()
        self.reachable = True
        self.calls: List[Tuple[str, str]] = []
        self._records: Dict[EntityKind, Dict[str, Dict[str, Any]]] = {kind: {} for kind in EntityKind}
        self._accounts: Dict[str, Tuple[str, str]] = {}
        if snapshot is not None:
            for kind in EntityKind:
                for entity in snapshot.collection(kind):
                    self._records[kind][entity.id] = entity.to_dict()

    def _check(self, operation: str, target: str = ""):
        self.calls.append((operation, target))
        if not self.reachable:
            raise NetworkError(f"Remote store unreachable during {operation}")

    def snapshot(self) -> SystemData:
        """Current contents, bypassing reachability and call recording."""
        return SystemData.from_dict({
            kind.value: list(records.values()) for kind, records in self._records.items()
        })

    async def fetch_collection(self, kind: EntityKind) -> List[Any]:
        self._check("fetch", kind.value)
        return [kind.entity_type.from_dict(dict(record)) for record in self._records[kind].values()]

    async def create_entity(self, kind: EntityKind, entity: Any) -> None:
        self._check("create", f"{kind.value}/{entity.id}")
        self._records[kind][entity.id] = entity.to_dict()

    async def update_entity(self, kind: EntityKind, entity_id: str, partial: Dict[str, Any]) -> None:
        self._check("update", f"{kind.value}/{entity_id}")
        record = self._records[kind].get(entity_id)
        if record is None:
            raise RemoteNotFoundError(f"{kind.value}/{entity_id} does not exist")
        record.update(partial)

    async def delete_entity(self, kind: EntityKind, entity_id: str) -> None:
        self._check("delete", f"{kind.value}/{entity_id}")
        self._records[kind].pop(entity_id, None)

    async def test_connection(self) -> bool:
        return self.reachable

    async def _sign_in(self, email: str, password: str) -> AuthUser:
        self._check("sign_in", email)
        account = self._accounts.get(email.lower())
        if account is None or account[1] != password:
            raise AuthenticationError("Invalid email or password")
        return AuthUser(uid=account[0], email=email)

    async def _sign_up(self, email: str, password: str) -> AuthUser:
        self._check("sign_up", email)
        if email.lower() in self._accounts:
            raise AuthenticationError(f"Account already exists for {email}")
        uid = uuid.uuid4().hex
        self._accounts[email.lower()] = (uid, password)
        return AuthUser(uid=uid, email=email)

    async def _sign_out(self) -> None:
        self._check("sign_out")
