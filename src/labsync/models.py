"""Entity models and snapshot structures for lab inventory synchronization.

Every entity is a dataclass with a unique string ``id``. Entities are
exchanged with both stores as plain records: ``to_dict`` produces the wire
shape (camelCase keys, ISO-8601 timestamps) and ``from_dict`` reads it back.
Keys the model does not know about are kept in ``extra`` so that records
pass through the library unchanged.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Type

from .utils.datetime import now_utc, parse_iso, to_iso_string, duration_ms


class UserRole(Enum):
    """Account roles."""
    STUDENT = "student"
    ADMIN = "admin"


class RequestStatus(Enum):
    """Borrow request lifecycle."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    RETURNED = "returned"


class NotificationType(Enum):
    """Notification severity."""
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


def new_id(prefix: str) -> str:
    """Generate a new entity id such as ``notif-3f2a9c1b7d4e``."""
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


class WireRecord:
    """Mixin mapping dataclass attributes to wire record keys."""

    WIRE_KEYS: Dict[str, str] = {}
    DATETIME_FIELDS: Tuple[str, ...] = ()
    ENUM_FIELDS: Dict[str, Type[Enum]] = {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wire record representation."""
        data = dict(self.extra)
        for attr, key in self.WIRE_KEYS.items():
            value = getattr(self, attr)
            if isinstance(value, Enum):
                value = value.value
            elif isinstance(value, datetime):
                value = to_iso_string(value)
            data[key] = value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        """Create from a wire record.

        Raises:
            ValueError: If a timestamp or enum field holds an invalid value
        """
        reverse = {key: attr for attr, key in cls.WIRE_KEYS.items()}
        kwargs: Dict[str, Any] = {}
        extra: Dict[str, Any] = {}
        for key, value in data.items():
            attr = reverse.get(key)
            if attr is None:
                extra[key] = value
                continue
            if attr in cls.DATETIME_FIELDS:
                value = parse_iso(value)
            elif attr in cls.ENUM_FIELDS and value is not None:
                value = cls.ENUM_FIELDS[attr](value)
            kwargs[attr] = value
        return cls(extra=extra, **kwargs)


@dataclass
class User(WireRecord):
    """A lab member account."""

    id: str
    name: str
    email: str
    role: UserRole = UserRole.STUDENT
    roll_no: str = ""
    mobile: str = ""
    registered_at: datetime = field(default_factory=now_utc)
    login_count: int = 0
    is_active: bool = False
    last_login_at: Optional[datetime] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    WIRE_KEYS = {
        "id": "id",
        "name": "name",
        "email": "email",
        "role": "role",
        "roll_no": "rollNo",
        "mobile": "mobile",
        "registered_at": "registeredAt",
        "login_count": "loginCount",
        "is_active": "isActive",
        "last_login_at": "lastLoginAt",
    }
    DATETIME_FIELDS = ("registered_at", "last_login_at")
    ENUM_FIELDS = {"role": UserRole}

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


@dataclass
class Component(WireRecord):
    """An inventory item that can be borrowed."""

    id: str
    name: str
    category: str = ""
    description: str = ""
    total_quantity: int = 0
    available_quantity: int = 0
    location: str = ""
    created_at: datetime = field(default_factory=now_utc)
    extra: Dict[str, Any] = field(default_factory=dict)

    WIRE_KEYS = {
        "id": "id",
        "name": "name",
        "category": "category",
        "description": "description",
        "total_quantity": "totalQuantity",
        "available_quantity": "availableQuantity",
        "location": "location",
        "created_at": "createdAt",
    }
    DATETIME_FIELDS = ("created_at",)

    @property
    def is_available(self) -> bool:
        return self.available_quantity > 0


@dataclass
class BorrowRequest(WireRecord):
    """A user's request to borrow a component."""

    id: str
    user_id: str
    component_id: str
    user_name: str = ""
    component_name: str = ""
    quantity: int = 1
    purpose: str = ""
    status: RequestStatus = RequestStatus.PENDING
    requested_at: datetime = field(default_factory=now_utc)
    due_date: Optional[datetime] = None
    returned_at: Optional[datetime] = None
    admin_notes: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)

    WIRE_KEYS = {
        "id": "id",
        "user_id": "userId",
        "component_id": "componentId",
        "user_name": "userName",
        "component_name": "componentName",
        "quantity": "quantity",
        "purpose": "purpose",
        "status": "status",
        "requested_at": "requestedAt",
        "due_date": "dueDate",
        "returned_at": "returnedAt",
        "admin_notes": "adminNotes",
    }
    DATETIME_FIELDS = ("requested_at", "due_date", "returned_at")
    ENUM_FIELDS = {"status": RequestStatus}


@dataclass
class Notification(WireRecord):
    """A message addressed to a user."""

    id: str
    user_id: str
    title: str
    message: str = ""
    type: NotificationType = NotificationType.INFO
    read: bool = False
    created_at: datetime = field(default_factory=now_utc)
    extra: Dict[str, Any] = field(default_factory=dict)

    WIRE_KEYS = {
        "id": "id",
        "user_id": "userId",
        "title": "title",
        "message": "message",
        "type": "type",
        "read": "read",
        "created_at": "createdAt",
    }
    DATETIME_FIELDS = ("created_at",)
    ENUM_FIELDS = {"type": NotificationType}


@dataclass
class LoginSession(WireRecord):
    """A time-bounded record of one authenticated session.

    A session is open while ``is_active`` is true and ``logout_time`` is
    unset. It is closed exactly once, at logout, and never deleted.
    ``session_duration`` is in milliseconds.
    """

    id: str
    user_id: str
    user_name: str = ""
    user_email: str = ""
    login_time: datetime = field(default_factory=now_utc)
    logout_time: Optional[datetime] = None
    is_active: bool = True
    session_duration: Optional[int] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    WIRE_KEYS = {
        "id": "id",
        "user_id": "userId",
        "user_name": "userName",
        "user_email": "userEmail",
        "login_time": "loginTime",
        "logout_time": "logoutTime",
        "is_active": "isActive",
        "session_duration": "sessionDuration",
    }
    DATETIME_FIELDS = ("login_time", "logout_time")

    @classmethod
    def open_for(cls, user: User, at: Optional[datetime] = None) -> "LoginSession":
        """Open a new session for a user."""
        return cls(
            id=new_id("session"),
            user_id=user.id,
            user_name=user.name,
            user_email=user.email,
            login_time=at or now_utc(),
        )

    def close(self, at: datetime) -> None:
        """Close the session at the given time.

        Raises:
            ValueError: If the session is already closed
        """
        if not self.is_active:
            raise ValueError(f"Login session {self.id} is already closed")
        self.logout_time = at
        self.is_active = False
        self.session_duration = duration_ms(self.login_time, at)

    def closing_fields(self, at: datetime) -> Dict[str, Any]:
        """Wire fields that close this session at the given time."""
        return {
            "isActive": False,
            "logoutTime": to_iso_string(at),
            "sessionDuration": duration_ms(self.login_time, at),
        }


class EntityKind(Enum):
    """The five synchronized collections; values are wire collection names."""
    USERS = "users"
    COMPONENTS = "components"
    REQUESTS = "requests"
    NOTIFICATIONS = "notifications"
    LOGIN_SESSIONS = "loginSessions"

    @property
    def attr(self) -> str:
        """Attribute name on SystemData."""
        return _KIND_ATTRS[self]

    @property
    def entity_type(self) -> type:
        return ENTITY_TYPES[self]


_KIND_ATTRS = {
    EntityKind.USERS: "users",
    EntityKind.COMPONENTS: "components",
    EntityKind.REQUESTS: "requests",
    EntityKind.NOTIFICATIONS: "notifications",
    EntityKind.LOGIN_SESSIONS: "login_sessions",
}

ENTITY_TYPES = {
    EntityKind.USERS: User,
    EntityKind.COMPONENTS: Component,
    EntityKind.REQUESTS: BorrowRequest,
    EntityKind.NOTIFICATIONS: Notification,
    EntityKind.LOGIN_SESSIONS: LoginSession,
}


def kind_of(entity: Any) -> EntityKind:
    """Return the collection an entity belongs to."""
    for kind, entity_type in ENTITY_TYPES.items():
        if isinstance(entity, entity_type):
            return kind
    raise TypeError(f"Not a synchronized entity: {type(entity).__name__}")


@dataclass
class SystemData:
    """A snapshot of all five entity collections at one point in time."""

    users: List[User] = field(default_factory=list)
    components: List[Component] = field(default_factory=list)
    requests: List[BorrowRequest] = field(default_factory=list)
    notifications: List[Notification] = field(default_factory=list)
    login_sessions: List[LoginSession] = field(default_factory=list)

    def collection(self, kind: EntityKind) -> List[Any]:
        return getattr(self, kind.attr)

    def entity_count(self) -> int:
        return sum(len(self.collection(kind)) for kind in EntityKind)

    def is_empty(self) -> bool:
        """True when none of the five collections holds an entity."""
        return self.entity_count() == 0

    def to_dict(self) -> Dict[str, List[Dict[str, Any]]]:
        return {
            kind.value: [entity.to_dict() for entity in self.collection(kind)]
            for kind in EntityKind
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SystemData":
        kwargs = {}
        for kind in EntityKind:
            records = data.get(kind.value) or []
            kwargs[kind.attr] = [kind.entity_type.from_dict(record) for record in records]
        return cls(**kwargs)


@dataclass
class SystemStats:
    """Aggregate counters over the local snapshot."""

    total_users: int = 0
    active_users: int = 0
    total_components: int = 0
    available_components: int = 0
    total_units: int = 0
    available_units: int = 0
    total_requests: int = 0
    pending_requests: int = 0
    approved_requests: int = 0
    rejected_requests: int = 0
    returned_requests: int = 0
    total_sessions: int = 0
    active_sessions: int = 0

    @classmethod
    def from_snapshot(cls, data: SystemData) -> "SystemStats":
        by_status = {status: 0 for status in RequestStatus}
        for request in data.requests:
            by_status[request.status] += 1
        return cls(
            total_users=len(data.users),
            active_users=sum(1 for u in data.users if u.is_active),
            total_components=len(data.components),
            available_components=sum(1 for c in data.components if c.is_available),
            total_units=sum(c.total_quantity for c in data.components),
            available_units=sum(c.available_quantity for c in data.components),
            total_requests=len(data.requests),
            pending_requests=by_status[RequestStatus.PENDING],
            approved_requests=by_status[RequestStatus.APPROVED],
            rejected_requests=by_status[RequestStatus.REJECTED],
            returned_requests=by_status[RequestStatus.RETURNED],
            total_sessions=len(data.login_sessions),
            active_sessions=sum(1 for s in data.login_sessions if s.is_active),
        )
