"""Tests for entity models and wire records."""

from datetime import datetime, timedelta, timezone

import pytest

from labsync.models import (
    BorrowRequest,
    Component,
    EntityKind,
    LoginSession,
    Notification,
    NotificationType,
    RequestStatus,
    SystemData,
    SystemStats,
    User,
    UserRole,
    kind_of,
    new_id,
)
from labsync.utils.datetime import duration_ms, parse_iso, to_iso_string


class TestWireRecords:
    """Test conversion to and from camelCase wire records."""

    def test_user_to_dict_uses_wire_keys(self, student):
        data = student.to_dict()
        assert data["rollNo"] == "CS-101"
        assert data["role"] == "student"
        assert data["registeredAt"] == "2024-01-15T00:00:00+00:00"
        assert data["lastLoginAt"] is None
        assert "roll_no" not in data

    def test_user_from_dict(self):
        user = User.from_dict({
            "id": "u1",
            "name": "Admin",
            "email": "admin@issacasimov.in",
            "role": "admin",
            "registeredAt": "2024-02-01T08:30:00Z",
            "loginCount": 4,
            "isActive": True,
        })
        assert user.is_admin
        assert user.login_count == 4
        assert user.registered_at == datetime(2024, 2, 1, 8, 30, tzinfo=timezone.utc)

    def test_unknown_keys_are_preserved(self):
        record = {"id": "c1", "name": "Arduino", "datasheetUrl": "https://example.com/uno.pdf"}
        component = Component.from_dict(record)
        assert component.extra == {"datasheetUrl": "https://example.com/uno.pdf"}
        assert component.to_dict()["datasheetUrl"] == "https://example.com/uno.pdf"

    def test_invalid_enum_raises(self):
        with pytest.raises(ValueError):
            BorrowRequest.from_dict({"id": "r1", "userId": "u1", "componentId": "c1",
                                     "status": "lost"})

    def test_request_round_trip_keeps_equality(self):
        request = BorrowRequest(
            id="req-1", user_id="u1", component_id="c1", quantity=2,
            status=RequestStatus.APPROVED,
            requested_at=datetime(2024, 3, 1, tzinfo=timezone.utc),
            due_date=datetime(2024, 3, 8, tzinfo=timezone.utc),
        )
        assert BorrowRequest.from_dict(request.to_dict()) == request

    def test_notification_type_serialized_by_value(self):
        notification = Notification(id="n1", user_id="u1", title="Hi",
                                    type=NotificationType.WARNING)
        assert notification.to_dict()["type"] == "warning"


class TestLoginSession:
    """Test login session lifecycle."""

    def test_open_for_user(self, student):
        at = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)
        session = LoginSession.open_for(student, at=at)
        assert session.id.startswith("session-")
        assert session.user_id == student.id
        assert session.user_email == student.email
        assert session.login_time == at
        assert session.is_active
        assert session.logout_time is None
        assert session.session_duration is None

    def test_close_computes_duration(self, student):
        login = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)
        session = LoginSession.open_for(student, at=login)
        session.close(login + timedelta(minutes=45))
        assert not session.is_active
        assert session.logout_time == login + timedelta(minutes=45)
        assert session.session_duration == 45 * 60 * 1000

    def test_close_twice_raises(self, student):
        login = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)
        session = LoginSession.open_for(student, at=login)
        session.close(login + timedelta(minutes=1))
        with pytest.raises(ValueError):
            session.close(login + timedelta(minutes=2))

    def test_closing_fields(self, student):
        login = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)
        session = LoginSession.open_for(student, at=login)
        fields = session.closing_fields(login + timedelta(seconds=90))
        assert fields == {
            "isActive": False,
            "logoutTime": "2024-03-01T09:01:30+00:00",
            "sessionDuration": 90000,
        }
        # Computing fields does not close the local object
        assert session.is_active


class TestSystemData:
    """Test snapshot helpers."""

    def test_empty_snapshot(self):
        data = SystemData()
        assert data.is_empty()
        assert data.entity_count() == 0

    def test_single_session_makes_snapshot_non_empty(self, student):
        data = SystemData(login_sessions=[LoginSession.open_for(student)])
        assert not data.is_empty()

    def test_from_dict_tolerates_missing_collections(self):
        data = SystemData.from_dict({"users": [{"id": "u1", "name": "A", "email": "a@x"}]})
        assert len(data.users) == 1
        assert data.components == []
        assert data.login_sessions == []

    def test_to_dict_uses_collection_names(self, student, component):
        data = SystemData(users=[student], components=[component])
        document = data.to_dict()
        assert set(document) == {"users", "components", "requests", "notifications", "loginSessions"}
        assert document["components"][0]["totalQuantity"] == 10

    def test_kind_of(self, student, component):
        assert kind_of(student) is EntityKind.USERS
        assert kind_of(component) is EntityKind.COMPONENTS
        with pytest.raises(TypeError):
            kind_of("not an entity")

    def test_new_id_is_unique_and_prefixed(self):
        first, second = new_id("notif"), new_id("notif")
        assert first.startswith("notif-")
        assert first != second


class TestSystemStats:
    def test_counts(self, student, component):
        requests = [
            BorrowRequest(id="r1", user_id=student.id, component_id=component.id),
            BorrowRequest(id="r2", user_id=student.id, component_id=component.id,
                          status=RequestStatus.APPROVED),
            BorrowRequest(id="r3", user_id=student.id, component_id=component.id,
                          status=RequestStatus.RETURNED),
        ]
        empty = Component(id="c2", name="Lidar", total_quantity=1, available_quantity=0)
        admin = User(id="u2", name="Admin", email="admin@x", role=UserRole.ADMIN, is_active=True)
        stats = SystemStats.from_snapshot(SystemData(
            users=[student, admin], components=[component, empty], requests=requests,
        ))
        assert stats.total_users == 2
        assert stats.active_users == 1
        assert stats.available_components == 1
        assert stats.total_units == 11
        assert stats.pending_requests == 1
        assert stats.approved_requests == 1
        assert stats.returned_requests == 1
        assert stats.rejected_requests == 0


class TestDatetimeUtils:
    def test_parse_iso_handles_z_suffix(self):
        assert parse_iso("2024-03-01T10:00:00.000Z") == datetime(2024, 3, 1, 10, tzinfo=timezone.utc)

    def test_parse_iso_empty(self):
        assert parse_iso(None) is None
        assert parse_iso("") is None

    def test_naive_datetimes_assumed_utc(self):
        assert to_iso_string(datetime(2024, 3, 1, 10)) == "2024-03-01T10:00:00+00:00"

    def test_duration_ms(self):
        start = datetime(2024, 3, 1, 10, tzinfo=timezone.utc)
        assert duration_ms(start, start + timedelta(milliseconds=1500)) == 1500
