"""API surface tests for the activity endpoints."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4

import pytest

from clubhub.api import activities as activities_api
from clubhub.domain.activities import models, schemas
from clubhub.domain.activities.exceptions import (
	CapacityExceeded,
	ForbiddenError,
	InternalError,
	NoEligibleParticipants,
	NotFoundError,
	WindowClosed,
)
from clubhub.settings import settings

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _activity_response(**overrides) -> schemas.ActivityResponse:
	data = {
		"id": uuid4(),
		"title": "Board games night",
		"club_id": uuid4(),
		"club_name": "Board Games",
		"start_time": NOW + timedelta(days=1),
		"end_time": NOW + timedelta(days=1, hours=2),
		"points": 10,
		"max_participants": 20,
		"current_participants": 3,
		"status": models.EffectiveStatus.UPCOMING,
		"stored_status": models.StoredStatus.APPROVED,
		"created_by": uuid4(),
		"created_at": NOW,
		"updated_at": NOW,
	}
	data.update(overrides)
	return schemas.ActivityResponse(**data)


@pytest.fixture()
def student_headers() -> dict[str, str]:
	return {"X-User-Id": str(uuid4()), "X-User-Role": "student"}


@pytest.fixture()
def captain_headers() -> dict[str, str]:
	return {"X-User-Id": str(uuid4()), "X-User-Role": "club_admin"}


@pytest.mark.asyncio
async def test_list_activities_passes_filters(api_client, monkeypatch):
	club_id = uuid4()
	item = _activity_response(club_id=club_id)

	class StubService:
		async def list_activities(self, *, status, club_id):
			assert status == "upcoming"
			assert club_id == item.club_id
			return [item]

	monkeypatch.setattr(activities_api, "_service", StubService())

	resp = await api_client.get("/api/activities", params={"status": "upcoming", "club_id": str(club_id)})

	assert resp.status_code == 200
	payload = resp.json()
	assert [row["id"] for row in payload] == [str(item.id)]
	assert payload[0]["status"] == "upcoming"
	assert payload[0]["stored_status"] == "approved"


@pytest.mark.asyncio
async def test_activity_detail_allows_anonymous_callers(api_client, monkeypatch):
	item = _activity_response()

	class StubService:
		async def get_activity(self, activity_id, caller):
			assert activity_id == item.id
			assert caller is None
			return schemas.ActivityDetailResponse(activity=item, participants=[], is_joined=False)

	monkeypatch.setattr(activities_api, "_service", StubService())

	resp = await api_client.get(f"/api/activities/{item.id}")

	assert resp.status_code == 200
	assert resp.json()["activity"]["title"] == "Board games night"
	assert resp.json()["is_joined"] is False


@pytest.mark.asyncio
async def test_create_activity_returns_created(api_client, monkeypatch, captain_headers):
	created_id = uuid4()
	club_id = uuid4()

	class StubService:
		async def create_activity(self, payload, auth_user):
			assert auth_user.role == "club_admin"
			assert payload.club_id == club_id
			assert payload.start_time.tzinfo is not None
			return schemas.ActivityMutationResponse(id=created_id, status=models.StoredStatus.PENDING)

	monkeypatch.setattr(activities_api, "_service", StubService())

	resp = await api_client.post(
		"/api/activities",
		headers=captain_headers,
		json={
			"title": "Chess",
			"club_id": str(club_id),
			"start_time": "2024-06-01T14:00:00",
			"end_time": "2024-06-01T16:00:00",
			"points": 5,
		},
	)

	assert resp.status_code == 201
	assert resp.json() == {"id": str(created_id), "status": "pending"}


@pytest.mark.asyncio
async def test_create_activity_validation_envelope(api_client, captain_headers):
	resp = await api_client.post(
		"/api/activities",
		headers={**captain_headers, "X-Request-Id": "req-validation"},
		json={"title": "Chess"},
	)

	assert resp.status_code == 422
	body = resp.json()
	assert body["kind"] == "validation_error"
	assert body["request_id"] == "req-validation"
	missing = {tuple(err["loc"])[-1] for err in body["errors"]}
	assert {"club_id", "start_time", "end_time"} <= missing


@pytest.mark.asyncio
async def test_mutations_require_authentication(api_client):
	resp = await api_client.post(f"/api/activities/{uuid4()}/join")

	assert resp.status_code == 401
	assert resp.json()["kind"] == "unauthorized"
	assert resp.json()["detail"] == "invalid_token"


@pytest.mark.asyncio
async def test_unknown_dev_role_is_rejected(api_client):
	resp = await api_client.get(
		"/api/activities/pending",
		headers={"X-User-Id": str(uuid4()), "X-User-Role": "superuser"},
	)

	assert resp.status_code == 401
	assert resp.json()["detail"] == "invalid_role"


@pytest.mark.asyncio
async def test_dev_headers_ignored_outside_dev(api_client, monkeypatch, student_headers):
	monkeypatch.setattr(settings, "environment", "production")

	resp = await api_client.get("/api/activities/mine", headers=student_headers)

	assert resp.status_code == 401


@pytest.mark.asyncio
async def test_join_returns_no_content(api_client, monkeypatch, student_headers):
	activity_id = uuid4()
	calls: list[tuple[UUID, str]] = []

	class StubEnrollment:
		async def join(self, target, auth_user):
			calls.append((target, auth_user.id))

	monkeypatch.setattr(activities_api, "_enrollment", StubEnrollment())

	resp = await api_client.post(f"/api/activities/{activity_id}/join", headers=student_headers)

	assert resp.status_code == 204
	assert resp.content == b""
	assert calls == [(activity_id, student_headers["X-User-Id"])]


@pytest.mark.asyncio
@pytest.mark.parametrize(
	"error, status_code, detail",
	[
		(WindowClosed("join_window_closed"), 409, "join_window_closed"),
		(CapacityExceeded("activity_full"), 409, "activity_full"),
		(NotFoundError("activity_not_found"), 404, "activity_not_found"),
	],
)
async def test_join_errors_use_envelope(api_client, monkeypatch, student_headers, error, status_code, detail):
	class StubEnrollment:
		async def join(self, target, auth_user):
			raise error

	monkeypatch.setattr(activities_api, "_enrollment", StubEnrollment())

	resp = await api_client.post(
		f"/api/activities/{uuid4()}/join",
		headers={**student_headers, "X-Request-Id": "req-join"},
	)

	assert resp.status_code == status_code
	body = resp.json()
	assert body["detail"] == detail
	assert body["kind"] == error.kind
	assert body["request_id"] == "req-join"
	assert resp.headers["X-Request-Id"] == "req-join"


@pytest.mark.asyncio
async def test_leave_forwards_to_enrollment(api_client, monkeypatch, student_headers):
	class StubEnrollment:
		async def leave(self, target, auth_user):
			raise WindowClosed("leave_window_closed")

	monkeypatch.setattr(activities_api, "_enrollment", StubEnrollment())

	resp = await api_client.delete(f"/api/activities/{uuid4()}/leave", headers=student_headers)

	assert resp.status_code == 409
	assert resp.json()["detail"] == "leave_window_closed"


@pytest.mark.asyncio
async def test_leave_is_a_delete_on_the_registration(api_client, monkeypatch, student_headers):
	calls = []

	class StubEnrollment:
		async def leave(self, target, auth_user):
			calls.append(target)

	monkeypatch.setattr(activities_api, "_enrollment", StubEnrollment())
	activity_id = uuid4()

	resp = await api_client.delete(f"/api/activities/{activity_id}/leave", headers=student_headers)
	assert resp.status_code == 204
	assert calls == [activity_id]

	resp = await api_client.post(f"/api/activities/{activity_id}/leave", headers=student_headers)
	assert resp.status_code == 405
	assert calls == [activity_id]


@pytest.mark.asyncio
async def test_review_accepts_status_alias(api_client, monkeypatch):
	activity_id = uuid4()

	class StubService:
		async def review_activity(self, target, decision, feedback, auth_user):
			assert target == activity_id
			assert decision == "rejected"
			assert feedback == "Needs a room booking"
			return schemas.ActivityMutationResponse(id=target, status=models.StoredStatus.REJECTED)

	monkeypatch.setattr(activities_api, "_service", StubService())

	resp = await api_client.put(
		f"/api/activities/{activity_id}/review",
		headers={"X-User-Id": str(uuid4()), "X-User-Role": "admin"},
		json={"status": "rejected", "feedback": "Needs a room booking"},
	)

	assert resp.status_code == 200
	assert resp.json()["status"] == "rejected"


@pytest.mark.asyncio
async def test_update_forbidden_maps_to_403(api_client, monkeypatch, student_headers):
	class StubService:
		async def update_activity(self, target, payload, auth_user):
			assert payload.title == "Renamed"
			raise ForbiddenError("insufficient_role")

	monkeypatch.setattr(activities_api, "_service", StubService())

	resp = await api_client.put(f"/api/activities/{uuid4()}", headers=student_headers, json={"title": "Renamed"})

	assert resp.status_code == 403
	assert resp.json()["kind"] == "forbidden"


@pytest.mark.asyncio
async def test_complete_returns_affected_count(api_client, monkeypatch, captain_headers):
	user_ids = [uuid4(), uuid4()]

	class StubSettlement:
		async def complete_activity(self, target, ids, auth_user):
			assert ids == user_ids
			return schemas.CompleteResponse(affected_count=2)

	monkeypatch.setattr(activities_api, "_settlement", StubSettlement())

	resp = await api_client.post(
		f"/api/activities/{uuid4()}/complete",
		headers=captain_headers,
		json={"user_ids": [str(user_id) for user_id in user_ids]},
	)

	assert resp.status_code == 200
	assert resp.json() == {"affected_count": 2}


@pytest.mark.asyncio
async def test_complete_without_eligible_participants_is_400(api_client, monkeypatch, captain_headers):
	class StubSettlement:
		async def complete_activity(self, target, ids, auth_user):
			raise NoEligibleParticipants()

	monkeypatch.setattr(activities_api, "_settlement", StubSettlement())

	resp = await api_client.post(
		f"/api/activities/{uuid4()}/complete",
		headers=captain_headers,
		json={"user_ids": [str(uuid4())]},
	)

	assert resp.status_code == 400
	assert resp.json()["kind"] == "no_eligible_participants"


@pytest.mark.asyncio
async def test_persistence_failure_is_500_envelope(api_client, monkeypatch, captain_headers):
	class StubService:
		async def delete_activity(self, target, auth_user):
			raise InternalError("persistence_failure")

	monkeypatch.setattr(activities_api, "_service", StubService())

	resp = await api_client.delete(f"/api/activities/{uuid4()}", headers=captain_headers)

	assert resp.status_code == 500
	assert resp.json()["kind"] == "internal_error"
	assert resp.json()["detail"] == "persistence_failure"


@pytest.mark.asyncio
async def test_delete_reports_removed_registrants(api_client, monkeypatch, captain_headers):
	class StubService:
		async def delete_activity(self, target, auth_user):
			return schemas.DeleteResponse(deleted_registrant_count=4)

	monkeypatch.setattr(activities_api, "_service", StubService())

	resp = await api_client.delete(f"/api/activities/{uuid4()}", headers=captain_headers)

	assert resp.status_code == 200
	assert resp.json() == {"deleted_registrant_count": 4}


@pytest.mark.asyncio
async def test_stats_route_is_not_shadowed_by_activity_id(api_client, monkeypatch):
	class StubService:
		async def activity_stats(self, auth_user):
			assert auth_user.is_admin
			return models.ActivityStats(status_counts={"approved": 2}, total=2, starting_this_month=1)

	monkeypatch.setattr(activities_api, "_service", StubService())

	resp = await api_client.get(
		"/api/activities/stats",
		headers={"X-User-Id": str(uuid4()), "X-User-Role": "admin"},
	)

	assert resp.status_code == 200
	assert resp.json()["total"] == 2
	assert resp.json()["popular"] == []


@pytest.mark.asyncio
async def test_review_queue_requires_admin_role(api_client, captain_headers):
	resp = await api_client.get("/api/activities/pending", headers=captain_headers)

	assert resp.status_code == 403
	assert resp.json()["kind"] == "forbidden"
	assert resp.json()["detail"] == "insufficient_role"
