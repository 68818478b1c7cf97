from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import asyncpg
import pytest

from clubhub.domain.activities.exceptions import AlreadyRegistered, InternalError, NotFoundError
from clubhub.domain.activities.repo import ActivitiesRepository
from clubhub.domain.points.repo import PointsRepository

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _activity_row(**overrides):
	row = {
		"id": uuid4(),
		"title": "Chess",
		"description": None,
		"club_id": uuid4(),
		"location": None,
		"start_time": NOW,
		"end_time": NOW + timedelta(hours=2),
		"points": 10,
		"max_participants": 20,
		"status": "approved",
		"image_ref": None,
		"feedback": None,
		"created_by": uuid4(),
		"created_at": NOW,
		"updated_at": NOW,
	}
	row.update(overrides)
	return row


def _pool_with(conn):
	pool = MagicMock()
	pool.acquire.return_value.__aenter__.return_value = conn
	return pool


@pytest.fixture()
def repo():
	return ActivitiesRepository()


@pytest.mark.asyncio
async def test_get_activity_for_update_locks_row(repo):
	conn = AsyncMock()
	conn.fetchrow.return_value = _activity_row()

	activity = await repo.get_activity(uuid4(), conn=conn, for_update=True)

	query = conn.fetchrow.call_args[0][0]
	assert query.endswith("FOR UPDATE")
	assert activity is not None and activity.points == 10


@pytest.mark.asyncio
async def test_get_activity_for_share_uses_shared_lock(repo):
	conn = AsyncMock()
	conn.fetchrow.return_value = None

	assert await repo.get_activity(uuid4(), conn=conn, for_share=True) is None
	assert conn.fetchrow.call_args[0][0].endswith("FOR SHARE")


@pytest.mark.asyncio
async def test_get_activity_view_uses_pool_when_no_connection(repo):
	conn = AsyncMock()
	conn.fetchrow.return_value = _activity_row(club_name="Chess Club", current_participants=4)
	with patch("clubhub.domain.activities.repo.get_pool", AsyncMock(return_value=_pool_with(conn))):
		activity = await repo.get_activity_view(uuid4())

	assert activity.club_name == "Chess Club"
	assert activity.current_participants == 4
	assert "LEFT JOIN clubs" in conn.fetchrow.call_args[0][0]


@pytest.mark.asyncio
async def test_insert_registration_maps_unique_violation(repo):
	conn = AsyncMock()
	conn.fetchrow.side_effect = asyncpg.UniqueViolationError("duplicate key")

	with pytest.raises(AlreadyRegistered):
		await repo.insert_registration(uuid4(), uuid4(), conn=conn)


@pytest.mark.asyncio
async def test_insert_registration_starts_registered_with_zero_points(repo):
	conn = AsyncMock()
	user_id, activity_id = uuid4(), uuid4()
	conn.fetchrow.return_value = {
		"user_id": user_id,
		"activity_id": activity_id,
		"status": "registered",
		"earned_points": 0,
		"created_at": NOW,
	}

	await repo.insert_registration(user_id, activity_id, conn=conn)

	query = conn.fetchrow.call_args[0][0]
	assert "INSERT INTO activity_registrations" in query
	assert "'registered', 0" in query


@pytest.mark.asyncio
async def test_settle_registrations_filters_eligible_statuses(repo):
	conn = AsyncMock()
	conn.fetch.return_value = []
	user_ids = [uuid4(), uuid4()]

	assert await repo.settle_registrations(uuid4(), user_ids, points=10, conn=conn) == []

	args = conn.fetch.call_args[0]
	assert "status IN ('registered', 'participated')" in args[0]
	assert "RETURNING" in args[0]
	assert args[2] == [str(user_id) for user_id in user_ids]
	assert args[3] == 10


@pytest.mark.asyncio
async def test_delete_activity_removes_registrations_first(repo):
	conn = AsyncMock()
	conn.execute.side_effect = ["DELETE 3", "DELETE 1"]

	removed = await repo.delete_activity(uuid4(), conn=conn)

	assert removed == 3
	first, second = (call[0][0] for call in conn.execute.call_args_list)
	assert "DELETE FROM activity_registrations" in first
	assert "DELETE FROM activities" in second


@pytest.mark.asyncio
async def test_update_activity_builds_assignments_in_column_order(repo):
	conn = AsyncMock()
	conn.fetchrow.return_value = _activity_row(title="Renamed", status="pending")
	club_id = uuid4()

	await repo.update_activity(uuid4(), {"status": "pending", "title": "Renamed", "club_id": club_id}, conn=conn)

	args = conn.fetchrow.call_args[0]
	assert "title = $2, club_id = $3, status = $4, updated_at = NOW()" in args[0]
	assert args[2:] == ("Renamed", str(club_id), "pending")


@pytest.mark.asyncio
async def test_update_activity_rejects_unknown_columns(repo):
	with pytest.raises(ValueError):
		await repo.update_activity(uuid4(), {"created_by": uuid4()}, conn=AsyncMock())


@pytest.mark.asyncio
async def test_update_missing_activity_raises_not_found(repo):
	conn = AsyncMock()
	conn.fetchrow.return_value = None
	with pytest.raises(NotFoundError):
		await repo.update_activity(uuid4(), {"title": "x"}, conn=conn)


@pytest.mark.asyncio
async def test_list_activities_filters_by_status_and_club(repo):
	conn = AsyncMock()
	conn.fetch.return_value = [_activity_row()]
	club_id = uuid4()
	with patch("clubhub.domain.activities.repo.get_pool", AsyncMock(return_value=_pool_with(conn))):
		items = await repo.list_activities(statuses=["approved", "completed"], club_id=club_id)

	assert len(items) == 1
	args = conn.fetch.call_args[0]
	assert "a.status = ANY($1::text[])" in args[0]
	assert "a.club_id = $2" in args[0]
	assert "ORDER BY a.start_time DESC" in args[0]
	assert args[1:] == (["approved", "completed"], str(club_id))


@pytest.mark.asyncio
async def test_unit_of_work_translates_database_errors(repo):
	conn = MagicMock()
	with patch("clubhub.domain.activities.repo.get_pool", AsyncMock(return_value=_pool_with(conn))):
		with pytest.raises(InternalError):
			async with repo.unit_of_work():
				raise asyncpg.PostgresError("connection lost")
	conn.transaction.assert_called_once()


@pytest.mark.asyncio
async def test_unit_of_work_passes_domain_errors_through(repo):
	conn = MagicMock()
	with patch("clubhub.domain.activities.repo.get_pool", AsyncMock(return_value=_pool_with(conn))):
		with pytest.raises(NotFoundError):
			async with repo.unit_of_work():
				raise NotFoundError("activity_not_found")


@pytest.mark.asyncio
async def test_points_add_to_balance_appends_ledger_row():
	conn = AsyncMock()
	conn.fetchval.return_value = 25
	user_id, activity_id = uuid4(), uuid4()

	balance = await PointsRepository().add_to_balance(
		user_id, 10, reason="activity_settlement", activity_id=activity_id, conn=conn
	)

	assert balance == 25
	assert "UPDATE users SET points = points + $2" in conn.fetchval.call_args[0][0]
	args = conn.execute.call_args[0]
	assert "INSERT INTO point_events" in args[0]
	assert args[2:5] == (str(user_id), 10, "activity_settlement")
	assert args[5] == str(activity_id)


@pytest.mark.asyncio
async def test_points_add_to_missing_user_raises_not_found():
	conn = AsyncMock()
	conn.fetchval.return_value = None
	with pytest.raises(NotFoundError):
		await PointsRepository().add_to_balance(uuid4(), 10, reason="activity_settlement", conn=conn)
	conn.execute.assert_not_called()


@pytest.mark.asyncio
async def test_points_ranking_search_uses_ilike():
	conn = AsyncMock()
	conn.fetch.return_value = [{"id": uuid4(), "username": "ann", "points": 9}]
	with patch("clubhub.domain.points.repo.get_pool", AsyncMock(return_value=_pool_with(conn))):
		ranked = await PointsRepository().ranking(search="an", limit=100)

	assert ranked[0].rank == 1
	args = conn.fetch.call_args[0]
	assert "username ILIKE $1" in args[0]
	assert "LIMIT $2" in args[0]
	assert args[1:] == ("%an%", 100)
