"""Async repository helpers for the activity domain."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Iterable, Mapping, Sequence
from uuid import UUID, uuid4

import asyncpg

from clubhub.domain.activities import models
from clubhub.domain.activities.exceptions import AlreadyRegistered, InternalError, NotFoundError
from clubhub.infra.postgres import get_pool

# Columns a caller may change through update_activity.
UPDATABLE_COLUMNS = (
	"title",
	"description",
	"club_id",
	"location",
	"start_time",
	"end_time",
	"points",
	"max_participants",
	"image_ref",
	"status",
)

_ACTIVITY_VIEW = """
	SELECT a.*, c.name AS club_name,
		(SELECT COUNT(*) FROM activity_registrations r WHERE r.activity_id = a.id) AS current_participants
	FROM activities a
	LEFT JOIN clubs c ON c.id = a.club_id
"""


def _affected_rows(command_status: str) -> int:
	"""Parse asyncpg's command tag (``DELETE 3``) into a row count."""
	try:
		return int(command_status.rsplit(" ", 1)[-1])
	except (ValueError, AttributeError):
		return 0


class ActivitiesRepository:
	"""Thin data-access layer around asyncpg."""

	@asynccontextmanager
	async def unit_of_work(self) -> AsyncIterator[asyncpg.Connection]:
		"""Yield a connection inside one transaction.

		Domain errors raised by the caller roll back and propagate untouched;
		database failures roll back and surface as InternalError.
		"""
		try:
			pool = await get_pool()
			async with pool.acquire() as conn:
				async with conn.transaction():
					yield conn
		except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as exc:
			raise InternalError("persistence_failure") from exc

	# --- Clubs ------------------------------------------------------------

	async def get_club(
		self,
		club_id: UUID,
		*,
		conn: asyncpg.Connection | None = None,
	) -> models.Club | None:
		query = "SELECT id, name, admin_id FROM clubs WHERE id=$1"
		async def _fetch(connection: asyncpg.Connection) -> models.Club | None:
			record = await connection.fetchrow(query, str(club_id))
			return models.Club.model_validate(dict(record)) if record else None
		if conn is not None:
			return await _fetch(conn)
		pool = await get_pool()
		async with pool.acquire() as pooled_conn:
			return await _fetch(pooled_conn)

	# --- Activities -------------------------------------------------------

	async def create_activity(
		self,
		*,
		title: str,
		description: str | None,
		club_id: UUID,
		location: str | None,
		start_time: datetime,
		end_time: datetime,
		points: int,
		max_participants: int,
		image_ref: str | None,
		status: str,
		created_by: UUID,
		conn: asyncpg.Connection,
	) -> models.Activity:
		record = await conn.fetchrow(
			"""
			INSERT INTO activities (id, title, description, club_id, location, start_time, end_time,
				points, max_participants, image_ref, status, created_by)
			VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12)
			RETURNING *
			""",
			str(uuid4()),
			title,
			description,
			str(club_id),
			location,
			start_time,
			end_time,
			points,
			max_participants,
			image_ref,
			status,
			str(created_by),
		)
		return models.Activity.model_validate(dict(record))

	async def get_activity(
		self,
		activity_id: UUID,
		*,
		conn: asyncpg.Connection | None = None,
		for_update: bool = False,
		for_share: bool = False,
	) -> models.Activity | None:
		"""Fetch the bare activity row, optionally locking it for the transaction."""
		query = "SELECT * FROM activities WHERE id=$1"
		if for_update:
			query += " FOR UPDATE"
		elif for_share:
			query += " FOR SHARE"
		async def _fetch(connection: asyncpg.Connection) -> models.Activity | None:
			record = await connection.fetchrow(query, str(activity_id))
			return models.Activity.model_validate(dict(record)) if record else None
		if conn is not None:
			return await _fetch(conn)
		pool = await get_pool()
		async with pool.acquire() as pooled_conn:
			return await _fetch(pooled_conn)

	async def get_activity_view(
		self,
		activity_id: UUID,
		*,
		conn: asyncpg.Connection | None = None,
	) -> models.Activity | None:
		"""Activity with club name and registrant count."""
		query = _ACTIVITY_VIEW + " WHERE a.id=$1"
		async def _fetch(connection: asyncpg.Connection) -> models.Activity | None:
			record = await connection.fetchrow(query, str(activity_id))
			return models.Activity.model_validate(dict(record)) if record else None
		if conn is not None:
			return await _fetch(conn)
		pool = await get_pool()
		async with pool.acquire() as pooled_conn:
			return await _fetch(pooled_conn)

	async def list_activities(
		self,
		*,
		statuses: Sequence[str] | None = None,
		club_id: UUID | None = None,
	) -> list[models.Activity]:
		params: list[object] = []
		where_clauses: list[str] = []
		if statuses:
			params.append(list(statuses))
			where_clauses.append("a.status = ANY($%d::text[])" % len(params))
		if club_id is not None:
			params.append(str(club_id))
			where_clauses.append("a.club_id = $%d" % len(params))
		query = _ACTIVITY_VIEW
		if where_clauses:
			query += " WHERE " + " AND ".join(where_clauses)
		query += " ORDER BY a.start_time DESC, a.id DESC"
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(query, *params)
		return [models.Activity.model_validate(dict(row)) for row in rows]

	async def list_pending(self) -> list[models.Activity]:
		query = _ACTIVITY_VIEW + " WHERE a.status = 'pending' ORDER BY a.created_at ASC, a.id ASC"
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(query)
		return [models.Activity.model_validate(dict(row)) for row in rows]

	async def update_activity(
		self,
		activity_id: UUID,
		changes: Mapping[str, Any],
		*,
		conn: asyncpg.Connection,
	) -> models.Activity:
		unknown = set(changes) - set(UPDATABLE_COLUMNS)
		if unknown:
			raise ValueError(f"unsupported columns: {sorted(unknown)}")
		params: list[object] = [str(activity_id)]
		assignments: list[str] = []
		for column in UPDATABLE_COLUMNS:
			if column not in changes:
				continue
			value = changes[column]
			if isinstance(value, UUID):
				value = str(value)
			params.append(value)
			assignments.append(f"{column} = ${len(params)}")
		assignments.append("updated_at = NOW()")
		record = await conn.fetchrow(
			f"UPDATE activities SET {', '.join(assignments)} WHERE id=$1 RETURNING *",
			*params,
		)
		if not record:
			raise NotFoundError("activity_not_found")
		return models.Activity.model_validate(dict(record))

	async def set_review(
		self,
		activity_id: UUID,
		*,
		status: str,
		feedback: str | None,
		conn: asyncpg.Connection,
	) -> models.Activity:
		record = await conn.fetchrow(
			"""
			UPDATE activities
			SET status=$2, feedback=$3, updated_at=NOW()
			WHERE id=$1
			RETURNING *
			""",
			str(activity_id),
			status,
			feedback,
		)
		if not record:
			raise NotFoundError("activity_not_found")
		return models.Activity.model_validate(dict(record))

	async def mark_completed(self, activity_id: UUID, *, conn: asyncpg.Connection) -> None:
		await conn.execute(
			"UPDATE activities SET status='completed', updated_at=NOW() WHERE id=$1",
			str(activity_id),
		)

	async def delete_activity(self, activity_id: UUID, *, conn: asyncpg.Connection) -> int:
		"""Delete registrations then the activity; return the registrant count removed."""
		removed = await conn.execute(
			"DELETE FROM activity_registrations WHERE activity_id=$1",
			str(activity_id),
		)
		await conn.execute("DELETE FROM activities WHERE id=$1", str(activity_id))
		return _affected_rows(removed)

	# --- Registrations ----------------------------------------------------

	async def count_registrations(self, activity_id: UUID, *, conn: asyncpg.Connection) -> int:
		value = await conn.fetchval(
			"SELECT COUNT(*) FROM activity_registrations WHERE activity_id=$1",
			str(activity_id),
		)
		return int(value or 0)

	async def get_registration(
		self,
		user_id: UUID,
		activity_id: UUID,
		*,
		conn: asyncpg.Connection | None = None,
	) -> models.Registration | None:
		query = "SELECT * FROM activity_registrations WHERE user_id=$1 AND activity_id=$2"
		async def _fetch(connection: asyncpg.Connection) -> models.Registration | None:
			record = await connection.fetchrow(query, str(user_id), str(activity_id))
			return models.Registration.model_validate(dict(record)) if record else None
		if conn is not None:
			return await _fetch(conn)
		pool = await get_pool()
		async with pool.acquire() as pooled_conn:
			return await _fetch(pooled_conn)

	async def insert_registration(
		self,
		user_id: UUID,
		activity_id: UUID,
		*,
		conn: asyncpg.Connection,
	) -> models.Registration:
		try:
			record = await conn.fetchrow(
				"""
				INSERT INTO activity_registrations (user_id, activity_id, status, earned_points)
				VALUES ($1, $2, 'registered', 0)
				RETURNING *
				""",
				str(user_id),
				str(activity_id),
			)
		except asyncpg.UniqueViolationError as exc:  # type: ignore[attr-defined]
			raise AlreadyRegistered("already_registered") from exc
		return models.Registration.model_validate(dict(record))

	async def delete_registration(
		self,
		user_id: UUID,
		activity_id: UUID,
		*,
		conn: asyncpg.Connection,
	) -> bool:
		result = await conn.execute(
			"DELETE FROM activity_registrations WHERE user_id=$1 AND activity_id=$2",
			str(user_id),
			str(activity_id),
		)
		return _affected_rows(result) > 0

	async def list_participants(self, activity_id: UUID) -> list[models.Participant]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT r.user_id, u.username, r.status, r.earned_points, r.created_at
				FROM activity_registrations r
				LEFT JOIN users u ON u.id = r.user_id
				WHERE r.activity_id=$1
				ORDER BY r.created_at ASC, r.user_id ASC
				""",
				str(activity_id),
			)
		return [models.Participant.model_validate(dict(row)) for row in rows]

	async def settle_registrations(
		self,
		activity_id: UUID,
		user_ids: Iterable[UUID],
		*,
		points: int,
		conn: asyncpg.Connection,
	) -> list[models.Registration]:
		"""Complete eligible registrations of the listed users and return them."""
		rows = await conn.fetch(
			"""
			UPDATE activity_registrations
			SET status='completed', earned_points=$3
			WHERE activity_id=$1
				AND user_id = ANY($2::uuid[])
				AND status IN ('registered', 'participated')
			RETURNING *
			""",
			str(activity_id),
			[str(user_id) for user_id in user_ids],
			points,
		)
		return [models.Registration.model_validate(dict(row)) for row in rows]

	async def list_user_activities(self, user_id: UUID) -> list[models.UserActivity]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT a.*, c.name AS club_name,
					(SELECT COUNT(*) FROM activity_registrations x WHERE x.activity_id = a.id)
						AS current_participants,
					r.status AS participation_status,
					r.earned_points AS registration_points,
					r.created_at AS registered_at
				FROM activity_registrations r
				JOIN activities a ON a.id = r.activity_id
				LEFT JOIN clubs c ON c.id = a.club_id
				WHERE r.user_id=$1
				ORDER BY a.start_time DESC, a.id DESC
				""",
				str(user_id),
			)
		results: list[models.UserActivity] = []
		for row in rows:
			data = dict(row)
			results.append(
				models.UserActivity(
					activity=models.Activity.model_validate(data),
					participation_status=data["participation_status"],
					earned_points=data["registration_points"],
					registered_at=data["registered_at"],
				)
			)
		return results

	# --- Stats ------------------------------------------------------------

	async def count_by_status(self) -> dict[str, int]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch("SELECT status, COUNT(*) AS total FROM activities GROUP BY status")
		return {row["status"]: int(row["total"]) for row in rows}

	async def count_starting_between(self, start: datetime, end: datetime) -> int:
		pool = await get_pool()
		async with pool.acquire() as conn:
			value = await conn.fetchval(
				"SELECT COUNT(*) FROM activities WHERE start_time >= $1 AND start_time < $2",
				start,
				end,
			)
		return int(value or 0)

	async def most_popular(self, *, limit: int = 5) -> list[models.PopularActivity]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT a.id, a.title, COUNT(r.user_id) AS current_participants
				FROM activities a
				LEFT JOIN activity_registrations r ON r.activity_id = a.id
				GROUP BY a.id, a.title
				ORDER BY current_participants DESC, a.title ASC
				LIMIT $1
				""",
				limit,
			)
		return [models.PopularActivity.model_validate(dict(row)) for row in rows]
