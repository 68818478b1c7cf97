"""Data access for user balances and the point ledger."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator
from uuid import UUID, uuid4

import asyncpg

from clubhub.domain.activities.exceptions import InternalError, NotFoundError
from clubhub.domain.points import models
from clubhub.infra.postgres import get_pool


class PointsRepository:
	"""Reads and writes ``users.points`` together with ``point_events`` rows."""

	@asynccontextmanager
	async def unit_of_work(self) -> AsyncIterator[asyncpg.Connection]:
		try:
			pool = await get_pool()
			async with pool.acquire() as conn:
				async with conn.transaction():
					yield conn
		except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as exc:
			raise InternalError("persistence_failure") from exc

	async def add_to_balance(
		self,
		user_id: UUID,
		delta: int,
		*,
		reason: str,
		activity_id: UUID | None = None,
		actor_id: UUID | None = None,
		conn: asyncpg.Connection,
	) -> int:
		"""Apply ``delta`` to the user's balance, append a ledger row, return the new balance."""
		balance = await conn.fetchval(
			"UPDATE users SET points = points + $2 WHERE id=$1 RETURNING points",
			str(user_id),
			delta,
		)
		if balance is None:
			raise NotFoundError("user_not_found")
		await self._append_event(
			user_id,
			delta,
			reason=reason,
			activity_id=activity_id,
			actor_id=actor_id,
			conn=conn,
		)
		return int(balance)

	async def set_balance(
		self,
		user_id: UUID,
		points: int,
		*,
		reason: str,
		actor_id: UUID | None,
		conn: asyncpg.Connection,
	) -> models.PointBalance:
		previous = await conn.fetchval("SELECT points FROM users WHERE id=$1 FOR UPDATE", str(user_id))
		if previous is None:
			raise NotFoundError("user_not_found")
		await conn.execute("UPDATE users SET points=$2 WHERE id=$1", str(user_id), points)
		delta = points - int(previous)
		if delta:
			await self._append_event(user_id, delta, reason=reason, actor_id=actor_id, conn=conn)
		return models.PointBalance(user_id=user_id, points=points, previous_points=int(previous))

	async def _append_event(
		self,
		user_id: UUID,
		delta: int,
		*,
		reason: str,
		activity_id: UUID | None = None,
		actor_id: UUID | None = None,
		conn: asyncpg.Connection,
	) -> None:
		await conn.execute(
			"""
			INSERT INTO point_events (id, user_id, delta, reason, activity_id, actor_id)
			VALUES ($1, $2, $3, $4, $5, $6)
			""",
			str(uuid4()),
			str(user_id),
			delta,
			reason,
			str(activity_id) if activity_id else None,
			str(actor_id) if actor_id else None,
		)

	async def ranking(self, *, search: str | None, limit: int) -> list[models.RankedUser]:
		params: list[object] = []
		where = ""
		if search:
			params.append(f"%{search}%")
			where = "WHERE username ILIKE $1"
		params.append(limit)
		query = f"""
			SELECT id, username, points
			FROM users
			{where}
			ORDER BY points DESC, username ASC
			LIMIT ${len(params)}
		"""
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(query, *params)
		return [
			models.RankedUser(rank=idx, id=row["id"], username=row["username"], points=row["points"])
			for idx, row in enumerate(rows, start=1)
		]

	async def history(self, user_id: UUID, *, limit: int = 100) -> list[models.PointEvent]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT * FROM point_events
				WHERE user_id=$1
				ORDER BY created_at DESC, id DESC
				LIMIT $2
				""",
				str(user_id),
				limit,
			)
		return [models.PointEvent.model_validate(dict(row)) for row in rows]
