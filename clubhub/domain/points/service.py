"""Point balances: settlement credits, admin overrides, ranking and history."""

from __future__ import annotations

import logging
from uuid import UUID

import asyncpg

from clubhub.domain.activities.exceptions import ForbiddenError, ValidationError
from clubhub.domain.activities.policies import principal_id
from clubhub.domain.points import models
from clubhub.domain.points.repo import PointsRepository
from clubhub.infra.auth import AuthenticatedUser
from clubhub.obs import metrics as obs_metrics
from clubhub.settings import settings

logger = logging.getLogger(__name__)


class PointsService:
	"""Owns every write to ``users.points``; each write leaves a ledger row."""

	def __init__(self, repository: PointsRepository | None = None) -> None:
		self.repo = repository or PointsRepository()

	async def credit(
		self,
		conn: asyncpg.Connection,
		user_id: UUID,
		delta: int,
		*,
		reason: str = models.REASON_SETTLEMENT,
		activity_id: UUID | None = None,
		actor_id: UUID | None = None,
	) -> int | None:
		"""Credit ``delta`` points inside the caller's transaction.

		Metrics are left to the caller, which records them once the transaction commits.

		Returns the new balance, or None when ``delta`` is zero and nothing was written.
		"""
		if delta < 0:
			raise ValidationError("negative_credit")
		if delta == 0:
			return None
		balance = await self.repo.add_to_balance(
			user_id,
			delta,
			reason=reason,
			activity_id=activity_id,
			actor_id=actor_id,
			conn=conn,
		)
		return balance

	async def override_points(
		self,
		user_id: UUID,
		points: int,
		actor: AuthenticatedUser,
	) -> models.PointBalance:
		if not actor.is_admin:
			raise ForbiddenError("admin_required")
		if points < 0:
			raise ValidationError("points_must_be_non_negative")
		async with self.repo.unit_of_work() as conn:
			balance = await self.repo.set_balance(
				user_id,
				points,
				reason=models.REASON_ADMIN_OVERRIDE,
				actor_id=principal_id(actor),
				conn=conn,
			)
		obs_metrics.inc_points(models.REASON_ADMIN_OVERRIDE, balance.points - balance.previous_points)
		logger.info(
			"points.overridden",
			extra={
				"target_user_id": str(user_id),
				"actor_id": actor.id,
				"previous_points": balance.previous_points,
				"new_points": balance.points,
			},
		)
		return balance

	async def ranking(self, *, search: str | None = None, limit: int | None = None) -> list[models.RankedUser]:
		cap = settings.ranking_limit
		size = cap if limit is None else max(1, min(limit, cap))
		term = (search or "").strip() or None
		return await self.repo.ranking(search=term, limit=size)

	async def history(self, user: AuthenticatedUser, *, limit: int = 100) -> list[models.PointEvent]:
		return await self.repo.history(principal_id(user), limit=limit)


_default_service: PointsService | None = None


def _service() -> PointsService:
	global _default_service
	if _default_service is None:
		_default_service = PointsService()
	return _default_service


async def credit_points(
	conn: asyncpg.Connection,
	user_id: UUID,
	delta: int,
	*,
	reason: str = models.REASON_SETTLEMENT,
	activity_id: UUID | None = None,
	actor_id: UUID | None = None,
) -> int | None:
	"""Module-level entry point used by collaborators holding an open transaction."""
	return await _service().credit(
		conn,
		user_id,
		delta,
		reason=reason,
		activity_id=activity_id,
		actor_id=actor_id,
	)
