"""Point settlement on activity completion."""

from __future__ import annotations

import logging
from typing import Iterable
from uuid import UUID

from clubhub.domain.activities import models, policies
from clubhub.domain.activities import repo as repo_module
from clubhub.domain.activities import schemas
from clubhub.domain.activities.exceptions import ActivityError, NoEligibleParticipants, ValidationError
from clubhub.domain.points.models import REASON_SETTLEMENT
from clubhub.domain.points.service import PointsService
from clubhub.infra.auth import AuthenticatedUser
from clubhub.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)


def _unique(user_ids: Iterable[UUID]) -> list[UUID]:
	seen: dict[UUID, None] = {}
	for user_id in user_ids:
		seen.setdefault(user_id, None)
	return list(seen)


class SettlementProcessor:
	"""Completes an activity and credits its eligible registrants.

	The registrant update, the point credits with their ledger rows and the
	activity status write share one transaction. Registrants already in
	``completed`` are never matched again, so a repeated call credits nobody
	twice.
	"""

	def __init__(
		self,
		repository: repo_module.ActivitiesRepository | None = None,
		points: PointsService | None = None,
	) -> None:
		self.repo = repository or repo_module.ActivitiesRepository()
		self.points = points or PointsService()

	async def complete_activity(
		self,
		activity_id: UUID,
		user_ids: Iterable[UUID],
		principal: AuthenticatedUser,
	) -> schemas.CompleteResponse:
		targets = _unique(user_ids)
		if not targets:
			raise ValidationError("user_ids_required")
		policies.assert_manager_role(principal)
		actor_id = policies.principal_id(principal)
		try:
			async with self.repo.unit_of_work() as conn:
				activity = policies.assert_settleable(
					await self.repo.get_activity(activity_id, conn=conn, for_update=True)
				)
				club = await self.repo.get_club(activity.club_id, conn=conn)
				policies.assert_can_manage(principal, club)
				settled = await self.repo.settle_registrations(
					activity_id,
					targets,
					points=activity.points,
					conn=conn,
				)
				if not settled:
					raise NoEligibleParticipants("no_eligible_participants")
				# credit in user-id order so balance rows lock in a fixed order
				for registration in sorted(settled, key=lambda item: item.user_id):
					await self.points.credit(
						conn,
						registration.user_id,
						registration.earned_points,
						reason=REASON_SETTLEMENT,
						activity_id=activity_id,
						actor_id=actor_id,
					)
				if activity.status is not models.StoredStatus.COMPLETED:
					await self.repo.mark_completed(activity_id, conn=conn)
		except ActivityError as exc:
			obs_metrics.inc_settlement(exc.kind)
			raise
		obs_metrics.inc_settlement("completed", registrants=len(settled))
		obs_metrics.inc_points(REASON_SETTLEMENT, sum(item.earned_points for item in settled))
		logger.info(
			"activity.settled",
			extra={
				"activity_id": str(activity_id),
				"affected_count": len(settled),
				"points_each": activity.points,
				"requested": len(targets),
			},
		)
		return schemas.CompleteResponse(affected_count=len(settled))
