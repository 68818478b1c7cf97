"""Registration state machine: join and leave per (user, activity)."""

from __future__ import annotations

import logging
from datetime import timedelta
from uuid import UUID

from clubhub.domain.activities import capacity, models, policies
from clubhub.domain.activities import repo as repo_module
from clubhub.domain.activities.exceptions import (
	ActivityError,
	AlreadyRegistered,
	ConflictError,
	NotFoundError,
	WindowClosed,
)
from clubhub.domain.activities.service import Clock, utcnow
from clubhub.domain.activities.timewindow import join_window_open, leave_window_open
from clubhub.infra.auth import AuthenticatedUser
from clubhub.obs import metrics as obs_metrics
from clubhub.settings import settings

logger = logging.getLogger(__name__)


class EnrollmentService:
	"""Join/leave orchestration.

	Join locks the activity row (``FOR UPDATE``) so that the capacity count and
	the insert are serialized per activity. Leave holds a shared lock and reads
	the clock only after acquiring it, so the time check and the delete happen
	in the same transaction.
	"""

	def __init__(
		self,
		repository: repo_module.ActivitiesRepository | None = None,
		*,
		clock: Clock | None = None,
		join_grace: timedelta | None = None,
	) -> None:
		self.repo = repository or repo_module.ActivitiesRepository()
		self._clock = clock or utcnow
		self._grace = join_grace if join_grace is not None else timedelta(minutes=settings.join_grace_minutes)

	async def join(self, activity_id: UUID, user: AuthenticatedUser) -> models.Registration:
		user_id = policies.principal_id(user)
		try:
			async with self.repo.unit_of_work() as conn:
				activity = await self.repo.get_activity(activity_id, conn=conn, for_update=True)
				if activity is None or activity.status is not models.StoredStatus.APPROVED:
					raise NotFoundError("activity_not_found")
				now = self._clock()
				if not join_window_open(activity.status, activity.start_time, activity.end_time, now, self._grace):
					raise WindowClosed("join_window_closed")
				if await self.repo.get_registration(user_id, activity_id, conn=conn) is not None:
					raise AlreadyRegistered("already_registered")
				current = await self.repo.count_registrations(activity_id, conn=conn)
				capacity.ensure_capacity(current, activity.max_participants)
				registration = await self.repo.insert_registration(user_id, activity_id, conn=conn)
		except ActivityError as exc:
			obs_metrics.inc_join(exc.detail)
			raise
		obs_metrics.inc_join("joined")
		logger.info(
			"activity.joined",
			extra={"activity_id": str(activity_id), "registrants": current + 1, "capacity": activity.max_participants},
		)
		return registration

	async def leave(self, activity_id: UUID, user: AuthenticatedUser) -> None:
		user_id = policies.principal_id(user)
		try:
			async with self.repo.unit_of_work() as conn:
				activity = await self.repo.get_activity(activity_id, conn=conn, for_share=True)
				if activity is None:
					raise NotFoundError("activity_not_found")
				if not leave_window_open(activity.start_time, self._clock()):
					raise WindowClosed("leave_window_closed")
				registration = await self.repo.get_registration(user_id, activity_id, conn=conn)
				if registration is None:
					raise NotFoundError("registration_not_found")
				if registration.status is models.RegistrationStatus.COMPLETED:
					raise ConflictError("registration_settled")
				await self.repo.delete_registration(user_id, activity_id, conn=conn)
		except ActivityError as exc:
			obs_metrics.inc_leave(exc.detail)
			raise
		obs_metrics.inc_leave("left")
		logger.info("activity.left", extra={"activity_id": str(activity_id)})
