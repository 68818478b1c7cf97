"""Activity lifecycle: create, update, review, delete and the read paths."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional
from uuid import UUID

import asyncpg

from clubhub.domain.activities import models, policies
from clubhub.domain.activities import repo as repo_module
from clubhub.domain.activities import schemas
from clubhub.domain.activities.exceptions import ConflictError, NotFoundError, ValidationError
from clubhub.infra.auth import AuthenticatedUser
from clubhub.obs import metrics as obs_metrics
from clubhub.settings import settings

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

# Filters matched against the stored column; the rest go through effective_status.
_STORED_FILTERS = {
	"pending": (models.StoredStatus.PENDING,),
	"rejected": (models.StoredStatus.REJECTED,),
	"approved": (models.StoredStatus.APPROVED,),
}
_EFFECTIVE_FILTERS = {
	"upcoming": (models.StoredStatus.APPROVED,),
	"ongoing": (models.StoredStatus.APPROVED,),
	"completed": (models.StoredStatus.APPROVED, models.StoredStatus.COMPLETED),
}
# Columns that may be cleared by sending null.
_NULLABLE_FIELDS = {"description", "location", "image_ref"}
_POPULAR_LIMIT = 5


def utcnow() -> datetime:
	return datetime.now(timezone.utc)


def _month_bounds(now: datetime) -> tuple[datetime, datetime]:
	start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
	if start.month == 12:
		end = start.replace(year=start.year + 1, month=1)
	else:
		end = start.replace(month=start.month + 1)
	return start, end


def _clean_title(title: str | None) -> str:
	value = (title or "").strip()
	if not value:
		raise ValidationError("title_required")
	return value


def _check_numbers(points: int | None, max_participants: int | None) -> None:
	if points is not None and points < 0:
		raise ValidationError("points_must_be_non_negative")
	if max_participants is not None and max_participants < 1:
		raise ValidationError("max_participants_must_be_positive")


def _check_window(start_time: datetime, end_time: datetime) -> None:
	if start_time >= end_time:
		raise ValidationError("start_must_precede_end")


class ActivityService:
	"""Review and lifecycle controller for activities."""

	def __init__(
		self,
		repository: repo_module.ActivitiesRepository | None = None,
		*,
		clock: Clock | None = None,
	) -> None:
		self.repo = repository or repo_module.ActivitiesRepository()
		self._clock = clock or utcnow

	# --- Reads ------------------------------------------------------------

	async def list_activities(
		self,
		*,
		status: Optional[str] = None,
		club_id: Optional[UUID] = None,
	) -> list[schemas.ActivityResponse]:
		wanted = (status or "").strip().lower() or None
		stored: tuple[models.StoredStatus, ...] | None = None
		if wanted is not None:
			if wanted in _STORED_FILTERS:
				stored = _STORED_FILTERS[wanted]
			elif wanted in _EFFECTIVE_FILTERS:
				stored = _EFFECTIVE_FILTERS[wanted]
			else:
				raise ValidationError("invalid_status_filter")
		activities = await self.repo.list_activities(
			statuses=[item.value for item in stored] if stored else None,
			club_id=club_id,
		)
		now = self._clock()
		responses = [schemas.ActivityResponse.from_activity(item, now) for item in activities]
		if wanted in _EFFECTIVE_FILTERS:
			responses = [item for item in responses if item.status.value == wanted]
		return responses

	async def get_activity(
		self,
		activity_id: UUID,
		caller: AuthenticatedUser | None = None,
	) -> schemas.ActivityDetailResponse:
		activity = await self.repo.get_activity_view(activity_id)
		if activity is None:
			raise NotFoundError("activity_not_found")
		participants = await self.repo.list_participants(activity_id)
		is_joined = False
		if caller is not None:
			caller_id = policies.parse_principal(caller)
			is_joined = caller_id is not None and any(item.user_id == caller_id for item in participants)
		return schemas.ActivityDetailResponse(
			activity=schemas.ActivityResponse.from_activity(activity, self._clock()),
			participants=[
				schemas.ParticipantResponse(
					user_id=item.user_id,
					username=item.username,
					status=item.status,
					earned_points=item.earned_points,
					joined_at=item.created_at,
				)
				for item in participants
			],
			is_joined=is_joined,
		)

	async def list_pending(self, user: AuthenticatedUser) -> list[schemas.ActivityResponse]:
		policies.assert_admin(user)
		now = self._clock()
		return [schemas.ActivityResponse.from_activity(item, now) for item in await self.repo.list_pending()]

	async def list_user_activities(self, user: AuthenticatedUser) -> list[schemas.UserActivityResponse]:
		rows = await self.repo.list_user_activities(policies.principal_id(user))
		now = self._clock()
		return [
			schemas.UserActivityResponse(
				activity=schemas.ActivityResponse.from_activity(row.activity, now),
				participation_status=row.participation_status,
				earned_points=row.earned_points,
				registered_at=row.registered_at,
			)
			for row in rows
		]

	async def activity_stats(self, user: AuthenticatedUser) -> models.ActivityStats:
		policies.assert_admin(user)
		counts = await self.repo.count_by_status()
		month_start, month_end = _month_bounds(self._clock())
		this_month = await self.repo.count_starting_between(month_start, month_end)
		popular = await self.repo.most_popular(limit=_POPULAR_LIMIT)
		status_counts = {item.value: counts.get(item.value, 0) for item in models.StoredStatus}
		return models.ActivityStats(
			status_counts=status_counts,
			total=sum(status_counts.values()),
			starting_this_month=this_month,
			popular=popular,
		)

	# --- Mutations --------------------------------------------------------

	async def create_activity(
		self,
		payload: schemas.ActivityCreateRequest,
		user: AuthenticatedUser,
	) -> schemas.ActivityMutationResponse:
		policies.assert_manager_role(user)
		title = _clean_title(payload.title)
		max_participants = (
			payload.max_participants
			if payload.max_participants is not None
			else settings.default_max_participants
		)
		_check_numbers(payload.points, max_participants)
		_check_window(payload.start_time, payload.end_time)
		creator_id = policies.principal_id(user)
		status = policies.initial_status(user)
		async with self.repo.unit_of_work() as conn:
			club = await self._require_club(payload.club_id, conn=conn)
			policies.assert_can_manage(user, club)
			activity = await self.repo.create_activity(
				title=title,
				description=payload.description,
				club_id=payload.club_id,
				location=payload.location,
				start_time=payload.start_time,
				end_time=payload.end_time,
				points=payload.points,
				max_participants=max_participants,
				image_ref=payload.image_ref,
				status=status.value,
				created_by=creator_id,
				conn=conn,
			)
		logger.info(
			"activity.created",
			extra={"activity_id": str(activity.id), "club_id": str(activity.club_id), "status": activity.status.value},
		)
		return schemas.ActivityMutationResponse(id=activity.id, status=activity.status)

	async def update_activity(
		self,
		activity_id: UUID,
		payload: schemas.ActivityUpdateRequest,
		user: AuthenticatedUser,
	) -> schemas.ActivityMutationResponse:
		policies.assert_manager_role(user)
		changes: dict[str, Any] = payload.model_dump(exclude_unset=True)
		if not changes:
			raise ValidationError("no_fields_to_update")
		for field, value in changes.items():
			if value is None and field not in _NULLABLE_FIELDS:
				raise ValidationError(f"{field}_required")
		if "title" in changes:
			changes["title"] = _clean_title(changes["title"])
		_check_numbers(changes.get("points"), changes.get("max_participants"))
		async with self.repo.unit_of_work() as conn:
			activity = await self._require_activity(activity_id, conn=conn)
			club = await self.repo.get_club(activity.club_id, conn=conn)
			policies.assert_can_manage(user, club)
			new_club_id = changes.get("club_id")
			if new_club_id is not None and new_club_id != activity.club_id:
				new_club = await self._require_club(new_club_id, conn=conn)
				policies.assert_can_manage(user, new_club)
			policies.assert_editable(activity)
			_check_window(
				changes.get("start_time", activity.start_time),
				changes.get("end_time", activity.end_time),
			)
			if "max_participants" in changes:
				current = await self.repo.count_registrations(activity_id, conn=conn)
				if changes["max_participants"] < current:
					raise ConflictError("capacity_below_registrations")
			changes["status"] = policies.status_after_edit(user, activity.status).value
			updated = await self.repo.update_activity(activity_id, changes, conn=conn)
		logger.info(
			"activity.updated",
			extra={
				"activity_id": str(activity_id),
				"fields": sorted(key for key in changes if key != "status"),
				"status": updated.status.value,
			},
		)
		return schemas.ActivityMutationResponse(id=updated.id, status=updated.status)

	async def review_activity(
		self,
		activity_id: UUID,
		decision: str,
		feedback: str | None,
		user: AuthenticatedUser,
	) -> schemas.ActivityMutationResponse:
		policies.assert_admin(user)
		target = policies.parse_decision(decision)
		note = (feedback or "").strip() or None
		async with self.repo.unit_of_work() as conn:
			activity = await self._require_activity(activity_id, conn=conn)
			policies.assert_reviewable(activity)
			reviewed = await self.repo.set_review(activity_id, status=target.value, feedback=note, conn=conn)
		obs_metrics.inc_review(target.value)
		logger.info(
			"activity.reviewed",
			extra={"activity_id": str(activity_id), "decision": target.value, "reviewer_id": user.id},
		)
		return schemas.ActivityMutationResponse(id=reviewed.id, status=reviewed.status)

	async def delete_activity(
		self,
		activity_id: UUID,
		user: AuthenticatedUser,
	) -> schemas.DeleteResponse:
		policies.assert_manager_role(user)
		async with self.repo.unit_of_work() as conn:
			activity = await self._require_activity(activity_id, conn=conn)
			club = await self.repo.get_club(activity.club_id, conn=conn)
			policies.assert_can_manage(user, club)
			removed = await self.repo.delete_activity(activity_id, conn=conn)
		logger.info(
			"activity.deleted",
			extra={"activity_id": str(activity_id), "deleted_registrants": removed},
		)
		return schemas.DeleteResponse(deleted_registrant_count=removed)

	# --- Helpers ----------------------------------------------------------

	async def _require_activity(self, activity_id: UUID, *, conn: asyncpg.Connection) -> models.Activity:
		activity = await self.repo.get_activity(activity_id, conn=conn, for_update=True)
		if activity is None:
			raise NotFoundError("activity_not_found")
		return activity

	async def _require_club(self, club_id: UUID, *, conn: asyncpg.Connection) -> models.Club:
		club = await self.repo.get_club(club_id, conn=conn)
		if club is None:
			raise NotFoundError("club_not_found")
		return club
