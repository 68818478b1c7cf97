"""Pydantic schemas for the activities API."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field, field_validator

from clubhub.domain.activities import models
from clubhub.domain.activities.timewindow import effective_status


def _as_utc(value: datetime | None) -> datetime | None:
	if value is None:
		return None
	if value.tzinfo is None:
		return value.replace(tzinfo=timezone.utc)
	return value.astimezone(timezone.utc)


class ActivityCreateRequest(BaseModel):
	title: str = Field(..., max_length=200)
	description: Optional[str] = Field(default=None, max_length=4000)
	club_id: UUID
	location: Optional[str] = Field(default=None, max_length=200)
	start_time: datetime
	end_time: datetime
	points: int = 0
	max_participants: Optional[int] = None
	image_ref: Optional[str] = Field(default=None, max_length=500)

	@field_validator("start_time", "end_time", mode="after")
	@classmethod
	def _normalise_tz(cls, value: datetime) -> datetime:
		return _as_utc(value)  # type: ignore[return-value]


class ActivityUpdateRequest(BaseModel):
	title: Optional[str] = Field(default=None, max_length=200)
	description: Optional[str] = Field(default=None, max_length=4000)
	club_id: Optional[UUID] = None
	location: Optional[str] = Field(default=None, max_length=200)
	start_time: Optional[datetime] = None
	end_time: Optional[datetime] = None
	points: Optional[int] = None
	max_participants: Optional[int] = None
	image_ref: Optional[str] = Field(default=None, max_length=500)

	@field_validator("start_time", "end_time", mode="after")
	@classmethod
	def _normalise_tz(cls, value: Optional[datetime]) -> Optional[datetime]:
		return _as_utc(value)


class ReviewRequest(BaseModel):
	decision: str = Field(..., validation_alias=AliasChoices("decision", "status"))
	feedback: Optional[str] = Field(default=None, max_length=2000)


class CompleteRequest(BaseModel):
	user_ids: List[UUID] = Field(default_factory=list)


class ActivityResponse(BaseModel):
	id: UUID
	title: str
	description: Optional[str] = None
	club_id: UUID
	club_name: Optional[str] = None
	location: Optional[str] = None
	start_time: datetime
	end_time: datetime
	points: int
	max_participants: int
	current_participants: int = 0
	status: models.EffectiveStatus
	stored_status: models.StoredStatus
	image_ref: Optional[str] = None
	feedback: Optional[str] = None
	created_by: UUID
	created_at: datetime
	updated_at: datetime

	@classmethod
	def from_activity(cls, activity: models.Activity, now: datetime) -> "ActivityResponse":
		return cls(
			id=activity.id,
			title=activity.title,
			description=activity.description,
			club_id=activity.club_id,
			club_name=activity.club_name,
			location=activity.location,
			start_time=activity.start_time,
			end_time=activity.end_time,
			points=activity.points,
			max_participants=activity.max_participants,
			current_participants=activity.current_participants,
			status=effective_status(activity.status, activity.start_time, activity.end_time, now),
			stored_status=activity.status,
			image_ref=activity.image_ref,
			feedback=activity.feedback,
			created_by=activity.created_by,
			created_at=activity.created_at,
			updated_at=activity.updated_at,
		)


class ParticipantResponse(BaseModel):
	user_id: UUID
	username: Optional[str] = None
	status: models.RegistrationStatus
	earned_points: int = 0
	joined_at: datetime


class ActivityDetailResponse(BaseModel):
	activity: ActivityResponse
	participants: List[ParticipantResponse] = Field(default_factory=list)
	is_joined: bool = False


class ActivityMutationResponse(BaseModel):
	id: UUID
	status: models.StoredStatus


class CompleteResponse(BaseModel):
	affected_count: int


class DeleteResponse(BaseModel):
	deleted_registrant_count: int


class UserActivityResponse(BaseModel):
	activity: ActivityResponse
	participation_status: models.RegistrationStatus
	earned_points: int = 0
	registered_at: datetime