"""Domain models for activities, registrations and the clubs they belong to."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class StoredStatus(str, Enum):
	PENDING = "pending"
	APPROVED = "approved"
	REJECTED = "rejected"
	COMPLETED = "completed"


class EffectiveStatus(str, Enum):
	"""Status shown to readers; approved activities derive theirs from the clock."""

	PENDING = "pending"
	REJECTED = "rejected"
	UPCOMING = "upcoming"
	ONGOING = "ongoing"
	COMPLETED = "completed"


class RegistrationStatus(str, Enum):
	REGISTERED = "registered"
	PARTICIPATED = "participated"
	COMPLETED = "completed"


SETTLEABLE_STATUSES = (RegistrationStatus.REGISTERED, RegistrationStatus.PARTICIPATED)


class Club(BaseModel):
	"""Club row consulted for ownership checks and display names."""

	id: UUID
	name: str
	admin_id: Optional[UUID] = None

	model_config = ConfigDict(from_attributes=True)


class Activity(BaseModel):
	"""Represents an activity row, optionally enriched with read-model columns."""

	id: UUID
	title: str
	description: Optional[str] = None
	club_id: UUID
	location: Optional[str] = None
	start_time: datetime
	end_time: datetime
	points: int = 0
	max_participants: int
	status: StoredStatus
	image_ref: Optional[str] = None
	feedback: Optional[str] = None
	created_by: UUID
	created_at: datetime
	updated_at: datetime
	club_name: Optional[str] = None
	current_participants: int = 0

	model_config = ConfigDict(from_attributes=True)


class Registration(BaseModel):
	user_id: UUID
	activity_id: UUID
	status: RegistrationStatus
	earned_points: int = 0
	created_at: datetime

	model_config = ConfigDict(from_attributes=True)


class Participant(BaseModel):
	"""Registration joined with the registrant's public profile."""

	user_id: UUID
	username: Optional[str] = None
	status: RegistrationStatus
	earned_points: int = 0
	created_at: datetime

	model_config = ConfigDict(from_attributes=True)


class UserActivity(BaseModel):
	"""One of the caller's registrations together with its activity."""

	activity: Activity
	participation_status: RegistrationStatus
	earned_points: int = 0
	registered_at: datetime


class PopularActivity(BaseModel):
	id: UUID
	title: str
	current_participants: int = 0


class ActivityStats(BaseModel):
	status_counts: dict[str, int] = Field(default_factory=dict)
	total: int = 0
	starting_this_month: int = 0
	popular: list[PopularActivity] = Field(default_factory=list)
