"""Point ledger models."""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

REASON_SETTLEMENT = "activity_settlement"
REASON_ADMIN_OVERRIDE = "admin_override"


class PointEvent(BaseModel):
	"""One ledger row; ``delta`` is signed."""

	id: UUID
	user_id: UUID
	delta: int
	reason: str
	activity_id: Optional[UUID] = None
	actor_id: Optional[UUID] = None
	created_at: datetime

	model_config = ConfigDict(from_attributes=True)


class RankedUser(BaseModel):
	rank: int
	id: UUID
	username: Optional[str] = None
	points: int


class PointBalance(BaseModel):
	user_id: UUID
	points: int
	previous_points: int
