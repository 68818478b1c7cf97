"""Point ranking, history and admin override endpoints."""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request

from clubhub.domain.points import models
from clubhub.domain.points.schemas import PointsOverrideRequest
from clubhub.domain.points.service import PointsService
from clubhub.infra.auth import ROLE_ADMIN, AuthenticatedUser, get_current_user, require_roles
from clubhub.obs.audit import log_mutation_event

router = APIRouter(prefix="/points", tags=["points"])
_service = PointsService()


@router.get("/ranking", response_model=List[models.RankedUser])
async def points_ranking_endpoint(
	search: Optional[str] = Query(default=None, max_length=100),
	limit: Optional[int] = Query(default=None, ge=1),
) -> List[models.RankedUser]:
	return await _service.ranking(search=search, limit=limit)


@router.get("/me/history", response_model=List[models.PointEvent])
async def my_point_history_endpoint(
	limit: int = Query(default=100, ge=1, le=500),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> List[models.PointEvent]:
	return await _service.history(auth_user, limit=limit)


@router.put(
	"/users/{user_id}",
	response_model=models.PointBalance,
	dependencies=[Depends(require_roles(ROLE_ADMIN))],
)
async def override_points_endpoint(
	request: Request,
	user_id: UUID,
	payload: PointsOverrideRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> models.PointBalance:
	result = await _service.override_points(user_id, payload.points, auth_user)
	await log_mutation_event(
		request,
		auth_user,
		"points.override",
		extra={"target_user_id": str(user_id), "points": result.points, "previous_points": result.previous_points},
	)
	return result
