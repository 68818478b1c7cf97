"""Activity API endpoints."""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, Response, status

from clubhub.domain.activities import models, schemas
from clubhub.domain.activities.enrollment import EnrollmentService
from clubhub.domain.activities.service import ActivityService
from clubhub.domain.activities.settlement import SettlementProcessor
from clubhub.infra.auth import ROLE_ADMIN, AuthenticatedUser, get_current_user, get_optional_user, require_roles
from clubhub.obs.audit import log_mutation_event

router = APIRouter(prefix="/activities", tags=["activities"])
_service = ActivityService()
_enrollment = EnrollmentService()
_settlement = SettlementProcessor()


@router.get("", response_model=List[schemas.ActivityResponse])
async def list_activities_endpoint(
	status_filter: Optional[str] = Query(default=None, alias="status"),
	club_id: Optional[UUID] = Query(default=None),
) -> List[schemas.ActivityResponse]:
	return await _service.list_activities(status=status_filter, club_id=club_id)


@router.get(
	"/pending",
	response_model=List[schemas.ActivityResponse],
	dependencies=[Depends(require_roles(ROLE_ADMIN))],
)
async def list_pending_endpoint(
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> List[schemas.ActivityResponse]:
	return await _service.list_pending(auth_user)


@router.get("/mine", response_model=List[schemas.UserActivityResponse])
async def list_my_activities_endpoint(
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> List[schemas.UserActivityResponse]:
	return await _service.list_user_activities(auth_user)


@router.get("/stats", response_model=models.ActivityStats, dependencies=[Depends(require_roles(ROLE_ADMIN))])
async def activity_stats_endpoint(
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> models.ActivityStats:
	return await _service.activity_stats(auth_user)


@router.get("/{activity_id}", response_model=schemas.ActivityDetailResponse)
async def get_activity_endpoint(
	activity_id: UUID,
	auth_user: Optional[AuthenticatedUser] = Depends(get_optional_user),
) -> schemas.ActivityDetailResponse:
	return await _service.get_activity(activity_id, auth_user)


@router.post("", response_model=schemas.ActivityMutationResponse, status_code=status.HTTP_201_CREATED)
async def create_activity_endpoint(
	request: Request,
	payload: schemas.ActivityCreateRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.ActivityMutationResponse:
	result = await _service.create_activity(payload, auth_user)
	await log_mutation_event(
		request,
		auth_user,
		"activity.create",
		extra={"activity_id": str(result.id), "status": result.status.value},
	)
	return result


@router.put("/{activity_id}", response_model=schemas.ActivityMutationResponse)
async def update_activity_endpoint(
	request: Request,
	activity_id: UUID,
	payload: schemas.ActivityUpdateRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.ActivityMutationResponse:
	result = await _service.update_activity(activity_id, payload, auth_user)
	await log_mutation_event(
		request,
		auth_user,
		"activity.update",
		extra={"activity_id": str(activity_id), "status": result.status.value},
	)
	return result


@router.put("/{activity_id}/review", response_model=schemas.ActivityMutationResponse)
async def review_activity_endpoint(
	request: Request,
	activity_id: UUID,
	payload: schemas.ReviewRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.ActivityMutationResponse:
	result = await _service.review_activity(activity_id, payload.decision, payload.feedback, auth_user)
	await log_mutation_event(
		request,
		auth_user,
		"activity.review",
		extra={"activity_id": str(activity_id), "decision": result.status.value},
	)
	return result


@router.post(
	"/{activity_id}/join",
	status_code=status.HTTP_204_NO_CONTENT,
	response_class=Response,
	response_model=None,
)
async def join_activity_endpoint(
	activity_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> None:
	await _enrollment.join(activity_id, auth_user)
	return None


@router.delete(
	"/{activity_id}/leave",
	status_code=status.HTTP_204_NO_CONTENT,
	response_class=Response,
	response_model=None,
)
async def leave_activity_endpoint(
	activity_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> None:
	await _enrollment.leave(activity_id, auth_user)
	return None


@router.post("/{activity_id}/complete", response_model=schemas.CompleteResponse)
async def complete_activity_endpoint(
	request: Request,
	activity_id: UUID,
	payload: schemas.CompleteRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.CompleteResponse:
	result = await _settlement.complete_activity(activity_id, payload.user_ids, auth_user)
	await log_mutation_event(
		request,
		auth_user,
		"activity.complete",
		extra={"activity_id": str(activity_id), "affected_count": result.affected_count},
	)
	return result


@router.delete("/{activity_id}", response_model=schemas.DeleteResponse)
async def delete_activity_endpoint(
	request: Request,
	activity_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.DeleteResponse:
	result = await _service.delete_activity(activity_id, auth_user)
	await log_mutation_event(
		request,
		auth_user,
		"activity.delete",
		extra={"activity_id": str(activity_id), "deleted_registrants": result.deleted_registrant_count},
	)
	return result
