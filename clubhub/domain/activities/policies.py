"""Authorization and transition policies for activity operations."""

from __future__ import annotations

from uuid import UUID

from clubhub.domain.activities import models
from clubhub.domain.activities.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from clubhub.infra.auth import ROLE_ADMIN, ROLE_CLUB_ADMIN, AuthenticatedUser

REVIEW_DECISIONS = {models.StoredStatus.APPROVED.value, models.StoredStatus.REJECTED.value}
IMMUTABLE_STATUSES = {models.StoredStatus.REJECTED, models.StoredStatus.COMPLETED}
SETTLEABLE_STATUSES = {models.StoredStatus.APPROVED, models.StoredStatus.COMPLETED}


def is_admin(user: AuthenticatedUser) -> bool:
	return user.role == ROLE_ADMIN


def assert_admin(user: AuthenticatedUser) -> None:
	if not is_admin(user):
		raise ForbiddenError("admin_required")


def assert_manager_role(user: AuthenticatedUser) -> None:
	if user.role not in (ROLE_ADMIN, ROLE_CLUB_ADMIN):
		raise ForbiddenError("insufficient_role")


def assert_can_manage(user: AuthenticatedUser, club: models.Club | None) -> None:
	"""Admins manage everything; club admins only the club they administer."""
	if is_admin(user):
		return
	if user.role != ROLE_CLUB_ADMIN:
		raise ForbiddenError("insufficient_role")
	if club is None or club.admin_id is None or club.admin_id != parse_principal(user):
		raise ForbiddenError("not_club_admin")


def initial_status(user: AuthenticatedUser) -> models.StoredStatus:
	return models.StoredStatus.APPROVED if is_admin(user) else models.StoredStatus.PENDING


def status_after_edit(user: AuthenticatedUser, current: models.StoredStatus) -> models.StoredStatus:
	"""A club admin's edit sends the activity back to review; an admin's does not."""
	if is_admin(user):
		return current
	return models.StoredStatus.PENDING


def assert_editable(activity: models.Activity) -> None:
	if activity.status in IMMUTABLE_STATUSES:
		raise ConflictError("activity_immutable")


def parse_decision(decision: str) -> models.StoredStatus:
	value = (decision or "").strip().lower()
	if value not in REVIEW_DECISIONS:
		raise ValidationError("invalid_review_decision")
	return models.StoredStatus(value)


def assert_reviewable(activity: models.Activity) -> None:
	if activity.status is not models.StoredStatus.PENDING:
		raise ConflictError("activity_not_pending")


def assert_settleable(activity: models.Activity | None) -> models.Activity:
	"""Approved activities settle; completed ones accept retries that match nobody new."""
	if activity is None or activity.status not in SETTLEABLE_STATUSES:
		raise NotFoundError("activity_not_found")
	return activity


def parse_principal(user: AuthenticatedUser) -> UUID | None:
	"""Canonical UUID of the subject, whatever its case or braces; None if it is not one."""
	try:
		return UUID(str(user.id))
	except ValueError:
		return None


def principal_id(user: AuthenticatedUser) -> UUID:
	parsed = parse_principal(user)
	if parsed is None:
		raise ValidationError("invalid_principal_id")
	return parsed
