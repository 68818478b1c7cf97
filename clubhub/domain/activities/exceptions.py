"""Custom exceptions for the activity engine."""

from __future__ import annotations

from fastapi import status

if hasattr(status, "HTTP_422_UNPROCESSABLE_CONTENT"):
	_HTTP_422 = status.HTTP_422_UNPROCESSABLE_CONTENT
else:  # pragma: no cover - older Starlette builds
	_HTTP_422 = status.HTTP_422_UNPROCESSABLE_ENTITY


class ActivityError(Exception):
	"""Base class for activity engine errors."""

	status_code: int = status.HTTP_400_BAD_REQUEST
	kind: str = "activity_error"
	detail: str = "activity_error"

	def __init__(self, detail: str | None = None) -> None:
		super().__init__(detail or self.detail)
		if detail:
			self.detail = detail


class ValidationError(ActivityError):
	"""Missing or malformed input the caller can correct."""

	status_code = _HTTP_422
	kind = "validation_error"
	detail = "validation_error"


class NotFoundError(ActivityError):
	"""Activity, registration or club is absent."""

	status_code = status.HTTP_404_NOT_FOUND
	kind = "not_found"
	detail = "not_found"


class ForbiddenError(ActivityError):
	"""Raised when authorization fails."""

	status_code = status.HTTP_403_FORBIDDEN
	kind = "forbidden"
	detail = "forbidden"


class ConflictError(ActivityError):
	"""The operation conflicts with the current state."""

	status_code = status.HTTP_409_CONFLICT
	kind = "conflict"
	detail = "conflict"


class AlreadyRegistered(ConflictError):
	detail = "already_registered"


class CapacityExceeded(ConflictError):
	detail = "capacity_exceeded"


class WindowClosed(ConflictError):
	"""Join or leave attempted outside its time window."""

	detail = "window_closed"


class NoEligibleParticipants(ActivityError):
	"""Settlement matched no registrant in status registered/participated."""

	status_code = status.HTTP_400_BAD_REQUEST
	kind = "no_eligible_participants"
	detail = "no_eligible_participants"


class InternalError(ActivityError):
	"""Unexpected persistence failure; the unit of work was rolled back."""

	status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
	kind = "internal_error"
	detail = "internal_error"
