from __future__ import annotations

from typing import Any, Mapping, Optional

from fastapi import Request

from clubhub.api.request_id import get_request_id
from clubhub.infra.auth import AuthenticatedUser
from clubhub.obs.logging import get_logger

audit_logger = get_logger("audit.activities")


async def log_mutation_event(
	request: Request,
	user: AuthenticatedUser,
	event: str,
	*,
	extra: Optional[Mapping[str, Any]] = None,
) -> None:
	payload: dict[str, Any] = {
		"event": event,
		"method": request.method,
		"path": request.url.path,
		"actor_id": str(user.id),
		"actor_role": user.role,
		"request_id": get_request_id(request),
		"ip": request.client.host if request.client else None,
		"user_agent": request.headers.get("user-agent"),
	}
	if extra:
		payload.update(extra)
	filtered = {key: value for key, value in payload.items() if value is not None}
	audit_logger.info("mutation", extra=filtered)
