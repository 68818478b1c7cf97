"""Authentication helpers for FastAPI endpoints.

Session issuance lives outside this service; we only verify access JWTs
(HS256, settings.secret_key) and turn them into an AuthenticatedUser.
Dev headers are honoured only when running in development.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import InvalidTokenError

from clubhub.infra import jwt as jwt_helper
from clubhub.settings import settings

ROLE_ADMIN = "admin"
ROLE_CLUB_ADMIN = "club_admin"
ROLE_STUDENT = "student"
KNOWN_ROLES = (ROLE_ADMIN, ROLE_CLUB_ADMIN, ROLE_STUDENT)


@dataclass(slots=True)
class AuthenticatedUser:
	id: str
	role: str = ROLE_STUDENT
	username: Optional[str] = None

	def has_role(self, role: str) -> bool:
		return self.role == role

	@property
	def is_admin(self) -> bool:
		return self.role == ROLE_ADMIN


_bearer_scheme = HTTPBearer(auto_error=False)


def verify_access_jwt(token: str) -> AuthenticatedUser:
	"""Decode and validate an access JWT and return an AuthenticatedUser.

	Required claims: sub, role, exp, iat (issuer/audience checked by the helper).
	"""
	try:
		payload = jwt_helper.decode_access(token)
	except InvalidTokenError as exc:
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token") from exc

	sub = str(payload.get("sub") or "").strip()
	role = str(payload.get("role") or "").strip()
	if not sub or role not in KNOWN_ROLES:
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token")
	username = payload.get("username") or payload.get("name")
	return AuthenticatedUser(
		id=sub,
		role=role,
		username=str(username) if username is not None else None,
	)


def _resolve(
	x_user_id: Optional[str],
	x_user_role: Optional[str],
	credentials: Optional[HTTPAuthorizationCredentials],
) -> Optional[AuthenticatedUser]:
	if credentials and credentials.scheme.lower() == "bearer":
		return verify_access_jwt(credentials.credentials)
	if settings.is_dev() and x_user_id:
		role = (x_user_role or ROLE_STUDENT).strip()
		if role not in KNOWN_ROLES:
			raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_role")
		return AuthenticatedUser(id=x_user_id.strip(), role=role)
	return None


async def get_current_user(
	x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
	x_user_role: Optional[str] = Header(default=None, alias="X-User-Role"),
	credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> AuthenticatedUser:
	"""Resolve the authenticated user.

	In development we allow simple headers. In all other environments, headers are
	ignored and a valid Bearer JWT is required.
	"""
	user = _resolve(x_user_id, x_user_role, credentials)
	if user is None:
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token")
	return user


async def get_optional_user(
	x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
	x_user_role: Optional[str] = Header(default=None, alias="X-User-Role"),
	credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> Optional[AuthenticatedUser]:
	"""Like get_current_user, but anonymous callers resolve to None."""
	return _resolve(x_user_id, x_user_role, credentials)


def require_roles(*required: Iterable[str]):
	"""Return a dependency that enforces the presence of any of the given roles.

	Usage:
		@router.post("/activities", dependencies=[Depends(require_roles("admin", "club_admin"))])
	"""
	required_set = {str(r).strip() for r in required if str(r).strip()}

	async def _dep(user: AuthenticatedUser = Depends(get_current_user)) -> AuthenticatedUser:
		if not required_set:
			return user
		if any(user.has_role(r) for r in required_set):
			return user
		raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="insufficient_role")

	return _dep
