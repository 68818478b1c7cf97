"""Access token helpers.

Tokens are issued by the platform's auth service; this service verifies them
and only encodes its own tokens in tests and local tooling.
"""

from __future__ import annotations

import time
from typing import Any, Mapping

import jwt
from jwt import InvalidTokenError

from clubhub.settings import settings

ALGORITHM = "HS256"
ISSUER = "clubhub-auth"
AUDIENCE = "clubhub-api"
REQUIRED_CLAIMS = ("exp", "iat", "iss", "aud")
PRINCIPAL_CLAIMS = ("sub", "role")
LEEWAY_SECONDS = 5


def encode_access(claims: Mapping[str, Any], *, ttl_seconds: int = 3600) -> str:
	issued_at = int(time.time())
	body: dict[str, Any] = {
		"iss": ISSUER,
		"aud": AUDIENCE,
		"iat": issued_at,
		"exp": issued_at + ttl_seconds,
		**claims,
	}
	return jwt.encode(body, settings.secret_key, algorithm=ALGORITHM)


def decode_access(token: str) -> dict[str, Any]:
	"""Verify signature, expiry, issuer and audience; require a principal.

	Raises ``jwt.InvalidTokenError`` (or a subclass) on any failure.
	"""
	claims = jwt.decode(
		token,
		settings.secret_key,
		algorithms=[ALGORITHM],
		audience=AUDIENCE,
		issuer=ISSUER,
		leeway=LEEWAY_SECONDS,
		options={"require": list(REQUIRED_CLAIMS)},
	)
	missing = [name for name in PRINCIPAL_CLAIMS if not claims.get(name)]
	if missing:
		raise InvalidTokenError(f"missing_claim:{missing[0]}")
	return claims
