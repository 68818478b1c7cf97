"""Process-wide asyncpg pool, opened and closed by the application lifespan."""

from __future__ import annotations

from typing import Optional

import asyncpg

from clubhub.settings import settings

_pool: Optional[asyncpg.pool.Pool] = None


async def init_pool() -> asyncpg.pool.Pool:
	global _pool
	if _pool is None:
		# activity windows are compared as timestamptz; sessions run in UTC
		_pool = await asyncpg.create_pool(
			dsn=settings.postgres_url,
			min_size=settings.postgres_min_pool_size,
			max_size=settings.postgres_max_pool_size,
			ssl="require" if settings.postgres_ssl else "disable",
			server_settings={"application_name": settings.service_name, "timezone": "UTC"},
		)
	return _pool


def set_pool(pool: Optional[asyncpg.pool.Pool]) -> None:
	"""Install an externally created pool (or clear it)."""
	global _pool
	_pool = pool


async def get_pool() -> asyncpg.pool.Pool:
	return _pool if _pool is not None else await init_pool()


async def close_pool() -> None:
	global _pool
	pool, _pool = _pool, None
	if pool is not None:
		await pool.close()
