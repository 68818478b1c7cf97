"""FastAPI application entrypoint for the clubhub activity service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from clubhub import __version__
from clubhub.api import activities, ops, points
from clubhub.api.errors import install_error_handlers
from clubhub.infra import postgres
from clubhub.obs import init as obs_init
from clubhub.settings import settings

logger = logging.getLogger(__name__)

_DEV_ORIGINS = [
	"http://localhost:3000",
	"http://127.0.0.1:3000",
	"http://localhost:5173",
	"http://127.0.0.1:5173",
]


@asynccontextmanager
async def lifespan(app: FastAPI):
	await postgres.init_pool()
	logger.info("startup_complete", extra={"environment": settings.environment, "version": __version__})
	try:
		yield
	finally:
		await postgres.close_pool()


app = FastAPI(title="Clubhub Activities", version=__version__, lifespan=lifespan)
install_error_handlers(app)

allow_origins = list(settings.cors_allow_origins)
if not allow_origins and settings.is_dev():
	allow_origins = list(_DEV_ORIGINS)

# Starlette disallows wildcard '*' with allow_credentials=True.
if "*" in allow_origins:
	allow_origins = list(_DEV_ORIGINS) if settings.is_dev() else []

app.add_middleware(
	CORSMiddleware,
	allow_origins=allow_origins,
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)
obs_init(app)

app.include_router(ops.router)
app.include_router(activities.router, prefix="/api")
app.include_router(points.router, prefix="/api")
