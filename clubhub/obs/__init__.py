"""Observability package bootstrap."""

from __future__ import annotations

from fastapi import FastAPI

from clubhub.obs import logging as obs_logging
from clubhub.obs import middleware
from clubhub.settings import settings

_logging_configured = False


def init(app: FastAPI) -> None:
	"""Install request instrumentation on the app and configure JSON logging once."""
	global _logging_configured
	middleware.install(app, enabled=settings.obs_enabled)
	if settings.obs_enabled and not _logging_configured:
		obs_logging.configure_logging()
		_logging_configured = True


__all__ = ["init"]
