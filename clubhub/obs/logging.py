"""JSON logging with request-scoped context.

The observability middleware binds the request id, route, caller and client IP
once per request; every record emitted while handling it carries those fields.
Domain events (``activity.joined``, ``activity.settled``, audit lines) are
always kept. Info-level sampling applies to the HTTP access log only.
"""

from __future__ import annotations

import json
import logging
import random
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from clubhub.settings import settings

_LOGGER_NAME = "clubhub"
ACCESS_LOGGER_NAME = "clubhub.http"

_CONTEXT: ContextVar[Mapping[str, str]] = ContextVar("clubhub_log_context", default={})

_REDACT_MARKERS = ("token", "secret", "authorization", "password", "cookie")
_MAX_TEXT = 256
_MAX_ITEMS = 20

_RESERVED_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}


def bind_context(**fields: Optional[str]) -> Token:
	"""Merge non-empty fields into the request context; reset with the returned token."""
	merged = dict(_CONTEXT.get())
	merged.update({key: value for key, value in fields.items() if value})
	return _CONTEXT.set(merged)


def reset_context(token: Token) -> None:
	_CONTEXT.reset(token)


def current_request_id() -> Optional[str]:
	return _CONTEXT.get().get("request_id")


def _scrub(key: str, value: Any) -> Any:
	if any(marker in key.lower() for marker in _REDACT_MARKERS):
		return "[redacted]"
	if isinstance(value, str) and len(value) > _MAX_TEXT:
		return value[:_MAX_TEXT] + "..."
	if isinstance(value, Mapping):
		return {str(k): _scrub(str(k), v) for k, v in list(value.items())[:_MAX_ITEMS]}
	if isinstance(value, (list, tuple, set)):
		items = list(value)
		kept = [_scrub(key, item) for item in items[:_MAX_ITEMS]]
		if len(items) > _MAX_ITEMS:
			kept.append(f"+{len(items) - _MAX_ITEMS} more")
		return kept
	return value


class JSONLogFormatter(logging.Formatter):
	"""One JSON object per record: service fields, request context, then ``extra``."""

	def format(self, record: logging.LogRecord) -> str:  # noqa: A003
		payload: dict[str, Any] = {
			"ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
			"level": record.levelname.lower(),
			"logger": record.name,
			"event": record.getMessage(),
			"service": settings.service_name,
			"env": settings.environment,
			"commit": settings.git_commit,
		}
		payload.update(_CONTEXT.get())
		for key, value in vars(record).items():
			if key not in _RESERVED_ATTRS:
				payload[key] = _scrub(key, value)
		if record.exc_info:
			payload["exc_info"] = self.formatException(record.exc_info)
		return json.dumps(payload, separators=(",", ":"), default=str)


class AccessLogSampler(logging.Filter):
	"""Drop a share of info-level access log lines; everything else passes."""

	def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
		if record.name != ACCESS_LOGGER_NAME or record.levelno != logging.INFO:
			return True
		rate = min(1.0, max(0.0, settings.obs_log_sampling_rate_info))
		return rate >= 1.0 or random.random() < rate


def configure_logging() -> logging.Logger:
	handler = logging.StreamHandler()
	handler.setFormatter(JSONLogFormatter())
	handler.addFilter(AccessLogSampler())
	root = logging.getLogger()
	root.handlers = [handler]
	root.setLevel(settings.obs_log_level.upper())
	return logging.getLogger(_LOGGER_NAME)


def get_logger(name: Optional[str] = None) -> logging.Logger:
	return logging.getLogger(name or _LOGGER_NAME)
