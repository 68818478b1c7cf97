"""Time-window rules for activities.

Every read path and the join check derive an activity's visible status through
``effective_status``; nothing else compares stored status against the clock.
Join stays open until one hour after the start (inclusive), leave closes at the
start (exclusive), so at ``now == start_time`` a join succeeds while a leave
fails.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from clubhub.domain.activities.models import EffectiveStatus, StoredStatus

JOIN_GRACE = timedelta(hours=1)


def effective_status(
	stored_status: StoredStatus | str,
	start_time: datetime,
	end_time: datetime,
	now: datetime,
) -> EffectiveStatus:
	stored = StoredStatus(stored_status)
	if stored is StoredStatus.PENDING:
		return EffectiveStatus.PENDING
	if stored is StoredStatus.REJECTED:
		return EffectiveStatus.REJECTED
	if stored is StoredStatus.COMPLETED:
		return EffectiveStatus.COMPLETED
	if now < start_time:
		return EffectiveStatus.UPCOMING
	if now <= end_time:
		return EffectiveStatus.ONGOING
	return EffectiveStatus.COMPLETED


def join_cutoff(start_time: datetime, grace: timedelta = JOIN_GRACE) -> datetime:
	return start_time + grace


def join_window_open(
	stored_status: StoredStatus | str,
	start_time: datetime,
	end_time: datetime,
	now: datetime,
	grace: timedelta = JOIN_GRACE,
) -> bool:
	"""True while new registrations are accepted."""
	status = effective_status(stored_status, start_time, end_time, now)
	if status is EffectiveStatus.UPCOMING:
		return True
	if status is EffectiveStatus.ONGOING:
		return now <= join_cutoff(start_time, grace)
	return False


def leave_window_open(start_time: datetime, now: datetime) -> bool:
	return now < start_time
