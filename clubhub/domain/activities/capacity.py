"""Capacity bookkeeping for activity registrations.

Counts include registrations in every status; settled registrants keep
occupying their seat.
"""

from __future__ import annotations

from clubhub.domain.activities.exceptions import CapacityExceeded


def has_capacity(current: int, max_participants: int) -> bool:
	return current < max_participants


def ensure_capacity(current: int, max_participants: int) -> None:
	"""Raise CapacityExceeded unless one more registrant fits."""
	if not has_capacity(current, max_participants):
		raise CapacityExceeded("activity_full")
