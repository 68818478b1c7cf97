"""Pydantic schemas for the points API."""

from __future__ import annotations

from pydantic import BaseModel


class PointsOverrideRequest(BaseModel):
	points: int
