"""Relative time labels for the thread list and presence line."""

from __future__ import annotations

from datetime import datetime


def _minutes_between(now: datetime, then: datetime) -> int:
	return int((now - then).total_seconds() // 60)


def format_ago(now: datetime, created_at: datetime) -> str:
	mins = _minutes_between(now, created_at)
	if mins < 1:
		return "now"
	if mins < 60:
		return f"{mins}m"
	hrs = mins // 60
	if hrs < 24:
		return f"{hrs}h"
	return f"{hrs // 24}d"


def activity_text(now: datetime, last_active_at: datetime | None) -> str:
	if last_active_at is None:
		return ""
	diff_m = _minutes_between(now, last_active_at)
	if diff_m <= 2:
		return "Active now"
	if diff_m < 60:
		return f"Active {diff_m}m ago"
	diff_h = diff_m // 60
	if diff_h < 24:
		return f"Active {diff_h}h ago"
	return f"Active {diff_h // 24}d ago"
