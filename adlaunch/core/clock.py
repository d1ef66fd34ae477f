# adlaunch/core/clock.py
"""Timestamps are stored as naive UTC in the DateTime columns"""
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)
