# adlaunch/models/base.py
"""
Declarative base shared by the tracking and ad account tables.
"""
from sqlalchemy import Column, Integer, DateTime
from sqlalchemy.orm import declarative_base

from adlaunch.core.clock import utcnow

Base = declarative_base()


class BaseModel(Base):
    """Surrogate key plus creation / last-write timestamps"""
    __abstract__ = True

    id = Column(Integer, primary_key=True, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
