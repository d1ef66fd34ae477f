# adlaunch/db/base.py
"""Import all models so metadata knows every table"""
from adlaunch.models.base import Base

from adlaunch.models.tracking import CampaignTrackingRecord
from adlaunch.models.ad_account import AdAccount

__all__ = ["Base"]
