# adlaunch/api/v1/router.py
"""Main API router combining all v1 endpoints"""
from fastapi import APIRouter

from adlaunch.api.v1 import campaigns

api_router = APIRouter()

api_router.include_router(campaigns.router, prefix="/campaigns", tags=["Campaigns"])
