"""
API v1 Router
Main router for all v1 API endpoints
"""

from fastapi import APIRouter

from wafbot.api.v1.endpoints import slack_events

# Create main API router
api_router = APIRouter()

api_router.include_router(
    slack_events.router,
    tags=["slack"]
)
