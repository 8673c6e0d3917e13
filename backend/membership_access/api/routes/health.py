"""
Health check endpoint.

Unauthenticated; used by the platform load balancer.
"""

from fastapi import APIRouter

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    return {"status": "ok"}
