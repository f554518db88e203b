"""
API v1 routes.
"""

from fastapi import APIRouter

from src.api.v1 import assistance, teacher

router = APIRouter()

router.include_router(assistance.router, tags=["Assistance"])
router.include_router(teacher.router, prefix="/teacher", tags=["Teacher"])
