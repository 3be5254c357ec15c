from __future__ import annotations

from fastapi import APIRouter

from amoform.api.v1 import forms, health

api_v1_router = APIRouter()

api_v1_router.include_router(health.router, tags=["Health"])
api_v1_router.include_router(forms.router, prefix="/forms", tags=["Forms"])
