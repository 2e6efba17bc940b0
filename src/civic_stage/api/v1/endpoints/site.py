"""Public site configuration."""

from __future__ import annotations

from fastapi import APIRouter

from civic_stage.api.v1.dependencies import ContextDep
from civic_stage.schemas import SiteSettings

router = APIRouter(prefix="/site", tags=["site"])


@router.get("", response_model=SiteSettings)
async def get_site_settings(context: ContextDep) -> SiteSettings:
    """Return the current site settings, including the maintenance flag."""
    return context.cache.settings
