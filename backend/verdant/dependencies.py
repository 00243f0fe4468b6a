"""
Verdant Backend: FastAPI Dependencies
=====================================

Request-scoped providers for identity, services and the enrichment pipeline.
Tests swap any of these through `app.dependency_overrides`.

Identity:
    Authentication happens upstream. The gateway forwards the resolved user
    as `X-User-ID`; a request without it is rejected with 401.
"""

from typing import Optional

from fastapi import Depends, Header, Request

from verdant.config import settings
from verdant.database import async_session_factory
from verdant.exceptions import AuthenticationError
from verdant.services.care_log_service import CareLogService, care_log_service
from verdant.services.enrichment import EnrichmentPipeline
from verdant.services.gemini_service import GeminiService
from verdant.services.plant_service import PlantService, plant_service


async def get_current_owner(
    x_user_id: Optional[str] = Header(default=None, alias="X-User-ID"),
) -> str:
    owner_id = (x_user_id or "").strip()
    if not owner_id:
        raise AuthenticationError(context={"header": "X-User-ID"})
    return owner_id


def get_ai_service(request: Request) -> GeminiService:
    """The shared GeminiService built in create_app."""
    return request.app.state.ai_service


def get_enrichment_pipeline(
    ai_service: GeminiService = Depends(get_ai_service),
) -> EnrichmentPipeline:
    return EnrichmentPipeline(
        session_factory=async_session_factory,
        vision=ai_service,
        language=ai_service,
        history_limit=settings.journal_history_limit,
    )


def get_care_log_service() -> CareLogService:
    return care_log_service


def get_plant_service() -> PlantService:
    return plant_service
