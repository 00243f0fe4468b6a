"""
Verdant Backend: Dashboard Route
================================

GET /api/dashboard/care-needed → {"needsWater": [...], "needsFertilizer": [...]}

Plants are grouped by their derived status, so each plant appears in at most
one list and exactly where its own status points.
"""

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from verdant.database import get_db_session
from verdant.dependencies import get_current_owner, get_plant_service
from verdant.schemas.care import CareNeededResponse, PlantWithCareResponse
from verdant.services.plant_service import PlantService

router = APIRouter(prefix="/api/dashboard", tags=["Dashboard"])


@router.get(
    "/care-needed",
    response_model=CareNeededResponse,
    summary="Plants that need water or fertilizer now",
)
async def care_needed(
    response: Response,
    owner_id: str = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db_session),
    service: PlantService = Depends(get_plant_service),
) -> CareNeededResponse:
    needs_water, needs_fertilizer = await service.care_needed(db, owner_id)
    # Due state changes with the clock; never serve it from a cache
    response.headers["Cache-Control"] = "no-store"
    return CareNeededResponse(
        needs_water=[PlantWithCareResponse.from_view(v) for v in needs_water],
        needs_fertilizer=[PlantWithCareResponse.from_view(v) for v in needs_fertilizer],
    )
