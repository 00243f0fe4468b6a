"""
Verdant Backend: Plant Read Routes
==================================

GET /api/plants                         all of the owner's plants with care state
GET /api/plants/{plant_id}              one plant with derived status
GET /api/plants/{plant_id}/reminders    that plant's reminders

Plant creation and editing live in a separate service; these routes only
read. `status`, `nextWatering` and `nextFertilizing` are derived per request.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from verdant.database import get_db_session
from verdant.dependencies import get_current_owner, get_plant_service
from verdant.schemas.care import ErrorResponse, PlantWithCareResponse, ReminderResponse
from verdant.services.plant_service import PlantService

router = APIRouter(prefix="/api/plants", tags=["Plants"])


@router.get(
    "",
    response_model=List[PlantWithCareResponse],
    summary="List plants with derived care status",
)
async def list_plants(
    response: Response,
    owner_id: str = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db_session),
    service: PlantService = Depends(get_plant_service),
) -> List[PlantWithCareResponse]:
    views = await service.list_plants(db, owner_id)
    response.headers["X-Total-Count"] = str(len(views))
    return [PlantWithCareResponse.from_view(view) for view in views]


@router.get(
    "/{plant_id}",
    response_model=PlantWithCareResponse,
    responses={404: {"description": "Plant not found", "model": ErrorResponse}},
    summary="Get a plant with derived care status",
)
async def get_plant(
    plant_id: UUID,
    owner_id: str = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db_session),
    service: PlantService = Depends(get_plant_service),
) -> PlantWithCareResponse:
    view = await service.get_plant(db, plant_id, owner_id)
    return PlantWithCareResponse.from_view(view)


@router.get(
    "/{plant_id}/reminders",
    response_model=List[ReminderResponse],
    responses={404: {"description": "Plant not found", "model": ErrorResponse}},
    summary="List a plant's care reminders",
)
async def list_reminders(
    plant_id: UUID,
    owner_id: str = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db_session),
    service: PlantService = Depends(get_plant_service),
) -> List[ReminderResponse]:
    reminders = await service.list_reminders(db, plant_id, owner_id)
    return [ReminderResponse.model_validate(r) for r in reminders]
