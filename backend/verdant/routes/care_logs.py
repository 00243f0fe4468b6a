"""
Verdant Backend: Care Log Route Handlers
========================================

What:  POST /api/plants/{plant_id}/care-logs (record care) and
       GET  /api/plants/{plant_id}/care-logs (history).
Who:   Called by the plant detail screen's "log care" form and journal view.

Request Flow (POST):
    1. FastAPI validates the JSON body against CareLogCreate (422 on shape errors)
    2. CareLogService.ingest: ownership → photo → care log → reminders → commit
    3. 201 Created with the care log
    4. If a photo was stored, enrichment is queued as a background task and
       runs after the response has been sent; its outcome only reaches the logs
"""

import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from verdant.database import get_db_session
from verdant.dependencies import (
    get_care_log_service,
    get_current_owner,
    get_enrichment_pipeline,
)
from verdant.schemas.care import CareLogCreate, CareLogResponse, ErrorResponse
from verdant.services.care_log_service import CareLogService
from verdant.services.enrichment import EnrichmentPipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/plants", tags=["Care Logs"])


@router.post(
    "/{plant_id}/care-logs",
    status_code=201,
    response_model=CareLogResponse,
    response_model_by_alias=True,
    responses={
        201: {"description": "Care event recorded", "model": CareLogResponse},
        400: {"description": "Photo too large", "model": ErrorResponse},
        401: {"description": "Missing identity", "model": ErrorResponse},
        404: {"description": "Plant not found", "model": ErrorResponse},
        500: {"description": "Photo could not be processed", "model": ErrorResponse},
    },
    summary="Record a care action for a plant",
)
async def create_care_log(
    plant_id: UUID,
    payload: CareLogCreate,
    background_tasks: BackgroundTasks,
    owner_id: str = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db_session),
    service: CareLogService = Depends(get_care_log_service),
    pipeline: EnrichmentPipeline = Depends(get_enrichment_pipeline),
) -> CareLogResponse:
    result = await service.ingest(db, plant_id, owner_id, payload)

    if result.enrichment_job is not None:
        background_tasks.add_task(pipeline.run, result.enrichment_job)
        logger.info(
            "Enrichment queued for care log %s",
            result.care_log.id,
        )

    return CareLogResponse.from_model(result.care_log)


@router.get(
    "/{plant_id}/care-logs",
    response_model=List[CareLogResponse],
    response_model_by_alias=True,
    responses={
        401: {"description": "Missing identity", "model": ErrorResponse},
        404: {"description": "Plant not found", "model": ErrorResponse},
    },
    summary="List a plant's care history, newest first",
)
async def list_care_logs(
    plant_id: UUID,
    limit: int = Query(default=50, ge=1, le=500),
    owner_id: str = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db_session),
    service: CareLogService = Depends(get_care_log_service),
) -> List[CareLogResponse]:
    logs = await service.list_care_logs(db, plant_id, owner_id, limit=limit)
    return [CareLogResponse.from_model(log) for log in logs]
