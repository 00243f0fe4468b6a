"""
Verdant Backend: Stored Photo Route
===================================

GET /api/files/{path} serves normalized care photos referenced by
`photoUrl` / `imageUrl`. References are resolved through PhotoService, which
refuses anything outside the storage root.

Only the owner of the plant a file belongs to may read it. An unreferenced
file and someone else's file both answer 404, like foreign plants do.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from verdant.database import get_db_session
from verdant.dependencies import get_current_owner
from verdant.exceptions import FileStorageError, NotFoundError, ValidationError
from verdant.schemas.care import ErrorResponse
from verdant.services.photo_service import STORED_MIME_TYPE, photo_service
from verdant.services.storage import PlantStorage

router = APIRouter(prefix="/api", tags=["Files"])


@router.get(
    "/files/{file_path:path}",
    summary="Serve a stored care photo",
    responses={
        200: {"description": "JPEG image"},
        401: {"description": "Missing identity", "model": ErrorResponse},
        404: {"description": "File not found", "model": ErrorResponse},
    },
)
async def serve_file(
    file_path: str,
    owner_id: str = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db_session),
) -> FileResponse:
    try:
        full_path = photo_service.resolve(file_path)
    except FileStorageError as e:
        raise ValidationError(message="Invalid file path", field="path", context=e.context) from e

    await PlantStorage(db).get_owned_file_plant(file_path, owner_id)

    if not full_path.is_file():
        raise NotFoundError(resource="file", resource_id=file_path)

    # Stored files are never rewritten
    return FileResponse(
        path=str(full_path),
        media_type=STORED_MIME_TYPE,
        headers={"Cache-Control": "private, max-age=86400"},
    )
