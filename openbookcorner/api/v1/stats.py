from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from openbookcorner.auth.dependencies import get_current_library, require_admin
from openbookcorner.db.session import get_db
from openbookcorner.models.library import Library
from openbookcorner.schemas.library import LibraryStats
from openbookcorner.services.library import library_stats

router = APIRouter(prefix="/api/v1/stats", tags=["stats"])


@router.get(
    "",
    response_model=LibraryStats,
    dependencies=[require_admin],
    summary="Library dashboard counters",
    description="Catalog, circulation and queue counts for the current library.",
    responses={
        401: {"description": "Missing, invalid, or expired Bearer token."},
        403: {"description": "Forbidden — Library Admin role required."},
    },
)
async def stats_endpoint(
    library: Library = Depends(get_current_library),
    db: AsyncSession = Depends(get_db),
) -> LibraryStats:
    return await library_stats(db, library)
