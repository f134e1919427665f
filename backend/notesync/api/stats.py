"""Server statistics endpoint."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from notesync.constants import StatisticKey
from notesync.database import get_db
from notesync.services.note_store import get_statistics

router = APIRouter(tags=["stats"])


class StatisticsResponse(BaseModel):
    total_notes: int = 0
    total_shares: int = 0


@router.get("/statistics", response_model=StatisticsResponse)
async def read_statistics(db: AsyncSession = Depends(get_db)) -> StatisticsResponse:
    stats = await get_statistics(db)
    return StatisticsResponse(
        total_notes=stats[StatisticKey.TOTAL_NOTES],
        total_shares=stats[StatisticKey.TOTAL_SHARES],
    )
