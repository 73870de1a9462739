from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import PromotionRecordResponse
from . import service

router = APIRouter(prefix="/api/v1/promotion-history", tags=["student-promotions"])


@router.get("/{username}", response_model=List[PromotionRecordResponse])
async def get_promotion_history(
    username: str,
    db: AsyncSession = Depends(get_db),
) -> List[PromotionRecordResponse]:
    try:
        return await service.get_promotion_history(db, username)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
