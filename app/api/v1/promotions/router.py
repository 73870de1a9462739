from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import PromotionBatchRequest, PromotionBatchResult, PromotionRecordResponse
from . import service

router = APIRouter(prefix="/api/v1/promotions", tags=["student-promotions"])


@router.post(
    "",
    response_model=PromotionBatchResult,
    status_code=status.HTTP_201_CREATED,
    responses={status.HTTP_200_OK: {"model": PromotionBatchResult, "description": "No item succeeded"}},
)
async def promote_students(
    payload: PromotionBatchRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
) -> PromotionBatchResult:
    """
    Promote a batch of students. Items are independent: each one succeeds or fails on its own
    and the response lists one outcome per item in request order.
    201 when at least one student was promoted, 200 when none was.
    """
    try:
        result = await service.promote_batch(db, payload.students)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    if result.success_count == 0:
        response.status_code = status.HTTP_200_OK
    return result


@router.get("", response_model=List[PromotionRecordResponse])
async def list_promotions(db: AsyncSession = Depends(get_db)) -> List[PromotionRecordResponse]:
    """All promotion records, most recent first."""
    return await service.list_promotions(db)


@router.get("/username/{username}", response_model=List[PromotionRecordResponse])
async def get_promotions_by_username(
    username: str,
    db: AsyncSession = Depends(get_db),
) -> List[PromotionRecordResponse]:
    """Promotion history of one student. Empty list if never promoted, 404 if the student does not exist."""
    try:
        return await service.get_promotion_history(db, username)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/{promotion_id}", response_model=PromotionRecordResponse)
async def get_promotion(
    promotion_id: int,
    db: AsyncSession = Depends(get_db),
) -> PromotionRecordResponse:
    try:
        return await service.get_promotion_by_id(db, promotion_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
