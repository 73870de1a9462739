"""
Batch student promotion.

A batch is a convenience, not a transaction: every item is resolved, validated
and committed on its own, so one student's failure never undoes or blocks
another's promotion. Only a malformed batch is rejected as a whole, and that
happens before any database work.
"""

import asyncio
from typing import List, Optional, Sequence

from fastapi import status
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from app.core.config import settings
from app.core.enums import PromotionOutcomeStatus, StudentStatus
from app.core.exceptions import NotFoundError, PersistenceError, ServiceError, ValidationError
from app.core.logging_config import get_logger
from app.core.models import AcademicCourseYear, Student, StudentPromotion
from app.api.v1.courses import service as course_service
from app.api.v1.students import service as student_service

from .schemas import PromotionBatchResult, PromotionItem, PromotionItemOutcome, PromotionRecordResponse

logger = get_logger("promotions")


def _validate_batch(items: Sequence[PromotionItem]) -> None:
    """All-or-nothing gate. Raises ValidationError naming the first bad item."""
    if not items:
        raise ValidationError("At least one student must be selected for promotion.")
    for index, item in enumerate(items):
        if not item.username or not item.username.strip():
            raise ValidationError(f"students[{index}]: username is required")
        if not item.course_id or item.course_id <= 0:
            raise ValidationError(f"students[{index}]: course_id must be a positive integer")
        if not item.academic_course_year_id or item.academic_course_year_id <= 0:
            raise ValidationError(f"students[{index}]: academic_course_year_id must be a positive integer")


async def _apply_promotion(
    db: AsyncSession,
    username: str,
    course_id: int,
    target_year: int,
) -> int:
    """
    Stage one student's promotion in the session and return the new promotion_id.
    Nothing is committed here; the caller commits.

    The update is conditional on the version and course read here, so a concurrent
    promotion or course change of the same student fails this one instead of
    being overwritten.
    """
    student = await student_service.get_student_by_username(db, username)
    if student is None:
        raise NotFoundError(f"student not found: {username}")
    # Plain values: a rollback expires ORM state and async sessions cannot lazy-load it back.
    student_id = student.student_id
    from_year = student.academic_course_year_id
    version = student.version

    if student.student_status != StudentStatus.ACTIVE.value:
        raise ServiceError(f"student not active: {username}", status.HTTP_409_CONFLICT)
    if student.course_id != course_id:
        raise ServiceError("invalid course", status.HTTP_400_BAD_REQUEST)
    if await course_service.get_academic_course_year(db, target_year) is None:
        raise NotFoundError(f"invalid target year: {target_year}")

    try:
        result = await db.execute(
            update(Student)
            .where(
                Student.student_id == student_id,
                Student.version == version,
                Student.course_id == course_id,
                Student.student_status == StudentStatus.ACTIVE.value,
            )
            .values(academic_course_year_id=target_year, version=version + 1)
        )
        if result.rowcount != 1:
            raise PersistenceError(f"persistence error: concurrent update of {username}")
        record = StudentPromotion(
            student_id=student_id,
            course_id=course_id,
            from_year=from_year,
            to_year=target_year,
        )
        db.add(record)
        await db.flush()
    except SQLAlchemyError as e:
        raise PersistenceError(f"persistence error: {_cause(e)}") from e
    return record.promotion_id


def _cause(e: SQLAlchemyError) -> str:
    return str(e.orig) if getattr(e, "orig", None) else str(e)


async def _rollback(db: AsyncSession) -> None:
    try:
        await db.rollback()
    except SQLAlchemyError:
        logger.exception("Rollback after failed promotion item did not complete")


async def _promote_one(
    db: AsyncSession,
    index: int,
    item: PromotionItem,
    timeout: float,
) -> PromotionItemOutcome:
    """
    Only the staging step runs under the timeout. The commit is awaited outside it,
    so an item is never reported as failed after its writes were committed.
    """
    username = item.username.strip()
    try:
        promotion_id = await asyncio.wait_for(
            _apply_promotion(db, username, item.course_id, item.academic_course_year_id),
            timeout=timeout,
        )
        await db.commit()
    except asyncio.TimeoutError:
        reason = f"persistence error: timed out after {timeout:g}s"
    except ServiceError as e:
        reason = e.message
    except SQLAlchemyError as e:
        reason = f"persistence error: {_cause(e)}"
    else:
        return PromotionItemOutcome(
            index=index,
            username=username,
            status=PromotionOutcomeStatus.SUCCESS,
            promotion_id=promotion_id,
        )

    await _rollback(db)
    logger.warning(
        f"Promotion of {username} failed: {reason}",
        extra={"username": username, "item_index": index, "failure_reason": reason},
    )
    return PromotionItemOutcome(
        index=index,
        username=username,
        status=PromotionOutcomeStatus.FAILURE,
        reason=reason,
    )


async def promote_batch(
    db: AsyncSession,
    items: Sequence[PromotionItem],
    timeout: Optional[float] = None,
) -> PromotionBatchResult:
    """
    Promote each item in order and return one outcome per item.

    Raises ValidationError for an empty or malformed batch. Past that gate it
    never raises: unknown or inactive students, course mismatches, unknown target years,
    datastore errors and timeouts all become FAILURE outcomes.
    """
    _validate_batch(items)
    if timeout is None:
        timeout = settings.promotion_item_timeout_seconds

    outcomes: List[PromotionItemOutcome] = []
    for index, item in enumerate(items):
        outcomes.append(await _promote_one(db, index, item, timeout))

    promotion_ids = [o.promotion_id for o in outcomes if o.status == PromotionOutcomeStatus.SUCCESS]
    success_count = len(promotion_ids)
    failure_count = len(outcomes) - success_count
    logger.info(
        f"Promotion batch processed: {success_count} promoted, {failure_count} failed",
        extra={"batch_size": len(outcomes), "success_count": success_count, "failure_count": failure_count},
    )

    if failure_count == 0:
        message = "Student promotions added successfully!"
    elif success_count == 0:
        message = "No students were promoted."
    else:
        message = f"{success_count} of {len(outcomes)} students promoted."
    return PromotionBatchResult(
        success=success_count > 0,
        message=message,
        items=outcomes,
        promotion_ids=promotion_ids,
        success_count=success_count,
        failure_count=failure_count,
    )


def _promotions_query():
    from_year = aliased(AcademicCourseYear)
    to_year = aliased(AcademicCourseYear)
    return (
        select(
            StudentPromotion,
            Student.username,
            Student.full_name,
            from_year.academic_course_year_name,
            to_year.academic_course_year_name,
        )
        .join(Student, StudentPromotion.student_id == Student.student_id)
        .outerjoin(from_year, StudentPromotion.from_year == from_year.academic_course_year_id)
        .outerjoin(to_year, StudentPromotion.to_year == to_year.academic_course_year_id)
        # Most recent first; promotion_id breaks created_at ties.
        .order_by(StudentPromotion.created_at.desc(), StudentPromotion.promotion_id.desc())
    )


def _to_response(row) -> PromotionRecordResponse:
    p, username, full_name, from_year_name, to_year_name = row
    return PromotionRecordResponse(
        promotion_id=p.promotion_id,
        student_id=p.student_id,
        username=username,
        full_name=full_name,
        course_id=p.course_id,
        from_year=p.from_year,
        from_year_name=from_year_name,
        to_year=p.to_year,
        to_year_name=to_year_name,
        created_at=p.created_at,
    )


async def get_promotion_history(db: AsyncSession, username: str) -> List[PromotionRecordResponse]:
    """
    All promotions of a student, most recent first.
    Unknown username raises NotFoundError; a student never promoted gets an empty list.
    """
    student = await student_service.get_student_by_username(db, username)
    if student is None:
        raise NotFoundError(f"student not found: {username}")
    result = await db.execute(_promotions_query().where(StudentPromotion.student_id == student.student_id))
    return [_to_response(row) for row in result.all()]


async def get_promotion_by_id(db: AsyncSession, promotion_id: int) -> PromotionRecordResponse:
    result = await db.execute(_promotions_query().where(StudentPromotion.promotion_id == promotion_id))
    row = result.first()
    if row is None:
        raise NotFoundError("Promotion not found")
    return _to_response(row)


async def list_promotions(db: AsyncSession) -> List[PromotionRecordResponse]:
    result = await db.execute(_promotions_query())
    return [_to_response(row) for row in result.all()]
