import asyncio
from types import SimpleNamespace

import pytest
from sqlalchemy import func, select, update
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.promotions import service
from app.api.v1.promotions.schemas import PromotionItem
from app.core.enums import PromotionOutcomeStatus
from app.core.exceptions import NotFoundError, ValidationError
from app.core.models import Student, StudentPromotion


def _item(username: str, course_id: int, year: int) -> PromotionItem:
    return PromotionItem(username=username, course_id=course_id, academic_course_year_id=year)


async def _promotion_count(db: AsyncSession) -> int:
    result = await db.execute(select(func.count(StudentPromotion.promotion_id)))
    return result.scalar_one()


@pytest.mark.asyncio
async def test_unknown_username_fails_only_its_item(db_session, catalog, make_student, year_of) -> None:
    await make_student("B224001")
    await make_student("B224002")
    second_year = catalog.years[1]

    result = await service.promote_batch(
        db_session,
        [
            _item("B224001", catalog.course_id, second_year),
            _item("GHOST01", catalog.course_id, second_year),
            _item("B224002", catalog.course_id, second_year),
        ],
    )

    assert [o.index for o in result.items] == [0, 1, 2]
    assert [o.username for o in result.items] == ["B224001", "GHOST01", "B224002"]
    assert [o.status for o in result.items] == [
        PromotionOutcomeStatus.SUCCESS,
        PromotionOutcomeStatus.FAILURE,
        PromotionOutcomeStatus.SUCCESS,
    ]
    assert result.items[1].reason == "student not found: GHOST01"
    assert result.items[1].promotion_id is None
    assert result.success_count == 2
    assert result.failure_count == 1
    assert result.success is True
    assert result.promotion_ids == [result.items[0].promotion_id, result.items[2].promotion_id]
    assert await _promotion_count(db_session) == 2
    assert await year_of("B224001") == second_year
    assert await year_of("B224002") == second_year


@pytest.mark.asyncio
async def test_empty_batch_is_rejected_before_any_work(db_session, catalog) -> None:
    with pytest.raises(ValidationError) as exc_info:
        await service.promote_batch(db_session, [])
    assert exc_info.value.status_code == 400
    assert await _promotion_count(db_session) == 0


@pytest.mark.asyncio
async def test_malformed_item_rejects_whole_batch(db_session, catalog, make_student, year_of) -> None:
    student = await make_student("B224001")
    items = [
        _item("B224001", catalog.course_id, catalog.years[1]),
        PromotionItem.model_construct(username="  ", course_id=catalog.course_id, academic_course_year_id=catalog.years[1]),
    ]

    with pytest.raises(ValidationError) as exc_info:
        await service.promote_batch(db_session, items)

    assert "students[1]" in exc_info.value.message
    assert await _promotion_count(db_session) == 0
    assert await year_of("B224001") == student.academic_course_year_id


@pytest.mark.asyncio
async def test_promote_then_get_by_id_round_trip(db_session, catalog, make_student) -> None:
    student = await make_student("B224001")
    target = catalog.years[1]

    result = await service.promote_batch(db_session, [_item("B224001", catalog.course_id, target)])
    record = await service.get_promotion_by_id(db_session, result.promotion_ids[0])

    assert record.to_year == target
    assert record.course_id == catalog.course_id
    assert record.from_year == student.academic_course_year_id
    assert record.student_id == student.student_id
    assert record.username == "B224001"
    assert record.from_year_name == "First Year"
    assert record.to_year_name == "Second Year"


@pytest.mark.asyncio
async def test_same_student_promoted_twice(db_session, catalog, make_student, year_of) -> None:
    await make_student("B224001")

    first = await service.promote_batch(db_session, [_item("B224001", catalog.course_id, catalog.years[1])])
    second = await service.promote_batch(db_session, [_item("B224001", catalog.course_id, catalog.years[2])])

    assert first.promotion_ids[0] != second.promotion_ids[0]
    history = await service.get_promotion_history(db_session, "B224001")
    assert len(history) == 2
    assert history[0].promotion_id == second.promotion_ids[0]
    assert history[0].from_year == catalog.years[1]
    assert history[0].to_year == catalog.years[2]
    assert history[1].to_year == catalog.years[1]
    assert await year_of("B224001") == catalog.years[2]


@pytest.mark.asyncio
async def test_same_student_twice_in_one_batch_chains_years(db_session, catalog, make_student, year_of) -> None:
    await make_student("B224001")

    result = await service.promote_batch(
        db_session,
        [
            _item("B224001", catalog.course_id, catalog.years[1]),
            _item("B224001", catalog.course_id, catalog.years[2]),
        ],
    )

    assert result.success_count == 2
    latest = await service.get_promotion_by_id(db_session, result.promotion_ids[1])
    assert latest.from_year == catalog.years[1]
    assert await year_of("B224001") == catalog.years[2]


@pytest.mark.asyncio
async def test_history_is_stable_between_reads(db_session, catalog, make_student) -> None:
    await make_student("B224001")
    await service.promote_batch(db_session, [_item("B224001", catalog.course_id, catalog.years[1])])
    await service.promote_batch(db_session, [_item("B224001", catalog.course_id, catalog.years[2])])

    first_read = await service.get_promotion_history(db_session, "B224001")
    second_read = await service.get_promotion_history(db_session, "B224001")

    assert first_read == second_read


@pytest.mark.asyncio
async def test_history_of_never_promoted_student_is_empty(db_session, make_student) -> None:
    await make_student("B224001")
    assert await service.get_promotion_history(db_session, "B224001") == []


@pytest.mark.asyncio
async def test_history_of_unknown_student_raises(db_session, catalog) -> None:
    with pytest.raises(NotFoundError):
        await service.get_promotion_history(db_session, "NOBODY")


@pytest.mark.asyncio
async def test_get_missing_promotion_raises(db_session, catalog) -> None:
    with pytest.raises(NotFoundError) as exc_info:
        await service.get_promotion_by_id(db_session, 9999)
    assert exc_info.value.status_code == 404


@pytest.mark.asyncio
async def test_course_mismatch_fails_item(db_session, catalog, make_student, year_of) -> None:
    student = await make_student("B224001")

    result = await service.promote_batch(db_session, [_item("B224001", catalog.other_course_id, catalog.years[1])])

    assert result.items[0].status == PromotionOutcomeStatus.FAILURE
    assert result.items[0].reason == "invalid course"
    assert result.success is False
    assert await year_of("B224001") == student.academic_course_year_id
    assert await _promotion_count(db_session) == 0


@pytest.mark.asyncio
async def test_unknown_target_year_fails_item(db_session, catalog, make_student) -> None:
    await make_student("B224001")

    result = await service.promote_batch(db_session, [_item("B224001", catalog.course_id, 999)])

    assert result.items[0].reason == "invalid target year: 999"
    assert await _promotion_count(db_session) == 0


@pytest.mark.asyncio
async def test_stale_version_is_reported_not_overwritten(
    db_session, catalog, make_student, year_of, monkeypatch
) -> None:
    student = await make_student("B224001")

    async def stale_lookup(db, username):
        # What a concurrent promotion's reader would have seen before the other writer committed.
        return SimpleNamespace(
            student_id=student.student_id,
            course_id=student.course_id,
            academic_course_year_id=student.academic_course_year_id,
            student_status="ACTIVE",
            version=0,
        )

    monkeypatch.setattr(service.student_service, "get_student_by_username", stale_lookup)

    result = await service.promote_batch(db_session, [_item("B224001", catalog.course_id, catalog.years[1])])

    assert result.items[0].status == PromotionOutcomeStatus.FAILURE
    assert result.items[0].reason == "persistence error: concurrent update of B224001"
    assert await _promotion_count(db_session) == 0
    monkeypatch.undo()
    assert await year_of("B224001") == student.academic_course_year_id


@pytest.mark.asyncio
async def test_write_failure_rolls_back_both_writes(db_session, catalog, make_student, year_of, monkeypatch) -> None:
    student = await make_student("B224001")
    await make_student("B224002")

    real_flush = AsyncSession.flush
    calls = {"n": 0}

    async def flaky_flush(self, *args, **kwargs):
        calls["n"] += 1
        if calls["n"] == 1:
            raise OperationalError("INSERT INTO student_promotions", {}, Exception("disk I/O error"))
        return await real_flush(self, *args, **kwargs)

    monkeypatch.setattr(AsyncSession, "flush", flaky_flush)

    result = await service.promote_batch(
        db_session,
        [
            _item("B224001", catalog.course_id, catalog.years[1]),
            _item("B224002", catalog.course_id, catalog.years[1]),
        ],
    )

    assert result.items[0].reason == "persistence error: disk I/O error"
    assert result.items[1].status == PromotionOutcomeStatus.SUCCESS
    assert await year_of("B224001") == student.academic_course_year_id
    assert await year_of("B224002") == catalog.years[1]
    assert await _promotion_count(db_session) == 1


@pytest.mark.asyncio
async def test_slow_item_times_out_without_aborting_batch(db_session, catalog, make_student, monkeypatch) -> None:
    await make_student("B224001")
    real_apply = service._apply_promotion

    async def slow_for_first(db, username, course_id, target_year):
        if username == "SLOW001":
            await asyncio.sleep(5)
        return await real_apply(db, username, course_id, target_year)

    monkeypatch.setattr(service, "_apply_promotion", slow_for_first)

    result = await service.promote_batch(
        db_session,
        [
            _item("SLOW001", catalog.course_id, catalog.years[1]),
            _item("B224001", catalog.course_id, catalog.years[1]),
        ],
        timeout=0.05,
    )

    assert result.items[0].status == PromotionOutcomeStatus.FAILURE
    assert result.items[0].reason == "persistence error: timed out after 0.05s"
    assert result.items[1].status == PromotionOutcomeStatus.SUCCESS


@pytest.mark.asyncio
async def test_list_promotions_most_recent_first(db_session, catalog, make_student) -> None:
    await make_student("B224001")
    await make_student("B224002")
    result = await service.promote_batch(
        db_session,
        [
            _item("B224001", catalog.course_id, catalog.years[1]),
            _item("B224002", catalog.course_id, catalog.years[1]),
        ],
    )

    listing = await service.list_promotions(db_session)

    assert [p.promotion_id for p in listing] == list(reversed(result.promotion_ids))


@pytest.mark.asyncio
async def test_inactive_student_is_not_promoted(db_session, catalog, make_student, year_of) -> None:
    student = await make_student("B224001")
    await make_student("B224002")
    await db_session.execute(update(Student).where(Student.username == "B224001").values(student_status="INACTIVE"))
    await db_session.commit()

    result = await service.promote_batch(
        db_session,
        [
            _item("B224001", catalog.course_id, catalog.years[1]),
            _item("B224002", catalog.course_id, catalog.years[1]),
        ],
    )

    assert result.items[0].status == PromotionOutcomeStatus.FAILURE
    assert result.items[0].reason == "student not active: B224001"
    assert result.items[1].status == PromotionOutcomeStatus.SUCCESS
    assert await _promotion_count(db_session) == 1
    assert await year_of("B224001") == student.academic_course_year_id


@pytest.mark.asyncio
async def test_course_changed_after_read_is_not_promoted(
    db_session, catalog, make_student, year_of, monkeypatch
) -> None:
    student = await make_student("B224001")
    # Another writer moves the student to a different course after this batch read the row.
    await db_session.execute(
        update(Student).where(Student.username == "B224001").values(course_id=catalog.other_course_id)
    )
    await db_session.commit()

    async def lookup_before_move(db, username):
        return SimpleNamespace(
            student_id=student.student_id,
            course_id=catalog.course_id,
            academic_course_year_id=student.academic_course_year_id,
            student_status="ACTIVE",
            version=1,
        )

    monkeypatch.setattr(service.student_service, "get_student_by_username", lookup_before_move)

    result = await service.promote_batch(db_session, [_item("B224001", catalog.course_id, catalog.years[1])])

    assert result.items[0].status == PromotionOutcomeStatus.FAILURE
    assert result.items[0].reason == "persistence error: concurrent update of B224001"
    assert await _promotion_count(db_session) == 0
    monkeypatch.undo()
    assert await year_of("B224001") == student.academic_course_year_id


@pytest.mark.asyncio
async def test_slow_commit_is_not_reported_as_timeout(db_session, catalog, make_student, year_of, monkeypatch) -> None:
    await make_student("B224001")
    real_commit = AsyncSession.commit

    async def slow_commit(self):
        await real_commit(self)
        await asyncio.sleep(0.2)

    monkeypatch.setattr(AsyncSession, "commit", slow_commit)

    result = await service.promote_batch(
        db_session,
        [_item("B224001", catalog.course_id, catalog.years[1])],
        timeout=0.05,
    )

    assert result.items[0].status == PromotionOutcomeStatus.SUCCESS
    assert result.promotion_ids == [result.items[0].promotion_id]
    assert await _promotion_count(db_session) == 1
    assert await year_of("B224001") == catalog.years[1]
