import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from types import SimpleNamespace
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.main import app
from app.core.models import AcademicCourseYear, Course, Student
from app.db.init_db import create_tables, seed_academic_course_years
from app.db.session import Base, get_db


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture()
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory SQLite per test; StaticPool keeps every session on the same database."""
    test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, future=True, poolclass=StaticPool)
    await create_tables(test_engine)
    yield test_engine
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest.fixture()
async def db_session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for a test and override FastAPI dependency."""
    async_session = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:

        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            yield session

        app.dependency_overrides[get_db] = override_get_db
        yield session

    app.dependency_overrides.clear()


@pytest.fixture()
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture()
async def catalog(db_session: AsyncSession) -> SimpleNamespace:
    """Two courses and the four default academic course years."""
    cse = Course(course_name="B.Tech Computer Science", course_code="BTCSE", duration_years=4)
    physics = Course(course_name="B.Sc Physics", course_code="BSCPHY", duration_years=3)
    db_session.add_all([cse, physics])
    await db_session.commit()
    await seed_academic_course_years(db_session)

    result = await db_session.execute(
        select(AcademicCourseYear.academic_course_year_id).order_by(AcademicCourseYear.year_order)
    )
    return SimpleNamespace(
        course_id=cse.course_id,
        other_course_id=physics.course_id,
        years=list(result.scalars().all()),
    )


@pytest.fixture()
def make_student(db_session: AsyncSession, catalog: SimpleNamespace):
    """Insert a student directly; returns plain values so tests never touch expired ORM state."""

    async def _make(username: str, year_index: int = 0, course_id: int = None, **fields) -> SimpleNamespace:
        student = Student(
            username=username,
            full_name=fields.pop("full_name", f"Student {username}"),
            course_id=course_id or catalog.course_id,
            academic_course_year_id=catalog.years[year_index],
            enrollment_year=fields.pop("enrollment_year", 2024),
            student_status="ACTIVE",
            version=1,
            **fields,
        )
        db_session.add(student)
        await db_session.commit()
        return SimpleNamespace(
            student_id=student.student_id,
            username=student.username,
            course_id=student.course_id,
            academic_course_year_id=student.academic_course_year_id,
        )

    return _make


@pytest.fixture()
def year_of(db_session: AsyncSession):
    """Read a student's stored current year straight from the table."""

    async def _year_of(username: str) -> int:
        result = await db_session.execute(
            select(Student.academic_course_year_id).where(Student.username == username)
        )
        return result.scalar_one()

    return _year_of
