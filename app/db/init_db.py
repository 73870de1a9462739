"""
Create all tables and seed the standard academic course years.

Usage: python -m app.db.init_db
"""
import asyncio
from typing import List, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from app.core.logging_config import get_logger
from app.core.models import AcademicCourseYear
from app.db.session import AsyncSessionLocal, Base, engine

logger = get_logger("init_db")

# (academic_course_year_name, year_order)
DEFAULT_ACADEMIC_COURSE_YEARS: List[Tuple[str, int]] = [
    ("First Year", 1),
    ("Second Year", 2),
    ("Third Year", 3),
    ("Fourth Year", 4),
]


async def create_tables(db_engine: AsyncEngine) -> None:
    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def seed_academic_course_years(db: AsyncSession) -> int:
    """Insert the default years when the table is empty. Returns the number of rows inserted."""
    result = await db.execute(select(func.count(AcademicCourseYear.academic_course_year_id)))
    if result.scalar_one() > 0:
        return 0
    for name, order in DEFAULT_ACADEMIC_COURSE_YEARS:
        db.add(AcademicCourseYear(academic_course_year_name=name, year_order=order))
    await db.commit()
    return len(DEFAULT_ACADEMIC_COURSE_YEARS)


async def main() -> None:
    await create_tables(engine)
    async with AsyncSessionLocal() as db:
        inserted = await seed_academic_course_years(db)
    logger.info(f"Database initialized; {inserted} academic course years seeded")
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
