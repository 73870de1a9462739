from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from app.core.enums import PromotionOutcomeStatus


class PromotionItem(BaseModel):
    """One student to promote. camelCase keys (courseId, academicCourseYearId) are accepted too."""

    username: str = Field(..., min_length=1, max_length=50, description='Student username, e.g. "B224001"')
    course_id: int = Field(..., gt=0, alias="courseId", description="Course the student is enrolled in")
    academic_course_year_id: int = Field(
        ..., gt=0, alias="academicCourseYearId", description="Target academic course year"
    )

    class Config:
        populate_by_name = True
        extra = "forbid"

    @field_validator("username")
    @classmethod
    def username_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("username must not be blank")
        return v


class PromotionBatchRequest(BaseModel):
    students: List[PromotionItem] = Field(..., min_length=1, description="Processed in order, independently")

    class Config:
        extra = "forbid"


class PromotionItemOutcome(BaseModel):
    index: int = Field(..., description="Position of the item in the request")
    username: str
    status: PromotionOutcomeStatus
    promotion_id: Optional[int] = None
    reason: Optional[str] = None


class PromotionBatchResult(BaseModel):
    """Itemized result: one outcome per request item, in request order."""

    success: bool
    message: str
    items: List[PromotionItemOutcome] = Field(default_factory=list)
    promotion_ids: List[int] = Field(default_factory=list, serialization_alias="promotionIds")
    success_count: int = 0
    failure_count: int = 0


class PromotionRecordResponse(BaseModel):
    promotion_id: int
    student_id: int
    username: str
    full_name: str
    course_id: int
    from_year: int
    from_year_name: Optional[str] = None
    to_year: int
    to_year_name: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
