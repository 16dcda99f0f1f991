from pydantic import BaseModel, Field

from app.models.publish_status import TargetGroup


class PublishRequest(BaseModel):
    target_group: TargetGroup
    year: int
    calendar_week: int = Field(ge=1, le=53)


class PublishStatusOut(BaseModel):
    student: bool
    teacher: bool
