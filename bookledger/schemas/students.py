from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class StudentCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=150)
    class_level: str = Field(..., min_length=1, max_length=50)


class StudentRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    student_code: str
    name: str
    class_level: str
    created_at: datetime
