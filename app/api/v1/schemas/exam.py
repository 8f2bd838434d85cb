from datetime import date
from typing import List, Optional

from pydantic import BaseModel


class CreateExam(BaseModel):
    exam_date: Optional[str] = None
    subject: Optional[str] = None
    shift: Optional[str] = None


class UpdateExam(CreateExam):
    pass


class ExamResponse(BaseModel):
    id: str
    user_id: str
    exam_date: date
    subject: str
    shift: str
    owner_name: Optional[str] = None


class ExamListMessage(BaseModel):
    type: str = "exams"
    exams: List[ExamResponse]
