from typing import List, Optional

from sqlalchemy import select

from bookledger.crud.base import CRUDBase
from bookledger.models import Student
from bookledger.schemas.students import StudentRecord


class StudentRepository(CRUDBase[Student, StudentRecord]):
    model = Student
    record = StudentRecord

    def list_all(self, *, class_level: Optional[str] = None, student_id: Optional[int] = None) -> List[StudentRecord]:
        stmt = select(Student)
        if class_level:
            stmt = stmt.where(Student.class_level == class_level)
        if student_id is not None:
            stmt = stmt.where(Student.id == student_id)
        with self._guard("listing"):
            rows = self.db.execute(stmt.order_by(Student.name, Student.id)).scalars().all()
        return [self.to_record(row) for row in rows]
