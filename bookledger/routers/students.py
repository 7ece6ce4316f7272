from typing import List, Optional

from fastapi import APIRouter, Depends, status

from bookledger.dependencies import get_catalog
from bookledger.schemas.students import StudentCreate, StudentRecord
from bookledger.services import CatalogService

router = APIRouter(prefix="/students", tags=["students"])


@router.post("", response_model=StudentRecord, status_code=status.HTTP_201_CREATED)
def register_student(student: StudentCreate, catalog: CatalogService = Depends(get_catalog)):
    """Register a student under a freshly allocated student code"""
    return catalog.register_student(student)


@router.get("", response_model=List[StudentRecord])
def list_students(class_level: Optional[str] = None, catalog: CatalogService = Depends(get_catalog)):
    return catalog.list_students(class_level)
