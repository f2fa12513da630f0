from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlmodel import select

from ..db import get_session
from ..models import Enrollment, Student
from ..security import get_current_student, require_roles
from ..services import enrollment as enrollment_service


router = APIRouter(prefix="/enrollments", tags=["enrollments"])


class EnrollRequest(BaseModel):
    course_id: int
    period_id: Optional[int] = None


class DirectedEnrollRequest(BaseModel):
    period_id: int
    course_id: int
    student_ids: List[int]


def _resolve_period_id(session, period_id: Optional[int]) -> int:
    if period_id is not None:
        return period_id
    active = enrollment_service.get_active_period(session)
    if not active:
        raise HTTPException(status_code=409, detail="No hay un período académico activo")
    return active.id


@router.get("/me", response_model=List[Enrollment])
def my_enrollments(session=Depends(get_session), student: Student = Depends(get_current_student)):
    return session.exec(select(Enrollment).where(Enrollment.student_id == student.id).order_by(Enrollment.id)).all()


@router.get("/available")
def available_courses(session=Depends(get_session), student: Student = Depends(get_current_student)):
    return enrollment_service.list_available_courses(session, student.id)


@router.post("/", response_model=Enrollment, status_code=201)
def enroll(payload: EnrollRequest, session=Depends(get_session), student: Student = Depends(get_current_student)):
    period_id = _resolve_period_id(session, payload.period_id)
    return enrollment_service.enroll(session, student.id, payload.course_id, period_id)


@router.post("/{enrollment_id}/withdraw", response_model=Enrollment)
def withdraw(enrollment_id: int, session=Depends(get_session), student: Student = Depends(get_current_student)):
    return enrollment_service.withdraw(session, enrollment_id, student.id)


@router.post("/directed")
def directed_enrollment(
    payload: DirectedEnrollRequest, session=Depends(get_session), user=Depends(require_roles("admin"))
):
    return enrollment_service.enroll_directed(session, payload.period_id, payload.course_id, payload.student_ids)
