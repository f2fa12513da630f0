from datetime import date
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..db import get_session
from ..models import AttendanceRecord, ClassTypeEnum
from ..security import get_current_user, require_roles
from ..services import attendance as attendance_service
from ..utils.course_access import ensure_student_record_access, ensure_teacher_course_permission


router = APIRouter(prefix="/attendance", tags=["attendance"])


class AttendanceIn(BaseModel):
    student_id: int
    course_id: int
    session_date: date
    class_type: ClassTypeEnum = ClassTypeEnum.theory
    present: bool = True
    notes: Optional[str] = None


class BulkAttendanceIn(BaseModel):
    course_id: int
    session_date: date
    class_type: ClassTypeEnum = ClassTypeEnum.theory
    marks: Dict[int, bool]


@router.post("/", response_model=AttendanceRecord)
def register_attendance(
    payload: AttendanceIn, session=Depends(get_session), user=Depends(require_roles("admin", "teacher"))
):
    ensure_teacher_course_permission(session, user, payload.course_id)
    return attendance_service.register_attendance(
        session,
        payload.student_id,
        payload.course_id,
        payload.session_date,
        payload.class_type,
        payload.present,
        notes=payload.notes,
    )


@router.post("/bulk", response_model=List[AttendanceRecord])
def register_bulk(
    payload: BulkAttendanceIn, session=Depends(get_session), user=Depends(require_roles("admin", "teacher"))
):
    ensure_teacher_course_permission(session, user, payload.course_id)
    return attendance_service.register_attendance_bulk(
        session, payload.course_id, payload.session_date, payload.class_type, payload.marks
    )


@router.get("/percentage")
def attendance_percentage(
    student_id: int,
    course_id: int,
    period_id: Optional[int] = None,
    session=Depends(get_session),
    user=Depends(get_current_user),
):
    ensure_student_record_access(session, user, student_id)
    return {
        "student_id": student_id,
        "course_id": course_id,
        "percentage": attendance_service.compute_percentage(session, student_id, course_id, period_id=period_id),
    }


@router.get("/courses/{course_id}/summary")
def course_summary(
    course_id: int,
    period_id: Optional[int] = None,
    session=Depends(get_session),
    user=Depends(require_roles("admin", "teacher")),
):
    ensure_teacher_course_permission(session, user, course_id)
    summary = attendance_service.compute_course_summary(session, course_id, period_id=period_id)
    return {
        "course_id": summary.course_id,
        "course_name": summary.course_name,
        "period_id": summary.period_id,
        "average_percentage": summary.average_percentage,
        "students": summary.students,
        "alerts": len(summary.alerts),
    }
