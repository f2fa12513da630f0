from decimal import Decimal
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..db import get_session
from ..security import get_current_user, require_roles
from ..services import grading
from ..services.grading import EvaluationTypeSpec
from ..utils.course_access import ensure_enrollment_permission, ensure_teacher_course_permission


router = APIRouter(prefix="/grades", tags=["grades"])


class GradesRequest(BaseModel):
    grades: Dict[str, Decimal]
    notes: Optional[str] = None


@router.get("/courses/{course_id}/evaluation-types", response_model=List[EvaluationTypeSpec])
def get_evaluation_types(course_id: int, session=Depends(get_session), user=Depends(get_current_user)):
    return grading.get_evaluation_types(session, course_id)


@router.put("/courses/{course_id}/evaluation-types", response_model=List[EvaluationTypeSpec])
def configure_evaluation_types(
    course_id: int,
    payload: List[EvaluationTypeSpec],
    session=Depends(get_session),
    user=Depends(require_roles("admin", "teacher")),
):
    ensure_teacher_course_permission(session, user, course_id)
    return grading.configure_evaluation_types(session, course_id, payload)


@router.post("/enrollments/{enrollment_id}")
def register_grades(
    enrollment_id: int,
    payload: GradesRequest,
    session=Depends(get_session),
    user=Depends(require_roles("admin", "teacher")),
):
    ensure_enrollment_permission(session, user, enrollment_id)
    return grading.register_grades(session, enrollment_id, payload.grades, notes=payload.notes)


@router.get("/enrollments/{enrollment_id}/final")
def final_grade(enrollment_id: int, session=Depends(get_session), user=Depends(get_current_user)):
    final = grading.compute_final_grade(session, enrollment_id)
    return {
        "enrollment_id": enrollment_id,
        "final_grade": final,
        "display_grade": grading.commercial_round(final) if final is not None else None,
        "approved": grading.is_approved(final),
    }
