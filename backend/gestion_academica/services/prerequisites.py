"""Verificación de prerequisitos directos de un curso.

Solo se revisa un nivel del grafo (los prerequisitos directos del curso
objetivo); no se calcula la clausura transitiva ni se detectan ciclos.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from sqlmodel import Session, select

from ..config import settings
from ..models import Course, CoursePrerequisite, Enrollment, EnrollmentStateEnum


class PrerequisiteStatus(str, Enum):
    failed = "failed"
    in_progress = "in_progress"
    not_taken = "not_taken"


@dataclass(frozen=True)
class UnmetPrerequisite:
    course_id: int
    course_name: str
    status: PrerequisiteStatus
    grade: Optional[Decimal] = None
    passing_grade: Decimal = Decimal("11")

    @property
    def reason(self) -> str:
        if self.status == PrerequisiteStatus.failed:
            return f"{self.course_name} (Nota: {_format_grade(self.grade)} - Requiere nota mínima de {_format_grade(self.passing_grade)})"
        if self.status == PrerequisiteStatus.in_progress:
            return f"{self.course_name} (Curso en progreso)"
        return f"{self.course_name} (No cursado)"

    def to_dict(self) -> dict:
        return {
            "course_id": self.course_id,
            "course_name": self.course_name,
            "status": self.status.value,
            "grade": str(self.grade) if self.grade is not None else None,
            "passing_grade": str(self.passing_grade),
            "reason": self.reason,
        }


def _format_grade(value: Optional[Decimal]) -> str:
    if value is None:
        return "-"
    normalized = value.normalize()
    # normalize() convierte 20 en 2E+1
    return f"{normalized:f}"


def direct_prerequisites(session: Session, course_id: int) -> List[Course]:
    rows = session.exec(
        select(Course)
        .join(CoursePrerequisite, CoursePrerequisite.prerequisite_course_id == Course.id)
        .where(CoursePrerequisite.course_id == course_id)
        .order_by(Course.id)
    ).all()
    return list(rows)


def check_prerequisites(session: Session, student_id: int, course_id: int) -> List[UnmetPrerequisite]:
    """Return the direct prerequisites of ``course_id`` the student has not approved.

    An empty list means every prerequisite is satisfied.
    """
    passing = settings.rules.passing_grade
    unmet: List[UnmetPrerequisite] = []
    for prerequisite in direct_prerequisites(session, course_id):
        history = session.exec(
            select(Enrollment)
            .where(
                Enrollment.student_id == student_id,
                Enrollment.course_id == prerequisite.id,
                Enrollment.state != EnrollmentStateEnum.withdrawn,
            )
            .order_by(Enrollment.enrolled_at.desc(), Enrollment.id.desc())
        ).all()
        if any(item.final_grade is not None and item.final_grade >= passing for item in history):
            continue
        latest = history[0] if history else None
        if latest is None:
            status = PrerequisiteStatus.not_taken
        elif latest.final_grade is None:
            status = PrerequisiteStatus.in_progress
        else:
            status = PrerequisiteStatus.failed
        unmet.append(
            UnmetPrerequisite(
                course_id=prerequisite.id,
                course_name=prerequisite.name,
                status=status,
                grade=latest.final_grade if latest is not None else None,
                passing_grade=passing,
            )
        )
    return unmet
