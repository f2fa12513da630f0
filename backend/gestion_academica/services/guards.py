"""Guardas de matrícula: bloqueo de re-toma en el mismo año y umbral de créditos."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func
from sqlmodel import Session, select

from ..config import settings
from ..models import (
    Course,
    CourseCategoryEnum,
    Enrollment,
    EnrollmentStateEnum,
    Period,
)
from .prerequisites import direct_prerequisites


PRACTICE_TOKENS = ("práctica", "practica", "prácticas")
PROFESSIONAL_TOKEN = "profesional"


@dataclass(frozen=True)
class RetakeBlock:
    course_id: int
    course_name: str
    failed_course_id: int
    failed_course_name: str
    failed_period_name: str
    grade: Decimal
    available_from_year: int

    @property
    def via_prerequisite(self) -> bool:
        return self.course_id != self.failed_course_id

    @property
    def reason(self) -> str:
        if self.via_prerequisite:
            return (
                f"No puedes matricularte en '{self.course_name}' porque su prerequisito "
                f"'{self.failed_course_name}' fue jalado en el período {self.failed_period_name}. "
                f"Debes esperar hasta el próximo año académico ({self.available_from_year})."
            )
        return (
            f"No puedes matricularte en '{self.course_name}' porque lo jalaste en el período "
            f"{self.failed_period_name}. Debes esperar hasta el próximo año académico "
            f"({self.available_from_year}) para volver a llevarlo."
        )

    def to_dict(self) -> dict:
        return {
            "course_id": self.course_id,
            "failed_course_id": self.failed_course_id,
            "failed_course_name": self.failed_course_name,
            "failed_period_name": self.failed_period_name,
            "grade": str(self.grade),
            "available_from_year": self.available_from_year,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class CreditShortfall:
    course_name: str
    required_credits: int
    current_credits: int

    @property
    def reason(self) -> str:
        return (
            f"Para matricularte en '{self.course_name}' necesitas tener al menos "
            f"{self.required_credits} créditos aprobados. Actualmente tienes "
            f"{self.current_credits} créditos aprobados."
        )

    def to_dict(self) -> dict:
        return {
            "course_name": self.course_name,
            "required_credits": self.required_credits,
            "current_credits": self.current_credits,
            "reason": self.reason,
        }


def _failed_in_year(session: Session, student_id: int, course_id: int, year: int) -> Optional[tuple[Enrollment, Period]]:
    row = session.exec(
        select(Enrollment, Period)
        .join(Period, Period.id == Enrollment.period_id)
        .where(
            Enrollment.student_id == student_id,
            Enrollment.course_id == course_id,
            Enrollment.state != EnrollmentStateEnum.withdrawn,
            Enrollment.final_grade.is_not(None),
            Enrollment.final_grade < settings.rules.passing_grade,
            Period.year == year,
        )
        .order_by(Period.start_date)
    ).first()
    return row


def find_retake_blocks(session: Session, student_id: int, course: Course, period: Period) -> List[RetakeBlock]:
    """Same-year re-take blocks for ``course`` and each of its direct prerequisites."""
    blocks: List[RetakeBlock] = []
    candidates = [course, *direct_prerequisites(session, course.id)]
    for candidate in candidates:
        found = _failed_in_year(session, student_id, candidate.id, period.year)
        if found is None:
            continue
        enrollment, failed_period = found
        blocks.append(
            RetakeBlock(
                course_id=course.id,
                course_name=course.name,
                failed_course_id=candidate.id,
                failed_course_name=candidate.name,
                failed_period_name=failed_period.name,
                grade=enrollment.final_grade,
                available_from_year=period.year + 1,
            )
        )
    return blocks


def is_professional_practice_name(name: str) -> bool:
    lowered = (name or "").lower()
    return any(token in lowered for token in PRACTICE_TOKENS) and PROFESSIONAL_TOKEN in lowered


def requires_credit_threshold(course: Course) -> bool:
    if course.category == CourseCategoryEnum.professional_practice:
        return True
    # Compatibilidad con cursos cargados antes de existir la categoría
    return is_professional_practice_name(course.name)


def approved_credits(session: Session, student_id: int) -> int:
    total = session.exec(
        select(func.coalesce(func.sum(Course.credits), 0))
        .select_from(Enrollment)
        .join(Course, Course.id == Enrollment.course_id)
        .where(
            Enrollment.student_id == student_id,
            Enrollment.state != EnrollmentStateEnum.withdrawn,
            Enrollment.final_grade.is_not(None),
            Enrollment.final_grade >= settings.rules.passing_grade,
        )
    ).one()
    return int(total or 0)


def check_credit_threshold(session: Session, student_id: int, course: Course) -> Optional[CreditShortfall]:
    if not requires_credit_threshold(course):
        return None
    required = settings.rules.practicum_min_credits
    current = approved_credits(session, student_id)
    if current >= required:
        return None
    return CreditShortfall(course_name=course.name, required_credits=required, current_credits=current)
