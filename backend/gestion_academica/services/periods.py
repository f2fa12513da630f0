"""Ciclo de vida de los períodos académicos.

Un período pasa por Borrador -> Activo -> Cerrado. Este módulo es el único
que activa o desactiva períodos, por lo que mantiene la regla de un solo
período activo a la vez. El cierre congela las notas finales y actualiza
los datos académicos de cada estudiante en una sola transacción.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from ..config import settings
from ..errors import InfrastructureError, InvalidStateError, NotFoundError, PolicyViolationError
from ..models import (
    Course,
    Enrollment,
    EnrollmentStateEnum,
    GradeEntry,
    Period,
    PeriodHalfEnum,
    Student,
    StudentStatusEnum,
    utcnow,
)
from .grading import credit_weighted_average, get_evaluation_types, is_approved, weighted_final_grade
from .guards import approved_credits

logger = logging.getLogger(__name__)

FROZEN_PLACES = Decimal("0.000001")


class PeriodState(str, Enum):
    draft = "Draft"
    active = "Active"
    closed = "Closed"


class PeriodData(BaseModel):
    name: str
    year: int
    half: PeriodHalfEnum
    start_date: date
    end_date: date


@dataclass
class ActivationResult:
    period: Period
    previous_period_id: Optional[int]
    promoted_student_ids: List[int] = field(default_factory=list)


@dataclass(frozen=True)
class MissingGrades:
    enrollment_id: int
    student_id: int
    student_name: str
    course_id: int
    course_name: str
    missing_types: List[str]


@dataclass
class CloseReadiness:
    period_id: int
    missing: List[MissingGrades] = field(default_factory=list)

    @property
    def ready(self) -> bool:
        return not self.missing


@dataclass
class CloseSummary:
    period_id: int
    period_name: str
    total_enrollments: int = 0
    approved: int = 0
    failed: int = 0
    without_grade: int = 0
    promoted_student_ids: List[int] = field(default_factory=list)
    retained_student_ids: List[int] = field(default_factory=list)


def period_state(period: Period) -> PeriodState:
    if period.active:
        return PeriodState.active
    if period.closed_at is not None:
        return PeriodState.closed
    return PeriodState.draft


def get_period(session: Session, period_id: int) -> Period:
    period = session.get(Period, period_id)
    if not period:
        raise NotFoundError("El período académico no existe", {"period_id": period_id})
    return period


def _validate_period_data(session: Session, data: PeriodData, exclude_id: Optional[int] = None) -> str:
    name = data.name.strip()
    if not name:
        raise PolicyViolationError("El nombre del período es obligatorio")
    if data.start_date >= data.end_date:
        raise PolicyViolationError(
            "La fecha de inicio debe ser anterior a la fecha de fin",
            {"start_date": data.start_date.isoformat(), "end_date": data.end_date.isoformat()},
        )
    stmt = select(Period).where(func.lower(Period.name) == name.lower())
    if exclude_id is not None:
        stmt = stmt.where(Period.id != exclude_id)
    if session.exec(stmt).first():
        raise PolicyViolationError(f"Ya existe un período con el nombre '{name}'", {"name": name})
    return name


def create_period(session: Session, data: PeriodData, activate: bool = False) -> Period:
    name = _validate_period_data(session, data)
    period = Period(
        name=name,
        year=data.year,
        half=data.half,
        start_date=data.start_date,
        end_date=data.end_date,
    )
    session.add(period)
    session.commit()
    session.refresh(period)
    logger.info("Período %s creado", period.name)
    if activate:
        return activate_period(session, period.id).period
    return period


def update_period(session: Session, period_id: int, data: PeriodData) -> Period:
    period = get_period(session, period_id)
    if period_state(period) == PeriodState.closed:
        raise InvalidStateError("No se puede modificar un período cerrado", {"period_id": period_id})
    period.name = _validate_period_data(session, data, exclude_id=period_id)
    period.year = data.year
    period.half = data.half
    period.start_date = data.start_date
    period.end_date = data.end_date
    session.add(period)
    session.commit()
    session.refresh(period)
    return period


def _last_finished_period(session: Session, exclude_id: int) -> Optional[Period]:
    active = session.exec(
        select(Period).where(Period.active == True, Period.id != exclude_id)  # noqa: E712
    ).first()
    if active is not None:
        return active
    return session.exec(
        select(Period)
        .where(Period.closed_at.is_not(None), Period.id != exclude_id)
        .order_by(Period.closed_at.desc())
    ).first()


def _advance_cycles(session: Session, previous: Period) -> List[int]:
    students = session.exec(
        select(Student)
        .where(
            Student.status == StudentStatusEnum.active,
            Student.id.in_(
                select(Enrollment.student_id).where(
                    Enrollment.period_id == previous.id,
                    Enrollment.state == EnrollmentStateEnum.enrolled,
                    Enrollment.final_grade.is_not(None),
                )
            ),
        )
        .order_by(Student.id)
    ).all()
    limit = settings.rules.max_academic_cycle
    promoted: List[int] = []
    for student in students:
        if student.current_cycle >= limit:
            continue
        student.current_cycle = min(student.current_cycle + 1, limit)
        session.add(student)
        promoted.append(student.id)
    return promoted


def activate_period(session: Session, period_id: int) -> ActivationResult:
    """Make ``period_id`` the single active period.

    Students with frozen grades in the period that finished last advance one
    academic cycle.
    """
    period = get_period(session, period_id)
    if period_state(period) == PeriodState.closed:
        raise InvalidStateError("Un período cerrado no puede volver a activarse", {"period_id": period_id})
    if period.active:
        return ActivationResult(period=period, previous_period_id=None)

    previous = _last_finished_period(session, period_id)
    try:
        for other in session.exec(select(Period).where(Period.active == True)).all():  # noqa: E712
            other.active = False
            session.add(other)
        period.active = True
        session.add(period)
        promoted = _advance_cycles(session, previous) if previous is not None else []
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Falló la activación del período %s", period_id)
        raise InfrastructureError("No se pudo activar el período", {"period_id": period_id}) from exc
    session.refresh(period)
    logger.info(
        "Período %s activado; %d estudiantes avanzaron de ciclo", period.name, len(promoted)
    )
    return ActivationResult(
        period=period,
        previous_period_id=previous.id if previous is not None else None,
        promoted_student_ids=promoted,
    )


def open_period(session: Session, period_id: int) -> ActivationResult:
    period = get_period(session, period_id)
    if period.active:
        raise InvalidStateError("El período ya está activo", {"period_id": period_id})
    return activate_period(session, period_id)


def _enrolled_in(session: Session, period_id: int) -> List[Enrollment]:
    return list(
        session.exec(
            select(Enrollment)
            .where(Enrollment.period_id == period_id, Enrollment.state == EnrollmentStateEnum.enrolled)
            .order_by(Enrollment.id)
        ).all()
    )


def validate_period_close(session: Session, period_id: int) -> CloseReadiness:
    get_period(session, period_id)
    readiness = CloseReadiness(period_id=period_id)
    types_by_course: Dict[int, List[str]] = {}
    for enrollment in _enrolled_in(session, period_id):
        if enrollment.course_id not in types_by_course:
            types_by_course[enrollment.course_id] = [
                item.name for item in get_evaluation_types(session, enrollment.course_id) if item.active
            ]
        recorded = set(
            session.exec(
                select(GradeEntry.evaluation_type).where(GradeEntry.enrollment_id == enrollment.id)
            ).all()
        )
        missing = [name for name in types_by_course[enrollment.course_id] if name not in recorded]
        if not missing:
            continue
        student = session.get(Student, enrollment.student_id)
        course = session.get(Course, enrollment.course_id)
        readiness.missing.append(
            MissingGrades(
                enrollment_id=enrollment.id,
                student_id=enrollment.student_id,
                student_name=student.full_name if student else "",
                course_id=enrollment.course_id,
                course_name=course.name if course else "",
                missing_types=missing,
            )
        )
    return readiness


def _refresh_student_record(session: Session, student: Student, period_id: int) -> None:
    rows = session.exec(
        select(Enrollment, Course)
        .join(Course, Course.id == Enrollment.course_id)
        .where(
            Enrollment.student_id == student.id,
            Enrollment.state == EnrollmentStateEnum.enrolled,
            Enrollment.final_grade.is_not(None),
        )
    ).all()
    student.accumulated_credits = approved_credits(session, student.id)
    student.cumulative_average = credit_weighted_average(
        (enrollment.final_grade, course.credits) for enrollment, course in rows
    )
    student.semester_average = credit_weighted_average(
        (enrollment.final_grade, course.credits) for enrollment, course in rows if enrollment.period_id == period_id
    )
    session.add(student)


def close_period(session: Session, period_id: int) -> CloseSummary:
    """Freeze final grades, deactivate the period and update student records."""
    period = get_period(session, period_id)
    if not period.active:
        raise InvalidStateError("Solo se puede cerrar el período activo", {"period_id": period_id})

    summary = CloseSummary(period_id=period.id, period_name=period.name)
    per_student: Dict[int, List[int]] = {}
    try:
        for enrollment in _enrolled_in(session, period_id):
            entries = session.exec(select(GradeEntry).where(GradeEntry.enrollment_id == enrollment.id)).all()
            final = weighted_final_grade(entries)
            enrollment.final_grade = final.quantize(FROZEN_PLACES) if final is not None else None
            session.add(enrollment)

            summary.total_enrollments += 1
            counts = per_student.setdefault(enrollment.student_id, [0, 0])
            if final is None:
                summary.without_grade += 1
            elif is_approved(final):
                summary.approved += 1
                counts[0] += 1
            else:
                summary.failed += 1
                counts[1] += 1

        period.active = False
        period.closed_at = utcnow()
        session.add(period)
        session.flush()

        for student_id, (approved, failed) in sorted(per_student.items()):
            student = session.get(Student, student_id)
            if student is not None:
                _refresh_student_record(session, student, period_id)
            if failed == 0 or approved > failed:
                summary.promoted_student_ids.append(student_id)
            else:
                summary.retained_student_ids.append(student_id)
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Falló el cierre del período %s", period_id)
        raise InfrastructureError("No se pudo cerrar el período; no se aplicaron cambios", {"period_id": period_id}) from exc

    logger.info(
        "Período %s cerrado: %d matrículas, %d aprobadas, %d desaprobadas",
        period.name,
        summary.total_enrollments,
        summary.approved,
        summary.failed,
    )
    return summary


def delete_period(session: Session, period_id: int) -> None:
    period = get_period(session, period_id)
    in_use = session.exec(
        select(func.count()).select_from(Enrollment).where(Enrollment.period_id == period_id)
    ).one()
    if in_use:
        raise InvalidStateError(
            "No se puede eliminar un período con matrículas registradas",
            {"period_id": period_id, "enrollments": int(in_use)},
        )
    name = period.name
    session.delete(period)
    session.commit()
    logger.info("Período %s eliminado", name)
