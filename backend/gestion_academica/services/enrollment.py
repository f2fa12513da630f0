"""Matrícula y retiro de estudiantes con validación de reglas académicas."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from ..errors import InvalidStateError, NotFoundError, PolicyViolationError, RulesEngineError
from ..models import (
    Course,
    Enrollment,
    EnrollmentStateEnum,
    Period,
    Student,
    utcnow,
)
from .grading import is_approved
from .guards import check_credit_threshold, find_retake_blocks
from .notifications import (
    EnrollmentCreated,
    EnrollmentWithdrawn,
    NotificationSink,
    default_sink,
)
from .prerequisites import check_prerequisites

logger = logging.getLogger(__name__)


@dataclass
class DirectedEnrollmentResult:
    period_id: int
    course_id: int
    enrolled: List[int] = field(default_factory=list)
    failed: List[dict] = field(default_factory=list)


@dataclass(frozen=True)
class CourseAvailability:
    course_id: int
    code: str
    name: str
    credits: int
    cycle: int
    enrolled_count: int
    available: bool
    reason: Optional[str] = None


def get_active_period(session: Session) -> Optional[Period]:
    return session.exec(select(Period).where(Period.active == True)).first()  # noqa: E712


def _publish(session: Session, sink: Optional[NotificationSink], event) -> None:
    target = sink if sink is not None else default_sink(session)
    if target is None:
        return
    try:
        target.publish(event)
    except Exception:  # noqa: BLE001
        logger.warning("Falló el envío de la notificación %s", event.action, exc_info=True)


def enroll(
    session: Session,
    student_id: int,
    course_id: int,
    period_id: int,
    authorized: bool = False,
    sink: Optional[NotificationSink] = None,
) -> Enrollment:
    """Enroll a student after running every policy check in order.

    ``authorized`` skips the re-take and prerequisite checks; the credit
    threshold always applies.
    """
    period = session.get(Period, period_id)
    if not period:
        raise NotFoundError("El período académico no existe", {"period_id": period_id})
    if not period.active:
        raise InvalidStateError(
            "El período académico no está activo", {"period_id": period_id, "period_name": period.name}
        )
    student = session.get(Student, student_id)
    if not student:
        raise NotFoundError("Estudiante no encontrado", {"student_id": student_id})
    course = session.get(Course, course_id)
    if not course:
        raise NotFoundError("Curso no encontrado", {"course_id": course_id})

    existing = session.exec(
        select(Enrollment).where(
            Enrollment.student_id == student_id,
            Enrollment.course_id == course_id,
            Enrollment.period_id == period_id,
        )
    ).first()
    if existing is not None and existing.state == EnrollmentStateEnum.enrolled:
        logger.info("Matrícula duplicada rechazada: estudiante %s curso %s", student_id, course_id)
        raise PolicyViolationError(
            "Ya estás matriculado en este curso para este período", {"enrollment_id": existing.id}
        )

    shortfall = check_credit_threshold(session, student_id, course)
    if shortfall is not None:
        logger.info("Matrícula rechazada por créditos: estudiante %s curso %s", student_id, course_id)
        raise PolicyViolationError(shortfall.reason, shortfall.to_dict())

    if not authorized:
        blocks = find_retake_blocks(session, student_id, course, period)
        if blocks:
            logger.info("Matrícula rechazada por re-toma: estudiante %s curso %s", student_id, course_id)
            raise PolicyViolationError(
                " ".join(block.reason for block in blocks), {"retake_blocks": [b.to_dict() for b in blocks]}
            )
        unmet = check_prerequisites(session, student_id, course_id)
        if unmet:
            logger.info("Matrícula rechazada por prerequisitos: estudiante %s curso %s", student_id, course_id)
            raise PolicyViolationError(
                "No cumples con los prerequisitos: " + ", ".join(item.reason for item in unmet),
                {"unmet_prerequisites": [item.to_dict() for item in unmet]},
            )

    if existing is not None:
        enrollment = existing
        enrollment.state = EnrollmentStateEnum.enrolled
        enrollment.enrolled_at = utcnow()
        enrollment.withdrawn_at = None
        enrollment.authorized = authorized
    else:
        enrollment = Enrollment(
            student_id=student_id,
            course_id=course_id,
            period_id=period_id,
            authorized=authorized,
        )
    session.add(enrollment)
    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        raise PolicyViolationError(
            "Ya estás matriculado en este curso para este período",
            {"student_id": student_id, "course_id": course_id, "period_id": period_id},
        ) from exc
    session.refresh(enrollment)
    logger.info(
        "Estudiante %s matriculado en %s (%s)%s",
        student_id,
        course.code,
        period.name,
        " con autorización" if authorized else "",
    )

    _publish(
        session,
        sink,
        EnrollmentCreated(
            student_id=student_id,
            enrollment_id=enrollment.id,
            course_id=course.id,
            course_name=course.name,
            period_name=period.name,
            authorized=authorized,
        ),
    )
    return enrollment


def withdraw(
    session: Session,
    enrollment_id: int,
    student_id: int,
    sink: Optional[NotificationSink] = None,
) -> Enrollment:
    enrollment = session.get(Enrollment, enrollment_id)
    if not enrollment or enrollment.student_id != student_id:
        raise NotFoundError("La matrícula no existe o no te pertenece", {"enrollment_id": enrollment_id})
    if enrollment.state != EnrollmentStateEnum.enrolled:
        raise InvalidStateError("Solo puedes retirarte de cursos en los que estás matriculado")
    period = session.get(Period, enrollment.period_id)
    if not period or not period.active:
        raise InvalidStateError("No puedes retirarte de cursos de un período inactivo")

    enrollment.state = EnrollmentStateEnum.withdrawn
    enrollment.withdrawn_at = utcnow()
    session.add(enrollment)
    session.commit()
    session.refresh(enrollment)

    course = session.get(Course, enrollment.course_id)
    logger.info("Estudiante %s retirado de la matrícula %s", student_id, enrollment_id)
    _publish(
        session,
        sink,
        EnrollmentWithdrawn(
            student_id=student_id,
            enrollment_id=enrollment.id,
            course_id=enrollment.course_id,
            course_name=course.name if course else "",
            period_name=period.name,
        ),
    )
    return enrollment


def enroll_directed(
    session: Session,
    period_id: int,
    course_id: int,
    student_ids: List[int],
    sink: Optional[NotificationSink] = None,
) -> DirectedEnrollmentResult:
    """Authorized bulk enrollment; one failing student never stops the rest."""
    result = DirectedEnrollmentResult(period_id=period_id, course_id=course_id)
    for student_id in student_ids:
        try:
            enrollment = enroll(session, student_id, course_id, period_id, authorized=True, sink=sink)
        except RulesEngineError as exc:
            result.failed.append({"student_id": student_id, "detail": exc.message, "kind": exc.kind})
            continue
        result.enrolled.append(enrollment.id)
    logger.info(
        "Matrícula dirigida curso %s período %s: %d exitosas, %d fallidas",
        course_id,
        period_id,
        len(result.enrolled),
        len(result.failed),
    )
    return result


def _enrolled_count(session: Session, course_id: int, period_id: int) -> int:
    total = session.exec(
        select(func.count())
        .select_from(Enrollment)
        .where(
            Enrollment.course_id == course_id,
            Enrollment.period_id == period_id,
            Enrollment.state == EnrollmentStateEnum.enrolled,
        )
    ).one()
    return int(total or 0)


def list_available_courses(session: Session, student_id: int) -> List[CourseAvailability]:
    student = session.get(Student, student_id)
    if not student:
        raise NotFoundError("Estudiante no encontrado", {"student_id": student_id})
    period = get_active_period(session)
    if not period:
        raise InvalidStateError("No hay un período académico activo")

    history = session.exec(
        select(Enrollment).where(
            Enrollment.student_id == student_id,
            Enrollment.state != EnrollmentStateEnum.withdrawn,
        )
    ).all()
    approved_ids = {item.course_id for item in history if is_approved(item.final_grade)}
    current_ids = {
        item.course_id
        for item in history
        if item.period_id == period.id and item.state == EnrollmentStateEnum.enrolled
    }

    courses = session.exec(
        select(Course).where(Course.cycle <= student.current_cycle).order_by(Course.cycle, Course.code)
    ).all()
    available: List[CourseAvailability] = []
    for course in courses:
        if course.id in approved_ids:
            continue
        reason = None
        if course.id in current_ids:
            reason = "Ya estás matriculado en este curso"
        else:
            shortfall = check_credit_threshold(session, student_id, course)
            if shortfall is not None:
                reason = shortfall.reason
        available.append(
            CourseAvailability(
                course_id=course.id,
                code=course.code,
                name=course.name,
                credits=course.credits,
                cycle=course.cycle,
                enrolled_count=_enrolled_count(session, course.id, period.id),
                available=reason is None,
                reason=reason,
            )
        )
    return available
