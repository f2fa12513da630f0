"""Registro de asistencia y porcentajes por estudiante y curso."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Mapping, Optional

from sqlmodel import Session, select

from ..config import settings
from ..errors import InvalidStateError, NotFoundError
from ..models import (
    AttendanceRecord,
    ClassTypeEnum,
    Course,
    Enrollment,
    EnrollmentStateEnum,
    Period,
    Student,
    utcnow,
)

logger = logging.getLogger(__name__)

LOW_ATTENDANCE_ALERT = "alerta baja asistencia"
TWO_PLACES = Decimal("0.01")


@dataclass(frozen=True)
class StudentAttendance:
    student_id: int
    student_code: str
    student_name: str
    total_sessions: int
    present: int
    absent: int
    percentage: Decimal
    alert: Optional[str] = None


@dataclass
class CourseAttendanceSummary:
    course_id: int
    course_name: str
    period_id: int
    average_percentage: Decimal
    students: List[StudentAttendance] = field(default_factory=list)

    @property
    def alerts(self) -> List[StudentAttendance]:
        return [item for item in self.students if item.alert]


def _active_period(session: Session) -> Optional[Period]:
    return session.exec(select(Period).where(Period.active == True)).first()  # noqa: E712


def _percentage(present: int, total: int) -> Decimal:
    if total == 0:
        return Decimal("0")
    return (Decimal(present) * Decimal("100") / Decimal(total)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def _upsert(
    session: Session,
    student_id: int,
    course_id: int,
    day: date,
    class_type: ClassTypeEnum,
    present: bool,
    notes: Optional[str],
) -> AttendanceRecord:
    record = session.exec(
        select(AttendanceRecord).where(
            AttendanceRecord.student_id == student_id,
            AttendanceRecord.course_id == course_id,
            AttendanceRecord.session_date == day,
            AttendanceRecord.class_type == class_type,
        )
    ).first()
    if record is None:
        record = AttendanceRecord(
            student_id=student_id,
            course_id=course_id,
            session_date=day,
            class_type=class_type,
            present=present,
            notes=notes,
        )
    else:
        record.present = present
        record.notes = notes
        record.registered_at = utcnow()
    session.add(record)
    return record


def _require_course_and_period(session: Session, course_id: int) -> Course:
    course = session.get(Course, course_id)
    if not course:
        raise NotFoundError("Curso no encontrado", {"course_id": course_id})
    if _active_period(session) is None:
        raise InvalidStateError("No hay un período académico activo para registrar asistencia")
    return course


def register_attendance(
    session: Session,
    student_id: int,
    course_id: int,
    day: date,
    class_type: ClassTypeEnum,
    present: bool,
    notes: Optional[str] = None,
) -> AttendanceRecord:
    if not session.get(Student, student_id):
        raise NotFoundError("Estudiante no encontrado", {"student_id": student_id})
    _require_course_and_period(session, course_id)
    record = _upsert(session, student_id, course_id, day, class_type, present, notes)
    session.commit()
    session.refresh(record)
    logger.info(
        "Asistencia %s registrada: estudiante %s curso %s %s",
        "presente" if present else "ausente",
        student_id,
        course_id,
        day.isoformat(),
    )
    return record


def register_attendance_bulk(
    session: Session,
    course_id: int,
    day: date,
    class_type: ClassTypeEnum,
    marks: Mapping[int, bool],
) -> List[AttendanceRecord]:
    """Register one class session for several students at once."""
    _require_course_and_period(session, course_id)
    missing = [student_id for student_id in marks if not session.get(Student, student_id)]
    if missing:
        raise NotFoundError("Estudiantes no encontrados", {"student_ids": missing})
    records = [
        _upsert(session, student_id, course_id, day, class_type, present, None)
        for student_id, present in marks.items()
    ]
    session.commit()
    for record in records:
        session.refresh(record)
    logger.info("Asistencia registrada para %d estudiantes del curso %s", len(records), course_id)
    return records


def _counts(
    session: Session, student_id: int, course_id: int, period: Optional[Period] = None
) -> tuple[int, int]:
    query = select(AttendanceRecord).where(
        AttendanceRecord.student_id == student_id,
        AttendanceRecord.course_id == course_id,
    )
    if period is not None:
        query = query.where(
            AttendanceRecord.session_date >= period.start_date,
            AttendanceRecord.session_date <= period.end_date,
        )
    records = session.exec(query).all()
    present = sum(1 for record in records if record.present)
    return present, len(records)


def compute_percentage(
    session: Session, student_id: int, course_id: int, period_id: Optional[int] = None
) -> Decimal:
    """Percentage of classes attended within a period.

    Without ``period_id`` the active period is used; with no active period
    every record of the course counts.
    """
    if period_id is None:
        period = _active_period(session)
    else:
        period = session.get(Period, period_id)
        if period is None:
            raise NotFoundError("El período académico no existe", {"period_id": period_id})
    present, total = _counts(session, student_id, course_id, period)
    return _percentage(present, total)


def compute_course_summary(
    session: Session, course_id: int, period_id: Optional[int] = None
) -> CourseAttendanceSummary:
    course = session.get(Course, course_id)
    if not course:
        raise NotFoundError("Curso no encontrado", {"course_id": course_id})
    if period_id is None:
        period = _active_period(session)
        if period is None:
            raise InvalidStateError("No hay un período académico activo")
    else:
        period = session.get(Period, period_id)
        if period is None:
            raise NotFoundError("El período académico no existe", {"period_id": period_id})

    students = session.exec(
        select(Student)
        .join(Enrollment, Enrollment.student_id == Student.id)
        .where(
            Enrollment.course_id == course_id,
            Enrollment.period_id == period.id,
            Enrollment.state == EnrollmentStateEnum.enrolled,
        )
        .order_by(Student.last_names, Student.first_names)
    ).all()

    threshold = settings.rules.attendance_alert_threshold
    rows: List[StudentAttendance] = []
    for student in students:
        present, total = _counts(session, student.id, course_id, period)
        percentage = _percentage(present, total)
        rows.append(
            StudentAttendance(
                student_id=student.id,
                student_code=student.code,
                student_name=student.full_name,
                total_sessions=total,
                present=present,
                absent=total - present,
                percentage=percentage,
                alert=LOW_ATTENDANCE_ALERT if percentage < threshold else None,
            )
        )

    if rows:
        average = (sum((row.percentage for row in rows), Decimal("0")) / len(rows)).quantize(
            TWO_PLACES, rounding=ROUND_HALF_UP
        )
    else:
        average = Decimal("0")
    return CourseAttendanceSummary(
        course_id=course.id,
        course_name=course.name,
        period_id=period.id,
        average_percentage=average,
        students=rows,
    )
