from datetime import date
from decimal import Decimal

import pytest
from sqlmodel import select

from gestion_academica.errors import InvalidStateError, NotFoundError
from gestion_academica.models import AttendanceRecord, ClassTypeEnum, EnrollmentStateEnum
from gestion_academica.services import attendance

from helpers import make_course, make_enrollment, make_period, make_student


def _mark(session, student, course, day, present, class_type=ClassTypeEnum.theory):
    return attendance.register_attendance(session, student.id, course.id, day, class_type, present)


def test_percentage_is_zero_without_records(session):
    student = make_student(session)
    course = make_course(session, "MAT101")
    assert attendance.compute_percentage(session, student.id, course.id) == Decimal("0")


def test_register_requires_active_period_and_existing_rows(session):
    student = make_student(session)
    course = make_course(session, "MAT101")
    with pytest.raises(InvalidStateError):
        _mark(session, student, course, date(2025, 4, 1), True)
    make_period(session, "2025-I", active=True)
    with pytest.raises(NotFoundError):
        attendance.register_attendance(session, 999, course.id, date(2025, 4, 1), ClassTypeEnum.theory, True)
    with pytest.raises(NotFoundError):
        attendance.register_attendance(session, student.id, 999, date(2025, 4, 1), ClassTypeEnum.theory, True)


def test_register_upserts_same_session(session):
    student = make_student(session)
    course = make_course(session, "MAT101")
    make_period(session, "2025-I", active=True)

    _mark(session, student, course, date(2025, 4, 1), False)
    _mark(session, student, course, date(2025, 4, 1), True)
    _mark(session, student, course, date(2025, 4, 1), False, class_type=ClassTypeEnum.practice)

    records = session.exec(select(AttendanceRecord)).all()
    assert len(records) == 2
    theory = next(item for item in records if item.class_type == ClassTypeEnum.theory)
    assert theory.present is True
    assert attendance.compute_percentage(session, student.id, course.id) == Decimal("50.00")


def test_percentage_rounds_to_two_decimals(session):
    student = make_student(session)
    course = make_course(session, "MAT101")
    make_period(session, "2025-I", active=True)
    for day, present in [(1, True), (2, True), (3, False)]:
        _mark(session, student, course, date(2025, 4, day), present)
    assert attendance.compute_percentage(session, student.id, course.id) == Decimal("66.67")


def test_course_summary_flags_low_attendance(session):
    course = make_course(session, "MAT101")
    period = make_period(session, "2025-I", active=True)
    regular = make_student(session, "E001")
    absent = make_student(session, "E002")
    dropped = make_student(session, "E003")
    for student in (regular, absent):
        make_enrollment(session, student, course, period)
    make_enrollment(session, dropped, course, period, state=EnrollmentStateEnum.withdrawn)

    attendance.register_attendance_bulk(
        session, course.id, date(2025, 4, 1), ClassTypeEnum.theory, {regular.id: True, absent.id: False}
    )
    attendance.register_attendance_bulk(
        session, course.id, date(2025, 4, 3), ClassTypeEnum.theory, {regular.id: True, absent.id: True}
    )

    summary = attendance.compute_course_summary(session, course.id)

    rows = {row.student_id: row for row in summary.students}
    assert set(rows) == {regular.id, absent.id}
    assert rows[regular.id].percentage == Decimal("100.00")
    assert rows[regular.id].alert is None
    assert rows[absent.id].percentage == Decimal("50.00")
    assert rows[absent.id].alert == attendance.LOW_ATTENDANCE_ALERT
    assert summary.average_percentage == Decimal("75.00")
    assert [row.student_id for row in summary.alerts] == [absent.id]


def test_bulk_rejects_unknown_students(session):
    course = make_course(session, "MAT101")
    make_period(session, "2025-I", active=True)
    with pytest.raises(NotFoundError) as exc:
        attendance.register_attendance_bulk(session, course.id, date(2025, 4, 1), ClassTypeEnum.theory, {42: True})
    assert exc.value.details == {"student_ids": [42]}


def test_retake_only_counts_current_period_sessions(session):
    student = make_student(session)
    course = make_course(session, "MAT101")
    earlier = make_period(session, "2024-I", closed=True)
    current = make_period(session, "2025-I", active=True)
    make_enrollment(session, student, course, earlier, final_grade="8")
    make_enrollment(session, student, course, current)
    for day in (1, 2):
        session.add(AttendanceRecord(
            student_id=student.id, course_id=course.id, session_date=date(2024, 4, day), present=False
        ))
    session.commit()

    _mark(session, student, course, date(2025, 4, 1), True)
    _mark(session, student, course, date(2025, 4, 2), True)

    row = attendance.compute_course_summary(session, course.id, period_id=current.id).students[0]
    assert (row.total_sessions, row.present) == (2, 2)
    assert row.percentage == Decimal("100.00")
    assert row.alert is None
    assert attendance.compute_percentage(session, student.id, course.id) == Decimal("100.00")
    assert attendance.compute_percentage(session, student.id, course.id, period_id=earlier.id) == Decimal("0")
