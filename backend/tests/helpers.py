"""Builders for seeding rows directly in service tests."""

from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, Optional

from sqlmodel import Session

from gestion_academica.models import (
    Course,
    CourseCategoryEnum,
    CoursePrerequisite,
    Enrollment,
    EnrollmentStateEnum,
    GradeEntry,
    Period,
    PeriodHalfEnum,
    Student,
    Teacher,
    utcnow,
)
from gestion_academica.services.grading import DEFAULT_EVALUATION_TYPES

DEFAULT_WEIGHTS = dict(DEFAULT_EVALUATION_TYPES)


def make_student(session: Session, code: str = "E001", cycle: int = 1, user_id: Optional[int] = None) -> Student:
    student = Student(code=code, first_names="Ana", last_names=f"Prueba {code}", current_cycle=cycle, user_id=user_id)
    session.add(student)
    session.commit()
    session.refresh(student)
    return student


def make_teacher(session: Session, last_names: str = "Docente") -> Teacher:
    teacher = Teacher(first_names="Carlos", last_names=last_names)
    session.add(teacher)
    session.commit()
    session.refresh(teacher)
    return teacher


def make_course(
    session: Session,
    code: str,
    name: Optional[str] = None,
    credits: int = 4,
    cycle: int = 1,
    teacher_id: Optional[int] = None,
    category: CourseCategoryEnum = CourseCategoryEnum.regular,
    prerequisites: Iterable[Course] = (),
) -> Course:
    course = Course(
        code=code,
        name=name or f"Curso {code}",
        credits=credits,
        weekly_hours=4,
        cycle=cycle,
        teacher_id=teacher_id,
        category=category,
    )
    session.add(course)
    session.commit()
    session.refresh(course)
    for prerequisite in prerequisites:
        session.add(CoursePrerequisite(course_id=course.id, prerequisite_course_id=prerequisite.id))
    session.commit()
    return course


def make_period(
    session: Session,
    name: str,
    year: Optional[int] = None,
    half: PeriodHalfEnum = PeriodHalfEnum.first,
    active: bool = False,
    closed: bool = False,
) -> Period:
    year = year or int(name.split("-")[0])
    if half == PeriodHalfEnum.first:
        start, end = date(year, 3, 1), date(year, 7, 31)
    else:
        start, end = date(year, 8, 15), date(year, 12, 20)
    period = Period(
        name=name,
        year=year,
        half=half,
        start_date=start,
        end_date=end,
        active=active,
        closed_at=utcnow() if closed else None,
    )
    session.add(period)
    session.commit()
    session.refresh(period)
    return period


def make_enrollment(
    session: Session,
    student: Student,
    course: Course,
    period: Period,
    final_grade: Optional[str] = None,
    state: EnrollmentStateEnum = EnrollmentStateEnum.enrolled,
) -> Enrollment:
    enrollment = Enrollment(
        student_id=student.id,
        course_id=course.id,
        period_id=period.id,
        state=state,
        final_grade=Decimal(final_grade) if final_grade is not None else None,
    )
    session.add(enrollment)
    session.commit()
    session.refresh(enrollment)
    return enrollment


def add_entries(session: Session, enrollment: Enrollment, values: Dict[str, str]) -> None:
    for name, value in values.items():
        session.add(
            GradeEntry(
                enrollment_id=enrollment.id,
                evaluation_type=name,
                value=Decimal(value),
                weight=DEFAULT_WEIGHTS[name],
            )
        )
    session.commit()


def uniform_grades(value: str) -> Dict[str, str]:
    """Every default evaluation type with the same value; the weighted final equals ``value``."""
    return {name: value for name, _ in DEFAULT_EVALUATION_TYPES}
