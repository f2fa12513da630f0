from __future__ import annotations

import logging
from datetime import date, time
from typing import Dict, Optional

from sqlmodel import Session, select

from .db import engine
from .models import (
    ClassTypeEnum,
    Course,
    CourseCategoryEnum,
    CoursePrerequisite,
    EvaluationType,
    Period,
    PeriodHalfEnum,
    ScheduleSlot,
    Student,
    Teacher,
    User,
)
from .security import get_password_hash, verify_password
from .services.grading import DEFAULT_EVALUATION_TYPES

logger = logging.getLogger(__name__)

DEFAULT_ADMIN_EMAIL = "admin@gestionacademica.dev"
DEFAULT_ADMIN_PASSWORD = "admin123"
DEFAULT_ADMIN_NAME = "Administrador Demo"

DEMO_PASSWORD = "demo12345"

COURSES = [
    # codigo, nombre, créditos, horas, ciclo, categoría
    ("MAT101", "Matemática Básica", 4, 5, 1, CourseCategoryEnum.regular),
    ("PRO101", "Introducción a la Programación", 4, 6, 1, CourseCategoryEnum.regular),
    ("MAT201", "Cálculo Diferencial", 4, 5, 2, CourseCategoryEnum.regular),
    ("PRO201", "Estructuras de Datos", 4, 6, 2, CourseCategoryEnum.regular),
    ("MAT301", "Cálculo Integral", 4, 5, 3, CourseCategoryEnum.regular),
    ("PPR901", "Prácticas Pre Profesionales", 6, 10, 9, CourseCategoryEnum.professional_practice),
]

PREREQUISITES = [
    ("MAT201", "MAT101"),
    ("PRO201", "PRO101"),
    ("MAT301", "MAT201"),
]

SLOTS = [
    ("MAT101", 1, time(8, 0), time(10, 0), "A-101", ClassTypeEnum.theory),
    ("MAT201", 1, time(10, 0), time(12, 0), "A-102", ClassTypeEnum.theory),
    ("PRO101", 2, time(8, 0), time(11, 0), "LAB-1", ClassTypeEnum.practice),
]


def ensure_default_admin(session: Optional[Session] = None) -> User:
    """Create a default admin user for local development if none exists."""
    owns_session = session is None
    session = session or Session(engine)
    try:
        existing = session.exec(select(User).where(User.email == DEFAULT_ADMIN_EMAIL)).first()
        if existing:
            updated = False
            if not verify_password(DEFAULT_ADMIN_PASSWORD, existing.hashed_password):
                existing.hashed_password = get_password_hash(DEFAULT_ADMIN_PASSWORD)
                updated = True
            if existing.role != "admin" or not existing.is_active:
                existing.role = "admin"
                existing.is_active = True
                updated = True
            if updated:
                session.add(existing)
                session.commit()
                session.refresh(existing)
            return existing
        user = User(
            email=DEFAULT_ADMIN_EMAIL,
            full_name=DEFAULT_ADMIN_NAME,
            hashed_password=get_password_hash(DEFAULT_ADMIN_PASSWORD),
            role="admin",
            is_active=True,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        logger.info("Usuario administrador %s creado", DEFAULT_ADMIN_EMAIL)
        return user
    finally:
        if owns_session:
            session.close()


def ensure_demo_data() -> None:
    """Load a small deterministic catalogue: teacher, courses, one active period."""
    with Session(engine) as session:
        ensure_default_admin(session)
        teacher = _ensure_teacher(session)
        course_map = _ensure_courses(session, teacher)
        _ensure_prerequisites(session, course_map)
        _ensure_evaluation_types(session, course_map)
        _ensure_slots(session, course_map)
        _ensure_students(session)
        _ensure_active_period(session)
    logger.info("Datos de demostración cargados")


def _get_or_create_user(session: Session, *, email: str, full_name: str, role: str) -> User:
    user = session.exec(select(User).where(User.email == email)).first()
    if user:
        return user
    user = User(email=email, full_name=full_name, hashed_password=get_password_hash(DEMO_PASSWORD), role=role)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def _ensure_teacher(session: Session) -> Teacher:
    user = _get_or_create_user(session, email="docente@gestionacademica.dev", full_name="Rosa Quispe", role="teacher")
    teacher = session.exec(select(Teacher).where(Teacher.user_id == user.id)).first()
    if teacher:
        return teacher
    teacher = Teacher(user_id=user.id, first_names="Rosa", last_names="Quispe", email=user.email, specialty="Matemática")
    session.add(teacher)
    session.commit()
    session.refresh(teacher)
    return teacher


def _ensure_courses(session: Session, teacher: Teacher) -> Dict[str, Course]:
    course_map: Dict[str, Course] = {}
    for code, name, credits, hours, cycle, category in COURSES:
        course = session.exec(select(Course).where(Course.code == code)).first()
        if not course:
            course = Course(
                code=code,
                name=name,
                credits=credits,
                weekly_hours=hours,
                cycle=cycle,
                category=category,
                teacher_id=teacher.id if code.startswith("MAT") else None,
            )
            session.add(course)
            session.commit()
            session.refresh(course)
        course_map[code] = course
    return course_map


def _ensure_prerequisites(session: Session, course_map: Dict[str, Course]) -> None:
    for code, prerequisite_code in PREREQUISITES:
        course_id = course_map[code].id
        prerequisite_id = course_map[prerequisite_code].id
        if session.get(CoursePrerequisite, (course_id, prerequisite_id)):
            continue
        session.add(CoursePrerequisite(course_id=course_id, prerequisite_course_id=prerequisite_id))
    session.commit()


def _ensure_evaluation_types(session: Session, course_map: Dict[str, Course]) -> None:
    for course in course_map.values():
        if session.exec(select(EvaluationType).where(EvaluationType.course_id == course.id)).first():
            continue
        for order, (name, weight) in enumerate(DEFAULT_EVALUATION_TYPES, start=1):
            session.add(EvaluationType(course_id=course.id, name=name, weight=weight, order=order))
    session.commit()


def _ensure_slots(session: Session, course_map: Dict[str, Course]) -> None:
    for code, day, start, end, room, slot_type in SLOTS:
        course = course_map[code]
        exists = session.exec(
            select(ScheduleSlot).where(
                ScheduleSlot.course_id == course.id,
                ScheduleSlot.day_of_week == day,
                ScheduleSlot.start_time == start,
            )
        ).first()
        if exists:
            continue
        session.add(
            ScheduleSlot(course_id=course.id, day_of_week=day, start_time=start, end_time=end, room=room, slot_type=slot_type)
        )
    session.commit()


def _ensure_students(session: Session) -> None:
    for code, first_names, last_names in [
        ("E2025001", "Lucía", "Mamani Flores"),
        ("E2025002", "Diego", "Huamán Torres"),
    ]:
        email = f"{code.lower()}@gestionacademica.dev"
        user = _get_or_create_user(session, email=email, full_name=f"{first_names} {last_names}", role="student")
        if session.exec(select(Student).where(Student.code == code)).first():
            continue
        session.add(Student(user_id=user.id, code=code, first_names=first_names, last_names=last_names))
    session.commit()


def _ensure_active_period(session: Session) -> None:
    if session.exec(select(Period)).first():
        return
    today = date.today()
    half = PeriodHalfEnum.first if today.month <= 7 else PeriodHalfEnum.second
    start, end = (date(today.year, 3, 1), date(today.year, 7, 31)) if half == PeriodHalfEnum.first else (
        date(today.year, 8, 15),
        date(today.year, 12, 20),
    )
    session.add(
        Period(name=f"{today.year}-{half.value}", year=today.year, half=half, start_date=start, end_date=end, active=True)
    )
    session.commit()
