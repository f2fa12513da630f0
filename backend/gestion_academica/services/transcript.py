"""Registro de notas (historial académico) de un estudiante por semestre."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from sqlmodel import Session, select

from ..errors import NotFoundError
from ..models import (
    Course,
    Enrollment,
    EnrollmentStateEnum,
    GradeEntry,
    Period,
    PeriodHalfEnum,
    Student,
)
from .grading import commercial_round, credit_weighted_average, is_approved, weighted_final_grade

APPROVED = "Aprobado"
FAILED = "Desaprobado"


@dataclass(frozen=True)
class EvaluationLine:
    name: str
    weight: Decimal
    value: Decimal


@dataclass(frozen=True)
class CourseLine:
    course_id: int
    code: str
    name: str
    credits: int
    final_grade: Decimal
    display_grade: int
    status: str
    evaluations: List[EvaluationLine]


@dataclass
class SemesterBlock:
    cycle_number: int
    period_id: int
    period_name: str
    year: int
    half: str
    courses: List[CourseLine] = field(default_factory=list)
    semester_average: Optional[Decimal] = None
    cumulative_average: Optional[Decimal] = None

    @property
    def credits_taken(self) -> int:
        return sum(line.credits for line in self.courses)

    @property
    def credits_approved(self) -> int:
        return sum(line.credits for line in self.courses if line.status == APPROVED)


@dataclass
class Transcript:
    student_id: int
    student_code: str
    student_name: str
    semesters: List[SemesterBlock] = field(default_factory=list)
    cumulative_average: Optional[Decimal] = None

    @property
    def approved_credits(self) -> int:
        return sum(block.credits_approved for block in self.semesters)


def _course_line(course: Course, enrollment: Enrollment, entries: List[GradeEntry]) -> CourseLine:
    final = enrollment.final_grade if enrollment.final_grade is not None else weighted_final_grade(entries)
    return CourseLine(
        course_id=course.id,
        code=course.code,
        name=course.name,
        credits=course.credits,
        final_grade=final,
        display_grade=commercial_round(final),
        # 10.5 se muestra como 11 pero sigue desaprobado
        status=APPROVED if is_approved(final) else FAILED,
        evaluations=[EvaluationLine(name=e.evaluation_type, weight=e.weight, value=e.value) for e in entries],
    )


def build_transcript(session: Session, student_id: int) -> Transcript:
    student = session.get(Student, student_id)
    if not student:
        raise NotFoundError("Estudiante no encontrado", {"student_id": student_id})

    periods = session.exec(
        select(Period)
        .where(
            Period.active == False,  # noqa: E712
            Period.id.in_(select(Enrollment.period_id).where(Enrollment.student_id == student_id)),
        )
        .order_by(Period.year, Period.half, Period.start_date)
    ).all()

    transcript = Transcript(student_id=student.id, student_code=student.code, student_name=student.full_name)
    history: List[tuple[Decimal, int]] = []
    for period in periods:
        rows = session.exec(
            select(Enrollment, Course)
            .join(Course, Course.id == Enrollment.course_id)
            .where(
                Enrollment.student_id == student_id,
                Enrollment.period_id == period.id,
                Enrollment.state != EnrollmentStateEnum.withdrawn,
            )
            .order_by(Course.cycle, Course.code)
        ).all()
        lines: List[CourseLine] = []
        for enrollment, course in rows:
            entries = list(
                session.exec(
                    select(GradeEntry).where(GradeEntry.enrollment_id == enrollment.id).order_by(GradeEntry.id)
                ).all()
            )
            if not entries:
                continue
            lines.append(_course_line(course, enrollment, entries))
        if not lines:
            continue

        pairs = [(line.final_grade, line.credits) for line in lines]
        history.extend(pairs)
        transcript.semesters.append(
            SemesterBlock(
                cycle_number=len(transcript.semesters) + 1,
                period_id=period.id,
                period_name=period.name,
                year=period.year,
                half=PeriodHalfEnum(period.half).value,
                courses=lines,
                semester_average=credit_weighted_average(pairs),
                cumulative_average=credit_weighted_average(history),
            )
        )
    transcript.cumulative_average = credit_weighted_average(history)
    return transcript
