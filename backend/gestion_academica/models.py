from datetime import UTC, datetime, date, time
from decimal import Decimal
from typing import Optional
from enum import Enum
from sqlalchemy import DateTime, UniqueConstraint
from sqlmodel import SQLModel, Field


def utcnow() -> datetime:
    return datetime.now(UTC)


class UserRoleEnum(str, Enum):
    admin = "admin"
    teacher = "teacher"
    student = "student"


class StudentStatusEnum(str, Enum):
    active = "Activo"
    inactive = "Inactivo"


class CourseCategoryEnum(str, Enum):
    regular = "regular"
    professional_practice = "practica_profesional"


class PeriodHalfEnum(str, Enum):
    first = "I"
    second = "II"


class EnrollmentStateEnum(str, Enum):
    enrolled = "Matriculado"
    withdrawn = "Retirado"


class ClassTypeEnum(str, Enum):
    theory = "Teoría"
    practice = "Práctica"


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True, unique=True)
    full_name: str
    hashed_password: str
    role: str = Field(index=True)  # valores permitidos: admin, teacher, student
    is_active: bool = Field(default=True)


class Teacher(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: Optional[int] = Field(default=None, foreign_key="user.id", index=True, sa_column_kwargs={"nullable": True})
    first_names: str
    last_names: str
    email: Optional[str] = None
    specialty: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_names} {self.last_names}"


class Student(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: Optional[int] = Field(default=None, foreign_key="user.id", index=True, sa_column_kwargs={"nullable": True})
    code: str = Field(index=True, unique=True)
    first_names: str
    last_names: str
    # Información académica, actualizada al cerrar y abrir períodos
    current_cycle: int = Field(default=1)
    accumulated_credits: int = Field(default=0)
    cumulative_average: Optional[Decimal] = Field(default=None, max_digits=6, decimal_places=2)
    semester_average: Optional[Decimal] = Field(default=None, max_digits=6, decimal_places=2)
    status: StudentStatusEnum = Field(default=StudentStatusEnum.active)

    @property
    def full_name(self) -> str:
        return f"{self.first_names} {self.last_names}"


class Course(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    code: str = Field(index=True, unique=True)
    name: str
    credits: int = Field(default=0)
    weekly_hours: int = Field(default=0)
    cycle: int = Field(default=1, index=True, description="Ciclo del plan de estudios al que pertenece")
    teacher_id: Optional[int] = Field(default=None, foreign_key="teacher.id", index=True, sa_column_kwargs={"nullable": True})
    category: CourseCategoryEnum = Field(default=CourseCategoryEnum.regular)


class CoursePrerequisite(SQLModel, table=True):
    course_id: Optional[int] = Field(
        default=None,
        foreign_key="course.id",
        primary_key=True,
    )
    prerequisite_course_id: Optional[int] = Field(
        default=None,
        foreign_key="course.id",
        primary_key=True,
    )


class Period(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True, unique=True, max_length=50)  # por ejemplo 2025-I
    year: int = Field(index=True)
    half: PeriodHalfEnum = Field(default=PeriodHalfEnum.first)
    start_date: date
    end_date: date
    active: bool = Field(default=False, index=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True), nullable=False)
    closed_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True), sa_column_kwargs={"nullable": True})


class Enrollment(SQLModel, table=True):
    __table_args__ = (
        UniqueConstraint("student_id", "course_id", "period_id", name="uq_enrollment_student_course_period"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    student_id: int = Field(foreign_key="student.id", index=True)
    course_id: int = Field(foreign_key="course.id", index=True)
    period_id: int = Field(foreign_key="period.id", index=True)
    state: EnrollmentStateEnum = Field(default=EnrollmentStateEnum.enrolled, index=True)
    # Se congela al cerrar el período; antes se deriva de las notas
    final_grade: Optional[Decimal] = Field(default=None, max_digits=9, decimal_places=6, sa_column_kwargs={"nullable": True})
    authorized: bool = Field(default=False)
    enrolled_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    withdrawn_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True), sa_column_kwargs={"nullable": True})


class EvaluationType(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    course_id: int = Field(foreign_key="course.id", index=True)
    name: str = Field(max_length=100)
    weight: Decimal = Field(max_digits=5, decimal_places=2)  # porcentaje 0-100
    order: int = Field(default=0)
    active: bool = Field(default=True)


class GradeEntry(SQLModel, table=True):
    __table_args__ = (
        UniqueConstraint("enrollment_id", "evaluation_type", name="uq_grade_entry_evaluation"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    enrollment_id: int = Field(foreign_key="enrollment.id", index=True)
    evaluation_type: str = Field(max_length=100)
    value: Decimal = Field(max_digits=5, decimal_places=2)
    weight: Decimal = Field(max_digits=5, decimal_places=2)
    recorded_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    notes: Optional[str] = None


class AttendanceRecord(SQLModel, table=True):
    __table_args__ = (
        UniqueConstraint("student_id", "course_id", "session_date", "class_type", name="uq_attendance_session"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    student_id: int = Field(foreign_key="student.id", index=True)
    course_id: int = Field(foreign_key="course.id", index=True)
    session_date: date
    class_type: ClassTypeEnum = Field(default=ClassTypeEnum.theory)
    present: bool = Field(default=True)
    notes: Optional[str] = None
    registered_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class ScheduleSlot(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    course_id: int = Field(foreign_key="course.id", index=True)
    day_of_week: int  # 1=Lunes ... 7=Domingo
    start_time: time
    end_time: time
    room: Optional[str] = Field(default=None, max_length=50)
    slot_type: ClassTypeEnum = Field(default=ClassTypeEnum.theory)


class Notification(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: Optional[int] = Field(default=None, foreign_key="user.id", index=True, sa_column_kwargs={"nullable": True})
    student_id: Optional[int] = Field(default=None, foreign_key="student.id", index=True, sa_column_kwargs={"nullable": True})
    kind: str = Field(default="academico", index=True)
    action: str
    message: str
    payload: Optional[str] = Field(default=None, description="Evento serializado en JSON")
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True), nullable=False)
    read: bool = Field(default=False)
