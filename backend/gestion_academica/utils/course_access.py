from fastapi import HTTPException, status
from sqlmodel import select

from ..errors import NotFoundError
from ..models import Course, Enrollment, Student, Teacher, User, UserRoleEnum


def require_teacher(session, user: User) -> Teacher:
    teacher = session.exec(select(Teacher).where(Teacher.user_id == user.id)).first()
    if not teacher:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Se requiere un perfil docente asignado.")
    return teacher


def require_student(session, user: User) -> Student:
    student = session.exec(select(Student).where(Student.user_id == user.id)).first()
    if not student:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Se requiere un perfil de estudiante asignado.")
    return student


def ensure_teacher_course_permission(session, user: User, course_id: int) -> Course:
    """Admins manage every course; a teacher only the courses assigned to them."""
    course = session.get(Course, course_id)
    if not course:
        raise NotFoundError("Curso no encontrado", {"course_id": course_id})
    if user.role == UserRoleEnum.admin.value:
        return course
    if user.role != UserRoleEnum.teacher.value:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Permisos insuficientes")
    teacher = require_teacher(session, user)
    if course.teacher_id != teacher.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="El curso pertenece a otro docente")
    return course


def ensure_enrollment_permission(session, user: User, enrollment_id: int) -> Enrollment:
    enrollment = session.get(Enrollment, enrollment_id)
    if not enrollment:
        raise NotFoundError("Matrícula no encontrada", {"enrollment_id": enrollment_id})
    ensure_teacher_course_permission(session, user, enrollment.course_id)
    return enrollment


def ensure_student_record_access(session, user: User, student_id: int) -> None:
    # Un estudiante solo consulta su propio historial
    if user.role == UserRoleEnum.student.value:
        own = require_student(session, user)
        if own.id != student_id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Permisos insuficientes")
    elif user.role not in (UserRoleEnum.admin.value, UserRoleEnum.teacher.value):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Permisos insuficientes")
