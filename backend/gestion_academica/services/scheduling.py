"""Bloques de horario semanal y detección de cruces por docente."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import time
from typing import List, Optional

from pydantic import BaseModel
from sqlmodel import Session, select

from ..errors import NotFoundError, PolicyViolationError
from ..models import ClassTypeEnum, Course, ScheduleSlot, Teacher

logger = logging.getLogger(__name__)

DAY_NAMES = {1: "Lunes", 2: "Martes", 3: "Miércoles", 4: "Jueves", 5: "Viernes", 6: "Sábado", 7: "Domingo"}


class SlotData(BaseModel):
    course_id: int
    day_of_week: int
    start_time: time
    end_time: time
    room: Optional[str] = None
    slot_type: ClassTypeEnum = ClassTypeEnum.theory


@dataclass(frozen=True)
class ScheduleConflict:
    slot_id: int
    course_id: int
    course_name: str
    day_of_week: int
    start_time: time
    end_time: time

    @property
    def time_range(self) -> str:
        return f"{self.start_time:%H:%M} - {self.end_time:%H:%M}"

    @property
    def message(self) -> str:
        return f"Conflicto de horario con el curso {self.course_name}"

    def to_dict(self) -> dict:
        return {
            "slot_id": self.slot_id,
            "course_id": self.course_id,
            "course_name": self.course_name,
            "day_of_week": self.day_of_week,
            "time_range": self.time_range,
        }


@dataclass(frozen=True)
class TeacherScheduleEntry:
    slot_id: int
    course_id: int
    course_code: str
    course_name: str
    day_of_week: int
    day_name: str
    start_time: time
    end_time: time
    room: Optional[str]
    slot_type: ClassTypeEnum


def _overlaps(start: time, end: time, other_start: time, other_end: time) -> bool:
    # Intervalos semiabiertos: 08-10 y 10-12 no se cruzan
    return start < other_end and end > other_start


def check_conflict(
    session: Session,
    course_id: int,
    day_of_week: int,
    start_time: time,
    end_time: time,
    exclude_slot_id: Optional[int] = None,
) -> Optional[ScheduleConflict]:
    course = session.get(Course, course_id)
    if not course:
        raise NotFoundError("Curso no encontrado", {"course_id": course_id})
    if course.teacher_id is None:
        return None

    stmt = (
        select(ScheduleSlot, Course)
        .join(Course, Course.id == ScheduleSlot.course_id)
        .where(Course.teacher_id == course.teacher_id, ScheduleSlot.day_of_week == day_of_week)
        .order_by(ScheduleSlot.start_time, ScheduleSlot.id)
    )
    if exclude_slot_id is not None:
        stmt = stmt.where(ScheduleSlot.id != exclude_slot_id)
    for slot, other_course in session.exec(stmt).all():
        if _overlaps(start_time, end_time, slot.start_time, slot.end_time):
            return ScheduleConflict(
                slot_id=slot.id,
                course_id=other_course.id,
                course_name=other_course.name,
                day_of_week=slot.day_of_week,
                start_time=slot.start_time,
                end_time=slot.end_time,
            )
    return None


def _validate(session: Session, data: SlotData, exclude_slot_id: Optional[int] = None) -> None:
    if data.day_of_week not in DAY_NAMES:
        raise PolicyViolationError("El día debe estar entre 1 (Lunes) y 7 (Domingo)", {"day_of_week": data.day_of_week})
    if data.start_time >= data.end_time:
        raise PolicyViolationError("La hora de inicio debe ser menor que la hora de fin")
    conflict = check_conflict(
        session, data.course_id, data.day_of_week, data.start_time, data.end_time, exclude_slot_id=exclude_slot_id
    )
    if conflict is not None:
        logger.info("Cruce de horario detectado para el curso %s: %s", data.course_id, conflict.message)
        raise PolicyViolationError(f"{conflict.message} ({conflict.time_range})", conflict.to_dict())


def create_slot(session: Session, data: SlotData) -> ScheduleSlot:
    _validate(session, data)
    slot = ScheduleSlot(**data.model_dump())
    session.add(slot)
    session.commit()
    session.refresh(slot)
    logger.info("Horario %s creado para el curso %s", slot.id, slot.course_id)
    return slot


def update_slot(session: Session, slot_id: int, data: SlotData) -> ScheduleSlot:
    slot = session.get(ScheduleSlot, slot_id)
    if not slot:
        raise NotFoundError("Horario no encontrado", {"slot_id": slot_id})
    _validate(session, data, exclude_slot_id=slot_id)
    for key, value in data.model_dump().items():
        setattr(slot, key, value)
    session.add(slot)
    session.commit()
    session.refresh(slot)
    return slot


def delete_slot(session: Session, slot_id: int) -> None:
    slot = session.get(ScheduleSlot, slot_id)
    if not slot:
        raise NotFoundError("Horario no encontrado", {"slot_id": slot_id})
    session.delete(slot)
    session.commit()


def list_teacher_schedule(session: Session, teacher_id: int) -> List[TeacherScheduleEntry]:
    if not session.get(Teacher, teacher_id):
        raise NotFoundError("Docente no encontrado", {"teacher_id": teacher_id})
    rows = session.exec(
        select(ScheduleSlot, Course)
        .join(Course, Course.id == ScheduleSlot.course_id)
        .where(Course.teacher_id == teacher_id)
        .order_by(ScheduleSlot.day_of_week, ScheduleSlot.start_time)
    ).all()
    return [
        TeacherScheduleEntry(
            slot_id=slot.id,
            course_id=course.id,
            course_code=course.code,
            course_name=course.name,
            day_of_week=slot.day_of_week,
            day_name=DAY_NAMES[slot.day_of_week],
            start_time=slot.start_time,
            end_time=slot.end_time,
            room=slot.room,
            slot_type=slot.slot_type,
        )
        for slot, course in rows
    ]
