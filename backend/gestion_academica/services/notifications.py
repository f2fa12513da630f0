"""Eventos de matrícula y el sumidero que los entrega.

La entrega es "fire-and-forget": una falla del sumidero nunca revierte ni
rechaza la operación académica que originó el evento.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from typing import Optional, Protocol, Union

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from ..models import Notification, Student

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EnrollmentCreated:
    student_id: int
    enrollment_id: int
    course_id: int
    course_name: str
    period_name: str
    authorized: bool = False

    action = "matricula"

    @property
    def message(self) -> str:
        return f"Te has matriculado exitosamente en el curso: {self.course_name}"


@dataclass(frozen=True)
class EnrollmentWithdrawn:
    student_id: int
    enrollment_id: int
    course_id: int
    course_name: str
    period_name: str

    action = "retiro"

    @property
    def message(self) -> str:
        return f"Te has retirado del curso: {self.course_name}"


EnrollmentEvent = Union[EnrollmentCreated, EnrollmentWithdrawn]


class NotificationSink(Protocol):
    def publish(self, event: EnrollmentEvent) -> None:
        ...


class DatabaseNotificationSink:
    """Persist events as ``Notification`` rows in an independent session."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def publish(self, event: EnrollmentEvent) -> None:
        payload = {"event": type(event).__name__, **asdict(event)}
        try:
            with Session(self._engine) as session:
                student = session.get(Student, event.student_id)
                session.add(
                    Notification(
                        user_id=student.user_id if student else None,
                        student_id=event.student_id,
                        action=event.action,
                        message=event.message,
                        payload=json.dumps(payload, ensure_ascii=False),
                    )
                )
                session.commit()
        except SQLAlchemyError:
            logger.warning(
                "No se pudo registrar la notificación %s del estudiante %s",
                event.action,
                event.student_id,
                exc_info=True,
            )


class MemoryNotificationSink:
    """Keep published events in memory; used by tests and dry runs."""

    def __init__(self) -> None:
        self.events: list[EnrollmentEvent] = []

    def publish(self, event: EnrollmentEvent) -> None:
        self.events.append(event)


def default_sink(session: Session) -> Optional[NotificationSink]:
    bind = session.get_bind()
    if bind is None:
        return None
    engine = getattr(bind, "engine", bind)
    return DatabaseNotificationSink(engine)
