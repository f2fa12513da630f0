"""Agregación de notas: tipos de evaluación, nota final ponderada y redondeo."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Mapping, Optional

from pydantic import BaseModel
from sqlmodel import Session, select

from ..config import settings
from ..errors import InvalidStateError, NotFoundError, PolicyViolationError
from ..models import (
    Course,
    Enrollment,
    EnrollmentStateEnum,
    EvaluationType,
    GradeEntry,
    Period,
    utcnow,
)

logger = logging.getLogger(__name__)

WEIGHT_TOLERANCE = Decimal("0.01")

DEFAULT_EVALUATION_TYPES: List[tuple[str, Decimal]] = [
    ("Parcial 1", Decimal("10")),
    ("Parcial 2", Decimal("10")),
    ("Prácticas", Decimal("20")),
    ("Medio Curso", Decimal("20")),
    ("Examen Final", Decimal("20")),
    ("Actitud", Decimal("5")),
    ("Trabajos", Decimal("15")),
]


class EvaluationTypeSpec(BaseModel):
    id: Optional[int] = None
    name: str
    weight: Decimal
    order: int = 0
    active: bool = True


@dataclass(frozen=True)
class GradeResult:
    enrollment_id: int
    final_grade: Optional[Decimal]
    display_grade: Optional[int]
    approved: bool
    entries: Dict[str, Decimal]


def weighted_final_grade(entries: Iterable) -> Optional[Decimal]:
    """Sum of ``value * weight / 100`` over the entries; ``None`` when empty."""
    total = Decimal("0")
    seen = False
    for entry in entries:
        seen = True
        total += Decimal(entry.value) * Decimal(entry.weight) / Decimal("100")
    return total if seen else None


def commercial_round(value: Decimal) -> int:
    # ROUND_HALF_UP de decimal redondea alejándose de cero
    return int(Decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def is_approved(value: Optional[Decimal]) -> bool:
    if value is None:
        return False
    return Decimal(value) >= settings.rules.passing_grade


def credit_weighted_average(pairs: Iterable[tuple[Decimal, int]]) -> Optional[Decimal]:
    """Average of ``(grade, credits)`` pairs weighted by credits, two decimals."""
    total = Decimal("0")
    credits = 0
    for grade, course_credits in pairs:
        total += Decimal(grade) * course_credits
        credits += course_credits
    if credits == 0:
        return None
    return (total / credits).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _entries_for(session: Session, enrollment_id: int) -> List[GradeEntry]:
    return list(
        session.exec(
            select(GradeEntry).where(GradeEntry.enrollment_id == enrollment_id).order_by(GradeEntry.id)
        ).all()
    )


def compute_final_grade(session: Session, enrollment_id: int) -> Optional[Decimal]:
    enrollment = session.get(Enrollment, enrollment_id)
    if not enrollment:
        raise NotFoundError("Matrícula no encontrada", {"enrollment_id": enrollment_id})
    period = session.get(Period, enrollment.period_id)
    if period is not None and period.closed_at is not None and enrollment.final_grade is not None:
        return enrollment.final_grade
    return weighted_final_grade(_entries_for(session, enrollment_id))


def _configured_types(session: Session, course_id: int, only_active: bool = True) -> List[EvaluationType]:
    stmt = select(EvaluationType).where(EvaluationType.course_id == course_id)
    if only_active:
        stmt = stmt.where(EvaluationType.active == True)  # noqa: E712
    return list(session.exec(stmt.order_by(EvaluationType.order, EvaluationType.id)).all())


def get_evaluation_types(session: Session, course_id: int) -> List[EvaluationTypeSpec]:
    if not session.get(Course, course_id):
        raise NotFoundError("Curso no encontrado", {"course_id": course_id})
    configured = _configured_types(session, course_id)
    if configured:
        return [
            EvaluationTypeSpec(id=item.id, name=item.name, weight=item.weight, order=item.order, active=item.active)
            for item in configured
        ]
    return [
        EvaluationTypeSpec(name=name, weight=weight, order=index)
        for index, (name, weight) in enumerate(DEFAULT_EVALUATION_TYPES, start=1)
    ]


def _weights_by_name(session: Session, course_id: int) -> Dict[str, Decimal]:
    return {item.name: Decimal(item.weight) for item in get_evaluation_types(session, course_id) if item.active}


def _course_entries(session: Session, course_id: int, evaluation_type: str) -> List[GradeEntry]:
    return list(
        session.exec(
            select(GradeEntry)
            .join(Enrollment, Enrollment.id == GradeEntry.enrollment_id)
            .where(Enrollment.course_id == course_id, GradeEntry.evaluation_type == evaluation_type)
        ).all()
    )


def configure_evaluation_types(
    session: Session, course_id: int, types: List[EvaluationTypeSpec]
) -> List[EvaluationTypeSpec]:
    """Replace the evaluation types of a course.

    Active weights must add up to 100. Renamed types carry their grade
    entries along; entries of removed types are deleted.
    """
    if not session.get(Course, course_id):
        raise NotFoundError("Curso no encontrado", {"course_id": course_id})
    if not types:
        raise PolicyViolationError("Debe configurar al menos un tipo de evaluación")

    names = [item.name.strip() for item in types]
    if any(not name for name in names):
        raise PolicyViolationError("El nombre del tipo de evaluación es obligatorio")
    if len(set(name.lower() for name in names)) != len(names):
        raise PolicyViolationError("Los tipos de evaluación deben tener nombres distintos")
    for item in types:
        if item.weight < 0 or item.weight > 100:
            raise PolicyViolationError(
                f"El peso de '{item.name}' debe estar entre 0 y 100", {"name": item.name, "weight": str(item.weight)}
            )

    total = sum((Decimal(item.weight) for item in types if item.active), Decimal("0"))
    if abs(total - Decimal("100")) > WEIGHT_TOLERANCE:
        raise PolicyViolationError(
            f"Los pesos deben sumar 100%. Suma actual: {total.normalize():f}%",
            {"total": str(total)},
        )

    existing = {item.id: item for item in _configured_types(session, course_id, only_active=False)}
    kept_ids = set()
    for index, item in enumerate(types, start=1):
        name = item.name.strip()
        order = item.order or index
        current = existing.get(item.id) if item.id is not None else None
        if item.id is not None and current is None:
            raise NotFoundError("Tipo de evaluación no encontrado", {"evaluation_type_id": item.id})
        if current is None:
            session.add(
                EvaluationType(course_id=course_id, name=name, weight=item.weight, order=order, active=item.active)
            )
            continue
        kept_ids.add(current.id)
        old_name = current.name
        if old_name != name or Decimal(current.weight) != Decimal(item.weight):
            for entry in _course_entries(session, course_id, old_name):
                entry.evaluation_type = name
                entry.weight = item.weight
                session.add(entry)
        current.name = name
        current.weight = item.weight
        current.order = order
        current.active = item.active
        session.add(current)

    for type_id, removed in existing.items():
        if type_id in kept_ids:
            continue
        for entry in _course_entries(session, course_id, removed.name):
            session.delete(entry)
        session.delete(removed)

    session.commit()
    logger.info("Tipos de evaluación configurados para el curso %s (%d tipos)", course_id, len(types))
    return get_evaluation_types(session, course_id)


def _gradable_enrollment(session: Session, enrollment_id: int) -> Enrollment:
    enrollment = session.get(Enrollment, enrollment_id)
    if not enrollment:
        raise NotFoundError("Matrícula no encontrada", {"enrollment_id": enrollment_id})
    if enrollment.state != EnrollmentStateEnum.enrolled:
        raise InvalidStateError("Solo se pueden registrar notas en matrículas vigentes", {"state": enrollment.state})
    period = session.get(Period, enrollment.period_id)
    if not period or not period.active:
        raise InvalidStateError(
            "Solo se pueden registrar notas en el período activo", {"period_id": enrollment.period_id}
        )
    return enrollment


def _validate_value(value: Decimal) -> Decimal:
    rules = settings.rules
    value = Decimal(value)
    if value < rules.min_grade or value > rules.max_grade:
        raise PolicyViolationError(
            f"La nota debe estar entre {rules.min_grade} y {rules.max_grade}", {"value": str(value)}
        )
    return value


def _upsert_entry(
    session: Session,
    enrollment: Enrollment,
    weights: Mapping[str, Decimal],
    evaluation_type: str,
    value: Decimal,
    notes: Optional[str],
) -> None:
    if evaluation_type not in weights:
        raise NotFoundError(
            f"Tipo de evaluación '{evaluation_type}' no configurado para el curso",
            {"evaluation_type": evaluation_type, "allowed": sorted(weights)},
        )
    entry = session.exec(
        select(GradeEntry).where(
            GradeEntry.enrollment_id == enrollment.id, GradeEntry.evaluation_type == evaluation_type
        )
    ).first()
    if entry is None:
        entry = GradeEntry(enrollment_id=enrollment.id, evaluation_type=evaluation_type, value=value, weight=weights[evaluation_type])
    else:
        entry.value = value
        entry.weight = weights[evaluation_type]
        entry.recorded_at = utcnow()
    if notes is not None:
        entry.notes = notes
    session.add(entry)


def _result(session: Session, enrollment_id: int) -> GradeResult:
    entries = _entries_for(session, enrollment_id)
    final = weighted_final_grade(entries)
    return GradeResult(
        enrollment_id=enrollment_id,
        final_grade=final,
        display_grade=commercial_round(final) if final is not None else None,
        approved=is_approved(final),
        entries={entry.evaluation_type: Decimal(entry.value) for entry in entries},
    )


def register_grade(
    session: Session,
    enrollment_id: int,
    evaluation_type: str,
    value: Decimal,
    notes: Optional[str] = None,
) -> GradeResult:
    return register_grades(session, enrollment_id, {evaluation_type: value}, notes=notes)


def register_grades(
    session: Session,
    enrollment_id: int,
    values: Mapping[str, Decimal],
    notes: Optional[str] = None,
) -> GradeResult:
    """Upsert several evaluation grades of one enrollment in a single commit."""
    values = {name: _validate_value(value) for name, value in values.items()}
    enrollment = _gradable_enrollment(session, enrollment_id)
    weights = _weights_by_name(session, enrollment.course_id)
    try:
        for evaluation_type, value in values.items():
            _upsert_entry(session, enrollment, weights, evaluation_type, value, notes)
    except NotFoundError:
        session.rollback()
        raise
    session.commit()
    result = _result(session, enrollment_id)
    logger.info(
        "Notas registradas en la matrícula %s (%s); promedio actual %s",
        enrollment_id,
        ", ".join(values),
        result.final_grade,
    )
    return result
