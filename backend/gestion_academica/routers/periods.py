from typing import List

from fastapi import APIRouter, Depends
from sqlmodel import select

from ..db import get_session
from ..models import Period
from ..security import get_current_user, require_roles
from ..services import periods as period_service
from ..services.periods import PeriodData


router = APIRouter(prefix="/periods", tags=["periods"])


def _out(period: Period) -> dict:
    data = period.model_dump()
    data["state"] = period_service.period_state(period).value
    return data


@router.get("/", response_model=List[dict])
def list_periods(session=Depends(get_session), user=Depends(get_current_user)):
    periods = session.exec(select(Period).order_by(Period.year, Period.half)).all()
    return [_out(item) for item in periods]


@router.post("/", response_model=dict, status_code=201)
def create_period(
    payload: PeriodData,
    activate: bool = False,
    session=Depends(get_session),
    user=Depends(require_roles("admin")),
):
    return _out(period_service.create_period(session, payload, activate=activate))


@router.get("/{period_id}", response_model=dict)
def get_period(period_id: int, session=Depends(get_session), user=Depends(get_current_user)):
    return _out(period_service.get_period(session, period_id))


@router.put("/{period_id}", response_model=dict)
def update_period(
    period_id: int, payload: PeriodData, session=Depends(get_session), user=Depends(require_roles("admin"))
):
    return _out(period_service.update_period(session, period_id, payload))


@router.delete("/{period_id}")
def delete_period(period_id: int, session=Depends(get_session), user=Depends(require_roles("admin"))):
    period_service.delete_period(session, period_id)
    return {"ok": True}


@router.post("/{period_id}/activate")
def activate_period(period_id: int, session=Depends(get_session), user=Depends(require_roles("admin"))):
    result = period_service.activate_period(session, period_id)
    return {
        "period": _out(result.period),
        "previous_period_id": result.previous_period_id,
        "promoted_student_ids": result.promoted_student_ids,
    }


@router.post("/{period_id}/open")
def open_period(period_id: int, session=Depends(get_session), user=Depends(require_roles("admin"))):
    result = period_service.open_period(session, period_id)
    return {
        "period": _out(result.period),
        "previous_period_id": result.previous_period_id,
        "promoted_student_ids": result.promoted_student_ids,
    }


@router.get("/{period_id}/close-validation")
def close_validation(period_id: int, session=Depends(get_session), user=Depends(require_roles("admin"))):
    readiness = period_service.validate_period_close(session, period_id)
    return {"period_id": readiness.period_id, "ready": readiness.ready, "missing": readiness.missing}


@router.post("/{period_id}/close")
def close_period(period_id: int, session=Depends(get_session), user=Depends(require_roles("admin"))):
    return period_service.close_period(session, period_id)
