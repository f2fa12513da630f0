from typing import Optional

from fastapi import APIRouter, Depends

from ..db import get_session
from ..models import ScheduleSlot
from ..security import get_current_user, require_roles
from ..services import scheduling
from ..services.scheduling import SlotData


router = APIRouter(prefix="/schedules", tags=["schedules"])


@router.get("/teachers/{teacher_id}")
def teacher_schedule(teacher_id: int, session=Depends(get_session), user=Depends(get_current_user)):
    return scheduling.list_teacher_schedule(session, teacher_id)


@router.post("/conflicts")
def check_conflict(
    payload: SlotData,
    exclude_slot_id: Optional[int] = None,
    session=Depends(get_session),
    user=Depends(require_roles("admin")),
):
    conflict = scheduling.check_conflict(
        session,
        payload.course_id,
        payload.day_of_week,
        payload.start_time,
        payload.end_time,
        exclude_slot_id=exclude_slot_id,
    )
    if conflict is None:
        return {"conflict": False}
    return {"conflict": True, "detail": conflict.message, **conflict.to_dict()}


@router.post("/", response_model=ScheduleSlot, status_code=201)
def create_slot(payload: SlotData, session=Depends(get_session), user=Depends(require_roles("admin"))):
    return scheduling.create_slot(session, payload)


@router.put("/{slot_id}", response_model=ScheduleSlot)
def update_slot(slot_id: int, payload: SlotData, session=Depends(get_session), user=Depends(require_roles("admin"))):
    return scheduling.update_slot(session, slot_id, payload)


@router.delete("/{slot_id}")
def delete_slot(slot_id: int, session=Depends(get_session), user=Depends(require_roles("admin"))):
    scheduling.delete_slot(session, slot_id)
    return {"ok": True}
