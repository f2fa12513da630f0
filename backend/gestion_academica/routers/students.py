import os
import tempfile

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse
from starlette.background import BackgroundTask

from ..db import get_session
from ..exporters import export_transcript_excel, export_transcript_pdf
from ..models import User
from ..security import get_current_user
from ..services.transcript import Transcript, build_transcript
from ..utils.course_access import ensure_student_record_access


router = APIRouter(prefix="/students", tags=["students"])


def _load_transcript(student_id: int, user: User, session) -> Transcript:
    ensure_student_record_access(session, user, student_id)
    return build_transcript(session, student_id)


def _file_response(path: str, media_type: str, filename: str) -> FileResponse:
    return FileResponse(path, media_type=media_type, filename=filename, background=BackgroundTask(os.remove, path))


def _temp_path(suffix: str) -> str:
    handle, path = tempfile.mkstemp(suffix=suffix)
    os.close(handle)
    return path


def _export(exporter, data: Transcript, suffix: str) -> str:
    path = _temp_path(suffix)
    try:
        return exporter(data, path)
    except Exception:
        os.remove(path)
        raise


@router.get("/{student_id}/transcript")
def transcript(student_id: int, session=Depends(get_session), user: User = Depends(get_current_user)):
    data = _load_transcript(student_id, user, session)
    return {
        "student_id": data.student_id,
        "student_code": data.student_code,
        "student_name": data.student_name,
        "cumulative_average": data.cumulative_average,
        "approved_credits": data.approved_credits,
        "semesters": data.semesters,
    }


@router.get("/{student_id}/transcript.xlsx")
def transcript_excel(student_id: int, session=Depends(get_session), user: User = Depends(get_current_user)):
    data = _load_transcript(student_id, user, session)
    path = _export(export_transcript_excel, data, ".xlsx")
    return _file_response(
        path,
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        f"registro_notas_{data.student_code}.xlsx",
    )


@router.get("/{student_id}/transcript.pdf")
def transcript_pdf(student_id: int, session=Depends(get_session), user: User = Depends(get_current_user)):
    data = _load_transcript(student_id, user, session)
    path = _export(export_transcript_pdf, data, ".pdf")
    return _file_response(path, "application/pdf", f"registro_notas_{data.student_code}.pdf")
