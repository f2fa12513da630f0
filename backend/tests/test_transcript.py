from decimal import Decimal

from openpyxl import load_workbook

from gestion_academica.exporters import export_transcript_excel, export_transcript_pdf
from gestion_academica.models import EnrollmentStateEnum, PeriodHalfEnum
from gestion_academica.services.transcript import APPROVED, FAILED, build_transcript

from helpers import add_entries, make_course, make_enrollment, make_period, make_student, uniform_grades


def _history(session):
    student = make_student(session)
    math = make_course(session, "MAT101", credits=4)
    prog = make_course(session, "PRO101", credits=2)
    art = make_course(session, "ART101", credits=3)
    first = make_period(session, "2024-I", closed=True)
    second = make_period(session, "2024-II", half=PeriodHalfEnum.second, closed=True)
    current = make_period(session, "2025-I", active=True)

    add_entries(session, make_enrollment(session, student, math, first, final_grade="10.5"), uniform_grades("10.5"))
    add_entries(session, make_enrollment(session, student, prog, first, final_grade="17"), uniform_grades("17"))
    withdrawn = make_enrollment(session, student, art, first, state=EnrollmentStateEnum.withdrawn)
    add_entries(session, withdrawn, uniform_grades("20"))
    add_entries(session, make_enrollment(session, student, math, second), uniform_grades("14"))
    make_enrollment(session, student, art, second)
    add_entries(session, make_enrollment(session, student, prog, current), uniform_grades("19"))
    return student


def test_transcript_groups_closed_periods_into_cycles(session):
    student = _history(session)
    transcript = build_transcript(session, student.id)

    assert [block.period_name for block in transcript.semesters] == ["2024-I", "2024-II"]
    assert [block.cycle_number for block in transcript.semesters] == [1, 2]

    first = transcript.semesters[0]
    lines = {line.code: line for line in first.courses}
    assert set(lines) == {"MAT101", "PRO101"}
    assert lines["MAT101"].display_grade == 11
    assert lines["MAT101"].status == FAILED
    assert lines["PRO101"].status == APPROVED
    # (10.5 * 4 + 17 * 2) / 6
    assert first.semester_average == Decimal("12.67")
    assert first.credits_approved == 2

    second = transcript.semesters[1]
    assert [line.code for line in second.courses] == ["MAT101"]
    assert second.courses[0].final_grade == Decimal("14")
    # (10.5 * 4 + 17 * 2 + 14 * 4) / 10
    assert second.cumulative_average == Decimal("13.20")
    assert transcript.cumulative_average == Decimal("13.20")
    assert transcript.approved_credits == 6


def test_transcript_exports(session, tmp_path):
    transcript = build_transcript(session, _history(session).id)

    xlsx = export_transcript_excel(transcript, str(tmp_path / "notas.xlsx"))
    sheet = load_workbook(xlsx).active
    codes = [row[2] for row in sheet.iter_rows(min_row=3, values_only=True) if row and row[2]]
    assert codes == ["MAT101", "PRO101", "MAT101"]

    pdf = export_transcript_pdf(transcript, str(tmp_path / "notas.pdf"))
    with open(pdf, "rb") as handle:
        assert handle.read(4) == b"%PDF"
