from openpyxl import Workbook
from openpyxl.styles import Font
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from .services.transcript import Transcript


HEADER = ["Ciclo", "Período", "Código", "Curso", "Créditos", "Nota", "Estado"]


def _fmt(value) -> str:
    return "-" if value is None else f"{value:.2f}"


def export_transcript_excel(transcript: Transcript, path: str) -> str:
    wb = Workbook()
    ws = wb.active
    ws.title = "Registro de notas"
    ws.append([f"{transcript.student_code} - {transcript.student_name}"])
    ws["A1"].font = Font(bold=True)
    ws.append(HEADER)
    for block in transcript.semesters:
        for line in block.courses:
            ws.append(
                [block.cycle_number, block.period_name, line.code, line.name, line.credits, line.display_grade, line.status]
            )
        ws.append(["", block.period_name, "", "Promedio semestral", block.credits_taken, _fmt(block.semester_average), ""])
    ws.append([])
    ws.append(["", "", "", "Promedio acumulado", transcript.approved_credits, _fmt(transcript.cumulative_average), ""])
    wb.save(path)
    return path


def export_transcript_pdf(transcript: Transcript, path: str) -> str:
    c = canvas.Canvas(path, pagesize=A4)
    width, height = A4
    y = height - 50
    c.setFont("Helvetica-Bold", 12)
    c.drawString(50, y, f"Registro de notas: {transcript.student_code} - {transcript.student_name}")
    y -= 24
    c.setFont("Helvetica", 10)
    for block in transcript.semesters:
        c.drawString(50, y, f"Ciclo {block.cycle_number} | {block.period_name}")
        y -= 16
        for line in block.courses:
            c.drawString(60, y, f"{line.code} | {line.name} | {line.credits} cr | {line.display_grade} | {line.status}")
            y -= 14
            if y < 60:
                c.showPage()
                y = height - 50
                c.setFont("Helvetica", 10)
        c.drawString(60, y, f"Promedio semestral: {_fmt(block.semester_average)}")
        y -= 20
        if y < 60:
            c.showPage()
            y = height - 50
            c.setFont("Helvetica", 10)
    c.drawString(50, y, f"Promedio acumulado: {_fmt(transcript.cumulative_average)}")
    c.save()
    return path
