"""
Spreadsheet export of the monthly report.
"""
from io import BytesIO

import openpyxl
from openpyxl.styles import Font, Alignment, Border, Side, PatternFill

from .reports import MonthlyReport


XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

_thin = Side(style="thin")
_border = Border(left=_thin, right=_thin, top=_thin, bottom=_thin)
_header_fill = PatternFill(start_color="D3D3D3", end_color="D3D3D3", fill_type="solid")


def _header(ws, row: int, headers: list) -> None:
    for col, h in enumerate(headers, 1):
        cell = ws.cell(row=row, column=col, value=h)
        cell.font = Font(bold=True)
        cell.fill = _header_fill
        cell.border = _border


def monthly_report_filename(report: MonthlyReport) -> str:
    name = "".join(ch for ch in report.employee_name if ch.isalnum()) or "employee"
    return f"report_{name}_{report.year}-{report.month:02d}.xlsx"


def monthly_report_workbook(report: MonthlyReport) -> bytes:
    wb = openpyxl.Workbook()

    ws = wb.active
    ws.title = "Entries"
    ws.merge_cells("A1:F1")
    title = ws.cell(row=1, column=1, value=f"{report.employee_name}: {report.year}-{report.month:02d}")
    title.font = Font(bold=True)
    title.alignment = Alignment(horizontal="center")
    _header(ws, 2, ["Date", "Start", "End", "Hours", "Project", "Description"])
    r = 3
    for day in report.by_day:
        for e in day.entries:
            ws.cell(row=r, column=1, value=e.entry_date.isoformat())
            ws.cell(row=r, column=2, value=e.start_time.strftime("%H:%M"))
            ws.cell(row=r, column=3, value=e.end_time.strftime("%H:%M"))
            ws.cell(row=r, column=4, value=float(e.total_hours))
            ws.cell(row=r, column=5, value=e.project.name if e.project else "")
            ws.cell(row=r, column=6, value=e.description or "")
            for c in range(1, 7):
                ws.cell(row=r, column=c).border = _border
            r += 1
    ws.cell(row=r, column=1, value="Total").font = Font(bold=True)
    ws.cell(row=r, column=4, value=float(report.total_hours)).font = Font(bold=True)
    ws.cell(row=r + 1, column=1, value="Days worked")
    ws.cell(row=r + 1, column=4, value=report.total_days)
    for col, width in zip("ABCDEF", (12, 8, 8, 8, 30, 50)):
        ws.column_dimensions[col].width = width

    ws = wb.create_sheet("By project")
    _header(ws, 1, ["Project", "Hours", "Entries"])
    r = 2
    for p in report.by_project:
        ws.cell(row=r, column=1, value=p.project_name)
        ws.cell(row=r, column=2, value=float(p.total_hours))
        ws.cell(row=r, column=3, value=p.entry_count)
        for c in range(1, 4):
            ws.cell(row=r, column=c).border = _border
        r += 1
    ws.cell(row=r, column=1, value="Total").font = Font(bold=True)
    ws.cell(row=r, column=2, value=float(report.total_hours)).font = Font(bold=True)
    ws.column_dimensions["A"].width = 30

    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()
