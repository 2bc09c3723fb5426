"""Spreadsheet rendering for report downloads."""
from datetime import datetime
from io import BytesIO
from typing import Dict, List

from fastapi import Response
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter

from database import utcnow
from helpers import as_utc

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
HEADER_FILL = PatternFill(fill_type="solid", fgColor="FFE0E0E0")
COLUMN_WIDTH = 15


def _cell(value):
    if value is None:
        return ""
    if isinstance(value, datetime):
        # Excel has no timezone support
        return as_utc(value).replace(tzinfo=None)
    if isinstance(value, (list, tuple, dict)):
        return str(value)
    return value


def build_workbook(sheet_title: str, rows: List[Dict]) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_title[:31]
    if not rows:
        ws.append(["No data available"])
    else:
        headers = list(rows[0].keys())
        ws.append(headers)
        for cell in ws[1]:
            cell.font = Font(bold=True)
            cell.fill = HEADER_FILL
        for row in rows:
            ws.append([_cell(row.get(h)) for h in headers])
        for index in range(1, len(headers) + 1):
            ws.column_dimensions[get_column_letter(index)].width = COLUMN_WIDTH
    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def excel_response(report_name: str, sheet_title: str, rows: List[Dict]) -> Response:
    stamp = int(utcnow().timestamp() * 1000)
    return Response(
        content=build_workbook(sheet_title, rows),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename={report_name}-report-{stamp}.xlsx"},
    )
