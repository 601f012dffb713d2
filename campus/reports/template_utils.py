"""Builds the blank weekly attendance template the report generator fills."""

import logging
import os
from typing import Optional

from django.conf import settings
from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, Side
from openpyxl.utils import get_column_letter

from .excel_utils import (
    CENTER,
    DAY_DATE_ROW,
    FIRST_PERIOD_COLUMN,
    FIRST_STUDENT_ROW,
    LAST_COLUMN,
    SIGNATURE_AREA_END,
    SIGNATURE_LABEL,
    SIGNATURE_ROW,
    STUDENT_ROW_HEIGHT,
    day_columns,
)

logger = logging.getLogger(__name__)

DAY_NAMES = ["شنبه", "یکشنبه", "دوشنبه", "سه شنبه", "چهارشنبه", "پنجشنبه"]
IDENTITY_HEADERS = {
    "AU": "شماره",
    "AT": "اسم",
    "AS": "ولد",
    "AR": "ولدیت",
    "AQ": "نمبر اساس",
}
SUMMARY_HEADERS = {
    "F": "حاضر",
    "E": "غیرحاضر",
    "D": "مریض",
    "C": "رخصت",
    "B": "مجموعه",
}
DAY_NAME_ROW = 5
PERIOD_NUMBER_ROW = 7

THIN = Side(style="thin")
BOX = Border(left=THIN, right=THIN, top=THIN, bottom=THIN)


def merge_with_value(ws, cell_range: str, value, font=None) -> None:
    ws.merge_cells(cell_range)
    anchor = ws[cell_range.split(":")[0]]
    anchor.value = value
    anchor.alignment = CENTER
    if font is not None:
        anchor.font = font


def build_template(path: Optional[str] = None) -> str:
    """Write the template workbook to ``path`` and return the path"""
    path = path or settings.ATTENDANCE_REPORT_TEMPLATE
    last = get_column_letter(LAST_COLUMN)

    wb = Workbook()
    ws = wb.active
    ws.title = "Attendance"
    ws.sheet_view.rightToLeft = True

    merge_with_value(ws, f"A1:{last}1", settings.UNIVERSITY_NAME, Font(bold=True, size=28))
    merge_with_value(ws, f"A2:{last}2", "حاضری هفته وار", Font(bold=True, size=24))
    merge_with_value(ws, f"A3:{last}3", "", Font(bold=True, size=18))
    merge_with_value(ws, f"A4:{last}4", "", Font(size=16))

    # Header block, rows 5-7
    for column, label in {**IDENTITY_HEADERS, **SUMMARY_HEADERS}.items():
        merge_with_value(
            ws,
            f"{column}{DAY_NAME_ROW}:{column}{PERIOD_NUMBER_ROW}",
            label,
            Font(bold=True, size=16),
        )
    for day_index, day_name in enumerate(DAY_NAMES):
        first, end = day_columns(day_index)
        first_letter, end_letter = get_column_letter(first), get_column_letter(end)
        merge_with_value(
            ws,
            f"{first_letter}{DAY_NAME_ROW}:{end_letter}{DAY_NAME_ROW}",
            day_name,
            Font(bold=True, size=16),
        )
        merge_with_value(
            ws,
            f"{first_letter}{DAY_DATE_ROW}:{end_letter}{DAY_DATE_ROW}",
            "",
            Font(size=12),
        )
        for offset in range(6):
            cell = ws.cell(row=PERIOD_NUMBER_ROW, column=end - offset)
            cell.value = offset + 1
            cell.alignment = CENTER
            cell.font = Font(bold=True, size=12)

    for row in range(DAY_NAME_ROW, PERIOD_NUMBER_ROW + 1):
        for col in range(2, LAST_COLUMN + 1):
            ws.cell(row=row, column=col).border = BOX

    # Student row style the generator copies onto every student row
    ws.row_dimensions[FIRST_STUDENT_ROW].height = STUDENT_ROW_HEIGHT
    for col in range(2, LAST_COLUMN + 1):
        cell = ws.cell(row=FIRST_STUDENT_ROW, column=col)
        cell.border = BOX
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)
        cell.font = Font(size=20)

    # Signature block
    ws.row_dimensions[SIGNATURE_ROW].height = 45
    merge_with_value(
        ws,
        f"AQ{SIGNATURE_ROW}:{last}{SIGNATURE_AREA_END}",
        SIGNATURE_LABEL,
        Font(bold=True, size=26),
    )
    ws.merge_cells(
        f"B{SIGNATURE_ROW}:{get_column_letter(FIRST_PERIOD_COLUMN)}{SIGNATURE_AREA_END}"
    )

    ws.column_dimensions["A"].width = 3
    for col in range(2, 7):
        ws.column_dimensions[get_column_letter(col)].width = 12
    for col in range(7, FIRST_PERIOD_COLUMN + 1):
        ws.column_dimensions[get_column_letter(col)].width = 6
    for col in range(FIRST_PERIOD_COLUMN + 1, LAST_COLUMN + 1):
        ws.column_dimensions[get_column_letter(col)].width = 22
    ws.page_setup.orientation = "landscape"
    ws.page_setup.fitToWidth = 1

    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    wb.save(path)
    logger.info("Wrote attendance report template to %s", path)
    return path
