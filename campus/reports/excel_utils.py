"""
Weekly attendance report rendered into the XLSX template with openpyxl.

The sheet is right-to-left: student identity on the right (AQ:AU), the six
days of periods in the middle (AP leftwards to G) and the weekly totals on
the left (B:F). A sick or leave day is shown as one merged cell across its
six periods. The signature block that sits at row 28 of the template is
moved to the row after the last student.
"""

import logging
import os
from copy import copy
from io import BytesIO
from typing import Dict, Optional

from django.conf import settings
from openpyxl import load_workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import column_index_from_string, get_column_letter

from .data_utils import LEAVE, NORMAL, PERIODS_PER_DAY, SICK, StudentWeek, WeeklyReport

logger = logging.getLogger(__name__)

FIRST_STUDENT_ROW = 8
STUDENT_ROW_HEIGHT = 62.1
SIGNATURE_ROW = 28
SIGNATURE_AREA_END = 38
LAST_COLUMN = 47  # AU

# Identity columns
NUMBER_COLUMN = "AU"
FIRST_NAME_COLUMN = "AT"
FATHER_NAME_COLUMN = "AS"
GRANDFATHER_NAME_COLUMN = "AR"
STUDENT_ID_COLUMN = "AQ"

# Period columns run from AP (42) leftwards to G (7)
FIRST_PERIOD_COLUMN = 42
LAST_PERIOD_COLUMN = 7

# Summary columns
PRESENT_COLUMN = "F"
ABSENT_COLUMN = "E"
SICK_COLUMN = "D"
LEAVE_COLUMN = "C"
TOTAL_COLUMN = "B"

# Header cells
CLASS_INFO_CELL = "A3"
WEEK_INFO_CELL = "A4"
DAY_DATE_ROW = 6

STATUS_GLYPHS = {"PRESENT": "✓", "ABSENT": "X"}
DAY_LABELS = {SICK: "مریض", LEAVE: "رخصت"}
SIGNATURE_LABEL = "امضاء استاد مربوطه"

THIN = Side(style="thin")
THICK = Side(style="thick")
CENTER = Alignment(horizontal="center", vertical="center")
WHITE_FILL = PatternFill(fill_type="solid", fgColor="FFFFFFFF")


def day_columns(day_index: int):
    """(first, last) column numbers of a day's six period cells"""
    last = FIRST_PERIOD_COLUMN - day_index * PERIODS_PER_DAY
    return last - PERIODS_PER_DAY + 1, last


def capture_row(ws, row_number: int) -> Dict[int, Dict]:
    return {
        col: {
            "value": ws.cell(row=row_number, column=col).value,
            "font": copy(ws.cell(row=row_number, column=col).font),
            "border": copy(ws.cell(row=row_number, column=col).border),
            "fill": copy(ws.cell(row=row_number, column=col).fill),
            "alignment": copy(ws.cell(row=row_number, column=col).alignment),
            "number_format": ws.cell(row=row_number, column=col).number_format,
        }
        for col in range(1, LAST_COLUMN + 1)
    }


def apply_style(cell, style: Dict) -> None:
    cell.font = copy(style["font"])
    cell.border = copy(style["border"])
    cell.fill = copy(style["fill"])
    cell.alignment = copy(style["alignment"])
    cell.number_format = style["number_format"]


def remove_signature_merges(ws) -> None:
    """Unmerge every range that touches the template's signature area"""
    for merged in list(ws.merged_cells.ranges):
        if merged.min_row <= SIGNATURE_AREA_END and merged.max_row >= SIGNATURE_ROW:
            ws.unmerge_cells(str(merged))


def clear_rows(ws, first_row: int, last_row: int) -> None:
    for row_number in range(first_row, last_row + 1):
        for col in range(1, LAST_COLUMN + 1):
            cell = ws.cell(row=row_number, column=col)
            cell.value = None
            cell.font = Font()
            cell.border = Border()
            cell.fill = PatternFill()
            cell.alignment = Alignment()


def write_header(ws, report: WeeklyReport) -> None:
    classroom = report.classroom
    ws[CLASS_INFO_CELL] = (
        f"{classroom.name} - {classroom.get_session_display()}"
        f"    {classroom.major}    {classroom.semester}"
    )
    ws[WEEK_INFO_CELL] = (
        f"{report.week_start.strftime('%Y-%m-%d')} - {report.week_end.strftime('%Y-%m-%d')}"
    )
    for day_index, day in enumerate(report.week_days):
        first, _ = day_columns(day_index)
        ws.cell(row=DAY_DATE_ROW, column=first).value = day.strftime("%Y-%m-%d")


def merge_day(ws, row_number: int, day_index: int, status: str) -> None:
    first, last = day_columns(day_index)
    ws.merge_cells(
        start_row=row_number, start_column=first, end_row=row_number, end_column=last
    )
    # openpyxl keeps a merged range's value in its anchor (left-most) cell
    cell = ws.cell(row=row_number, column=first)
    cell.value = DAY_LABELS[status]
    cell.font = Font(bold=True, size=36)
    cell.alignment = CENTER
    cell.fill = WHITE_FILL
    cell.border = Border(left=THIN, right=THIN, top=THIN, bottom=THIN)


def write_student_row(
    ws, row_number: int, number: int, week: StudentWeek, row_style: Dict[int, Dict]
) -> None:
    ws.row_dimensions[row_number].height = STUDENT_ROW_HEIGHT
    for col, style in row_style.items():
        apply_style(ws.cell(row=row_number, column=col), style)

    student = week.student
    ws[f"{NUMBER_COLUMN}{row_number}"] = number
    ws[f"{FIRST_NAME_COLUMN}{row_number}"] = student.user.first_name
    ws[f"{FATHER_NAME_COLUMN}{row_number}"] = student.father_name
    ws[f"{GRANDFATHER_NAME_COLUMN}{row_number}"] = student.grandfather_name
    ws[f"{STUDENT_ID_COLUMN}{row_number}"] = student.student_id
    for column in (FIRST_NAME_COLUMN, FATHER_NAME_COLUMN):
        cell = ws[f"{column}{row_number}"]
        cell.border = Border(
            left=cell.border.left, right=cell.border.right, top=THIN, bottom=THIN
        )

    for day_index, (_, status, record) in enumerate(week.days):
        if status != NORMAL:
            merge_day(ws, row_number, day_index, status)
            continue
        _, last = day_columns(day_index)
        for offset in range(PERIODS_PER_DAY):
            col = last - offset
            if col < LAST_PERIOD_COLUMN:
                break
            value = ""
            if record is not None:
                value = STATUS_GLYPHS.get(record.periods[offset], "")
            ws.cell(row=row_number, column=col).value = value

    ws[f"{PRESENT_COLUMN}{row_number}"] = week.present
    ws[f"{ABSENT_COLUMN}{row_number}"] = week.absent
    ws[f"{SICK_COLUMN}{row_number}"] = week.sick
    ws[f"{LEAVE_COLUMN}{row_number}"] = week.leave
    ws[f"{TOTAL_COLUMN}{row_number}"] = week.total


def write_signature(
    ws, row_number: int, signature: Dict[int, Dict], height=None
) -> None:
    if height:
        ws.row_dimensions[row_number].height = height

    for col, data in signature.items():
        cell = ws.cell(row=row_number, column=col)
        if data["value"] is not None:
            cell.value = data["value"]
        apply_style(cell, data)
        border = copy(data["border"])
        cell.border = Border(
            left=border.left, right=border.right, bottom=border.bottom, top=THICK
        )

    right_first = column_index_from_string(STUDENT_ID_COLUMN)
    for col in range(right_first, LAST_COLUMN + 1):
        cell = ws.cell(row=row_number, column=col)
        cell.value = SIGNATURE_LABEL if col == right_first else None
        cell.font = Font(bold=True, size=26)
        cell.alignment = CENTER
        cell.border = Border(
            top=THICK,
            bottom=THICK,
            left=THICK if col == right_first else None,
            right=THICK if col == LAST_COLUMN else None,
        )
    for col in range(2, FIRST_PERIOD_COLUMN + 1):
        cell = ws.cell(row=row_number, column=col)
        cell.value = None
        cell.alignment = CENTER
        cell.border = Border(
            top=THICK,
            bottom=THICK,
            left=THICK if col == 2 else None,
            right=THICK if col == FIRST_PERIOD_COLUMN else None,
        )

    ws.merge_cells(f"{STUDENT_ID_COLUMN}{row_number}:{NUMBER_COLUMN}{row_number}")
    ws.merge_cells(
        f"B{row_number}:{get_column_letter(FIRST_PERIOD_COLUMN)}{row_number}"
    )


def load_template(path: Optional[str] = None):
    from .template_utils import build_template

    path = path or settings.ATTENDANCE_REPORT_TEMPLATE
    if not os.path.exists(path):
        logger.info("Report template missing, building it at %s", path)
        build_template(path)
    return load_workbook(path)


def generate_attendance_workbook(
    report: WeeklyReport, template_path: Optional[str] = None
):
    """Fill the template for one class-week and return the workbook"""
    workbook = load_template(template_path)
    ws = workbook.worksheets[0]

    signature = capture_row(ws, SIGNATURE_ROW)
    signature_height = ws.row_dimensions[SIGNATURE_ROW].height
    row_style = capture_row(ws, FIRST_STUDENT_ROW)

    remove_signature_merges(ws)
    clear_rows(ws, SIGNATURE_ROW, SIGNATURE_AREA_END)
    write_header(ws, report)

    for index, week in enumerate(report.students):
        write_student_row(ws, FIRST_STUDENT_ROW + index, index + 1, week, row_style)

    signature_row = FIRST_STUDENT_ROW + len(report.students)
    write_signature(ws, signature_row, signature, signature_height)

    logger.info(
        "Built weekly report for class %s (%s students, week of %s)",
        report.classroom.pk,
        len(report.students),
        report.week_start,
    )
    return workbook


def generate_attendance_excel(
    report: WeeklyReport, template_path: Optional[str] = None
) -> bytes:
    buffer = BytesIO()
    generate_attendance_workbook(report, template_path).save(buffer)
    return buffer.getvalue()
