from io import BytesIO

from django.conf import settings
from django.utils import timezone
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from .data_utils import WeeklyReport


def generate_attendance_pdf(report: WeeklyReport) -> bytes:
    """
    Weekly attendance report as an A4 landscape PDF.

    One row per student with the number of periods attended on each day of
    the week and the weekly total. Sick and leave days count as zero.

    Returns:
        The PDF document as bytes
    """
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=landscape(A4),
        topMargin=0.6 * inch,
        bottomMargin=0.6 * inch,
        leftMargin=0.6 * inch,
        rightMargin=0.6 * inch,
    )
    styles = getSampleStyleSheet()
    story = []

    PRIMARY_COLOR = colors.HexColor("#8F403C")
    SECONDARY_COLOR = colors.HexColor("#F4F9FA")
    DARK_TEXT = colors.HexColor("#333333")
    BORDER_COLOR = colors.HexColor("#E5E7EB")

    title_style = ParagraphStyle(
        "ReportTitle",
        parent=styles["Heading1"],
        fontSize=18,
        alignment=1,
        textColor=PRIMARY_COLOR,
        fontName="Helvetica-Bold",
        spaceAfter=6,
    )
    info_style = ParagraphStyle(
        "ReportInfo",
        parent=styles["Normal"],
        fontSize=10,
        textColor=DARK_TEXT,
        leading=14,
    )

    classroom = report.classroom
    story.append(Paragraph(settings.UNIVERSITY_NAME, info_style))
    story.append(Paragraph("Weekly Attendance Report", title_style))
    story.append(
        Paragraph(
            f"<b>Class:</b> {classroom.name} - {classroom.get_session_display()}",
            info_style,
        )
    )
    story.append(
        Paragraph(
            f"<b>Period:</b> {report.week_start:%Y-%m-%d} to {report.week_end:%Y-%m-%d}",
            info_style,
        )
    )
    story.append(
        Paragraph(f"<b>Generated:</b> {timezone.localdate():%Y-%m-%d}", info_style)
    )
    story.append(Spacer(1, 0.2 * inch))

    header = ["No.", "Student ID", "Name"]
    header += [day.strftime("%a %b %d") for day in report.week_days]
    header.append("Total")
    data = [header]

    for index, week in enumerate(report.students, start=1):
        student = week.student
        day_counts = [week.present_on(i) for i in range(len(report.week_days))]
        data.append(
            [
                str(index),
                student.student_id,
                f"{student.user.first_name} {student.father_name}",
                *[str(count) for count in day_counts],
                str(sum(day_counts)),
            ]
        )

    col_widths = [0.5 * inch, 1.0 * inch, 2.2 * inch] + [0.95 * inch] * len(
        report.week_days
    ) + [0.7 * inch]
    table = Table(data, colWidths=col_widths, repeatRows=1)
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), PRIMARY_COLOR),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, -1), 9),
                ("ALIGN", (0, 0), (-1, -1), "CENTER"),
                ("ALIGN", (2, 1), (2, -1), "LEFT"),
                ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
                ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, SECONDARY_COLOR]),
                ("GRID", (0, 0), (-1, -1), 0.5, BORDER_COLOR),
                ("TOPPADDING", (0, 0), (-1, -1), 6),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
            ]
        )
    )
    story.append(table)
    story.append(Spacer(1, 0.3 * inch))

    story.append(Paragraph("<b>Summary</b>", info_style))
    story.append(Paragraph(f"Total Students: {len(report.students)}", info_style))

    doc.build(story)
    return buffer.getvalue()
