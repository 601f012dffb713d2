"""
Attendance statistics and academic standing.

Rates are computed over periods: every marked period counts once, and
NOT_MARKED periods are ignored. A student with nothing marked has a 100%
rate.

Standing thresholds:
- mahroom (disqualified): rate below the mahroom threshold (75%)
- tasdiq (certification required): rate below the tasdiq threshold (85%)
- warning: rate below 90%
- good-standing: otherwise
"""

import math
from datetime import date
from typing import Dict, Iterable, Optional

from django.conf import settings

from .models import AttendanceRecord, AttendanceStatus

WARNING_THRESHOLD = 90


def summarize_records(records: Iterable[AttendanceRecord]) -> Dict[str, float]:
    counts = {status: 0 for status in AttendanceStatus.values}
    days = 0
    for record in records:
        days += 1
        for status, count in record.status_counts().items():
            counts[status] += count

    total = sum(
        count
        for status, count in counts.items()
        if status != AttendanceStatus.NOT_MARKED
    )
    present = counts[AttendanceStatus.PRESENT]
    return {
        "days": days,
        "total_periods": total,
        "present": present,
        "absent": counts[AttendanceStatus.ABSENT],
        "sick": counts[AttendanceStatus.SICK],
        "leave": counts[AttendanceStatus.LEAVE],
        "not_marked": counts[AttendanceStatus.NOT_MARKED],
        "attendance_rate": round(present / total * 100, 2) if total else 100.0,
    }


def student_summary(
    student, start_date: Optional[date] = None, end_date: Optional[date] = None
) -> Dict[str, float]:
    records = AttendanceRecord.objects.filter(student=student)
    if start_date:
        records = records.filter(date__gte=start_date)
    if end_date:
        records = records.filter(date__lte=end_date)
    return summarize_records(records)


def max_absences(total: int, threshold: float) -> int:
    if total <= 0:
        return 0
    return math.floor(total * (1 - threshold / 100))


def calculate_academic_status(
    summary: Dict[str, float],
    mahroom_threshold: Optional[float] = None,
    tasdiq_threshold: Optional[float] = None,
) -> Dict:
    if mahroom_threshold is None:
        mahroom_threshold = settings.MAHROOM_THRESHOLD
    if tasdiq_threshold is None:
        tasdiq_threshold = settings.TASDIQ_THRESHOLD

    rate = summary["attendance_rate"]
    total = summary["total_periods"]
    absent = summary["absent"]

    before_mahroom = max(0, max_absences(total, mahroom_threshold) - absent)
    before_tasdiq = max(0, max_absences(total, tasdiq_threshold) - absent)

    if rate < mahroom_threshold:
        status = "mahroom"
        remaining = 0
        message = (
            f"Critical: attendance rate is {rate:.1f}%, below the required "
            f"{mahroom_threshold:g}%. The maximum allowed absences have been exceeded."
        )
    elif rate < tasdiq_threshold:
        status = "tasdiq"
        remaining = before_mahroom
        message = (
            f"Warning: attendance rate is {rate:.1f}%, below {tasdiq_threshold:g}%. "
            "Medical certificates must be submitted."
        )
    elif rate < WARNING_THRESHOLD:
        status = "warning"
        remaining = before_tasdiq
        message = (
            f"Caution: attendance rate is {rate:.1f}%. {before_tasdiq} absence(s) "
            "remaining before certification is required."
        )
    else:
        status = "good-standing"
        remaining = before_tasdiq
        message = f"Attendance rate is {rate:.1f}%. Good standing."

    return {
        "status": status,
        "attendance_rate": rate,
        "remaining_absences": remaining,
        "remaining_absences_before_tasdiq": before_tasdiq,
        "remaining_absences_before_mahroom": before_mahroom,
        "message": message,
        "thresholds": {
            "mahroom": mahroom_threshold,
            "tasdiq": tasdiq_threshold,
            "warning": WARNING_THRESHOLD,
        },
    }
