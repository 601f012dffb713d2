"""
Weekly attendance data for the class reports.

The teaching week runs Saturday to Thursday. Every report format (XLSX,
PDF, CSV) is built from the same WeeklyReport.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, List, Optional, Tuple

from attendance.models import AttendanceRecord, AttendanceStatus
from classes.models import Classroom
from students.models import Student

DAYS_PER_WEEK = 6
PERIODS_PER_DAY = 6

SICK = "SICK"
LEAVE = "LEAVE"
NORMAL = "NORMAL"


def get_week_start(reference: date) -> date:
    """Saturday that starts the teaching week containing ``reference``"""
    weekday = reference.weekday()  # Monday=0 .. Sunday=6
    if weekday == 5:  # Saturday
        return reference
    if weekday == 6:  # Sunday
        return reference - timedelta(days=1)
    if weekday == 4:  # Friday belongs to the coming week
        return reference + timedelta(days=1)
    return reference - timedelta(days=weekday + 2)


def get_week_days(start: date) -> List[date]:
    return [start + timedelta(days=offset) for offset in range(DAYS_PER_WEEK)]


def get_day_status(record: Optional[AttendanceRecord]) -> str:
    """SICK if any period is sick, otherwise LEAVE if any is leave"""
    if record is None:
        return NORMAL
    periods = record.periods
    if AttendanceStatus.SICK in periods:
        return SICK
    if AttendanceStatus.LEAVE in periods:
        return LEAVE
    return NORMAL


@dataclass
class StudentWeek:
    student: Student
    days: List[Tuple[date, str, Optional[AttendanceRecord]]] = field(default_factory=list)
    present: int = 0
    absent: int = 0
    sick: int = 0
    leave: int = 0

    @property
    def total(self) -> int:
        return self.present + self.absent + self.sick + self.leave

    def present_on(self, day_index: int) -> int:
        _, status, record = self.days[day_index]
        if status != NORMAL or record is None:
            return 0
        return record.periods.count(AttendanceStatus.PRESENT)


def summarize_student_week(
    student: Student, week_days: List[date], records: Dict[date, AttendanceRecord]
) -> StudentWeek:
    """Sick and leave days count as six periods each; normal days count periods"""
    week = StudentWeek(student=student)
    for day in week_days:
        record = records.get(day)
        status = get_day_status(record)
        week.days.append((day, status, record))
        if status == SICK:
            week.sick += PERIODS_PER_DAY
        elif status == LEAVE:
            week.leave += PERIODS_PER_DAY
        elif record is not None:
            week.present += record.periods.count(AttendanceStatus.PRESENT)
            week.absent += record.periods.count(AttendanceStatus.ABSENT)
    return week


@dataclass
class WeeklyReport:
    classroom: Classroom
    week_start: date
    week_end: date
    week_days: List[date]
    students: List[StudentWeek]


def build_weekly_report(classroom: Classroom, reference: date) -> WeeklyReport:
    week_start = get_week_start(reference)
    week_days = get_week_days(week_start)
    week_end = week_days[-1]

    by_student: Dict[int, Dict[date, AttendanceRecord]] = {}
    records = AttendanceRecord.objects.filter(
        classroom=classroom, date__gte=week_start, date__lte=week_end
    )
    for record in records:
        by_student.setdefault(record.student_id, {})[record.date] = record

    students = classroom.students.select_related("user").order_by("student_id")
    return WeeklyReport(
        classroom=classroom,
        week_start=week_start,
        week_end=week_end,
        week_days=week_days,
        students=[
            summarize_student_week(student, week_days, by_student.get(student.pk, {}))
            for student in students
        ],
    )
