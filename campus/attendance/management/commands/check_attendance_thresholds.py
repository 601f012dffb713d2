from django.core.management.base import BaseCommand

from attendance.monitor import check_students
from students.models import Student


class Command(BaseCommand):
    help = "Notify active students whose attendance dropped below a threshold"

    def handle(self, *args, **options):
        students = Student.objects.select_related("user").filter(
            status=Student.Status.ACTIVE
        )
        self.stdout.write(f"Checking {students.count()} active students...")
        sent = check_students(students)
        self.stdout.write(
            self.style.SUCCESS(f"Threshold check completed, {sent} notification(s) sent")
        )
