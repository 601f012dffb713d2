from django.core.management.base import BaseCommand

from reports.template_utils import build_template


class Command(BaseCommand):
    help = "Write the XLSX template used by the weekly attendance report"

    def add_arguments(self, parser):
        parser.add_argument(
            "--path", help="Output path (defaults to ATTENDANCE_REPORT_TEMPLATE)"
        )

    def handle(self, *args, **options):
        path = build_template(options.get("path"))
        self.stdout.write(self.style.SUCCESS(f"Report template written to {path}"))
