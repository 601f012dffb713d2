from django.core.management.base import BaseCommand
from django.core.management import call_command
from django.contrib.auth.models import User, Group
from decouple import config

PROJECT_APPS = [
    "base",
    "classes",
    "students",
    "teachers",
    "administration",
    "attendance",
    "messaging",
    "notifications",
]


class Command(BaseCommand):
    help = "Initial setup: migrate, create groups, create superuser"

    def add_arguments(self, parser):
        parser.add_argument(
            "--no-superuser",
            action="store_true",
            help="Skip creating the superuser",
        )

    def handle(self, *args, **options):
        # Apply migrations
        self.stdout.write("Creating and applying migrations...")
        call_command("makemigrations", *PROJECT_APPS)
        call_command("migrate")

        # Create groups
        groups = ["Office", "Teacher", "Student"]
        for group_name in groups:
            group, created = Group.objects.get_or_create(name=group_name)
            if created:
                self.stdout.write(f"Created group: {group_name}")
            else:
                self.stdout.write(f"Group {group_name} already exists")

        call_command("build_report_template")

        if options["no_superuser"]:
            return

        # Create superuser from env vars
        username = config("DJANGO_SUPERUSER_USERNAME")
        email = config("DJANGO_SUPERUSER_EMAIL", default="")
        password = config("DJANGO_SUPERUSER_PASSWORD")

        if not User.objects.filter(username=username).exists():
            user = User.objects.create_superuser(
                username=username, email=email, password=password
            )
            office_group = Group.objects.get(name="Office")
            user.groups.add(office_group)
            self.stdout.write(
                self.style.SUCCESS(
                    f"Created superuser: {username} and assigned to Office group"
                )
            )
        else:
            self.stdout.write(f"Superuser {username} already exists")
