import json
from datetime import time

import pytest
from django.contrib.auth.models import Group, User
from django.core.cache import cache
from django.test import Client

from administration.models import OfficeStaff
from classes.models import Classroom, ScheduleEntry
from classes.periods import get_period_service
from students.models import Student
from teachers.models import Teacher

PASSWORD = "Secret123"


class JsonClient(Client):
    """Test client that sends JSON bodies by default"""

    def _json(self, method, path, data=None, **extra):
        body = json.dumps(data) if data is not None else ""
        return getattr(super(), method)(
            path, body, content_type="application/json", **extra
        )

    def post_json(self, path, data=None, **extra):
        return self._json("post", path, data, **extra)

    def put_json(self, path, data=None, **extra):
        return self._json("put", path, data, **extra)


@pytest.fixture(autouse=True)
def isolated_settings(settings, tmp_path):
    settings.MEDIA_ROOT = str(tmp_path / "media")
    settings.ATTENDANCE_REPORT_TEMPLATE = str(tmp_path / "attendance_template.xlsx")
    settings.EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"
    return settings


@pytest.fixture(autouse=True)
def clear_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture(autouse=True)
def period_cache():
    service = get_period_service()
    service.clear_cache()
    service.reset_cache_stats()
    yield service
    service.clear_cache()


@pytest.fixture
def groups(db):
    return {
        name: Group.objects.get_or_create(name=name)[0]
        for name in ("Office", "Teacher", "Student")
    }


def make_user(groups, username, role, email=""):
    user = User.objects.create_user(
        username=username,
        password=PASSWORD,
        first_name=username.title(),
        last_name="Test",
        email=email,
    )
    user.groups.add(groups[role])
    return user


@pytest.fixture
def classroom(db):
    return Classroom.objects.create(name="Computer Science", session="MORNING")


@pytest.fixture
def office_user(groups):
    user = make_user(groups, "office", "Office", email="office@example.com")
    OfficeStaff.objects.create(user=user, department="Registrar")
    return user


@pytest.fixture
def teacher(groups):
    user = make_user(groups, "teacher", "Teacher", email="teacher@example.com")
    return Teacher.objects.create(
        user=user,
        teacher_id="5001",
        father_name="Rahim",
        grandfather_name="Karim",
        phone="0700000100",
        departments="Computer Science",
        qualification="Masters",
        experience="5",
        specialization="Networks",
        subjects="Networking",
    )


@pytest.fixture
def student(groups, classroom):
    user = make_user(groups, "student", "Student", email="student@example.com")
    return Student.objects.create(
        user=user,
        student_id="1001",
        father_name="Ahmad",
        grandfather_name="Mahmood",
        phone="0700000001",
        classroom=classroom,
    )


@pytest.fixture
def other_student(groups, classroom):
    user = make_user(groups, "other", "Student")
    return Student.objects.create(
        user=user,
        student_id="1002",
        father_name="Jawad",
        grandfather_name="Nasir",
        phone="0700000002",
        classroom=classroom,
    )


@pytest.fixture
def schedule_entry(teacher, classroom):
    """Two periods (1 and 2) on Saturdays"""
    return ScheduleEntry.objects.create(
        classroom=classroom,
        teacher=teacher,
        subject="Networking",
        hours=2,
        day_of_week="saturday",
        start_time=time(8, 0),
        end_time=time(10, 0),
    )


def logged_in(user):
    client = JsonClient()
    client.force_login(user)
    return client


@pytest.fixture
def api_client():
    return JsonClient()


@pytest.fixture
def office_client(office_user):
    return logged_in(office_user)


@pytest.fixture
def teacher_client(teacher):
    return logged_in(teacher.user)


@pytest.fixture
def student_client(student):
    return logged_in(student.user)
