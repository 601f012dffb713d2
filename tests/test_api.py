import pytest

from students.models import Student

from .conftest import PASSWORD

pytestmark = pytest.mark.django_db


class TestErrorHandling:
    def test_unhandled_error_answers_json_500(self, office_client, monkeypatch):
        def broken(user, role):
            raise RuntimeError("database went away")

        monkeypatch.setattr("dashboard.views.get_dashboard_data", broken)
        response = office_client.get("/api/dashboard/")
        assert response.status_code == 500
        assert response["Content-Type"] == "application/json"
        assert response.json() == {
            "success": False,
            "error": "Internal server error",
        }

    def test_unknown_route_is_404(self, office_client):
        assert office_client.get("/api/nowhere/").status_code == 404


class TestTrailingSlash:
    def test_post_without_slash_reaches_the_view(self, api_client, student):
        response = api_client.post_json(
            "/api/auth/login/student",
            {"username": "student", "password": PASSWORD},
        )
        assert response.status_code == 200
        assert response.json()["data"]["user"]["role"] == "Student"

    def test_get_without_slash(self, office_client):
        response = office_client.get("/api/classes")
        assert response.status_code == 200
        assert "classes" in response.json()["data"]


class TestPagination:
    @pytest.fixture
    def students(self, student, other_student):
        return [student, other_student]

    @pytest.mark.parametrize("limit", ["-5", "0", "abc"])
    def test_bad_limits_still_page(self, office_client, students, limit):
        response = office_client.get("/api/students/", {"limit": limit})
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["total"] == Student.objects.count()
        assert len(data["students"]) >= 1

    def test_negative_limit_is_one_per_page(self, office_client, students):
        data = office_client.get("/api/students/", {"limit": -5}).json()["data"]
        assert len(data["students"]) == 1
        assert data["total_pages"] == 2

    def test_limit_is_capped(self, office_client, students):
        data = office_client.get("/api/students/", {"limit": 5000}).json()["data"]
        assert len(data["students"]) == 2
        assert data["total_pages"] == 1

    def test_negative_message_limit(self, student, teacher, student_client):
        from messaging.services import start_conversation

        conversation = start_conversation(student.user, [teacher.user_id], "Hello")
        response = student_client.get(
            f"/api/messages/conversations/{conversation.pk}/", {"limit": -3}
        )
        assert response.status_code == 200
        assert len(response.json()["data"]["messages"]) == 1
