from base.forms import AccountModelForm
from .models import Teacher


class TeacherForm(AccountModelForm):
    """Create/update a teacher together with their login account"""

    group_name = "Teacher"
    list_fields = ("departments", "subjects")

    class Meta:
        model = Teacher
        fields = [
            "teacher_id",
            "father_name",
            "grandfather_name",
            "date_of_birth",
            "phone",
            "secondary_phone",
            "address",
            "departments",
            "qualification",
            "experience",
            "specialization",
            "subjects",
            "employment_type",
            "status",
        ]

    def account_is_active(self, profile) -> bool:
        return profile.status != Teacher.Status.INACTIVE
