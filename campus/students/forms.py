from django import forms

from base.forms import AccountModelForm
from .models import MedicalCertificate, Student


class StudentForm(AccountModelForm):
    """Create/update a student together with their login account"""

    group_name = "Student"
    list_fields = ("programs",)

    class Meta:
        model = Student
        fields = [
            "student_id",
            "father_name",
            "grandfather_name",
            "date_of_birth",
            "phone",
            "father_phone",
            "address",
            "programs",
            "semester",
            "enrollment_year",
            "classroom",
            "time_slot",
            "status",
        ]

    def account_is_active(self, profile) -> bool:
        return profile.status == Student.Status.ACTIVE


class MedicalCertificateForm(forms.ModelForm):
    """Metadata sent along with an uploaded certificate file"""

    class Meta:
        model = MedicalCertificate
        fields = ["start_date", "end_date", "reason", "doctor_name", "hospital_clinic"]

    def clean(self):
        cleaned_data = super().clean()
        start_date = cleaned_data.get("start_date")
        end_date = cleaned_data.get("end_date")
        if start_date and end_date and end_date < start_date:
            self.add_error("end_date", "End date must be on or after the start date")
        return cleaned_data


class CertificateReviewForm(forms.Form):
    status = forms.ChoiceField(
        choices=[
            (MedicalCertificate.Status.APPROVED, "Approved"),
            (MedicalCertificate.Status.REJECTED, "Rejected"),
        ]
    )
    review_notes = forms.CharField(required=False)
