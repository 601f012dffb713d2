from django import forms

from .models import Classroom, ScheduleEntry


class ClassroomForm(forms.ModelForm):
    class Meta:
        model = Classroom
        fields = ["name", "session", "major", "semester", "description"]


class ScheduleEntryForm(forms.ModelForm):
    class Meta:
        model = ScheduleEntry
        fields = [
            "classroom",
            "teacher",
            "subject",
            "hours",
            "day_of_week",
            "start_time",
            "end_time",
            "is_active",
        ]

    def clean(self):
        cleaned_data = super().clean()
        start_time = cleaned_data.get("start_time")
        end_time = cleaned_data.get("end_time")
        if start_time and end_time and end_time <= start_time:
            self.add_error("end_time", "End time must be after the start time")
        return cleaned_data
