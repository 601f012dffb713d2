from base.forms import AccountModelForm
from .models import OfficeStaff


class OfficeStaffForm(AccountModelForm):
    group_name = "Office"

    class Meta:
        model = OfficeStaff
        fields = ["phone", "department", "designation", "is_active"]

    def account_is_active(self, profile) -> bool:
        return profile.is_active
