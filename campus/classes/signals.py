from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from .models import ScheduleEntry
from .periods import get_period_service


@receiver(post_save, sender=ScheduleEntry)
@receiver(post_delete, sender=ScheduleEntry)
def invalidate_period_cache(sender, instance, **kwargs):
    get_period_service().invalidate_schedule_cache(
        class_id=instance.classroom_id, teacher_id=instance.teacher_id
    )
