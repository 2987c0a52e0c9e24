import logging

from django.conf import settings
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver

from main.models import Payment, Profile, Student

logger = logging.getLogger(__name__)


@receiver(post_save, sender=settings.AUTH_USER_MODEL)
def create_profile_for_new_user(sender, instance, created, raw=False, **kwargs):
    """Every user gets a profile on sign-up; the full name comes from the user when known."""
    if raw or not created:
        return
    full_name = f"{instance.first_name} {instance.last_name}".strip()
    Profile.objects.get_or_create(user=instance, defaults={"full_name": full_name})


# app_label.ModelName style avoids import cycle
@receiver(post_save, sender="main.Payment")
@receiver(post_delete, sender="main.Payment")
def sync_student_payment_status(sender, instance: Payment, raw=False, **kwargs):
    """Keep Student.payment_status derivable from the student's payments."""
    if raw:
        return
    student = Student.default_objects.filter(pk=instance.student_id).first()
    if student is None:
        # student is being deleted along with its payments
        return
    status = student.refresh_payment_status()
    logger.debug("Student %s payment status is %s", student.pk, status)
